"""
Seat-status broadcaster.

Publishes every seat state change to one fixed pub/sub channel. Delivery is
fire-and-forget: no acknowledgment, no retry, no cross-seat ordering. A
viewer that misses an event re-fetches held seats and booked seats, which
are the source of truth; the broadcast only shortens the time until a seat
map reflects a change.
"""

from datetime import datetime
from typing import Iterable, Optional

from seat_engine.core.logging import get_logger
from seat_engine.core.metrics import record_seat_event
from seat_engine.schemas.seat import SeatStatus, SeatStatusEvent
from seat_engine.services.interfaces.event_channel import SeatEventChannel

logger = get_logger(__name__)


class SeatEventBroadcaster:
    def __init__(self, channel: SeatEventChannel):
        self.channel = channel

    async def publish(
        self,
        showtime_id: str,
        seat_id: str,
        status: SeatStatus,
        expires_at: Optional[datetime] = None,
    ) -> None:
        event = SeatStatusEvent(
            showtime_id=showtime_id,
            seat_id=seat_id,
            status=status,
            expires_at=expires_at,
        )
        try:
            await self.channel.publish(event.to_json())
        except Exception as e:
            # Never fail the caller's state transition over a lost notification
            logger.warning(
                "seat_event_publish_failed",
                showtime_id=showtime_id,
                seat_id=seat_id,
                status=status.value,
                error=str(e),
            )
            return

        record_seat_event(status.value)
        logger.debug("seat_event_published", showtime_id=showtime_id, seat_id=seat_id, status=status.value)

    async def publish_many(
        self,
        showtime_id: str,
        seat_ids: Iterable[str],
        status: SeatStatus,
        expires_at: Optional[datetime] = None,
    ) -> None:
        for seat_id in seat_ids:
            await self.publish(showtime_id, seat_id, status, expires_at)
