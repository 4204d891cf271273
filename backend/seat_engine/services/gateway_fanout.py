"""
Gateway fanout: relays seat-status events to the viewers of each showtime.

One background task subscribes to the seat channel. Each message is parsed
for its showtimeId and copied into the buffer of every viewer connected to
that showtime. Viewers are grouped by showtime in a registry owned by this
component, with explicit add on connect and remove on disconnect.

Delivery is best effort: a viewer whose buffer is full misses the event and
is expected to re-fetch the seat map.
"""

import asyncio
import json
from collections import defaultdict
from typing import Optional

from seat_engine.core.errors import FanoutCapacityExceeded
from seat_engine.core.logging import get_logger
from seat_engine.core.metrics import fanout_connections, record_fanout_delivery
from seat_engine.services.interfaces.event_channel import SeatEventChannel

logger = get_logger(__name__)


class ViewerConnection:
    """One open seat-map stream."""

    def __init__(self, showtime_id: str, queue_size: int):
        self.showtime_id = showtime_id
        self.queue: asyncio.Queue[str] = asyncio.Queue(maxsize=queue_size)
        self.is_active = True

    def offer(self, message: str) -> bool:
        try:
            self.queue.put_nowait(message)
            return True
        except asyncio.QueueFull:
            return False


class GatewayFanout:
    def __init__(
        self,
        channel: SeatEventChannel,
        max_connections_per_showtime: int = 1000,
        queue_size: int = 100,
    ):
        self.channel = channel
        self.max_connections_per_showtime = max_connections_per_showtime
        self.queue_size = queue_size
        # showtime_id -> viewers
        self.groups: dict[str, set[ViewerConnection]] = defaultdict(set)
        self._task: Optional[asyncio.Task] = None

    @property
    def connection_count(self) -> int:
        return sum(len(group) for group in self.groups.values())

    def connect(self, showtime_id: str) -> ViewerConnection:
        if len(self.groups.get(showtime_id, ())) >= self.max_connections_per_showtime:
            raise FanoutCapacityExceeded()

        connection = ViewerConnection(showtime_id, self.queue_size)
        self.groups[showtime_id].add(connection)
        fanout_connections.inc()
        logger.info(
            "viewer_connected",
            showtime_id=showtime_id,
            viewers=len(self.groups[showtime_id]),
        )
        return connection

    def disconnect(self, connection: ViewerConnection) -> None:
        group = self.groups.get(connection.showtime_id)
        if group is None or connection not in group:
            return

        group.discard(connection)
        connection.is_active = False
        fanout_connections.dec()
        if not group:
            del self.groups[connection.showtime_id]
        logger.info(
            "viewer_disconnected",
            showtime_id=connection.showtime_id,
            viewers=len(group),
        )

    def relay(self, raw: str) -> int:
        """Copy one channel message to its showtime's viewers. Returns deliveries made."""
        try:
            showtime_id = str(json.loads(raw)["showtimeId"])
        except (ValueError, KeyError, TypeError):
            logger.warning("seat_event_unreadable", message=raw)
            return 0

        delivered = 0
        for connection in list(self.groups.get(showtime_id, ())):
            ok = connection.offer(raw)
            record_fanout_delivery(ok)
            if ok:
                delivered += 1
            else:
                logger.debug("viewer_event_dropped", showtime_id=showtime_id)
        return delivered

    async def run(self) -> None:
        async for raw in self.channel.subscribe():
            self.relay(raw)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run_forever(), name="gateway-fanout")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run_forever(self, retry_delay: float = 1.0) -> None:
        while True:
            try:
                await self.run()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("fanout_subscription_lost", error=str(e))
            await asyncio.sleep(retry_delay)
