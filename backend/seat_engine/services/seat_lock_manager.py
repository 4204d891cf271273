"""
Seat hold manager.

CONCURRENCY STRATEGY: Atomic set-if-absent with expiry
======================================================

Problem:
  Two users click the same seat at the same moment. If we read "no hold"
  and then write a hold in a second step, both requests can pass the read
  and both believe they own the seat.

Solution:
  A hold is a single key, hold:{showtimeId}:{seatId}, written with one
  set-if-absent-with-expiry call against the lock store. The store decides
  the winner; every other caller gets SeatAlreadyHeld. There is no
  application-level mutex and no explicit sweep: the store evicts the key
  when the TTL (300s by default) runs out.

  Releases that follow a successful booking are compare-and-delete, so a
  hold that expired mid-commit and was re-acquired by someone else is left
  alone.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Optional, Union

from pydantic import ValidationError

from seat_engine.core.errors import SeatAlreadyHeld, SeatHeldByOther, SeatNotHeld
from seat_engine.core.logging import get_logger
from seat_engine.core.metrics import record_hold_attempt
from seat_engine.core.result import Err, Ok, Result
from seat_engine.schemas.seat import SeatHold, SeatStatus
from seat_engine.services.interfaces.lock_store import SeatLockStore
from seat_engine.services.seat_event_broadcaster import SeatEventBroadcaster

logger = get_logger(__name__)

HOLD_KEY_PREFIX = "hold"
DEFAULT_HOLD_TTL_SECONDS = 300


def hold_key(showtime_id: str, seat_id: str) -> str:
    return f"{HOLD_KEY_PREFIX}:{showtime_id}:{seat_id}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SeatLockManager:
    def __init__(
        self,
        store: SeatLockStore,
        broadcaster: SeatEventBroadcaster,
        ttl_seconds: int = DEFAULT_HOLD_TTL_SECONDS,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.broadcaster = broadcaster
        self.ttl_seconds = ttl_seconds
        self._now = now

    async def acquire(
        self,
        showtime_id: str,
        seat_id: str,
        owner_user_id: str,
        extra_price: Decimal = Decimal("0"),
    ) -> Result[SeatHold, SeatAlreadyHeld]:
        """
        Claim a seat for `owner_user_id` for the hold TTL.
        Re-acquiring a seat you already hold is also SeatAlreadyHeld.
        """
        hold = SeatHold(
            owner_user_id=owner_user_id,
            showtime_id=showtime_id,
            seat_id=seat_id,
            extra_price=extra_price,
            expires_at=self._now() + timedelta(seconds=self.ttl_seconds),
        )

        acquired = await self.store.set_if_absent(
            hold_key(showtime_id, seat_id), hold.to_json(), self.ttl_seconds
        )
        if not acquired:
            record_hold_attempt("already_held")
            logger.info("seat_hold_rejected", showtime_id=showtime_id, seat_id=seat_id, user_id=owner_user_id)
            return Err(SeatAlreadyHeld(showtime_id, seat_id))

        record_hold_attempt("acquired")
        logger.info(
            "seat_hold_acquired",
            showtime_id=showtime_id,
            seat_id=seat_id,
            user_id=owner_user_id,
            ttl=self.ttl_seconds,
        )
        await self.broadcaster.publish(showtime_id, seat_id, SeatStatus.HELD, hold.expires_at)
        return Ok(hold)

    async def release(self, showtime_id: str, seat_id: str) -> None:
        """Idempotent delete of a hold."""
        await self.store.delete(hold_key(showtime_id, seat_id))
        logger.debug("seat_hold_released", showtime_id=showtime_id, seat_id=seat_id)

    async def release_if_owned(self, showtime_id: str, seat_id: str, owner_user_id: str) -> bool:
        """Delete the hold only while it still belongs to `owner_user_id`."""
        key = hold_key(showtime_id, seat_id)
        raw = await self.store.get(key)
        if raw is None:
            return False
        hold = self._parse(raw)
        if hold is None or hold.owner_user_id != owner_user_id:
            return False
        return await self.store.delete_if_value(key, raw)

    async def cancel_hold(
        self, showtime_id: str, seat_id: str, owner_user_id: str
    ) -> Result[None, SeatHeldByOther]:
        """Owner gives a seat back before booking. An absent hold is a no-op."""
        hold = await self.get_hold(showtime_id, seat_id)
        if hold is None:
            return Ok(None)
        if hold.owner_user_id != owner_user_id:
            return Err(SeatHeldByOther(showtime_id, seat_id))

        if await self.release_if_owned(showtime_id, seat_id, owner_user_id):
            logger.info("seat_hold_cancelled", showtime_id=showtime_id, seat_id=seat_id, user_id=owner_user_id)
            await self.broadcaster.publish(showtime_id, seat_id, SeatStatus.RELEASED)
        return Ok(None)

    async def get_hold(self, showtime_id: str, seat_id: str) -> Optional[SeatHold]:
        raw = await self.store.get(hold_key(showtime_id, seat_id))
        if raw is None:
            return None
        return self._parse(raw)

    async def list_held(self, showtime_id: str) -> list[SeatHold]:
        """All live holds for a showtime, ordered by seat."""
        entries = await self.store.scan(f"{HOLD_KEY_PREFIX}:{showtime_id}:")
        # the prefix for "T1" also matches keys of showtime "T1:A"
        holds = [
            hold
            for hold in map(self._parse, entries.values())
            if hold is not None and hold.showtime_id == showtime_id
        ]
        return sorted(holds, key=lambda h: h.seat_id)

    async def check_ownership(
        self, showtime_id: str, seat_id: str, owner_user_id: str
    ) -> Result[SeatHold, Union[SeatNotHeld, SeatHeldByOther]]:
        hold = await self.get_hold(showtime_id, seat_id)
        if hold is None:
            return Err(SeatNotHeld(showtime_id, seat_id))
        if hold.owner_user_id != owner_user_id:
            return Err(SeatHeldByOther(showtime_id, seat_id))
        return Ok(hold)

    async def verify_ownership(self, showtime_id: str, seat_id: str, owner_user_id: str) -> bool:
        result = await self.check_ownership(showtime_id, seat_id, owner_user_id)
        return result.ok

    @staticmethod
    def _parse(raw: str) -> Optional[SeatHold]:
        try:
            return SeatHold.from_json(raw)
        except ValidationError:
            logger.error("seat_hold_unreadable", value=raw)
            return None
