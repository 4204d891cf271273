"""
Booking coordinator: turns a user's seat holds into a durable booking.

Flow:
  1. Reject duplicate seat ids before touching the lock store.
  2. Check every hold belongs to the requester. One bad seat aborts the whole
     booking; nothing is written and no hold is released. Seats already on a
     pending or paid booking are rejected as well.
  3. Price seats (showtime price + seat surcharge from the hold) and items
     from the catalog. Calls are bounded by a timeout shorter than the TTL.
  4. Insert booking + seat rows + item rows in one ledger transaction,
     status PENDING_PAYMENT. A failed commit leaves holds in place so the
     user can retry until they expire.
  5. Release the holds (the booking row now owns the seats; a lock store
     outage here only leaves them to expire) and publish
     `held` per seat so viewers keep showing them as unavailable while
     payment is in progress.

The coordinator never changes a booking after creating it; status moves
belong to the payment reconciler.
"""

import time
from collections import Counter
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from seat_engine.core.errors import (
    BookingCommitFailure,
    CatalogEntryNotFound,
    CatalogUnavailable,
    DuplicateSeatInRequest,
    SeatAlreadyBooked,
    SeatEngineError,
    SeatLockStoreUnavailable,
)
from seat_engine.core.logging import get_logger
from seat_engine.core.metrics import booking_latency, record_booking_attempt
from seat_engine.core.result import Err, Ok, Result
from seat_engine.core.security import BookingRequester
from seat_engine.models.booking import Booking, BookingItem, BookingSeat, BookingStatus
from seat_engine.schemas.booking import BookingItemRequest
from seat_engine.schemas.seat import SeatHold, SeatStatus
from seat_engine.services.booking_ledger import BookingLedger
from seat_engine.services.interfaces.catalog import PricingCatalog
from seat_engine.services.seat_event_broadcaster import SeatEventBroadcaster
from seat_engine.services.seat_lock_manager import SeatLockManager

logger = get_logger(__name__)


class BookingCoordinator:
    def __init__(
        self,
        db: AsyncSession,
        lock_manager: SeatLockManager,
        catalog: PricingCatalog,
        broadcaster: SeatEventBroadcaster,
    ):
        self.ledger = BookingLedger(db)
        self.lock_manager = lock_manager
        self.catalog = catalog
        self.broadcaster = broadcaster

    async def create_booking(
        self,
        requester: BookingRequester,
        showtime_id: str,
        cinema_id: Optional[str],
        seat_ids: list[str],
        items: list[BookingItemRequest],
    ) -> Result[Booking, SeatEngineError]:
        duplicates = sorted(seat for seat, count in Counter(seat_ids).items() if count > 1)
        if duplicates:
            record_booking_attempt("rejected")
            return Err(DuplicateSeatInRequest(duplicates))

        # Step 1: every hold must exist and belong to whoever placed it
        holds: list[SeatHold] = []
        for seat_id in seat_ids:
            checked = await self.lock_manager.check_ownership(showtime_id, seat_id, requester.actor_id)
            if isinstance(checked, Err):
                record_booking_attempt("rejected")
                logger.warning(
                    "booking_rejected",
                    reason=checked.error.code,
                    showtime_id=showtime_id,
                    seat_id=seat_id,
                    user_id=requester.actor_id,
                )
                return checked
            holds.append(checked.value)

        # A hold on a seat that a pending or paid booking already owns is not enough
        taken = await self.ledger.taken_seats(showtime_id, seat_ids)
        if taken:
            record_booking_attempt("rejected")
            logger.warning(
                "booking_rejected",
                reason=SeatAlreadyBooked.code,
                showtime_id=showtime_id,
                seats=taken,
                user_id=requester.actor_id,
            )
            return Err(SeatAlreadyBooked(showtime_id, taken))

        # Step 2: pricing
        try:
            seat_rows, item_rows = await self._price(showtime_id, holds, items)
        except (CatalogUnavailable, CatalogEntryNotFound) as e:
            record_booking_attempt("rejected")
            return Err(e)

        total_price = sum((row.price for row in seat_rows), Decimal("0")) + sum(
            (row.unit_price * row.quantity for row in item_rows), Decimal("0")
        )

        # Step 3: one transaction for the booking and all its rows
        booking = Booking(
            user_id=requester.owner_user_id,
            showtime_id=showtime_id,
            cinema_id=cinema_id,
            total_price=total_price,
            status=BookingStatus.PENDING_PAYMENT.value,
            type=requester.booking_type,
            is_used=False,
            seats=seat_rows,
            items=item_rows,
        )
        started = time.perf_counter()
        try:
            booking = await self.ledger.create(booking)
        except IntegrityError:
            # another booking committed one of these seats after the check above
            record_booking_attempt("rejected")
            logger.warning(
                "booking_rejected",
                reason=SeatAlreadyBooked.code,
                showtime_id=showtime_id,
                seats=seat_ids,
                user_id=requester.actor_id,
            )
            return Err(SeatAlreadyBooked(showtime_id, sorted(seat_ids)))
        except SQLAlchemyError as e:
            record_booking_attempt("commit_failure")
            logger.error(
                "booking_commit_failed",
                showtime_id=showtime_id,
                seats=seat_ids,
                user_id=requester.actor_id,
                error=str(e),
            )
            return Err(BookingCommitFailure())
        booking_latency.observe(time.perf_counter() - started)

        # Step 4: the booking row owns the seats now. Holds a store outage leaves
        # behind expire with their TTL.
        for seat_id in seat_ids:
            try:
                await self.lock_manager.release_if_owned(showtime_id, seat_id, requester.actor_id)
            except SeatLockStoreUnavailable:
                logger.warning(
                    "hold_release_after_commit_failed",
                    booking_id=booking.id,
                    showtime_id=showtime_id,
                    seat_id=seat_id,
                )
        await self.broadcaster.publish_many(showtime_id, seat_ids, SeatStatus.HELD)

        record_booking_attempt("success")
        logger.info(
            "booking_committed",
            booking_id=booking.id,
            showtime_id=showtime_id,
            seats=seat_ids,
            items=len(item_rows),
            total_price=str(total_price),
            type=booking.type,
            user_id=requester.actor_id,
        )
        return Ok(booking)

    async def _price(
        self,
        showtime_id: str,
        holds: list[SeatHold],
        items: list[BookingItemRequest],
    ) -> tuple[list[BookingSeat], list[BookingItem]]:
        seat_rows = []
        if holds:
            base_price = await self.catalog.showtime_price(showtime_id)
            seat_rows = [
                BookingSeat(
                    showtime_id=showtime_id,
                    seat_id=hold.seat_id,
                    price=base_price + hold.extra_price,
                )
                for hold in holds
            ]

        item_rows = []
        for item in items:
            unit_price = await self.catalog.item_price(item.item_id)
            item_rows.append(
                BookingItem(item_id=item.item_id, quantity=item.quantity, unit_price=unit_price)
            )
        return seat_rows, item_rows
