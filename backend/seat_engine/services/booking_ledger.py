"""
Booking ledger: durable bookings with their seat and item rows.

Status changes are compare-and-swap updates:

  UPDATE bookings SET status = :to
  WHERE id = :booking_id AND status = 'PENDING_PAYMENT'

Only one writer can move a booking out of PENDING_PAYMENT. A duplicate or
reordered payment outcome finds rowcount == 0 and is told so, instead of
re-applying a transition. Same idea as a version column, keyed on status.
"""

import math
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from seat_engine.core.logging import get_logger
from seat_engine.models.booking import Booking, BookingItem, BookingSeat, BookingStatus

logger = get_logger(__name__)


class BookingLedger:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, booking: Booking) -> Booking:
        """
        Insert a booking with its seat and item rows in one transaction.
        On any failure the transaction is rolled back and the error propagates.
        """
        self.db.add(booking)
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return await self.get(booking.id)

    async def get(self, booking_id: int) -> Optional[Booking]:
        result = await self.db.execute(
            select(Booking)
            .where(Booking.id == booking_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_status(self, booking_id: int) -> Optional[str]:
        result = await self.db.execute(select(Booking.status).where(Booking.id == booking_id))
        return result.scalar_one_or_none()

    async def mark_paid(self, booking_id: int, payment_method: Optional[str]) -> bool:
        """PENDING_PAYMENT -> PAID. False if the booking is not pending (or gone)."""
        result = await self.db.execute(
            update(Booking)
            .where(
                Booking.id == booking_id,
                Booking.status == BookingStatus.PENDING_PAYMENT.value,
            )
            .values(status=BookingStatus.PAID.value, payment_method=payment_method)
        )
        await self.db.commit()
        return result.rowcount == 1

    async def fail_and_delete(self, booking_id: int) -> Optional[tuple[str, list[str]]]:
        """
        PENDING_PAYMENT -> FAILED, then delete the booking with its seat and item rows,
        all in one transaction.

        Returns:
            (showtime_id, seat_ids) of the removed booking
            None if the booking was not pending (already paid, or already removed)
        """
        try:
            claimed = await self.db.execute(
                update(Booking)
                .where(
                    Booking.id == booking_id,
                    Booking.status == BookingStatus.PENDING_PAYMENT.value,
                )
                .values(status=BookingStatus.FAILED.value)
            )
            if claimed.rowcount != 1:
                await self.db.rollback()
                return None

            showtime_id = (
                await self.db.execute(select(Booking.showtime_id).where(Booking.id == booking_id))
            ).scalar_one()
            seat_ids = list(
                (
                    await self.db.execute(
                        select(BookingSeat.seat_id)
                        .where(BookingSeat.booking_id == booking_id)
                        .order_by(BookingSeat.seat_id)
                    )
                ).scalars()
            )

            await self.db.execute(delete(BookingItem).where(BookingItem.booking_id == booking_id))
            await self.db.execute(delete(BookingSeat).where(BookingSeat.booking_id == booking_id))
            await self.db.execute(delete(Booking).where(Booking.id == booking_id))
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        return showtime_id, seat_ids

    async def mark_used(self, booking_id: int) -> bool:
        """Set is_used on a PAID booking. False if it is not PAID."""
        result = await self.db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == BookingStatus.PAID.value)
            .values(is_used=True)
        )
        await self.db.commit()
        return result.rowcount == 1

    async def list_for_user(self, user_id: str, page: int = 1, limit: int = 10) -> tuple[list[Booking], int]:
        total = (
            await self.db.execute(select(func.count()).select_from(Booking).where(Booking.user_id == user_id))
        ).scalar()

        result = await self.db.execute(
            select(Booking)
            .where(Booking.user_id == user_id)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def booked_seats(self, showtime_id: str) -> list[BookingSeat]:
        """Seat rows of every live booking for a showtime (pending or paid)."""
        result = await self.db.execute(
            select(BookingSeat)
            .where(BookingSeat.showtime_id == showtime_id)
            .order_by(BookingSeat.seat_id)
        )
        return list(result.scalars().all())

    async def taken_seats(self, showtime_id: str, seat_ids: list[str]) -> list[str]:
        """Which of `seat_ids` already belong to a live booking for the showtime."""
        if not seat_ids:
            return []
        result = await self.db.execute(
            select(BookingSeat.seat_id)
            .where(BookingSeat.showtime_id == showtime_id, BookingSeat.seat_id.in_(seat_ids))
            .order_by(BookingSeat.seat_id)
        )
        return list(result.scalars().all())


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0
