"""
Booking ledger: a booking with its seat and item line items.

Key design decisions:
- user_id is nullable; null marks an operator booking for a walk-in customer
- BookingSeat/BookingItem rows are owned by the booking and removed with it
- status only moves forward: PENDING_PAYMENT -> PAID, or the booking is deleted
"""

import enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from seat_engine.db.base import Base, TimestampMixin


class BookingStatus(str, enum.Enum):
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PAID = "PAID"
    FAILED = "FAILED"


class BookingType(str, enum.Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=True, index=True)
    showtime_id = Column(String(64), nullable=False, index=True)
    cinema_id = Column(String(64), nullable=True)
    total_price = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING_PAYMENT.value)
    type = Column(String(10), nullable=False, default=BookingType.ONLINE.value)
    payment_method = Column(String(30), nullable=True)
    is_used = Column(Boolean, nullable=False, default=False)

    seats = relationship(
        "BookingSeat",
        back_populates="booking",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )
    items = relationship(
        "BookingItem",
        back_populates="booking",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING_PAYMENT', 'PAID', 'FAILED')", name="check_booking_status"
        ),
        CheckConstraint("type IN ('online', 'offline')", name="check_booking_type"),
        CheckConstraint("total_price >= 0", name="check_booking_total_non_negative"),
    )

    @property
    def seat_ids(self) -> list[str]:
        return [seat.seat_id for seat in self.seats]

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, showtime={self.showtime_id}, status={self.status})>"


class BookingSeat(Base):
    __tablename__ = "booking_seats"

    id = Column(Integer, primary_key=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    showtime_id = Column(String(64), nullable=False)
    seat_id = Column(String(64), nullable=False)
    price = Column(Numeric(12, 2), nullable=False, default=0)

    booking = relationship("Booking", back_populates="seats")

    # failed bookings delete their seat rows, so one row per seat means one live booking
    __table_args__ = (
        UniqueConstraint("showtime_id", "seat_id", name="uq_booking_seats_showtime_seat"),
        Index("ix_booking_seats_booking", "booking_id"),
    )

    def __repr__(self) -> str:
        return f"<BookingSeat(booking={self.booking_id}, showtime={self.showtime_id}, seat={self.seat_id})>"


class BookingItem(Base):
    __tablename__ = "booking_items"

    id = Column(Integer, primary_key=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    item_id = Column(String(64), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(12, 2), nullable=False, default=0)

    booking = relationship("Booking", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_booking_item_quantity_positive"),
    )
