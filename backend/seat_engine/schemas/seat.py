"""
Pydantic schemas for seat holds and seat-status events.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field

from seat_engine.schemas.base import CamelModel


class SeatStatus(str, Enum):
    HELD = "held"
    BOOKED = "booked"
    RELEASED = "released"


class SeatHold(CamelModel):
    """Value stored under hold:{showtimeId}:{seatId}. Replaced wholesale, never mutated."""

    owner_user_id: str
    showtime_id: str
    seat_id: str
    extra_price: Decimal = Decimal("0")
    expires_at: Optional[datetime] = None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw: str) -> "SeatHold":
        return cls.model_validate_json(raw)


class SeatStatusEvent(CamelModel):
    """Broadcast payload. Informational only, never a source of truth."""

    showtime_id: str
    seat_id: str
    status: SeatStatus
    expires_at: Optional[datetime] = None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class HoldRequest(CamelModel):
    showtime_id: str = Field(..., min_length=1, max_length=64)
    seat_id: str = Field(..., min_length=1, max_length=64)


class HeldSeatsResponse(CamelModel):
    showtime_id: str
    holds: list[SeatHold]


class BookedSeatResponse(CamelModel):
    booking_id: int
    showtime_id: str
    seat_id: str
