"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import Field, model_validator

from seat_engine.schemas.base import CamelModel


class BookingItemRequest(CamelModel):
    item_id: str = Field(..., min_length=1, max_length=64)
    quantity: int = Field(default=1, gt=0, le=50)


class BookingCreate(CamelModel):
    showtime_id: str = Field(..., min_length=1, max_length=64)
    cinema_id: Optional[str] = Field(None, max_length=64)
    seat_ids: list[str] = Field(default_factory=list, max_length=20)
    items: list[BookingItemRequest] = Field(default_factory=list, max_length=20)

    @model_validator(mode="after")
    def check_not_empty(self) -> "BookingCreate":
        if not self.seat_ids and not self.items:
            raise ValueError("A booking needs at least one seat or item")
        return self


class BookingSeatResponse(CamelModel):
    seat_id: str
    showtime_id: str
    price: Decimal


class BookingItemResponse(CamelModel):
    item_id: str
    quantity: int
    unit_price: Decimal


class BookingResponse(CamelModel):
    id: int
    user_id: Optional[str]
    showtime_id: str
    cinema_id: Optional[str]
    total_price: Decimal
    status: str
    type: str
    payment_method: Optional[str]
    is_used: bool
    seats: list[BookingSeatResponse]
    items: list[BookingItemResponse]
    created_at: datetime


class Pagination(CamelModel):
    total_items: int
    total_pages: int
    current_page: int
    page_size: int
    has_next_page: bool
    has_prev_page: bool


class BookingListResponse(CamelModel):
    pagination: Pagination
    data: list[BookingResponse]


class BookingStatusUpdate(CamelModel):
    status: Literal["PAID", "FAILED"]
    payment_method: Optional[str] = Field(None, max_length=30)


class BookingStatusResponse(CamelModel):
    booking_id: int
    status: str
    outcome: str
