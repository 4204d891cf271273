from seat_engine.schemas.seat import (
    SeatStatus, SeatHold, SeatStatusEvent, HoldRequest, HeldSeatsResponse, BookedSeatResponse,
)
from seat_engine.schemas.booking import (
    BookingCreate, BookingItemRequest, BookingResponse, BookingListResponse,
    BookingStatusUpdate, BookingStatusResponse, Pagination,
)
from seat_engine.schemas.payment import PaymentOutcome, PaymentOutcomeKind, ReconcileResult, WebhookAck

__all__ = [
    "SeatStatus", "SeatHold", "SeatStatusEvent", "HoldRequest", "HeldSeatsResponse", "BookedSeatResponse",
    "BookingCreate", "BookingItemRequest", "BookingResponse", "BookingListResponse",
    "BookingStatusUpdate", "BookingStatusResponse", "Pagination",
    "PaymentOutcome", "PaymentOutcomeKind", "ReconcileResult", "WebhookAck",
]
