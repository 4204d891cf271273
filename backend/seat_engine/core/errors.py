"""
Error taxonomy for the reservation engine.

Every error carries a stable `code` (rendered to clients) and the HTTP
status it maps to. Seat-lock and booking-validation errors travel inside
`Err` results; payment errors are resolved inside the reconciler.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse

from seat_engine.core.logging import get_logger

logger = get_logger(__name__)


class SeatEngineError(Exception):
    code = "seat_engine_error"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = ""):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)


class SeatAlreadyHeld(SeatEngineError):
    """Seat is no longer available."""

    code = "seat_already_held"
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, showtime_id: str, seat_id: str):
        self.showtime_id = showtime_id
        self.seat_id = seat_id
        super().__init__(f"Seat {seat_id} is no longer available")


class SeatNotHeld(SeatEngineError):
    """Your reservation expired, please reselect seats."""

    code = "seat_not_held"
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, showtime_id: str, seat_id: str):
        self.showtime_id = showtime_id
        self.seat_id = seat_id
        super().__init__(f"Your reservation for seat {seat_id} expired, please reselect seats")


class SeatHeldByOther(SeatEngineError):
    code = "seat_held_by_other"
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, showtime_id: str, seat_id: str):
        self.showtime_id = showtime_id
        self.seat_id = seat_id
        super().__init__(f"Seat {seat_id} is held by another user, please reselect seats")


class SeatAlreadyBooked(SeatEngineError):
    code = "seat_already_booked"
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, showtime_id: str, seat_ids: list[str]):
        self.showtime_id = showtime_id
        self.seat_ids = seat_ids
        super().__init__(f"Seats already booked: {', '.join(seat_ids)}, please reselect seats")


class DuplicateSeatInRequest(SeatEngineError):
    code = "duplicate_seat"
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, seat_ids: list[str]):
        self.seat_ids = seat_ids
        super().__init__(f"Duplicate seats in request: {', '.join(seat_ids)}")


class BookingCommitFailure(SeatEngineError):
    """Booking could not be saved, please try again."""

    code = "booking_commit_failure"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE


class BookingNotFound(SeatEngineError):
    code = "booking_not_found"
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, booking_id: int):
        self.booking_id = booking_id
        super().__init__(f"Booking {booking_id} not found")


class InvalidStatusTransition(SeatEngineError):
    code = "invalid_status_transition"
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Illegal booking status transition: {from_status} -> {to_status}")


class PaymentVerificationFailure(SeatEngineError):
    code = "payment_verification_failure"
    http_status = status.HTTP_400_BAD_REQUEST


class PaymentProviderError(SeatEngineError):
    code = "payment_provider_error"
    http_status = status.HTTP_502_BAD_GATEWAY


class CatalogUnavailable(SeatEngineError):
    code = "catalog_unavailable"
    http_status = status.HTTP_502_BAD_GATEWAY


class CatalogEntryNotFound(SeatEngineError):
    """Showtime, seat or item does not exist."""

    code = "invalid_booking_data"
    http_status = status.HTTP_400_BAD_REQUEST


class SeatLockStoreUnavailable(SeatEngineError):
    """Seat reservations are temporarily unavailable."""

    code = "seat_lock_store_unavailable"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE


class FanoutCapacityExceeded(SeatEngineError):
    """Too many viewers for this showtime."""

    code = "fanout_capacity_exceeded"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE


class NotAuthorized(SeatEngineError):
    code = "not_authorized"
    http_status = status.HTTP_403_FORBIDDEN


async def seat_engine_error_handler(request: Request, exc: SeatEngineError) -> JSONResponse:
    logger.warning("request_rejected", error=exc.code, detail=exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content={"error": exc.code, "detail": exc.message},
    )
