"""
Booking endpoints: commit held seats into a booking, query bookings,
apply payment status, redeem tickets.
"""

from fastapi import APIRouter, Depends, Query, status

from seat_engine.api.deps import get_booking_coordinator, get_ledger, get_payment_reconciler
from seat_engine.core.errors import BookingNotFound, InvalidStatusTransition, NotAuthorized
from seat_engine.core.logging import get_logger
from seat_engine.core.security import (
    BookingRequester,
    Principal,
    get_current_principal,
    get_current_requester,
    require_staff,
)
from seat_engine.models.booking import BookingStatus
from seat_engine.schemas.booking import (
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingStatusResponse,
    BookingStatusUpdate,
    Pagination,
)
from seat_engine.schemas.payment import PaymentOutcome, PaymentOutcomeKind, ReconcileResult
from seat_engine.schemas.seat import BookedSeatResponse
from seat_engine.services.booking_coordinator import BookingCoordinator
from seat_engine.services.booking_ledger import BookingLedger, total_pages
from seat_engine.services.payment_reconciler import PaymentReconciler

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    requester: BookingRequester = Depends(get_current_requester),
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
):
    """
    Turn the caller's seat holds into a booking awaiting payment.

    All seats must still be held by the caller; if any hold expired or
    belongs to someone else nothing is booked and the caller must reselect.
    Staff callers book on behalf of a walk-in customer (no owner, offline).
    """
    result = await coordinator.create_booking(
        requester,
        booking_data.showtime_id,
        booking_data.cinema_id,
        booking_data.seat_ids,
        booking_data.items,
    )
    return result.unwrap()


@router.get("", response_model=BookingListResponse)
async def list_user_bookings(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
    ledger: BookingLedger = Depends(get_ledger),
):
    """Bookings owned by the authenticated user, newest first."""
    bookings, total = await ledger.list_for_user(principal.user_id, page, limit)
    pages = total_pages(total, limit)
    return BookingListResponse(
        pagination=Pagination(
            total_items=total,
            total_pages=pages,
            current_page=page,
            page_size=limit,
            has_next_page=page < pages,
            has_prev_page=page > 1,
        ),
        data=bookings,
    )


@router.get("/showtimes/{showtime_id}/seats", response_model=list[BookedSeatResponse])
async def list_booked_seats(
    showtime_id: str,
    ledger: BookingLedger = Depends(get_ledger),
):
    """Seats taken by bookings (awaiting payment or paid). Public, authoritative."""
    return await ledger.booked_seats(showtime_id)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    principal: Principal = Depends(get_current_principal),
    ledger: BookingLedger = Depends(get_ledger),
):
    booking = await ledger.get(booking_id)
    if booking is None:
        raise BookingNotFound(booking_id)
    if booking.user_id != principal.user_id and not principal.is_staff:
        raise NotAuthorized("Booking belongs to another user")
    return booking


@router.put("/{booking_id}/status", response_model=BookingStatusResponse)
async def update_booking_status(
    booking_id: int,
    update: BookingStatusUpdate,
    principal: Principal = Depends(require_staff),
    reconciler: PaymentReconciler = Depends(get_payment_reconciler),
):
    """
    Internal: apply a payment verdict. Same idempotent transition as the
    payment webhooks; publishes seat events as a side effect.
    """
    kind = PaymentOutcomeKind.SUCCESS if update.status == BookingStatus.PAID.value else PaymentOutcomeKind.FAILURE
    result = await reconciler.apply_outcome(
        PaymentOutcome(
            booking_id=booking_id,
            outcome=kind,
            provider=update.payment_method or "internal",
        )
    )
    current = await reconciler.ledger.get_status(booking_id)
    if result == ReconcileResult.REJECTED:
        raise InvalidStatusTransition(current or "REMOVED", update.status)

    # a removed booking is reported as FAILED, the state it passed through
    return BookingStatusResponse(
        booking_id=booking_id,
        status=current or BookingStatus.FAILED.value,
        outcome=result.value,
    )


@router.put("/{booking_id}/redeem", response_model=BookingResponse)
async def redeem_booking(
    booking_id: int,
    principal: Principal = Depends(require_staff),
    ledger: BookingLedger = Depends(get_ledger),
):
    """Operator marks a paid ticket as used at the door. Repeating it is harmless."""
    booking = await ledger.get(booking_id)
    if booking is None:
        raise BookingNotFound(booking_id)
    if booking.status != BookingStatus.PAID.value:
        raise InvalidStatusTransition(booking.status, "USED")

    if not booking.is_used:
        await ledger.mark_used(booking_id)
        logger.info("ticket_redeemed", booking_id=booking_id, operator_id=principal.user_id)
        booking = await ledger.get(booking_id)
    return booking
