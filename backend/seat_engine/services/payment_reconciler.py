"""
Payment reconciler: aligns booking status with the provider's verdict.

State machine per booking:

  PENDING_PAYMENT --success--> PAID      publish `booked` per seat
  PENDING_PAYMENT --failure--> deleted   publish `released` per seat

Callbacks, status polls and the internal status endpoint all feed the same
`apply_outcome`. Each transition is a compare-and-swap on status in the
ledger, so duplicates and out-of-order deliveries are safe:

  - success on a PAID booking        -> already handled, nothing re-published
  - failure on a removed booking     -> already handled
  - success on a removed booking     -> already handled (logged, seats are gone)
  - failure on a PAID booking        -> rejected, PAID never moves backwards

A callback that fails signature verification counts as a failure.
Whatever happens inside, the provider only ever sees the terminal effect.
"""

from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from seat_engine.core.errors import PaymentProviderError, PaymentVerificationFailure
from seat_engine.core.logging import get_logger
from seat_engine.core.metrics import record_payment_outcome
from seat_engine.models.booking import BookingStatus
from seat_engine.schemas.payment import PaymentOutcome, PaymentOutcomeKind, ReconcileResult
from seat_engine.schemas.seat import SeatStatus
from seat_engine.services.booking_ledger import BookingLedger
from seat_engine.services.interfaces.payment import (
    PaymentStatusClient,
    PaymentVerifier,
    ProviderStatus,
    Verification,
)
from seat_engine.services.seat_event_broadcaster import SeatEventBroadcaster

logger = get_logger(__name__)

BOOKING_ID_FIELD = "bookingId"
STATUS_FIELD = "status"


class PaymentReconciler:
    def __init__(
        self,
        db: AsyncSession,
        broadcaster: SeatEventBroadcaster,
        verifiers: dict[str, PaymentVerifier],
        status_client: Optional[PaymentStatusClient] = None,
        max_poll_attempts: int = 3,
    ):
        self.ledger = BookingLedger(db)
        self.broadcaster = broadcaster
        self.verifiers = verifiers
        self.status_client = status_client
        self.max_poll_attempts = max_poll_attempts

    async def apply_outcome(self, outcome: PaymentOutcome) -> ReconcileResult:
        """The single idempotent transition used by every entry point."""
        if outcome.outcome == PaymentOutcomeKind.SUCCESS:
            result = await self._mark_paid(outcome.booking_id, outcome.provider)
        else:
            result = await self._fail(outcome.booking_id, outcome.provider)
        record_payment_outcome(result.value)
        return result

    async def handle_callback(
        self, provider: str, raw_payload: dict[str, Any]
    ) -> tuple[Optional[int], ReconcileResult]:
        """
        Process a provider webhook. Never raises for payment problems; the
        caller acknowledges the provider with whatever terminal result comes back.
        """
        booking_id = self._booking_id(raw_payload)
        if booking_id is None:
            logger.warning("payment_callback_unusable", provider=provider, reason="missing_booking_id")
            record_payment_outcome(ReconcileResult.REJECTED.value)
            return None, ReconcileResult.REJECTED

        verifier = self.verifiers.get(provider)
        if verifier is None or verifier.verify(raw_payload) == Verification.TAMPERED:
            error = PaymentVerificationFailure(f"{provider} callback for booking {booking_id} failed verification")
            logger.warning("payment_verification_failed", provider=provider, booking_id=booking_id, error=error.message)
            kind = PaymentOutcomeKind.FAILURE
        elif str(raw_payload.get(STATUS_FIELD, "")).lower() == PaymentOutcomeKind.SUCCESS.value:
            kind = PaymentOutcomeKind.SUCCESS
        else:
            kind = PaymentOutcomeKind.FAILURE

        result = await self.apply_outcome(
            PaymentOutcome(
                booking_id=booking_id,
                outcome=kind,
                provider=provider,
                raw_provider_payload=raw_payload,
            )
        )
        return booking_id, result

    async def check_status(self, provider: str, booking_id: int) -> ReconcileResult:
        """
        Poll the provider and apply a definitive answer.
        Network failures are retried; after the last attempt PaymentProviderError
        propagates and the booking is left as it was.
        """
        if self.status_client is None:
            raise PaymentProviderError("Payment status polling is not configured")

        status = None
        for attempt in range(1, self.max_poll_attempts + 1):
            try:
                status = await self.status_client.query_status(provider, booking_id)
                break
            except PaymentProviderError:
                logger.info(
                    "payment_status_retry",
                    provider=provider,
                    booking_id=booking_id,
                    attempt=attempt,
                )
                if attempt == self.max_poll_attempts:
                    raise

        if status == ProviderStatus.PENDING:
            return ReconcileResult.PENDING

        kind = PaymentOutcomeKind.SUCCESS if status == ProviderStatus.SUCCESS else PaymentOutcomeKind.FAILURE
        return await self.apply_outcome(
            PaymentOutcome(
                booking_id=booking_id,
                outcome=kind,
                provider=provider,
                raw_provider_payload={STATUS_FIELD: status.value},
            )
        )

    async def _mark_paid(self, booking_id: int, payment_method: str) -> ReconcileResult:
        if await self.ledger.mark_paid(booking_id, payment_method):
            booking = await self.ledger.get(booking_id)
            await self.broadcaster.publish_many(booking.showtime_id, booking.seat_ids, SeatStatus.BOOKED)
            logger.info("payment_marked_paid", booking_id=booking_id, payment_method=payment_method)
            return ReconcileResult.PAID

        current = await self.ledger.get_status(booking_id)
        if current == BookingStatus.PAID.value:
            logger.info("payment_already_paid", booking_id=booking_id)
            return ReconcileResult.ALREADY_HANDLED
        if current is None:
            logger.warning("payment_success_for_removed_booking", booking_id=booking_id, payment_method=payment_method)
            return ReconcileResult.ALREADY_HANDLED

        logger.warning("payment_transition_rejected", booking_id=booking_id, current=current, to=BookingStatus.PAID.value)
        return ReconcileResult.REJECTED

    async def _fail(self, booking_id: int, payment_method: str) -> ReconcileResult:
        removed = await self.ledger.fail_and_delete(booking_id)
        if removed is not None:
            showtime_id, seat_ids = removed
            await self.broadcaster.publish_many(showtime_id, seat_ids, SeatStatus.RELEASED)
            logger.info(
                "payment_failed_booking_removed",
                booking_id=booking_id,
                payment_method=payment_method,
                seats_released=seat_ids,
            )
            return ReconcileResult.FAILED

        current = await self.ledger.get_status(booking_id)
        if current is None:
            logger.info("payment_failure_already_handled", booking_id=booking_id)
            return ReconcileResult.ALREADY_HANDLED

        logger.warning("payment_transition_rejected", booking_id=booking_id, current=current, to=BookingStatus.FAILED.value)
        return ReconcileResult.REJECTED

    @staticmethod
    def _booking_id(raw_payload: dict[str, Any]) -> Optional[int]:
        try:
            return int(raw_payload[BOOKING_ID_FIELD])
        except (KeyError, TypeError, ValueError):
            return None
