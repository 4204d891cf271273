"""
Tests for payment reconciliation: idempotent transitions, callbacks, polling.
"""

import pytest

from seat_engine.core.errors import PaymentProviderError, SeatAlreadyBooked
from seat_engine.core.security import SelfRequester
from seat_engine.models.booking import BookingStatus
from seat_engine.schemas.payment import PaymentOutcome, PaymentOutcomeKind, ReconcileResult
from seat_engine.services.booking_coordinator import BookingCoordinator
from seat_engine.services.interfaces import ProviderStatus
from seat_engine.services.payment_reconciler import PaymentReconciler

SHOWTIME = "showtime-1"


@pytest.fixture
def reconciler(db_session, container):
    return PaymentReconciler(
        db_session,
        container.broadcaster,
        container.verifiers,
        container.status_client,
        container.max_poll_attempts,
    )


@pytest.fixture
def make_booking(db_session, container):
    async def _make(seat_ids=("S3", "S4"), user_id="user-1"):
        for seat_id in seat_ids:
            assert (await container.lock_manager.acquire(SHOWTIME, seat_id, user_id)).ok
        coordinator = BookingCoordinator(
            db_session, container.lock_manager, container.catalog, container.broadcaster
        )
        result = await coordinator.create_booking(
            SelfRequester(user_id=user_id), SHOWTIME, None, list(seat_ids), []
        )
        return result.unwrap()

    return _make


def outcome(booking_id, kind, provider="momo"):
    return PaymentOutcome(booking_id=booking_id, outcome=kind, provider=provider)


@pytest.mark.asyncio
async def test_success_marks_paid_and_publishes_booked(reconciler, make_booking, channel):
    booking = await make_booking()

    result = await reconciler.apply_outcome(outcome(booking.id, PaymentOutcomeKind.SUCCESS))

    assert result == ReconcileResult.PAID
    stored = await reconciler.ledger.get(booking.id)
    assert stored.status == BookingStatus.PAID.value
    assert stored.payment_method == "momo"
    assert channel.statuses("S3")[-1] == "booked"
    assert channel.statuses("S4")[-1] == "booked"


@pytest.mark.asyncio
async def test_duplicate_success_is_already_handled(reconciler, make_booking, channel):
    booking = await make_booking()

    first = await reconciler.apply_outcome(outcome(booking.id, PaymentOutcomeKind.SUCCESS))
    second = await reconciler.apply_outcome(outcome(booking.id, PaymentOutcomeKind.SUCCESS))

    assert first == ReconcileResult.PAID
    assert second == ReconcileResult.ALREADY_HANDLED
    assert channel.statuses("S3").count("booked") == 1


@pytest.mark.asyncio
async def test_failure_deletes_booking_and_releases_seats(reconciler, make_booking, channel):
    booking = await make_booking()

    result = await reconciler.apply_outcome(outcome(booking.id, PaymentOutcomeKind.FAILURE))

    assert result == ReconcileResult.FAILED
    assert await reconciler.ledger.get(booking.id) is None
    assert await reconciler.ledger.booked_seats(SHOWTIME) == []
    assert channel.statuses("S3")[-1] == "released"
    assert channel.statuses("S4")[-1] == "released"


@pytest.mark.asyncio
async def test_failed_payment_frees_seat_for_another_user(reconciler, make_booking):
    first = await make_booking(seat_ids=("S3",), user_id="user-a")
    failed = await reconciler.apply_outcome(outcome(first.id, PaymentOutcomeKind.FAILURE))
    assert failed == ReconcileResult.FAILED

    second = await make_booking(seat_ids=("S3",), user_id="user-b")

    assert second.user_id == "user-b"
    assert second.status == BookingStatus.PENDING_PAYMENT.value
    booked = await reconciler.ledger.booked_seats(SHOWTIME)
    assert [(seat.booking_id, seat.seat_id) for seat in booked] == [(second.id, "S3")]


@pytest.mark.asyncio
@pytest.mark.parametrize("paid", [False, True])
async def test_seat_of_live_booking_cannot_be_booked_again(
    reconciler, make_booking, db_session, container, paid
):
    first = await make_booking(seat_ids=("S3",), user_id="user-a")
    if paid:
        await reconciler.apply_outcome(outcome(first.id, PaymentOutcomeKind.SUCCESS))

    # the hold key is free once A has booked, so B can hold S3 but not book it
    assert (await container.lock_manager.acquire(SHOWTIME, "S3", "user-b")).ok
    coordinator = BookingCoordinator(db_session, container.lock_manager, container.catalog, container.broadcaster)
    result = await coordinator.create_booking(SelfRequester(user_id="user-b"), SHOWTIME, None, ["S3"], [])

    assert isinstance(result.error, SeatAlreadyBooked)
    assert result.error.seat_ids == ["S3"]
    expected = BookingStatus.PAID if paid else BookingStatus.PENDING_PAYMENT
    assert await reconciler.ledger.get_status(first.id) == expected.value
    assert [seat.booking_id for seat in await reconciler.ledger.booked_seats(SHOWTIME)] == [first.id]


@pytest.mark.asyncio
async def test_duplicate_failure_is_already_handled(reconciler, make_booking, channel):
    booking = await make_booking()
    await reconciler.apply_outcome(outcome(booking.id, PaymentOutcomeKind.FAILURE))

    result = await reconciler.apply_outcome(outcome(booking.id, PaymentOutcomeKind.FAILURE))

    assert result == ReconcileResult.ALREADY_HANDLED
    assert channel.statuses("S3").count("released") == 1


@pytest.mark.asyncio
async def test_failure_after_paid_is_rejected(reconciler, make_booking):
    booking = await make_booking()
    await reconciler.apply_outcome(outcome(booking.id, PaymentOutcomeKind.SUCCESS))

    result = await reconciler.apply_outcome(outcome(booking.id, PaymentOutcomeKind.FAILURE))

    assert result == ReconcileResult.REJECTED
    assert (await reconciler.ledger.get(booking.id)).status == BookingStatus.PAID.value


@pytest.mark.asyncio
async def test_success_after_removal_is_already_handled(reconciler, make_booking, channel):
    booking = await make_booking()
    await reconciler.apply_outcome(outcome(booking.id, PaymentOutcomeKind.FAILURE))

    result = await reconciler.apply_outcome(outcome(booking.id, PaymentOutcomeKind.SUCCESS))

    assert result == ReconcileResult.ALREADY_HANDLED
    assert "booked" not in channel.statuses("S3")


@pytest.mark.asyncio
async def test_unknown_booking_is_already_handled(reconciler):
    result = await reconciler.apply_outcome(outcome(9999, PaymentOutcomeKind.SUCCESS))
    assert result == ReconcileResult.ALREADY_HANDLED


@pytest.mark.asyncio
async def test_signed_success_callback(reconciler, make_booking, signed):
    booking = await make_booking()

    booking_id, result = await reconciler.handle_callback(
        "momo", signed({"bookingId": booking.id, "status": "success"})
    )

    assert booking_id == booking.id
    assert result == ReconcileResult.PAID


@pytest.mark.asyncio
async def test_tampered_callback_counts_as_failure(reconciler, make_booking, signed):
    booking = await make_booking()
    payload = signed({"bookingId": booking.id, "status": "failure"})
    payload["status"] = "success"

    _, result = await reconciler.handle_callback("momo", payload)

    assert result == ReconcileResult.FAILED
    assert await reconciler.ledger.get(booking.id) is None


@pytest.mark.asyncio
async def test_callback_signed_for_other_provider_fails(reconciler, make_booking, signed):
    booking = await make_booking()

    _, result = await reconciler.handle_callback(
        "vnpay", signed({"bookingId": booking.id, "status": "success"}, provider="momo")
    )

    assert result == ReconcileResult.FAILED


@pytest.mark.asyncio
async def test_callback_without_booking_id_is_rejected(reconciler, signed):
    booking_id, result = await reconciler.handle_callback("momo", signed({"status": "success"}))

    assert booking_id is None
    assert result == ReconcileResult.REJECTED


@pytest.mark.asyncio
async def test_poll_applies_definitive_answer(reconciler, make_booking, status_client):
    booking = await make_booking()
    status_client.script = [ProviderStatus.SUCCESS]

    result = await reconciler.check_status("momo", booking.id)

    assert result == ReconcileResult.PAID


@pytest.mark.asyncio
async def test_poll_pending_leaves_booking_alone(reconciler, make_booking, status_client):
    booking = await make_booking()
    status_client.script = [ProviderStatus.PENDING]

    result = await reconciler.check_status("momo", booking.id)

    assert result == ReconcileResult.PENDING
    assert (await reconciler.ledger.get(booking.id)).status == BookingStatus.PENDING_PAYMENT.value


@pytest.mark.asyncio
async def test_poll_retries_network_errors(reconciler, make_booking, status_client):
    booking = await make_booking()
    status_client.script = [PaymentProviderError("timeout"), ProviderStatus.FAILURE]

    result = await reconciler.check_status("momo", booking.id)

    assert status_client.calls == 2
    assert result == ReconcileResult.FAILED


@pytest.mark.asyncio
async def test_poll_gives_up_after_max_attempts(reconciler, make_booking, status_client):
    booking = await make_booking()
    status_client.script = [PaymentProviderError("timeout")] * 5

    with pytest.raises(PaymentProviderError):
        await reconciler.check_status("momo", booking.id)

    assert status_client.calls == reconciler.max_poll_attempts
    assert (await reconciler.ledger.get(booking.id)).status == BookingStatus.PENDING_PAYMENT.value
