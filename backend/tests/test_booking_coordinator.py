"""
Tests for committing held seats into bookings.
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from seat_engine.core.errors import (
    BookingCommitFailure,
    CatalogUnavailable,
    CatalogEntryNotFound,
    DuplicateSeatInRequest,
    SeatAlreadyBooked,
    SeatHeldByOther,
    SeatLockStoreUnavailable,
    SeatNotHeld,
)
from seat_engine.core.security import OnBehalfRequester, SelfRequester
from seat_engine.models.booking import BookingStatus
from seat_engine.schemas.booking import BookingItemRequest
from seat_engine.services.booking_coordinator import BookingCoordinator

SHOWTIME = "showtime-1"
ALICE = SelfRequester(user_id="user-a")
BOB = SelfRequester(user_id="user-b")


@pytest.fixture
def coordinator(db_session, container):
    return BookingCoordinator(db_session, container.lock_manager, container.catalog, container.broadcaster)


async def hold_all(lock_manager, user_id, seat_ids, extra=Decimal("0")):
    for seat_id in seat_ids:
        assert (await lock_manager.acquire(SHOWTIME, seat_id, user_id, extra)).ok


@pytest.mark.asyncio
async def test_create_booking_from_holds(coordinator, lock_manager, channel):
    await hold_all(lock_manager, "user-a", ["S1", "S2"])

    result = await coordinator.create_booking(ALICE, SHOWTIME, "cinema-1", ["S1", "S2"], [])

    assert result.ok
    booking = result.value
    assert booking.id is not None
    assert booking.status == BookingStatus.PENDING_PAYMENT.value
    assert booking.user_id == "user-a"
    assert booking.type == "online"
    assert sorted(booking.seat_ids) == ["S1", "S2"]
    assert booking.total_price == Decimal("160000")

    # holds are gone, seats stay shown as taken
    assert await lock_manager.get_hold(SHOWTIME, "S1") is None
    assert channel.statuses("S1") == ["held", "held"]


@pytest.mark.asyncio
async def test_seat_surcharge_and_items_are_priced(coordinator, lock_manager):
    await hold_all(lock_manager, "user-a", ["VIP1"], extra=Decimal("20000"))

    result = await coordinator.create_booking(
        ALICE,
        SHOWTIME,
        None,
        ["VIP1"],
        [BookingItemRequest(item_id="popcorn", quantity=2)],
    )

    booking = result.unwrap()
    assert booking.seats[0].price == Decimal("100000")
    assert booking.items[0].unit_price == Decimal("45000")
    assert booking.total_price == Decimal("190000")


@pytest.mark.asyncio
async def test_items_only_booking_skips_showtime_price(coordinator, catalog, monkeypatch):
    async def no_lookup(showtime_id):
        raise AssertionError("showtime price looked up")

    monkeypatch.setattr(catalog, "showtime_price", no_lookup)

    result = await coordinator.create_booking(
        ALICE, SHOWTIME, None, [], [BookingItemRequest(item_id="cola", quantity=1)]
    )

    assert result.unwrap().total_price == Decimal("30000")


@pytest.mark.asyncio
async def test_duplicate_seats_rejected_before_lock_checks(coordinator, lock_manager):
    await hold_all(lock_manager, "user-a", ["S1"])

    result = await coordinator.create_booking(ALICE, SHOWTIME, None, ["S1", "S1"], [])

    assert isinstance(result.error, DuplicateSeatInRequest)
    assert result.error.seat_ids == ["S1"]
    assert await lock_manager.verify_ownership(SHOWTIME, "S1", "user-a")


@pytest.mark.asyncio
async def test_one_missing_hold_aborts_everything(coordinator, lock_manager):
    await hold_all(lock_manager, "user-a", ["S1", "S2"])

    result = await coordinator.create_booking(ALICE, SHOWTIME, None, ["S1", "S2", "S3"], [])

    assert isinstance(result.error, SeatNotHeld)
    assert result.error.seat_id == "S3"
    assert await coordinator.ledger.booked_seats(SHOWTIME) == []
    # nothing released
    assert await lock_manager.verify_ownership(SHOWTIME, "S1", "user-a")
    assert await lock_manager.verify_ownership(SHOWTIME, "S2", "user-a")


@pytest.mark.asyncio
async def test_seat_held_by_other_aborts(coordinator, lock_manager):
    await hold_all(lock_manager, "user-a", ["S1"])
    await hold_all(lock_manager, "user-b", ["S2"])

    result = await coordinator.create_booking(ALICE, SHOWTIME, None, ["S1", "S2"], [])

    assert isinstance(result.error, SeatHeldByOther)
    assert await coordinator.ledger.booked_seats(SHOWTIME) == []


@pytest.mark.asyncio
async def test_expired_hold_cannot_be_booked(coordinator, lock_manager, clock):
    await hold_all(lock_manager, "user-a", ["S1"])
    clock.advance(301)

    result = await coordinator.create_booking(ALICE, SHOWTIME, None, ["S1"], [])

    assert isinstance(result.error, SeatNotHeld)


@pytest.mark.asyncio
async def test_contended_seat_goes_to_holder(coordinator, lock_manager):
    """B cannot hold S1 while A does; once A books it B may hold it but never book it."""
    await hold_all(lock_manager, "user-a", ["S1"])
    assert not (await lock_manager.acquire(SHOWTIME, "S1", "user-b")).ok

    booking = (await coordinator.create_booking(ALICE, SHOWTIME, None, ["S1"], [])).unwrap()
    assert booking.seat_ids == ["S1"]

    # the booking row now owns S1; the hold key is free
    assert (await lock_manager.acquire(SHOWTIME, "S1", "user-b")).ok
    result = await coordinator.create_booking(BOB, SHOWTIME, None, ["S1"], [])
    assert isinstance(result.error, SeatAlreadyBooked)
    assert result.error.http_status == 409

    booked = await coordinator.ledger.booked_seats(SHOWTIME)
    assert [(seat.booking_id, seat.seat_id) for seat in booked] == [(booking.id, "S1")]


@pytest.mark.asyncio
async def test_on_behalf_booking_has_no_owner(coordinator, lock_manager):
    operator = OnBehalfRequester(operator_id="operator-1")
    await hold_all(lock_manager, "operator-1", ["S1"])

    booking = (await coordinator.create_booking(operator, SHOWTIME, "cinema-1", ["S1"], [])).unwrap()

    assert booking.user_id is None
    assert booking.type == "offline"


@pytest.mark.asyncio
async def test_catalog_outage_keeps_holds(coordinator, lock_manager, catalog):
    await hold_all(lock_manager, "user-a", ["S1"])
    catalog.available = False

    result = await coordinator.create_booking(ALICE, SHOWTIME, None, ["S1"], [])

    assert isinstance(result.error, CatalogUnavailable)
    assert await lock_manager.verify_ownership(SHOWTIME, "S1", "user-a")


@pytest.mark.asyncio
async def test_commit_failure_keeps_holds(coordinator, lock_manager, channel, monkeypatch):
    await hold_all(lock_manager, "user-a", ["S1", "S2"])

    async def broken_create(booking):
        raise OperationalError("INSERT", {}, Exception("connection reset"))

    monkeypatch.setattr(coordinator.ledger, "create", broken_create)

    result = await coordinator.create_booking(ALICE, SHOWTIME, None, ["S1", "S2"], [])

    assert isinstance(result.error, BookingCommitFailure)
    assert await lock_manager.verify_ownership(SHOWTIME, "S1", "user-a")
    assert await lock_manager.verify_ownership(SHOWTIME, "S2", "user-a")
    assert channel.statuses("S1") == ["held"]


@pytest.mark.asyncio
async def test_second_booking_of_same_holds_fails(coordinator, lock_manager):
    await hold_all(lock_manager, "user-a", ["S1"])
    assert (await coordinator.create_booking(ALICE, SHOWTIME, None, ["S1"], [])).ok

    result = await coordinator.create_booking(ALICE, SHOWTIME, None, ["S1"], [])

    assert isinstance(result.error, SeatNotHeld)


@pytest.mark.asyncio
async def test_booked_seat_rejected_even_with_other_seats_free(coordinator, lock_manager):
    await hold_all(lock_manager, "user-a", ["S1"])
    assert (await coordinator.create_booking(ALICE, SHOWTIME, None, ["S1"], [])).ok
    await hold_all(lock_manager, "user-b", ["S1", "S2"])

    result = await coordinator.create_booking(BOB, SHOWTIME, None, ["S2", "S1"], [])

    assert isinstance(result.error, SeatAlreadyBooked)
    assert result.error.seat_ids == ["S1"]
    # B keeps both holds and can still book the free seat
    assert await lock_manager.verify_ownership(SHOWTIME, "S2", "user-b")
    assert (await coordinator.create_booking(BOB, SHOWTIME, None, ["S2"], [])).ok


@pytest.mark.asyncio
async def test_seat_committed_concurrently_is_rejected_by_the_ledger(
    coordinator, lock_manager, monkeypatch
):
    await hold_all(lock_manager, "user-a", ["S1"])
    first_id = (await coordinator.create_booking(ALICE, SHOWTIME, None, ["S1"], [])).unwrap().id
    await hold_all(lock_manager, "user-b", ["S1"])

    # B's check ran before A's commit landed
    async def nothing_taken(showtime_id, seat_ids):
        return []

    monkeypatch.setattr(coordinator.ledger, "taken_seats", nothing_taken)

    result = await coordinator.create_booking(BOB, SHOWTIME, None, ["S1"], [])

    assert isinstance(result.error, SeatAlreadyBooked)
    assert await lock_manager.verify_ownership(SHOWTIME, "S1", "user-b")
    booked = await coordinator.ledger.booked_seats(SHOWTIME)
    assert [seat.booking_id for seat in booked] == [first_id]


@pytest.mark.asyncio
async def test_lock_store_outage_after_commit_still_returns_booking(
    coordinator, lock_manager, channel, monkeypatch
):
    await hold_all(lock_manager, "user-a", ["S1", "S2"])

    async def store_down(showtime_id, seat_id, owner_user_id):
        raise SeatLockStoreUnavailable()

    monkeypatch.setattr(lock_manager, "release_if_owned", store_down)

    result = await coordinator.create_booking(ALICE, SHOWTIME, None, ["S1", "S2"], [])

    booking = result.unwrap()
    assert sorted(booking.seat_ids) == ["S1", "S2"]
    assert channel.statuses("S2") == ["held", "held"]
    # leftover holds run out on their own
    assert await lock_manager.verify_ownership(SHOWTIME, "S1", "user-a")

    retry = await coordinator.create_booking(ALICE, SHOWTIME, None, ["S1", "S2"], [])
    assert isinstance(retry.error, SeatAlreadyBooked)


@pytest.mark.asyncio
async def test_unknown_item_is_invalid_booking_data(coordinator, lock_manager, catalog, monkeypatch):
    await hold_all(lock_manager, "user-a", ["S1"])

    async def no_such_item(item_id):
        raise CatalogEntryNotFound(f"Nothing found for {item_id}")

    monkeypatch.setattr(catalog, "item_price", no_such_item)

    result = await coordinator.create_booking(
        ALICE, SHOWTIME, None, ["S1"], [BookingItemRequest(item_id="caviar", quantity=1)]
    )

    assert isinstance(result.error, CatalogEntryNotFound)
    assert result.error.http_status == 400
    assert await coordinator.ledger.booked_seats(SHOWTIME) == []
    assert await lock_manager.verify_ownership(SHOWTIME, "S1", "user-a")
