"""
Seat hold endpoints and the live seat-map stream.
"""

import asyncio

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import StreamingResponse

from seat_engine.api.deps import get_catalog, get_fanout, get_lock_manager
from seat_engine.core.security import BookingRequester, get_current_requester
from seat_engine.schemas.seat import HeldSeatsResponse, HoldRequest, SeatHold
from seat_engine.services.gateway_fanout import GatewayFanout
from seat_engine.services.interfaces.catalog import PricingCatalog
from seat_engine.services.seat_lock_manager import SeatLockManager

router = APIRouter(prefix="/seats", tags=["Seats"])

STREAM_KEEPALIVE_SECONDS = 15.0


@router.post("/hold", response_model=SeatHold)
async def hold_seat(
    hold_data: HoldRequest,
    requester: BookingRequester = Depends(get_current_requester),
    lock_manager: SeatLockManager = Depends(get_lock_manager),
    catalog: PricingCatalog = Depends(get_catalog),
):
    """
    Hold a seat for the hold TTL (5 minutes by default).

    Returns 409 if anyone, including the caller, already holds the seat.
    """
    extra_price = await catalog.seat_extra_price(hold_data.showtime_id, hold_data.seat_id)
    result = await lock_manager.acquire(
        hold_data.showtime_id, hold_data.seat_id, requester.actor_id, extra_price
    )
    return result.unwrap()


@router.get("/held/{showtime_id}", response_model=HeldSeatsResponse)
async def list_held_seats(
    showtime_id: str,
    requester: BookingRequester = Depends(get_current_requester),
    lock_manager: SeatLockManager = Depends(get_lock_manager),
):
    """Live holds for a showtime. Pair with the booked-seat list to draw a seat map."""
    holds = await lock_manager.list_held(showtime_id)
    return HeldSeatsResponse(showtime_id=showtime_id, holds=holds)


@router.delete("/hold/{showtime_id}/{seat_id}", status_code=status.HTTP_204_NO_CONTENT)
async def release_seat(
    showtime_id: str,
    seat_id: str,
    requester: BookingRequester = Depends(get_current_requester),
    lock_manager: SeatLockManager = Depends(get_lock_manager),
):
    """Give a held seat back early. Releasing a seat you do not hold any more is a no-op."""
    result = await lock_manager.cancel_hold(showtime_id, seat_id, requester.actor_id)
    result.unwrap()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/stream/{showtime_id}")
async def stream_seat_status(
    showtime_id: str,
    request: Request,
    fanout: GatewayFanout = Depends(get_fanout),
):
    """
    Server-Sent Events stream of seat status changes for one showtime.
    Best effort: after a reconnect, re-fetch held and booked seats.
    """
    connection = fanout.connect(showtime_id)

    async def event_stream():
        try:
            yield ": connected\n\n"
            while not await request.is_disconnected():
                try:
                    message = await asyncio.wait_for(
                        connection.queue.get(), timeout=STREAM_KEEPALIVE_SECONDS
                    )
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                yield f"event: seat-status\ndata: {message}\n\n"
        finally:
            fanout.disconnect(connection)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
