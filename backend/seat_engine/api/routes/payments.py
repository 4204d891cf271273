"""
Payment provider webhooks and status polling.

Webhooks always answer 200 once the outcome has been applied, whatever it
was, so providers do not retry-storm us over bookings we already settled.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status

from seat_engine.api.deps import get_container, get_payment_reconciler
from seat_engine.schemas.payment import WebhookAck
from seat_engine.services.container import ServiceContainer
from seat_engine.services.payment_reconciler import PaymentReconciler

router = APIRouter(prefix="/payments", tags=["Payments"])


def known_provider(provider: str, container: ServiceContainer = Depends(get_container)) -> str:
    if provider not in container.verifiers:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown payment provider {provider}")
    return provider


@router.post("/{provider}/callback", response_model=WebhookAck)
async def payment_callback(
    payload: dict[str, Any] = Body(...),
    provider: str = Depends(known_provider),
    reconciler: PaymentReconciler = Depends(get_payment_reconciler),
):
    """Server-to-server notification (IPN) with a signed JSON body."""
    booking_id, result = await reconciler.handle_callback(provider, payload)
    return WebhookAck(booking_id=booking_id, outcome=result)


@router.get("/{provider}/callback", response_model=WebhookAck)
async def payment_return(
    request: Request,
    provider: str = Depends(known_provider),
    reconciler: PaymentReconciler = Depends(get_payment_reconciler),
):
    """Browser redirect back from the provider; the signed fields arrive as query parameters."""
    booking_id, result = await reconciler.handle_callback(provider, dict(request.query_params))
    return WebhookAck(booking_id=booking_id, outcome=result)


@router.get("/{provider}/status/{booking_id}", response_model=WebhookAck)
async def payment_status(
    booking_id: int,
    provider: str = Depends(known_provider),
    reconciler: PaymentReconciler = Depends(get_payment_reconciler),
):
    """
    Ask the provider where the payment stands and settle the booking if it
    has a final answer. Safe to call repeatedly or after a callback.
    """
    result = await reconciler.check_status(provider, booking_id)
    return WebhookAck(booking_id=booking_id, outcome=result)
