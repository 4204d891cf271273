"""
Pydantic schemas for payment outcomes.
"""

from enum import Enum
from typing import Any, Optional

from seat_engine.schemas.base import CamelModel


class PaymentOutcomeKind(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class PaymentOutcome(CamelModel):
    """A provider's verdict on one booking, from a callback or a status poll."""

    booking_id: int
    outcome: PaymentOutcomeKind
    provider: str
    raw_provider_payload: dict[str, Any] = {}


class ReconcileResult(str, Enum):
    PAID = "paid"
    FAILED = "failed"
    ALREADY_HANDLED = "already_handled"
    REJECTED = "rejected"
    PENDING = "pending"


class WebhookAck(CamelModel):
    received: bool = True
    booking_id: Optional[int] = None
    outcome: ReconcileResult
