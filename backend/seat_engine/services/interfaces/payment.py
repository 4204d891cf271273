"""
Payment provider interfaces.
Provider-specific signing and encoding live behind these two contracts.
"""

import enum
from abc import ABC, abstractmethod
from typing import Any


class Verification(str, enum.Enum):
    AUTHENTIC = "authentic"
    TAMPERED = "tampered"


class ProviderStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    PENDING = "pending"


class PaymentVerifier(ABC):
    """Decides whether a callback payload really came from the provider."""

    @abstractmethod
    def verify(self, raw_payload: dict[str, Any]) -> Verification:
        pass


class PaymentStatusClient(ABC):
    """Asks a provider for the current state of a booking's transaction."""

    @abstractmethod
    async def query_status(self, provider: str, booking_id: int) -> ProviderStatus:
        """
        Raises:
            PaymentProviderError: the provider could not be reached or answered garbage
        """
        pass
