"""
Service interfaces for dependency inversion.
Allows swapping stores, channels and external collaborators without changing business logic.
"""

from .lock_store import SeatLockStore
from .memory_lock_store import InMemorySeatLockStore
from .event_channel import SeatEventChannel
from .memory_event_channel import InMemorySeatEventChannel
from .catalog import PricingCatalog
from .payment import PaymentVerifier, PaymentStatusClient, ProviderStatus, Verification

__all__ = [
    'SeatLockStore',
    'InMemorySeatLockStore',
    'SeatEventChannel',
    'InMemorySeatEventChannel',
    'PricingCatalog',
    'PaymentVerifier',
    'PaymentStatusClient',
    'ProviderStatus',
    'Verification',
]
