"""
In-process seat lock store.
Suitable for a single worker process; state is lost on restart.
"""

import time
from typing import Callable, Optional

from seat_engine.services.interfaces.lock_store import SeatLockStore


class InMemorySeatLockStore(SeatLockStore):
    """
    Dict-backed store with lazy TTL eviction.

    Operations never await, so each one runs to completion on the event loop
    without interleaving; that is what makes set_if_absent atomic here.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}

    def _live(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            del self._entries[key]
            return None
        return value

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        if self._live(key) is not None:
            return False
        self._entries[key] = (value, self._clock() + ttl_seconds)
        return True

    async def get(self, key: str) -> Optional[str]:
        return self._live(key)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def delete_if_value(self, key: str, value: str) -> bool:
        if self._live(key) != value:
            return False
        del self._entries[key]
        return True

    async def scan(self, prefix: str) -> dict[str, str]:
        found = {}
        for key in [k for k in self._entries if k.startswith(prefix)]:
            value = self._live(key)
            if value is not None:
                found[key] = value
        return found
