"""
Seat lock store interface.
The hold manager only needs these primitives, so any store offering an
atomic set-if-absent with expiry can back it.
"""

from abc import ABC, abstractmethod
from typing import Optional


class SeatLockStore(ABC):
    """
    Key-value store for ephemeral seat holds.

    Implementations:
    - RedisSeatLockStore: SET NX EX against Redis (production)
    - InMemorySeatLockStore: single-process dict with lazy expiry (development, tests)
    """

    @abstractmethod
    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        """
        Atomically store `value` under `key` with an expiry, only if `key` is free.

        Returns:
            True if the key was written
            False if a live value already exists
        """
        pass

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the live value for `key`, or None if absent or expired."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete `key`. Deleting an absent key is not an error."""
        pass

    @abstractmethod
    async def delete_if_value(self, key: str, value: str) -> bool:
        """Delete `key` only while it still holds exactly `value`."""
        pass

    @abstractmethod
    async def scan(self, prefix: str) -> dict[str, str]:
        """Return every live key starting with `prefix` and its value."""
        pass

    async def ping(self) -> bool:
        return True
