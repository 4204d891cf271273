"""
Seat-status pub/sub channel interface.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator


class SeatEventChannel(ABC):
    """
    Fixed-name topic carrying JSON seat-status messages.

    Implementations:
    - RedisSeatEventChannel: Redis PUBLISH/SUBSCRIBE, shared across workers
    - InMemorySeatEventChannel: in-process queues, single worker only
    """

    @abstractmethod
    async def publish(self, message: str) -> None:
        """Fire-and-forget publish. No acknowledgment is awaited."""
        pass

    @abstractmethod
    def subscribe(self) -> AsyncIterator[str]:
        """Yield raw messages as they arrive until the consumer stops iterating."""
        pass
