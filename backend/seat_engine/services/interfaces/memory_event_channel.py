"""
In-process seat-status channel backed by one asyncio.Queue per subscriber.
"""

import asyncio
from typing import AsyncIterator

from seat_engine.services.interfaces.event_channel import SeatEventChannel


class InMemorySeatEventChannel(SeatEventChannel):
    def __init__(self, max_queue_size: int = 1000):
        self._max_queue_size = max_queue_size
        self._subscribers: set[asyncio.Queue] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def publish(self, message: str) -> None:
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                # Best effort: a subscriber that cannot keep up loses the message
                pass

    async def subscribe(self) -> AsyncIterator[str]:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        self._subscribers.add(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._subscribers.discard(queue)
