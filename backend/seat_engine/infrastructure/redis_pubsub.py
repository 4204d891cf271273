"""
Redis pub/sub channel for seat-status events.
"""

from typing import AsyncIterator

import redis.asyncio as redis

from seat_engine.core.logging import get_logger
from seat_engine.services.interfaces.event_channel import SeatEventChannel

logger = get_logger(__name__)


class RedisSeatEventChannel(SeatEventChannel):
    def __init__(self, client: redis.Redis, channel: str):
        self.redis = client
        self.channel = channel

    async def publish(self, message: str) -> None:
        await self.redis.publish(self.channel, message)

    async def subscribe(self) -> AsyncIterator[str]:
        pubsub = self.redis.pubsub(ignore_subscribe_messages=True)
        await pubsub.subscribe(self.channel)
        logger.info("seat_channel_subscribed", channel=self.channel)
        try:
            async for message in pubsub.listen():
                if message.get("type") == "message":
                    yield message["data"]
        finally:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()
