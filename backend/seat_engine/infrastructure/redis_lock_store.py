"""
Redis-backed seat lock store.

A hold is one key written with SET NX EX, so the existence check and the
write happen in a single command; two requests can never both observe a
free seat and both claim it. Expiry is enforced by Redis itself.
"""

import re
from typing import Optional

import redis.asyncio as redis

from seat_engine.core.errors import SeatLockStoreUnavailable
from seat_engine.core.metrics import redis_connection_errors
from seat_engine.services.interfaces.lock_store import SeatLockStore

GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def escape_glob(prefix: str) -> str:
    """Make `prefix` match literally inside a SCAN MATCH pattern."""
    return GLOB_SPECIAL.sub(r"\\\1", prefix)


class RedisSeatLockStore(SeatLockStore):
    def __init__(self, client: redis.Redis, scan_count: int = 100):
        self.redis = client
        self.scan_count = scan_count

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        try:
            written = await self.redis.set(key, value, nx=True, ex=ttl_seconds)
        except redis.RedisError as e:
            redis_connection_errors.inc()
            raise SeatLockStoreUnavailable() from e
        return bool(written)

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self.redis.get(key)
        except redis.RedisError as e:
            redis_connection_errors.inc()
            raise SeatLockStoreUnavailable() from e

    async def delete(self, key: str) -> None:
        try:
            await self.redis.delete(key)
        except redis.RedisError as e:
            redis_connection_errors.inc()
            raise SeatLockStoreUnavailable() from e

    async def delete_if_value(self, key: str, value: str) -> bool:
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                if await pipe.get(key) != value:
                    await pipe.unwatch()
                    return False
                pipe.multi()
                pipe.delete(key)
                await pipe.execute()
                return True
        except redis.WatchError:
            # rewritten between GET and DEL, so it is no longer the value we checked
            return False
        except redis.RedisError as e:
            redis_connection_errors.inc()
            raise SeatLockStoreUnavailable() from e

    async def scan(self, prefix: str) -> dict[str, str]:
        try:
            pattern = f"{escape_glob(prefix)}*"
            keys = [key async for key in self.redis.scan_iter(match=pattern, count=self.scan_count)]
            if not keys:
                return {}
            values = await self.redis.mget(keys)
        except redis.RedisError as e:
            redis_connection_errors.inc()
            raise SeatLockStoreUnavailable() from e
        # a key can expire between SCAN and MGET
        return {key: value for key, value in zip(keys, values) if value is not None}

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except redis.RedisError:
            return False
