"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .redis_client import get_redis, close_redis, RedisClient
from .redis_lock_store import RedisSeatLockStore
from .redis_pubsub import RedisSeatEventChannel

__all__ = [
    'get_redis',
    'close_redis',
    'RedisClient',
    'RedisSeatLockStore',
    'RedisSeatEventChannel',
]
