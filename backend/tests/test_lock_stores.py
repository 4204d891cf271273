"""
Contract tests shared by the in-memory and Redis lock stores.
The Redis store runs against fakeredis.
"""

import pytest
import pytest_asyncio
from fakeredis import FakeAsyncRedis

from seat_engine.infrastructure.redis_lock_store import RedisSeatLockStore
from seat_engine.services.interfaces import InMemorySeatLockStore


@pytest_asyncio.fixture(params=["memory", "redis"])
async def store(request, clock):
    if request.param == "memory":
        yield InMemorySeatLockStore(clock=clock)
        return

    client = FakeAsyncRedis(decode_responses=True)
    yield RedisSeatLockStore(client)
    await client.flushall()
    await client.aclose()


@pytest.mark.asyncio
async def test_set_if_absent(store):
    assert await store.set_if_absent("hold:s1:A1", "one", 300)
    assert not await store.set_if_absent("hold:s1:A1", "two", 300)
    assert await store.get("hold:s1:A1") == "one"


@pytest.mark.asyncio
async def test_delete_absent_key(store):
    await store.delete("hold:s1:nothing")
    assert await store.get("hold:s1:nothing") is None


@pytest.mark.asyncio
async def test_delete_if_value(store):
    await store.set_if_absent("hold:s1:A1", "one", 300)

    assert not await store.delete_if_value("hold:s1:A1", "two")
    assert await store.get("hold:s1:A1") == "one"
    assert await store.delete_if_value("hold:s1:A1", "one")
    assert await store.get("hold:s1:A1") is None
    assert not await store.delete_if_value("hold:s1:A1", "one")


@pytest.mark.asyncio
async def test_scan_by_prefix(store):
    await store.set_if_absent("hold:s1:A1", "a", 300)
    await store.set_if_absent("hold:s1:A2", "b", 300)
    await store.set_if_absent("hold:s2:A1", "c", 300)

    assert await store.scan("hold:s1:") == {"hold:s1:A1": "a", "hold:s1:A2": "b"}


@pytest.mark.asyncio
async def test_scan_prefix_is_literal(store):
    await store.set_if_absent("hold:s1:A1", "a", 300)
    await store.set_if_absent("hold:s[1]:A2", "b", 300)

    assert await store.scan("hold:*:") == {}
    assert await store.scan("hold:s?:") == {}
    assert await store.scan("hold:s[1]:") == {"hold:s[1]:A2": "b"}


@pytest.mark.asyncio
async def test_ping(store):
    assert await store.ping()


@pytest.mark.asyncio
async def test_memory_store_expiry(clock):
    store = InMemorySeatLockStore(clock=clock)
    await store.set_if_absent("hold:s1:A1", "one", 10)

    clock.advance(10)

    assert await store.get("hold:s1:A1") is None
    assert await store.scan("hold:s1:") == {}
    assert await store.set_if_absent("hold:s1:A1", "two", 10)


@pytest.mark.asyncio
async def test_redis_store_sets_ttl():
    client = FakeAsyncRedis(decode_responses=True)
    store = RedisSeatLockStore(client)

    await store.set_if_absent("hold:s1:A1", "one", 300)

    ttl = await client.ttl("hold:s1:A1")
    assert 0 < ttl <= 300
    await client.flushall()
    await client.aclose()
