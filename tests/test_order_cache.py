from unittest.mock import AsyncMock

import pytest

from stshield.cache.memory import MemoryOrderCache
from stshield.cache.redis_cache import RedisOrderCache

pytestmark = pytest.mark.asyncio


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


async def test_put_then_get():
    cache = MemoryOrderCache(ttl_seconds=60)
    await cache.put("order_1", 99900)
    assert await cache.get("order_1") == 99900
    assert await cache.get("order_unknown") is None


async def test_put_overwrites():
    cache = MemoryOrderCache()
    await cache.put("order_1", 99900)
    await cache.put("order_1", 199900)
    assert await cache.get("order_1") == 199900


async def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = MemoryOrderCache(ttl_seconds=60, clock=clock)
    await cache.put("order_1", 99900)
    clock.now += 59
    assert await cache.get("order_1") == 99900
    clock.now += 2
    assert await cache.get("order_1") is None
    assert len(cache) == 0


async def test_sweep_drops_only_expired():
    clock = FakeClock()
    cache = MemoryOrderCache(ttl_seconds=10, clock=clock)
    await cache.put("old", 1)
    clock.now += 5
    await cache.put("new", 2)
    clock.now += 6
    assert cache.sweep() == 1
    assert await cache.get("new") == 2


async def test_no_ttl_keeps_entries():
    clock = FakeClock()
    cache = MemoryOrderCache(ttl_seconds=0, clock=clock)
    await cache.put("order_1", 5)
    clock.now += 10 ** 9
    assert await cache.get("order_1") == 5


async def test_redis_cache_sets_ttl_and_parses_amount():
    redis = AsyncMock()
    redis.get.return_value = "99900"
    cache = RedisOrderCache("redis://unused", ttl_seconds=900, client=redis)
    await cache.put("order_1", 99900)
    redis.set.assert_awaited_once_with("pending_order:order_1", 99900, ex=900)
    assert await cache.get("order_1") == 99900
    redis.get.assert_awaited_with("pending_order:order_1")


async def test_redis_cache_miss():
    redis = AsyncMock()
    redis.get.return_value = None
    cache = RedisOrderCache("redis://unused", ttl_seconds=900, client=redis)
    assert await cache.get("order_x") is None
