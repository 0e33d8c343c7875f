import redis.asyncio as aioredis

from stshield.cache.base import PendingOrderCache

KEY_PREFIX = "pending_order"


def _key(order_id: str) -> str:
    return f"{KEY_PREFIX}:{order_id}"


class RedisOrderCache(PendingOrderCache):
    """Shared across processes; Redis expires the keys."""

    def __init__(self, redis_url: str, ttl_seconds: int | None = None, client: aioredis.Redis | None = None) -> None:
        self.ttl_seconds = ttl_seconds
        self._redis = client if client is not None else aioredis.from_url(redis_url, decode_responses=True)

    async def put(self, order_id: str, amount: int) -> None:
        ex = self.ttl_seconds if self.ttl_seconds and self.ttl_seconds > 0 else None
        await self._redis.set(_key(order_id), int(amount), ex=ex)

    async def get(self, order_id: str) -> int | None:
        val = await self._redis.get(_key(order_id))
        return int(val) if val is not None else None

    async def ping(self) -> bool:
        return bool(await self._redis.ping())

    async def close(self) -> None:
        await self._redis.aclose()
