from abc import ABC, abstractmethod
from functools import lru_cache

from stshield.core.config import get_settings


class PendingOrderCache(ABC):
    """order_id -> expected amount (paise), written at order creation and read at verification."""

    @abstractmethod
    async def put(self, order_id: str, amount: int) -> None:
        """Insert or overwrite the expected amount for an order."""
        ...

    @abstractmethod
    async def get(self, order_id: str) -> int | None:
        """Return expected amount, or None if unknown or expired."""
        ...

    async def close(self) -> None:
        pass


@lru_cache
def get_order_cache() -> PendingOrderCache:
    settings = get_settings()
    if settings.order_cache_backend == "redis":
        from stshield.cache.redis_cache import RedisOrderCache
        return RedisOrderCache(settings.redis_url, ttl_seconds=settings.order_ttl_seconds)
    from stshield.cache.memory import MemoryOrderCache
    return MemoryOrderCache(ttl_seconds=settings.order_ttl_seconds)
