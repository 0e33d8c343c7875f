import time
from typing import Callable

from stshield.cache.base import PendingOrderCache


class MemoryOrderCache(PendingOrderCache):
    """Process-local cache. Entries are dropped lazily once past their TTL."""

    def __init__(self, ttl_seconds: int | None = None, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[int, float | None]] = {}

    def _expiry(self) -> float | None:
        if not self.ttl_seconds or self.ttl_seconds <= 0:
            return None
        return self._clock() + self.ttl_seconds

    async def put(self, order_id: str, amount: int) -> None:
        self._entries[order_id] = (amount, self._expiry())
        if len(self._entries) % 1000 == 0:
            self.sweep()

    async def get(self, order_id: str) -> int | None:
        entry = self._entries.get(order_id)
        if entry is None:
            return None
        amount, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            self._entries.pop(order_id, None)
            return None
        return amount

    def sweep(self) -> int:
        """Remove expired entries; return how many were dropped."""
        now = self._clock()
        expired = [k for k, (_, exp) in self._entries.items() if exp is not None and exp <= now]
        for k in expired:
            del self._entries[k]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
