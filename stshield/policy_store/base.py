from abc import ABC, abstractmethod
from datetime import datetime
from functools import lru_cache

from stshield.core.config import get_settings
from stshield.models.policy import PolicyRecord


class PolicyStoreError(Exception):
    """Store failed to read or write."""


class PolicyExistsError(PolicyStoreError):
    """put_if_absent found a record with the same policy_id."""

    def __init__(self, policy_id: str):
        self.policy_id = policy_id
        super().__init__(f"Policy {policy_id} already exists")


class PolicyStore(ABC):
    @abstractmethod
    async def put_if_absent(self, record: PolicyRecord) -> None:
        """Persist record; raise PolicyExistsError if policy_id is taken."""
        ...

    @abstractmethod
    async def get(self, policy_id: str) -> PolicyRecord | None:
        ...

    @abstractmethod
    async def find_by_order_id(self, order_id: str) -> list[PolicyRecord]:
        ...

    @abstractmethod
    async def list_policies(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[PolicyRecord]:
        """All policies, or those with start <= timestamp <= end, oldest first."""
        ...

    async def ping(self) -> bool:
        return True


@lru_cache
def get_policy_store() -> PolicyStore:
    settings = get_settings()
    if settings.policy_store_backend == "mongo":
        from stshield.policy_store.mongo import MongoPolicyStore
        return MongoPolicyStore()
    from stshield.policy_store.memory import MemoryPolicyStore
    return MemoryPolicyStore()
