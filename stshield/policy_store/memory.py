from datetime import datetime

from stshield.models.policy import PolicyRecord
from stshield.policy_store.base import PolicyExistsError, PolicyStore


class MemoryPolicyStore(PolicyStore):
    def __init__(self) -> None:
        self._records: dict[str, PolicyRecord] = {}

    async def put_if_absent(self, record: PolicyRecord) -> None:
        if record.policy_id in self._records:
            raise PolicyExistsError(record.policy_id)
        self._records[record.policy_id] = record.model_copy(deep=True)

    async def get(self, policy_id: str) -> PolicyRecord | None:
        record = self._records.get(policy_id)
        return record.model_copy(deep=True) if record else None

    async def find_by_order_id(self, order_id: str) -> list[PolicyRecord]:
        return [r.model_copy(deep=True) for r in self._records.values() if r.order_id == order_id]

    async def list_policies(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[PolicyRecord]:
        out = [
            r for r in self._records.values()
            if (start is None or r.timestamp >= start) and (end is None or r.timestamp <= end)
        ]
        return [r.model_copy(deep=True) for r in sorted(out, key=lambda r: r.timestamp)]
