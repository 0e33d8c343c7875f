from datetime import datetime

from pymongo.errors import DuplicateKeyError, PyMongoError

from stshield.models.policy import PolicyDocument, PolicyRecord
from stshield.policy_store.base import PolicyExistsError, PolicyStore, PolicyStoreError


class MongoPolicyStore(PolicyStore):
    """Beanie-backed; the unique index on policy_id is the not-exists precondition."""

    async def put_if_absent(self, record: PolicyRecord) -> None:
        try:
            await PolicyDocument.from_record(record).insert()
        except DuplicateKeyError as e:
            raise PolicyExistsError(record.policy_id) from e
        except PyMongoError as e:
            raise PolicyStoreError(str(e)) from e

    async def get(self, policy_id: str) -> PolicyRecord | None:
        doc = await PolicyDocument.find_one(PolicyDocument.policy_id == policy_id)
        return doc.to_record() if doc else None

    async def find_by_order_id(self, order_id: str) -> list[PolicyRecord]:
        docs = await PolicyDocument.find(PolicyDocument.order_id == order_id).to_list()
        return [d.to_record() for d in docs]

    async def list_policies(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[PolicyRecord]:
        query = []
        if start is not None:
            query.append(PolicyDocument.timestamp >= start)
        if end is not None:
            query.append(PolicyDocument.timestamp <= end)
        try:
            docs = await PolicyDocument.find(*query).sort(+PolicyDocument.timestamp).to_list()
        except PyMongoError as e:
            raise PolicyStoreError(str(e)) from e
        return [d.to_record() for d in docs]

    async def ping(self) -> bool:
        await PolicyDocument.get_motor_collection().database.command("ping")
        return True
