from datetime import datetime, timezone
from typing import Any

from beanie import Document, Indexed
from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PolicyRecord(BaseModel):
    """Issued after a verified payment; written once, never mutated."""
    policy_id: str
    order_id: str
    payment_id: str
    user_data: dict[str, Any] = Field(default_factory=dict)
    amount_paise: int | None = None
    timestamp: datetime = Field(default_factory=utcnow)


class PolicyDocument(Document):
    policy_id: Indexed(str, unique=True)
    order_id: str
    payment_id: str
    user_data: dict[str, Any] = Field(default_factory=dict)
    amount_paise: int | None = None
    timestamp: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "policies"
        indexes = [
            [("order_id", 1)],
            [("timestamp", -1)],
        ]

    @classmethod
    def from_record(cls, record: PolicyRecord) -> "PolicyDocument":
        return cls(**record.model_dump())

    def to_record(self) -> PolicyRecord:
        return PolicyRecord(
            policy_id=self.policy_id,
            order_id=self.order_id,
            payment_id=self.payment_id,
            user_data=self.user_data,
            amount_paise=self.amount_paise,
            timestamp=self.timestamp,
        )
