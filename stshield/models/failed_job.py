"""Dead-letter: notification jobs that exhausted their retries on the worker."""

from datetime import datetime, timezone
from typing import Any

from beanie import Document
from pydantic import Field


class FailedJob(Document):
    job_name: str
    job_id: str
    args: list[Any] = Field(default_factory=list)
    kwargs: dict[str, Any] = Field(default_factory=dict)
    reason: str = ""
    retries: int = 0
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "failed_notification_jobs"
        indexes = [[("job_name", 1)], [("created_at", -1)]]
