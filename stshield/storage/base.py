from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO

from stshield.core.config import get_settings


@dataclass
class StoredFile:
    key: str
    path: str
    size: int
    created: datetime | None
    modified: datetime | None

    @property
    def filename(self) -> str:
        return self.key.rsplit("/", 1)[-1]


class StorageBackend(ABC):
    @abstractmethod
    async def put(self, key: str, body: BinaryIO | bytes, content_type: str | None = None) -> str:
        """Store file; return path or URI."""
        ...

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Retrieve file bytes."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete file; FileNotFoundError if missing."""
        ...

    @abstractmethod
    async def list_files(self, prefix: str) -> list[StoredFile]:
        """Files under prefix, unordered."""
        ...


def get_storage() -> StorageBackend:
    settings = get_settings()
    if settings.storage_backend == "gcs":
        from stshield.storage.gcs import GCSStorage
        return GCSStorage()
    from stshield.storage.local import LocalStorage
    return LocalStorage()
