from typing import BinaryIO

from fastapi.concurrency import run_in_threadpool
from google.cloud import storage

from stshield.core.config import get_settings
from stshield.storage.base import StorageBackend, StoredFile


class GCSStorage(StorageBackend):
    def __init__(self) -> None:
        settings = get_settings()
        self.bucket_name = settings.gcs_bucket_name or "stshield-exports"
        self._client = storage.Client()
        self._bucket = self._client.bucket(self.bucket_name)

    async def put(self, key: str, body: BinaryIO | bytes, content_type: str | None = None) -> str:
        blob = self._bucket.blob(key)
        content_type = content_type or "application/octet-stream"
        if isinstance(body, bytes):
            await run_in_threadpool(blob.upload_from_string, body, content_type=content_type)
        else:
            await run_in_threadpool(blob.upload_from_file, body, content_type=content_type)
        return f"gs://{self.bucket_name}/{key}"

    async def get(self, key: str) -> bytes:
        blob = self._bucket.blob(key)
        if not await run_in_threadpool(blob.exists):
            raise FileNotFoundError(key)
        return await run_in_threadpool(blob.download_as_bytes)

    async def delete(self, key: str) -> None:
        blob = self._bucket.blob(key)
        if not await run_in_threadpool(blob.exists):
            raise FileNotFoundError(key)
        await run_in_threadpool(blob.delete)

    async def list_files(self, prefix: str) -> list[StoredFile]:
        blobs = await run_in_threadpool(lambda: list(self._client.list_blobs(self.bucket_name, prefix=prefix)))
        return [
            StoredFile(
                key=b.name,
                path=f"gs://{self.bucket_name}/{b.name}",
                size=b.size or 0,
                created=b.time_created,
                modified=b.updated,
            )
            for b in blobs
            if not b.name.endswith("/")
        ]
