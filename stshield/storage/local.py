from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO

from stshield.core.config import get_settings
from stshield.storage.base import StorageBackend, StoredFile


class LocalStorage(StorageBackend):
    def __init__(self, root: str | Path | None = None) -> None:
        self.root = Path(root or get_settings().storage_local_path)
        self.root.mkdir(parents=True, exist_ok=True)

    async def put(self, key: str, body: BinaryIO | bytes, content_type: str | None = None) -> str:
        path = self.root / key
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(body, bytes):
            path.write_bytes(body)
        else:
            path.write_bytes(body.read())
        return str(path)

    async def get(self, key: str) -> bytes:
        path = self.root / key
        if not path.exists():
            raise FileNotFoundError(key)
        return path.read_bytes()

    async def delete(self, key: str) -> None:
        path = self.root / key
        if not path.is_file():
            raise FileNotFoundError(key)
        path.unlink()

    async def list_files(self, prefix: str) -> list[StoredFile]:
        base = self.root / prefix
        if not base.is_dir():
            return []
        out = []
        for path in base.iterdir():
            if not path.is_file():
                continue
            st = path.stat()
            out.append(StoredFile(
                key=f"{prefix.rstrip('/')}/{path.name}",
                path=str(path),
                size=st.st_size,
                created=datetime.fromtimestamp(st.st_ctime, tz=timezone.utc),
                modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
            ))
        return out
