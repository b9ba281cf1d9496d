"""
Local filesystem storage provider.
Keeps evidence media on disk under STORAGE_ROOT; used in development and tests.
"""
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from remise.core.config import settings
from remise.storage.provider import StorageError, StorageProvider


class LocalStorageProvider(StorageProvider):
    def __init__(self, base_dir: str | None = None):
        self.base_dir = Path(base_dir or settings.STORAGE_ROOT)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.base_dir = self.base_dir.resolve()

    def _get_path(self, storage_id: str) -> Path:
        clean = storage_id.replace("\\", "/").lstrip("/")
        path = (self.base_dir / clean).resolve()
        if path != self.base_dir and self.base_dir not in path.parents:
            raise StorageError(f"storage id escapes the media root: {storage_id!r}")
        return path

    def put(self, key: str, data: bytes, content_type: str) -> str:
        path = self._get_path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"could not write {key}: {exc}") from exc
        return key.lstrip("/")

    def get_url(self, storage_id: str) -> Optional[str]:
        if not self.exists(storage_id):
            return None
        base = settings.FRONTEND_PUBLIC_BASE_URL.rstrip("/")
        key = self._get_path(storage_id).relative_to(self.base_dir).as_posix()
        return f"{base}/media/{quote(key)}"

    def exists(self, storage_id: str) -> bool:
        return self._get_path(storage_id).exists()

    def delete(self, storage_id: str) -> None:
        path = self._get_path(storage_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"could not delete {storage_id}: {exc}") from exc


_provider: StorageProvider | None = None


def get_storage() -> StorageProvider:
    global _provider
    if _provider is None:
        _provider = LocalStorageProvider()
    return _provider
