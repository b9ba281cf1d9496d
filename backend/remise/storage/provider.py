from typing import Optional


class StorageError(RuntimeError):
    pass


class StorageProvider:
    """Holds photo/video binaries addressed by an opaque storage id."""

    def put(self, key: str, data: bytes, content_type: str) -> str:
        raise NotImplementedError

    def get_url(self, storage_id: str) -> Optional[str]:
        raise NotImplementedError

    def exists(self, storage_id: str) -> bool:
        raise NotImplementedError

    def delete(self, storage_id: str) -> None:
        raise NotImplementedError
