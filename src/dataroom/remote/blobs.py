"""In-memory BlobStore."""

from __future__ import annotations

from typing import Optional

from dataroom.errors import StorageError
from dataroom.util.mime import DEFAULT_MIME

from .base import BlobStore


class MemoryBlobStore(BlobStore):
    def __init__(self, url_prefix: str = "memory://blobs/") -> None:
        self._url_prefix = url_prefix
        self._blobs: dict[str, tuple[bytes, str]] = {}
        self._failures: dict[str, list[BaseException]] = {}

    def fail_next(self, operation: str, exc: BaseException) -> None:
        """Make the next call of operation (put/get/copy/delete/signed_url) raise exc."""
        self._failures.setdefault(operation, []).append(exc)

    def _maybe_fail(self, operation: str) -> None:
        pending = self._failures.get(operation)
        if pending:
            raise pending.pop(0)

    def keys(self) -> list[str]:
        return sorted(self._blobs)

    def has(self, key: str) -> bool:
        return key in self._blobs

    def seed(self, key: str, data: bytes, content_type: str = DEFAULT_MIME) -> None:
        self._blobs[key] = (bytes(data), content_type)

    async def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> None:
        self._maybe_fail("put")
        self._blobs[key] = (bytes(data), content_type or DEFAULT_MIME)

    async def get(self, key: str) -> bytes:
        self._maybe_fail("get")
        try:
            return self._blobs[key][0]
        except KeyError as exc:
            raise StorageError("Blob not found", details={"key": key}, cause=exc) from exc

    async def copy(self, src_key: str, dst_key: str) -> None:
        self._maybe_fail("copy")
        try:
            self._blobs[dst_key] = self._blobs[src_key]
        except KeyError as exc:
            raise StorageError("Blob not found", details={"key": src_key}, cause=exc) from exc

    async def delete(self, key: str) -> None:
        self._maybe_fail("delete")
        if self._blobs.pop(key, None) is None:
            raise StorageError("Blob not found", details={"key": key})

    async def signed_url(self, key: str, expires_in: int) -> str:
        self._maybe_fail("signed_url")
        if key not in self._blobs:
            raise StorageError("Blob not found", details={"key": key})
        return f"{self._url_prefix}{key}?expires_in={int(expires_in)}"
