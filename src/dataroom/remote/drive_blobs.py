"""BlobStore backed by a Google Drive folder (the "bucket")."""

from __future__ import annotations

import asyncio
import hashlib
import io
import json
import posixpath
from typing import Any, Callable, Optional, Sequence, TypeVar

from dataroom.errors import (
    DataRoomError,
    HttpErrorInfo,
    InvalidArgumentError,
    PermissionDeniedError,
    StorageError,
    TransientNetworkError,
    map_http_error,
)
from dataroom.util.mime import DEFAULT_MIME

from .base import BlobStore
from .fields import BLOB_FIELDS, DRIVE_SCOPES, LINK_FIELDS, STORAGE_KEY_PROP

T = TypeVar("T")


def storage_key_hash(key: str) -> str:
    """
    Fixed-length tag for a storage key.

    Drive limits an appProperty key+value to 124 bytes; a storage key can be
    longer, so only its digest is stored.
    """
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:40]


class DriveBlobStore(BlobStore):
    """
    Stores each blob as one Drive file inside bucket_folder_id.

    Notes:
        - The Drive `service` object is NOT exposed.
        - The blocking client runs in a worker thread (asyncio.to_thread).
        - Retries are left to the caller's retry wrapper.
    """

    def __init__(
        self,
        service: Any,
        bucket_folder_id: str,
        *,
        supports_all_drives: bool = True,
    ) -> None:
        if not bucket_folder_id:
            raise InvalidArgumentError("bucket_folder_id must be a non-empty string")
        self._service = service
        self._bucket_folder_id = bucket_folder_id
        self._supports_all_drives = supports_all_drives

    @classmethod
    def from_service_account_file(
        cls,
        credentials_file: str,
        bucket_folder_id: str,
        *,
        scopes: Optional[Sequence[str]] = None,
        supports_all_drives: bool = True,
    ) -> "DriveBlobStore":
        """Build the Drive service from a google-auth service-account JSON file."""
        from google.oauth2 import service_account
        from googleapiclient.discovery import build

        use_scopes = list(scopes) if scopes is not None else list(DRIVE_SCOPES)
        try:
            creds = service_account.Credentials.from_service_account_file(
                credentials_file,
                scopes=use_scopes,
            )
            service = build("drive", "v3", credentials=creds, cache_discovery=False)
        except (OSError, ValueError) as exc:
            raise StorageError(
                "Failed to build Drive service",
                details={"credentials_file": credentials_file},
                cause=exc,
            ) from exc
        return cls(service, bucket_folder_id, supports_all_drives=supports_all_drives)

    @classmethod
    def from_settings(cls, settings: Any) -> "DriveBlobStore":
        if not settings.drive_credentials_file or not settings.drive_bucket_folder_id:
            raise InvalidArgumentError(
                "drive_credentials_file and drive_bucket_folder_id are required"
            )
        return cls.from_service_account_file(
            settings.drive_credentials_file,
            settings.drive_bucket_folder_id,
        )

    # ----------------------------
    # BlobStore API
    # ----------------------------
    async def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> None:
        await asyncio.to_thread(self._put_sync, key, data, content_type)

    async def get(self, key: str) -> bytes:
        return await asyncio.to_thread(self._get_sync, key)

    async def copy(self, src_key: str, dst_key: str) -> None:
        await asyncio.to_thread(self._copy_sync, src_key, dst_key)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._delete_sync, key)

    async def signed_url(self, key: str, expires_in: int) -> str:
        # Drive links do not expire; access is governed by Drive sharing.
        return await asyncio.to_thread(self._link_sync, key)

    # ----------------------------
    # Blocking implementations
    # ----------------------------
    def _put_sync(self, key: str, data: bytes, content_type: Optional[str]) -> None:
        from googleapiclient.http import MediaIoBaseUpload

        media = MediaIoBaseUpload(
            io.BytesIO(data),
            mimetype=content_type or DEFAULT_MIME,
            resumable=False,
        )
        req = self._service.files().create(
            body=self._blob_body(key),
            media_body=media,
            fields=BLOB_FIELDS,
            **self._common_write_kwargs(),
        )
        self._execute(req.execute)

    def _get_sync(self, key: str) -> bytes:
        from googleapiclient.http import MediaIoBaseDownload

        file_id = self._find_file_id(key)
        req = self._service.files().get_media(fileId=file_id, **self._common_get_kwargs())
        buf = io.BytesIO()
        downloader = MediaIoBaseDownload(buf, req)
        done = False
        while not done:
            _, done = self._execute(downloader.next_chunk)
        return buf.getvalue()

    def _copy_sync(self, src_key: str, dst_key: str) -> None:
        file_id = self._find_file_id(src_key)
        req = self._service.files().copy(
            fileId=file_id,
            body=self._blob_body(dst_key),
            fields=BLOB_FIELDS,
            **self._common_write_kwargs(),
        )
        self._execute(req.execute)

    def _delete_sync(self, key: str) -> None:
        file_id = self._find_file_id(key)
        req = self._service.files().delete(fileId=file_id, **self._common_write_kwargs())
        self._execute(req.execute)

    def _link_sync(self, key: str) -> str:
        file_id = self._find_file_id(key)
        req = self._service.files().get(
            fileId=file_id,
            fields=LINK_FIELDS,
            **self._common_get_kwargs(),
        )
        data = self._execute(req.execute)
        link = data.get("webContentLink") or data.get("webViewLink")
        if not isinstance(link, str) or not link:
            raise StorageError("Drive returned no download link", details={"key": key})
        return link

    # ----------------------------
    # Internals
    # ----------------------------
    def _blob_body(self, key: str) -> dict[str, Any]:
        return {
            "name": posixpath.basename(key) or key,
            "parents": [self._bucket_folder_id],
            "description": key,
            "appProperties": {STORAGE_KEY_PROP: storage_key_hash(key)},
        }

    def _find_file_id(self, key: str) -> str:
        q = (
            f"'{self._bucket_folder_id}' in parents and trashed=false and "
            f"appProperties has {{ key='{STORAGE_KEY_PROP}' and "
            f"value='{storage_key_hash(key)}' }}"
        )
        req = self._service.files().list(
            q=q,
            fields="files(id)",
            pageSize=1,
            **self._common_list_kwargs(),
        )
        data = self._execute(req.execute)
        files = data.get("files", []) or []
        if not files or not isinstance(files[0], dict) or not files[0].get("id"):
            raise StorageError("Blob not found", details={"key": key})
        return str(files[0]["id"])

    def _common_get_kwargs(self) -> dict[str, Any]:
        if not self._supports_all_drives:
            return {}
        return {"supportsAllDrives": True}

    def _common_list_kwargs(self) -> dict[str, Any]:
        if not self._supports_all_drives:
            return {}
        return {"supportsAllDrives": True, "includeItemsFromAllDrives": True}

    def _common_write_kwargs(self) -> dict[str, Any]:
        if not self._supports_all_drives:
            return {}
        return {"supportsAllDrives": True}

    def _execute(self, func: Callable[[], T]) -> T:
        try:
            return func()
        except DataRoomError:
            raise
        except Exception as exc:
            raise self._map_exception(exc) from exc

    def _map_exception(self, exc: Exception) -> DataRoomError:
        from googleapiclient.errors import HttpError

        if isinstance(exc, HttpError):
            mapped = map_http_error(_http_error_to_info(exc), cause=exc)
            if isinstance(mapped, (PermissionDeniedError, TransientNetworkError, StorageError)):
                return mapped
            return StorageError(str(mapped), details=mapped.details, cause=exc)

        if isinstance(exc, (OSError, TimeoutError)):
            return TransientNetworkError("Network error", cause=exc)

        return StorageError("Drive storage error", cause=exc)


def _http_error_to_info(exc: Any) -> HttpErrorInfo:
    status_code = getattr(getattr(exc, "resp", None), "status", None)
    reason = getattr(getattr(exc, "resp", None), "reason", None)

    message = None
    details: dict[str, Any] = {}

    content = getattr(exc, "content", None)
    if isinstance(content, (bytes, bytearray)):
        try:
            payload = json.loads(content.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            payload = None
        if isinstance(payload, dict):
            err = payload.get("error", {})
            if isinstance(err, dict):
                message = err.get("message") or None
                errors = err.get("errors") or []
                if errors and isinstance(errors, list) and isinstance(errors[0], dict):
                    details["domain"] = errors[0].get("domain")
                    if isinstance(errors[0].get("reason"), str):
                        reason = errors[0]["reason"]

    if not isinstance(status_code, int):
        status_code = 0

    return HttpErrorInfo(
        status_code=status_code,
        reason=reason if isinstance(reason, str) else None,
        message=message,
        details=details or None,
    )
