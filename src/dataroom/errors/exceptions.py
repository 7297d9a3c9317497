"""Exception hierarchy and HTTP error mapping for dataroom."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


class DataRoomError(Exception):
    """
    Base exception for dataroom.

    Attributes:
        details: Optional structured information (e.g., target id, status code).
        cause: Optional original exception that triggered this error.
    """

    def __init__(
        self,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.details = details or {}
        self.cause = cause


class PermissionDeniedError(DataRoomError):
    """Raised when the caller lacks edit capability on a folder or file."""


class NotFoundError(DataRoomError):
    """Raised when a referenced folder/file is missing or already deleted."""


class NameConflictError(DataRoomError):
    """Raised on a slug/name collision (notably when restoring from trash)."""


class InvalidMoveError(DataRoomError):
    """Raised when a move would be a self-move or create a cycle."""


class InvalidArgumentError(DataRoomError):
    """Raised when arguments are invalid (empty name, file at root, etc.)."""


class InvalidStateError(DataRoomError):
    """Raised when an operation is not allowed in the current state."""


class UploadCancelledError(DataRoomError):
    """
    Raised when an upload batch is cancelled by the user or by backgrounding.

    This is not a failure. `uploaded` holds the files that were durably
    stored before the cancellation was observed.
    """

    def __init__(
        self,
        message: str = "Upload cancelled",
        *,
        uploaded: Optional[list[Any]] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, details=details, cause=cause)
        self.uploaded = list(uploaded or [])


class UploadFailedError(DataRoomError):
    """Raised when one file of a batch fails; the rest of the batch is skipped."""

    def __init__(
        self,
        message: str,
        *,
        file_name: str,
        uploaded: Optional[list[Any]] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        merged = {"file_name": file_name}
        if details:
            merged.update(details)
        super().__init__(message, details=merged, cause=cause)
        self.file_name = file_name
        self.uploaded = list(uploaded or [])


class TransientNetworkError(DataRoomError):
    """Raised for network/connection failures that are worth retrying."""


class OperationTimeoutError(DataRoomError):
    """Raised when a remote call does not finish before its deadline."""


class StorageError(DataRoomError):
    """Raised when a blob upload/copy/delete fails."""


class RefreshFailedError(DataRoomError):
    """Raised when files were uploaded but the follow-up refresh failed."""


@dataclass(frozen=True)
class HttpErrorInfo:
    """Lightweight HTTP error information for mapping to dataroom exceptions."""

    status_code: int
    reason: str | None = None
    message: str | None = None
    details: dict[str, Any] | None = None


_QUOTA_REASON_KEYWORDS: tuple[str, ...] = (
    "quota",
    "storageQuotaExceeded",
    "dailyLimitExceeded",
    "usageLimits",
)

_TRANSIENT_STATUS_CODES: frozenset[int] = frozenset({401, 408, 429})


def _is_quota_reason(reason: str | None) -> bool:
    if not reason:
        return False
    return any(key.lower() in reason.lower() for key in _QUOTA_REASON_KEYWORDS)


def map_http_error(
    info: HttpErrorInfo,
    *,
    cause: Optional[BaseException] = None,
) -> DataRoomError:
    """
    Map an HTTP error from a storage backend to a dataroom exception.

    Policy:
        - 401/408/429 -> TransientNetworkError (token refresh, throttling)
        - 403 -> PermissionDeniedError, but StorageError if quota-related
        - 404 -> NotFoundError
        - 409/412 -> NameConflictError
        - 5xx -> TransientNetworkError
        - otherwise -> StorageError
    """
    details: dict[str, Any] = {
        "status_code": info.status_code,
        "reason": info.reason,
    }
    if info.details:
        details.update(info.details)

    message = info.message or f"HTTP error {info.status_code}"

    if info.status_code in _TRANSIENT_STATUS_CODES:
        return TransientNetworkError(message, details=details, cause=cause)
    if info.status_code == 403:
        if _is_quota_reason(info.reason):
            return StorageError(message, details=details, cause=cause)
        return PermissionDeniedError(message, details=details, cause=cause)
    if info.status_code == 404:
        return NotFoundError(message, details=details, cause=cause)
    if info.status_code in (409, 412):
        return NameConflictError(message, details=details, cause=cause)
    if 500 <= info.status_code <= 599:
        return TransientNetworkError(message, details=details, cause=cause)

    return StorageError(message, details=details, cause=cause)


def is_cancellation(exc: BaseException) -> bool:
    """Return True if exc means "the user stopped it", which is never an error toast."""
    return isinstance(exc, UploadCancelledError)


def is_user_facing(exc: BaseException) -> bool:
    """
    Return True if exc carries an actionable message the UI can show verbatim.

    Permission and conflict errors are actionable; transient and timeout errors
    should instead suggest checking connectivity.
    """
    return isinstance(
        exc,
        (
            PermissionDeniedError,
            NameConflictError,
            NotFoundError,
            InvalidMoveError,
            InvalidArgumentError,
        ),
    )
