"""Public error exports for dataroom."""

from __future__ import annotations

from .exceptions import (
    DataRoomError,
    HttpErrorInfo,
    InvalidArgumentError,
    InvalidMoveError,
    InvalidStateError,
    NameConflictError,
    NotFoundError,
    OperationTimeoutError,
    PermissionDeniedError,
    RefreshFailedError,
    StorageError,
    TransientNetworkError,
    UploadCancelledError,
    UploadFailedError,
    is_cancellation,
    is_user_facing,
    map_http_error,
)

__all__ = [
    "DataRoomError",
    "PermissionDeniedError",
    "NotFoundError",
    "NameConflictError",
    "InvalidMoveError",
    "InvalidArgumentError",
    "InvalidStateError",
    "UploadCancelledError",
    "UploadFailedError",
    "TransientNetworkError",
    "OperationTimeoutError",
    "StorageError",
    "RefreshFailedError",
    "HttpErrorInfo",
    "map_http_error",
    "is_cancellation",
    "is_user_facing",
]
