"""dataroom public API."""

from __future__ import annotations

from dataroom.config import DataRoomSettings
from dataroom.engine import DataRoomSyncEngine
from dataroom.errors import (
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
from dataroom.models import (
    AuditEvent,
    File,
    Folder,
    FolderChildren,
    OrderUpdate,
    TrashSummary,
    UploadBlob,
    UploadProgress,
    UploadResult,
)
from dataroom.remote import (
    AuditSink,
    BlobStore,
    DriveBlobStore,
    InMemoryRemoteStore,
    LoggingAuditSink,
    MemoryAuditSink,
    MemoryBlobStore,
    RemoteStore,
    RetryPolicy,
)
from dataroom.tree import SearchFilter
from dataroom.upload import UploadCoordinator
from dataroom.util import CancellationToken

__all__ = [
    # High-level
    "DataRoomSyncEngine",
    "DataRoomSettings",
    "UploadCoordinator",
    "CancellationToken",
    "SearchFilter",
    # Stores
    "RemoteStore",
    "InMemoryRemoteStore",
    "BlobStore",
    "MemoryBlobStore",
    "DriveBlobStore",
    "AuditSink",
    "LoggingAuditSink",
    "MemoryAuditSink",
    "RetryPolicy",
    # Models
    "Folder",
    "File",
    "FolderChildren",
    "TrashSummary",
    "OrderUpdate",
    "UploadBlob",
    "UploadProgress",
    "UploadResult",
    "AuditEvent",
    # Errors
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
