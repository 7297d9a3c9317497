"""Public model exports for dataroom."""

from __future__ import annotations

from .items import DataRoomPath, File, Folder, Item, ItemType, is_file, is_folder
from .results import (
    AuditEvent,
    FolderChildren,
    FolderWithPath,
    ItemWithPath,
    OrderUpdate,
    TrashSummary,
    UploadBlob,
    UploadProgress,
    UploadResult,
    as_path,
)

__all__ = [
    "DataRoomPath",
    "File",
    "Folder",
    "Item",
    "ItemType",
    "is_file",
    "is_folder",
    "AuditEvent",
    "FolderChildren",
    "FolderWithPath",
    "ItemWithPath",
    "OrderUpdate",
    "TrashSummary",
    "UploadBlob",
    "UploadProgress",
    "UploadResult",
    "as_path",
]
