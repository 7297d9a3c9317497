"""Result and transfer models for store, upload and audit operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, NamedTuple, Optional

from .items import DataRoomPath, File, Folder, Item


@dataclass(slots=True)
class FolderChildren:
    """One level of a folder: subfolders then files."""

    folders: list[Folder] = field(default_factory=list)
    files: list[File] = field(default_factory=list)

    def as_items(self) -> list[Item]:
        return [*self.folders, *self.files]


@dataclass(slots=True)
class TrashSummary:
    """Soft-deleted records, newest deletion first."""

    folders: list[Folder] = field(default_factory=list)
    files: list[File] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class OrderUpdate:
    id: str
    order_index: int


@dataclass(frozen=True, slots=True)
class UploadBlob:
    """A file the caller wants uploaded: name, raw bytes and content type."""

    name: str
    data: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True, slots=True)
class UploadProgress:
    """Snapshot of an active upload batch. Never persisted."""

    total_files: int
    completed_files: int
    total_bytes: int
    uploaded_bytes: int
    current_file_name: Optional[str] = None
    cancel: Any = None

    @property
    def fraction(self) -> float:
        if self.total_bytes <= 0:
            return 1.0 if self.completed_files >= self.total_files else 0.0
        return min(1.0, self.uploaded_bytes / self.total_bytes)


@dataclass(slots=True)
class UploadResult:
    files: list[File]
    renamed: list[tuple[str, str]] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class AuditEvent:
    event_id: str
    action: str
    target_type: str
    target_id: str
    details: dict[str, Any]
    actor_id: Optional[str] = None
    created_at: Optional[datetime] = None


class ItemWithPath(NamedTuple):
    item: Item
    path: tuple[str, ...]


class FolderWithPath(NamedTuple):
    path: tuple[str, ...]
    folder: Folder


def as_path(path: DataRoomPath) -> tuple[str, ...]:
    return tuple(path)
