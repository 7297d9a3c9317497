"""Data model for data-room folders and files."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional, Sequence, Union

ItemType = Literal["file", "link"]

# Ordered slugs from a root folder down to a folder; () is the root level.
DataRoomPath = Sequence[str]


@dataclass(slots=True)
class File:
    """
    A file or link living inside exactly one folder.

    Notes:
        - "file" items carry a storage_path (blob key) and a size.
        - "link" items carry a url and no size.
    """

    id: str
    folder_id: str
    name: str
    item_type: ItemType = "file"

    size_bytes: Optional[int] = None
    storage_path: Optional[str] = None
    url: Optional[str] = None
    mime_type: Optional[str] = None

    last_modified: Optional[datetime] = None
    last_modified_by: Optional[str] = None
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None
    sharing_label: str = "Shared"


@dataclass(slots=True)
class Folder:
    """
    A folder node of the forest.

    children is authoritative only once the folder id is in the engine's
    loaded set; item_count/subfolder_count are valid before that.
    """

    id: str
    name: str
    slug: str
    parent_id: Optional[str] = None
    order_index: int = 0

    last_modified: Optional[datetime] = None
    last_modified_by: Optional[str] = None
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None
    sharing_label: str = "Shared"
    description: Optional[str] = None

    children: list[Union[Folder, File]] = field(default_factory=list)
    item_count: int = 0
    subfolder_count: int = 0


Item = Union[Folder, File]


def is_folder(item: object) -> bool:
    return isinstance(item, Folder)


def is_file(item: object) -> bool:
    return isinstance(item, File)
