"""Abstract collaborator contracts: the remote record store and the blob store."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from dataroom.models import File, Folder, FolderChildren, OrderUpdate, TrashSummary, UploadBlob


class BlobStore(ABC):
    """Opaque store-and-retrieve byte service keyed by storage path."""

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> None: ...

    @abstractmethod
    async def get(self, key: str) -> bytes: ...

    @abstractmethod
    async def copy(self, src_key: str, dst_key: str) -> None: ...

    @abstractmethod
    async def delete(self, key: str) -> None: ...

    @abstractmethod
    async def signed_url(self, key: str, expires_in: int) -> str: ...


class RemoteStore(ABC):
    """
    Persistent folder/file records plus permissions, trash, blobs and audit.

    Every mutating call checks edit capability and raises typed dataroom
    errors: PermissionDeniedError, NotFoundError, NameConflictError,
    InvalidMoveError, StorageError, TransientNetworkError.
    """

    # ----------------------------
    # Reads
    # ----------------------------
    @abstractmethod
    async def fetch_root_folders(self) -> list[Folder]:
        """Root folders with empty children and populated counts."""

    @abstractmethod
    async def fetch_folder_children(self, folder_id: str) -> FolderChildren:
        """One level only."""

    @abstractmethod
    async def fetch_folder(self, folder_id: str) -> Folder: ...

    @abstractmethod
    async def fetch_file(self, file_id: str) -> File: ...

    @abstractmethod
    async def list_sibling_slugs(self, parent_id: Optional[str]) -> list[str]: ...

    @abstractmethod
    async def list_trash(self) -> TrashSummary: ...

    # ----------------------------
    # Writes
    # ----------------------------
    @abstractmethod
    async def create_folder(
        self,
        parent_id: Optional[str],
        name: str,
        sibling_slugs: Sequence[str],
    ) -> Folder: ...

    @abstractmethod
    async def upload_file(self, folder_id: str, blob: UploadBlob) -> File: ...

    @abstractmethod
    async def create_link(self, folder_id: str, name: str, url: str) -> File: ...

    @abstractmethod
    async def rename_folder(
        self,
        folder_id: str,
        new_name: str,
        sibling_slugs: Sequence[str],
    ) -> None: ...

    @abstractmethod
    async def rename_file(self, file_id: str, new_name: str) -> None: ...

    @abstractmethod
    async def delete_folder(self, folder_id: str) -> None: ...

    @abstractmethod
    async def delete_file(self, file_id: str) -> None: ...

    @abstractmethod
    async def restore_folder(self, folder_id: str) -> None: ...

    @abstractmethod
    async def restore_file(self, file_id: str) -> None: ...

    @abstractmethod
    async def hard_delete_folder(self, folder_id: str) -> None: ...

    @abstractmethod
    async def hard_delete_file(self, file_id: str) -> None: ...

    @abstractmethod
    async def move_file_to_folder(self, file_id: str, new_folder_id: str) -> None: ...

    @abstractmethod
    async def move_folder_to_parent(
        self,
        folder_id: str,
        new_parent_id: Optional[str],
        order_index: int,
    ) -> None: ...

    @abstractmethod
    async def update_folder_order(self, updates: Sequence[OrderUpdate]) -> None: ...

    # ----------------------------
    # Capabilities / side channels
    # ----------------------------
    @abstractmethod
    async def can_edit(self, target_id: str) -> bool:
        """False for "no permission"; infrastructure failure also yields False."""

    @abstractmethod
    async def signed_url(self, file_id: str, expires_in: int) -> Optional[str]:
        """Retrieval URL for a file blob (or a link's url); None on failure."""

    @abstractmethod
    async def log_event(
        self,
        action: str,
        target_type: str,
        target_id: str,
        details: dict[str, Any],
    ) -> None:
        """Best-effort audit emission; never raises."""
