"""InMemoryRemoteStore: complete RemoteStore over dictionaries (no external I/O)."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

from dataroom.errors import (
    InvalidArgumentError,
    InvalidMoveError,
    InvalidStateError,
    NameConflictError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
)
from dataroom.models import (
    File,
    Folder,
    FolderChildren,
    OrderUpdate,
    TrashSummary,
    UploadBlob,
)
from dataroom.util.ids import new_item_id
from dataroom.util.mime import guess_mime_type
from dataroom.util.names import preserve_extension_on_rename
from dataroom.util.slugs import slug_from_name, unique_slug
from dataroom.util.time import now_utc

from . import audit
from .audit import AuditSink, emit_audit
from .base import BlobStore, RemoteStore
from .blobs import MemoryBlobStore

logger = logging.getLogger(__name__)

DEFAULT_SLUG: str = "folder"


def storage_key(folder_id: str, file_id: str, name: str) -> str:
    return f"{folder_id}/{file_id}/{name}"


class InMemoryRemoteStore(RemoteStore):
    """
    Reference record store used by tests and local development.

    Enforces the data-room invariants server-side: slug unique among
    non-deleted siblings, file name unique (case-insensitive) among
    non-deleted files of a folder, no folder cycles.
    """

    def __init__(
        self,
        *,
        user_id: str = "user",
        is_admin: bool = True,
        blob_store: Optional[BlobStore] = None,
        audit_sink: Optional[AuditSink] = None,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.user_id = user_id
        self.is_admin = is_admin
        self.blob_store: BlobStore = blob_store or MemoryBlobStore()
        self.audit_sink = audit_sink
        self._clock = clock

        self._folders: dict[str, Folder] = {}
        self._files: dict[str, File] = {}
        self._grants: dict[str, set[str]] = {}
        self._failures: dict[str, list[BaseException]] = {}
        self.calls: list[tuple[Any, ...]] = []

    # ----------------------------
    # Test / seeding helpers
    # ----------------------------
    def fail_next(self, operation: str, exc: BaseException) -> None:
        """Make the next call of the named operation raise exc."""
        self._failures.setdefault(operation, []).append(exc)

    def grant(self, user_id: str, target_id: str) -> None:
        self._grants.setdefault(user_id, set()).add(target_id)

    def revoke(self, user_id: str, target_id: str) -> None:
        self._grants.get(user_id, set()).discard(target_id)

    def seed_folder(
        self,
        name: str,
        parent_id: Optional[str] = None,
        *,
        folder_id: Optional[str] = None,
        slug: Optional[str] = None,
        order_index: Optional[int] = None,
    ) -> Folder:
        """Insert a folder without permission checks or audit."""
        fid = folder_id or new_item_id()
        siblings = self._sibling_slugs(parent_id)
        folder = Folder(
            id=fid,
            name=name,
            slug=slug or unique_slug(slug_from_name(name) or DEFAULT_SLUG, siblings),
            parent_id=parent_id,
            order_index=order_index if order_index is not None else len(siblings),
            last_modified=self._clock(),
        )
        self._folders[fid] = folder
        return replace(folder)

    def seed_file(
        self,
        folder_id: str,
        name: str,
        *,
        file_id: Optional[str] = None,
        data: bytes = b"",
        item_type: str = "file",
        url: Optional[str] = None,
    ) -> File:
        """Insert a file record (and its blob) without permission checks or audit."""
        fid = file_id or new_item_id()
        key = storage_key(folder_id, fid, name) if item_type == "file" else None
        if key is not None and isinstance(self.blob_store, MemoryBlobStore):
            self.blob_store.seed(key, data, guess_mime_type(name))
        record = File(
            id=fid,
            folder_id=folder_id,
            name=name,
            item_type=item_type,  # type: ignore[arg-type]
            size_bytes=len(data) if item_type == "file" else None,
            storage_path=key,
            url=url,
            mime_type=guess_mime_type(name) if item_type == "file" else None,
            last_modified=self._clock(),
        )
        self._files[fid] = record
        return replace(record)

    def folder_record(self, folder_id: str) -> Folder:
        return replace(self._folders[folder_id])

    def file_record(self, file_id: str) -> File:
        return replace(self._files[file_id])

    # ----------------------------
    # Reads
    # ----------------------------
    async def fetch_root_folders(self) -> list[Folder]:
        self._enter("fetch_root_folders")
        return [self._with_counts(f) for f in self._visible_child_folders(None)]

    async def fetch_folder_children(self, folder_id: str) -> FolderChildren:
        self._enter("fetch_folder_children", folder_id)
        self._require_visible_folder(folder_id)
        return FolderChildren(
            folders=[self._with_counts(f) for f in self._visible_child_folders(folder_id)],
            files=[replace(f) for f in self._visible_files(folder_id)],
        )

    async def fetch_folder(self, folder_id: str) -> Folder:
        self._enter("fetch_folder", folder_id)
        return self._with_counts(self._require_visible_folder(folder_id))

    async def fetch_file(self, file_id: str) -> File:
        self._enter("fetch_file", file_id)
        return replace(self._require_live_file(file_id))

    async def list_sibling_slugs(self, parent_id: Optional[str]) -> list[str]:
        self._enter("list_sibling_slugs", parent_id)
        return sorted(self._sibling_slugs(parent_id))

    async def list_trash(self) -> TrashSummary:
        self._enter("list_trash")

        def newest_first(item: Any) -> float:
            return -(item.deleted_at.timestamp() if item.deleted_at else 0.0)

        folders = sorted((f for f in self._folders.values() if f.is_deleted), key=newest_first)
        files = sorted((f for f in self._files.values() if f.is_deleted), key=newest_first)
        return TrashSummary(
            folders=[replace(f) for f in folders],
            files=[replace(f) for f in files],
        )

    # ----------------------------
    # Writes
    # ----------------------------
    async def create_folder(
        self,
        parent_id: Optional[str],
        name: str,
        sibling_slugs: Sequence[str],
    ) -> Folder:
        self._enter("create_folder", parent_id, name)
        name = _require_name(name)
        if parent_id is not None:
            self._require_visible_folder(parent_id)
        await self._require_edit(parent_id)

        taken = set(sibling_slugs) | self._sibling_slugs(parent_id)
        now = self._clock()
        folder = Folder(
            id=new_item_id(),
            name=name,
            slug=unique_slug(slug_from_name(name) or DEFAULT_SLUG, taken),
            parent_id=parent_id,
            order_index=len(self._visible_child_folders(parent_id)),
            last_modified=now,
            last_modified_by=self.user_id,
        )
        self._folders[folder.id] = folder
        logger.info("Created folder %s (%s) under %s", folder.id, folder.slug, parent_id)
        await self.log_event(
            audit.FOLDER_CREATE,
            "folder",
            folder.id,
            {"name": name, "slug": folder.slug, "parent_id": parent_id},
        )
        return self._with_counts(folder)

    async def upload_file(self, folder_id: str, blob: UploadBlob) -> File:
        self._enter("upload_file", folder_id, blob.name)
        name = _require_name(blob.name)
        self._require_visible_folder(folder_id)
        await self._require_edit(folder_id)
        self._require_free_file_name(folder_id, name)

        file_id = new_item_id()
        key = storage_key(folder_id, file_id, name)
        content_type = blob.content_type or guess_mime_type(name)
        await self._blob_call("upload", self.blob_store.put(key, blob.data, content_type), key)

        now = self._clock()
        record = File(
            id=file_id,
            folder_id=folder_id,
            name=name,
            item_type="file",
            size_bytes=blob.size,
            storage_path=key,
            mime_type=content_type,
            last_modified=now,
            last_modified_by=self.user_id,
        )
        self._files[file_id] = record
        await self.log_event(
            audit.FILE_UPLOAD,
            "file",
            file_id,
            {"name": name, "folder_id": folder_id, "size": blob.size},
        )
        return replace(record)

    async def create_link(self, folder_id: str, name: str, url: str) -> File:
        self._enter("create_link", folder_id, name)
        name = _require_name(name)
        if not url or not url.strip():
            raise InvalidArgumentError("Link url cannot be empty.")
        self._require_visible_folder(folder_id)
        await self._require_edit(folder_id)
        self._require_free_file_name(folder_id, name)

        record = File(
            id=new_item_id(),
            folder_id=folder_id,
            name=name,
            item_type="link",
            url=url.strip(),
            last_modified=self._clock(),
            last_modified_by=self.user_id,
        )
        self._files[record.id] = record
        await self.log_event(
            audit.FILE_LINK,
            "file",
            record.id,
            {"name": name, "folder_id": folder_id, "url": record.url},
        )
        return replace(record)

    async def rename_folder(
        self,
        folder_id: str,
        new_name: str,
        sibling_slugs: Sequence[str],
    ) -> None:
        self._enter("rename_folder", folder_id, new_name)
        new_name = _require_name(new_name)
        folder = self._require_visible_folder(folder_id)
        await self._require_edit(folder_id)

        taken = (set(sibling_slugs) | self._sibling_slugs(folder.parent_id)) - {folder.slug}
        old_name, old_slug = folder.name, folder.slug
        folder.name = new_name
        folder.slug = unique_slug(slug_from_name(new_name) or DEFAULT_SLUG, taken)
        self._touch(folder)
        await self.log_event(
            audit.FOLDER_RENAME,
            "folder",
            folder_id,
            {
                "old_name": old_name,
                "new_name": new_name,
                "old_slug": old_slug,
                "new_slug": folder.slug,
            },
        )

    async def rename_file(self, file_id: str, new_name: str) -> None:
        self._enter("rename_file", file_id, new_name)
        record = self._require_live_file(file_id)
        final = preserve_extension_on_rename(new_name, record.name)
        if final == record.name:
            return
        await self._require_edit(file_id)
        self._require_free_file_name(record.folder_id, final, exclude_id=file_id)

        old_name = record.name
        old_key = record.storage_path
        if record.item_type == "file" and old_key:
            new_key = storage_key(record.folder_id, record.id, final)
            await self._blob_call("copy", self.blob_store.copy(old_key, new_key), old_key)
            record.storage_path = new_key
            try:
                await self.blob_store.delete(old_key)
            except Exception as exc:
                # The old blob is orphaned; the rename itself stands.
                logger.warning("Failed to delete old blob %s after rename: %s", old_key, exc)

        record.name = final
        self._touch(record)
        await self.log_event(
            audit.FILE_RENAME,
            "file",
            file_id,
            {"old_name": old_name, "new_name": final, "folder_id": record.folder_id},
        )

    async def delete_folder(self, folder_id: str) -> None:
        self._enter("delete_folder", folder_id)
        folder = self._require_visible_folder(folder_id)
        await self._require_edit(folder_id)
        self._soft_delete(folder)
        await self.log_event(
            audit.FOLDER_DELETE,
            "folder",
            folder_id,
            {"name": folder.name, "parent_id": folder.parent_id},
        )

    async def delete_file(self, file_id: str) -> None:
        self._enter("delete_file", file_id)
        record = self._require_live_file(file_id)
        await self._require_edit(file_id)
        self._soft_delete(record)
        await self.log_event(
            audit.FILE_DELETE,
            "file",
            file_id,
            {"name": record.name, "folder_id": record.folder_id, "size": record.size_bytes},
        )

    async def restore_folder(self, folder_id: str) -> None:
        self._enter("restore_folder", folder_id)
        folder = self._folders.get(folder_id)
        if folder is None or not folder.is_deleted:
            raise NotFoundError("Folder is not in trash", details={"folder_id": folder_id})
        if folder.parent_id is not None and not self._is_visible_folder(folder.parent_id):
            raise InvalidStateError(
                "Parent folder is in trash; restore it first",
                details={"folder_id": folder_id, "parent_id": folder.parent_id},
            )
        await self._require_edit(folder_id)

        key = folder.name.lower()
        for sibling in self._visible_child_folders(folder.parent_id):
            if sibling.name.lower() == key:
                raise NameConflictError(
                    f'A folder named "{folder.name}" already exists here',
                    details={"folder_id": folder_id, "conflict_id": sibling.id},
                )

        folder.slug = unique_slug(folder.slug, self._sibling_slugs(folder.parent_id))
        folder.is_deleted = False
        folder.deleted_at = None
        folder.deleted_by = None
        self._touch(folder)
        await self.log_event(
            audit.FOLDER_RESTORE,
            "folder",
            folder_id,
            {"name": folder.name, "parent_id": folder.parent_id},
        )

    async def restore_file(self, file_id: str) -> None:
        self._enter("restore_file", file_id)
        record = self._files.get(file_id)
        if record is None or not record.is_deleted:
            raise NotFoundError("File is not in trash", details={"file_id": file_id})
        if not self._is_visible_folder(record.folder_id):
            raise InvalidStateError(
                "Folder is in trash; restore it first",
                details={"file_id": file_id, "folder_id": record.folder_id},
            )
        await self._require_edit(file_id)
        self._require_free_file_name(record.folder_id, record.name, exclude_id=file_id)

        record.is_deleted = False
        record.deleted_at = None
        record.deleted_by = None
        self._touch(record)
        await self.log_event(
            audit.FILE_RESTORE,
            "file",
            file_id,
            {"name": record.name, "folder_id": record.folder_id},
        )

    async def hard_delete_folder(self, folder_id: str) -> None:
        self._enter("hard_delete_folder", folder_id)
        folder = self._folders.get(folder_id)
        if folder is None:
            raise NotFoundError("Folder not found", details={"folder_id": folder_id})
        await self._require_edit(folder_id)

        subtree = self._subtree_folder_ids(folder_id)
        files = [f for f in self._files.values() if f.folder_id in subtree]
        for record in files:
            await self._delete_blob_quietly(record)
            del self._files[record.id]
        for fid in subtree:
            del self._folders[fid]
        await self.log_event(
            audit.FOLDER_HARD_DELETE,
            "folder",
            folder_id,
            {"name": folder.name, "folders": len(subtree), "files": len(files)},
        )

    async def hard_delete_file(self, file_id: str) -> None:
        self._enter("hard_delete_file", file_id)
        record = self._files.get(file_id)
        if record is None:
            raise NotFoundError("File not found", details={"file_id": file_id})
        await self._require_edit(file_id)
        await self._delete_blob_quietly(record)
        del self._files[file_id]
        await self.log_event(
            audit.FILE_HARD_DELETE,
            "file",
            file_id,
            {"name": record.name, "folder_id": record.folder_id, "size": record.size_bytes},
        )

    async def move_file_to_folder(self, file_id: str, new_folder_id: str) -> None:
        self._enter("move_file_to_folder", file_id, new_folder_id)
        record = self._require_live_file(file_id)
        self._require_visible_folder(new_folder_id)
        await self._require_edit(file_id)
        await self._require_edit(new_folder_id)
        if record.folder_id == new_folder_id:
            return
        self._require_free_file_name(new_folder_id, record.name, exclude_id=file_id)

        old_folder_id = record.folder_id
        record.folder_id = new_folder_id
        self._touch(record)
        await self.log_event(
            audit.FILE_MOVE,
            "file",
            file_id,
            {
                "name": record.name,
                "old_folder_id": old_folder_id,
                "new_folder_id": new_folder_id,
            },
        )

    async def move_folder_to_parent(
        self,
        folder_id: str,
        new_parent_id: Optional[str],
        order_index: int,
    ) -> None:
        self._enter("move_folder_to_parent", folder_id, new_parent_id, order_index)
        folder = self._require_visible_folder(folder_id)
        if new_parent_id is not None:
            self._require_visible_folder(new_parent_id)
            if new_parent_id in self._subtree_folder_ids(folder_id):
                raise InvalidMoveError(
                    "Cannot move a folder into itself or one of its subfolders",
                    details={"folder_id": folder_id, "target_folder_id": new_parent_id},
                )
        # Edit rights are needed where the folder sits now and where it goes.
        await self._require_edit(folder.parent_id)
        await self._require_edit(new_parent_id)

        old_parent_id = folder.parent_id
        if old_parent_id != new_parent_id:
            folder.slug = unique_slug(folder.slug, self._sibling_slugs(new_parent_id))
        folder.parent_id = new_parent_id
        folder.order_index = order_index
        self._touch(folder)
        await self.log_event(
            audit.FOLDER_MOVE,
            "folder",
            folder_id,
            {
                "name": folder.name,
                "old_parent_id": old_parent_id,
                "new_parent_id": new_parent_id,
                "order_index": order_index,
            },
        )

    async def update_folder_order(self, updates: Sequence[OrderUpdate]) -> None:
        self._enter("update_folder_order", tuple(updates))
        targets = [self._require_visible_folder(u.id) for u in updates]
        for folder in targets:
            await self._require_edit(folder.id)
        for folder, update in zip(targets, updates):
            folder.order_index = update.order_index
        if updates:
            await self.log_event(
                audit.FOLDER_REORDER,
                "folder",
                targets[0].parent_id or "root",
                {"order": [(u.id, u.order_index) for u in updates]},
            )

    # ----------------------------
    # Capabilities / side channels
    # ----------------------------
    async def can_edit(self, target_id: str) -> bool:
        try:
            self._maybe_fail("can_edit")
            if self.is_admin:
                return True
            granted = self._grants.get(self.user_id, set())
            if target_id in granted:
                return True
            record = self._files.get(target_id)
            if record is not None:
                return record.folder_id in granted
            return False
        except Exception as exc:
            logger.warning("Permission lookup failed for %s; denying: %s", target_id, exc)
            return False

    async def signed_url(self, file_id: str, expires_in: int) -> Optional[str]:
        try:
            self._enter("signed_url", file_id)
            record = self._require_live_file(file_id)
            if record.item_type == "link":
                return record.url
            if not record.storage_path:
                return None
            return await self.blob_store.signed_url(record.storage_path, expires_in)
        except Exception as exc:
            logger.warning("Could not resolve signed URL for %s: %s", file_id, exc)
            return None

    async def log_event(
        self,
        action: str,
        target_type: str,
        target_id: str,
        details: dict[str, Any],
    ) -> None:
        await emit_audit(
            self.audit_sink,
            action,
            target_type,
            target_id,
            details,
            actor_id=self.user_id,
        )

    # ----------------------------
    # Internals
    # ----------------------------
    def _enter(self, operation: str, *args: Any) -> None:
        self.calls.append((operation, *args))
        self._maybe_fail(operation)

    def _maybe_fail(self, operation: str) -> None:
        pending = self._failures.get(operation)
        if pending:
            raise pending.pop(0)

    async def _require_edit(self, target_id: Optional[str]) -> None:
        if target_id is None:
            if not self.is_admin:
                raise PermissionDeniedError(
                    "Only admins can change the root level",
                    details={"user_id": self.user_id},
                )
            return
        if not await self.can_edit(target_id):
            raise PermissionDeniedError(
                "You do not have edit access to this item",
                details={"user_id": self.user_id, "target_id": target_id},
            )

    async def _blob_call(self, what: str, awaitable: Any, key: str) -> None:
        try:
            await awaitable
        except (StorageError, PermissionDeniedError):
            raise
        except Exception as exc:
            raise StorageError(
                f"Blob {what} failed",
                details={"key": key},
                cause=exc,
            ) from exc

    async def _delete_blob_quietly(self, record: File) -> None:
        if record.item_type != "file" or not record.storage_path:
            return
        try:
            await self.blob_store.delete(record.storage_path)
        except Exception as exc:
            logger.warning("Failed to delete blob %s: %s", record.storage_path, exc)

    def _touch(self, item: Any) -> None:
        item.last_modified = self._clock()
        item.last_modified_by = self.user_id

    def _soft_delete(self, item: Any) -> None:
        item.is_deleted = True
        item.deleted_at = self._clock()
        item.deleted_by = self.user_id

    def _is_visible_folder(self, folder_id: Optional[str]) -> bool:
        seen: set[str] = set()
        cur = folder_id
        while cur is not None:
            if cur in seen:
                return False
            seen.add(cur)
            folder = self._folders.get(cur)
            if folder is None or folder.is_deleted:
                return False
            cur = folder.parent_id
        return True

    def _require_visible_folder(self, folder_id: str) -> Folder:
        if not self._is_visible_folder(folder_id):
            raise NotFoundError("Folder not found", details={"folder_id": folder_id})
        return self._folders[folder_id]

    def _require_live_file(self, file_id: str) -> File:
        record = self._files.get(file_id)
        if record is None or record.is_deleted or not self._is_visible_folder(record.folder_id):
            raise NotFoundError("File not found", details={"file_id": file_id})
        return record

    def _visible_child_folders(self, parent_id: Optional[str]) -> list[Folder]:
        if parent_id is not None and not self._is_visible_folder(parent_id):
            return []
        children = [
            f for f in self._folders.values() if f.parent_id == parent_id and not f.is_deleted
        ]
        return sorted(children, key=lambda f: (f.order_index, f.name.lower()))

    def _visible_files(self, folder_id: str) -> list[File]:
        files = [f for f in self._files.values() if f.folder_id == folder_id and not f.is_deleted]
        return sorted(files, key=lambda f: f.name.lower())

    def _sibling_slugs(self, parent_id: Optional[str]) -> set[str]:
        return {
            f.slug for f in self._folders.values() if f.parent_id == parent_id and not f.is_deleted
        }

    def _require_free_file_name(
        self,
        folder_id: str,
        name: str,
        exclude_id: Optional[str] = None,
    ) -> None:
        key = name.lower()
        for other in self._visible_files(folder_id):
            if other.id != exclude_id and other.name.lower() == key:
                raise NameConflictError(
                    f'A file named "{other.name}" already exists in this folder',
                    details={"folder_id": folder_id, "name": name, "conflict_id": other.id},
                )

    def _subtree_folder_ids(self, folder_id: str) -> set[str]:
        out: set[str] = {folder_id}
        frontier: list[str] = [folder_id]
        while frontier:
            cur = frontier.pop()
            for f in self._folders.values():
                if f.parent_id == cur and f.id not in out:
                    out.add(f.id)
                    frontier.append(f.id)
        return out

    def _with_counts(self, folder: Folder) -> Folder:
        subfolders = len(self._visible_child_folders(folder.id))
        files = len(self._visible_files(folder.id))
        return replace(
            folder,
            children=[],
            subfolder_count=subfolders,
            item_count=subfolders + files,
        )


def _require_name(name: str) -> str:
    trimmed = (name or "").strip()
    if not trimmed:
        raise InvalidArgumentError("Name cannot be empty.")
    return trimmed
