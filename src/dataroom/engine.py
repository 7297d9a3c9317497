"""DataRoomSyncEngine: lazily-loaded client mirror of the data-room tree."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from typing import Any, Awaitable, Callable, Literal, Optional, Sequence, TypeVar

from dataroom.config import DataRoomSettings
from dataroom.errors import (
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
    RefreshFailedError,
    UploadCancelledError,
)
from dataroom.models import (
    DataRoomPath,
    File,
    Folder,
    FolderWithPath,
    Item,
    ItemWithPath,
    OrderUpdate,
    TrashSummary,
    UploadBlob,
    UploadProgress,
    UploadResult,
    as_path,
)
from dataroom.remote.base import RemoteStore
from dataroom.remote.retry import call_remote
from dataroom.tree import (
    SearchFilter,
    all_folders_with_paths,
    apply_search_and_filters,
    children_at,
    find_folder,
    find_item,
    flatten,
    location_label,
    replace_children_at,
    resolve_path,
    update_folder,
    validate_folder_move,
)
from dataroom.upload import UploadCoordinator
from dataroom.util.cancel import CancellationToken
from dataroom.util.time import now_utc

logger = logging.getLogger(__name__)

T = TypeVar("T")

ItemKind = Literal["folder", "file"]
ChangeCallback = Callable[["DataRoomSyncEngine"], None]
ForestPatch = Callable[[Sequence[Folder]], list[Folder]]


class DataRoomSyncEngine:
    """
    Owns the client-side forest and keeps it consistent with a RemoteStore.

    Notes:
        - A folder's children are authoritative only once its id is in
          loaded_folder_ids; refresh() clears that set.
        - move_item and reorder_folders patch the forest first and refresh
          afterwards; on failure the refresh reverts the patch.
        - Other operations call the store, then refresh the whole forest
          (folder changes) or only the parent folder (file changes).
        - Failures of non-optimistic operations are stored in `error` and
          re-raised.
    """

    def __init__(
        self,
        store: RemoteStore,
        settings: Optional[DataRoomSettings] = None,
        on_change: Optional[ChangeCallback] = None,
        *,
        user_id: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._settings = settings or DataRoomSettings()
        self._policy = self._settings.retry_policy()
        self._on_change = on_change
        self._user_id = user_id
        self._clock = clock

        self._forest: list[Folder] = []
        self._loaded: set[str] = set()
        self._in_flight: dict[str, asyncio.Task[None]] = {}
        self._loading = False
        self._refreshing = False
        self._error: Optional[BaseException] = None

        self._active_upload: Optional[UploadProgress] = None
        self._upload_cancel: Optional[CancellationToken] = None
        self._hidden_at: Optional[float] = None

    # ----------------------------
    # State
    # ----------------------------
    @property
    def forest(self) -> tuple[Folder, ...]:
        return tuple(self._forest)

    @property
    def loaded_folder_ids(self) -> frozenset[str]:
        return frozenset(self._loaded)

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    @property
    def active_upload(self) -> Optional[UploadProgress]:
        return self._active_upload

    # ----------------------------
    # Queries
    # ----------------------------
    def get_children(self, path: DataRoomPath) -> list[Item]:
        """Children at path; empty for an unloaded or unknown folder."""
        return children_at(self._forest, path)

    def get_folder(self, path: DataRoomPath) -> Optional[Folder]:
        return resolve_path(self._forest, path)

    def is_loaded(self, folder_id: str) -> bool:
        return folder_id in self._loaded

    def search(self, flt: SearchFilter) -> list[ItemWithPath]:
        return apply_search_and_filters(flatten(self._forest), flt)

    def location_label(self, path: DataRoomPath) -> str:
        return location_label(self._forest, path)

    def move_targets(self) -> list[FolderWithPath]:
        """Every loaded folder with its path, for a move-destination picker."""
        return all_folders_with_paths(self._forest)

    # ----------------------------
    # Loading
    # ----------------------------
    async def refresh(self) -> None:
        """
        Replace the forest with the store's root folders.

        A full refresh is a hard reset: every loaded subtree becomes unloaded.
        A refresh already in flight absorbs this call.
        """
        if self._refreshing:
            logger.debug("Refresh already in flight; coalescing")
            return

        self._refreshing = True
        self._loading = True
        self._error = None
        self._notify()
        try:
            roots = await self._call(
                self._store.fetch_root_folders,
                timeout=self._settings.refresh_timeout,
                message="Loading the data room timed out",
            )
        except Exception as exc:
            self._loading = False
            self._fail(exc)
            raise
        finally:
            self._refreshing = False

        self._forest = list(roots)
        self._loaded = set()
        self._loading = False
        self._notify()

    async def load_folder_children(self, folder_id: str) -> None:
        """
        Fetch one level under folder_id unless it is already loaded.

        A caller arriving while the same folder is being fetched waits for
        that fetch instead of starting another one.
        """
        if folder_id in self._loaded:
            logger.debug("Folder %s already loaded", folder_id)
            return
        pending = self._in_flight.get(folder_id)
        if pending is not None:
            logger.debug("Folder %s load already in flight; waiting for it", folder_id)
            await asyncio.shield(pending)
            return
        await self._reload_children(folder_id)

    async def load_path(self, path: DataRoomPath) -> Optional[Folder]:
        """Load every folder along path, so that path and its children resolve."""
        path = as_path(path)
        for depth in range(1, len(path) + 1):
            folder = self._require_folder(path[:depth])
            if folder is not None:
                await self.load_folder_children(folder.id)
        return resolve_path(self._forest, path)

    # ----------------------------
    # Structural mutations
    # ----------------------------
    async def add_folder(self, path: DataRoomPath, name: str) -> Folder:
        """
        Create a folder under path ([] = root), then refresh.

        Only slugs are disambiguated; two siblings may share a display name.
        """
        parent = self._require_folder(path)
        parent_id = parent.id if parent is not None else None
        sibling_slugs = [c.slug for c in children_at(self._forest, path) if isinstance(c, Folder)]

        folder = await self._mutate(
            lambda: self._store.create_folder(parent_id, name, sibling_slugs)
        )
        logger.info("Created folder %s (%s)", folder.id, folder.slug)
        await self.refresh()
        return folder

    async def rename_item(self, path: DataRoomPath, item_id: str, new_name: str) -> None:
        item = self._require_item(path, item_id)
        if isinstance(item, Folder):
            sibling_slugs = [
                c.slug
                for c in children_at(self._forest, path)
                if isinstance(c, Folder) and c.id != item.id
            ]
            await self._mutate(lambda: self._store.rename_folder(item.id, new_name, sibling_slugs))
            logger.info("Renamed folder %s", item.id)
            await self.refresh()
        else:
            await self._mutate(lambda: self._store.rename_file(item.id, new_name))
            logger.info("Renamed file %s", item.id)
            await self._reload_children(item.folder_id)

    async def delete_item(self, path: DataRoomPath, item_id: str) -> None:
        item = self._require_item(path, item_id)
        if isinstance(item, Folder):
            await self._mutate(lambda: self._store.delete_folder(item.id))
            logger.info("Deleted folder %s", item.id)
            await self.refresh()
        else:
            await self._mutate(lambda: self._store.delete_file(item.id))
            logger.info("Deleted file %s", item.id)
            await self._reload_children(item.folder_id)

    async def move_item(
        self,
        source_path: DataRoomPath,
        item_id: str,
        target_path: DataRoomPath,
    ) -> None:
        """
        Move an item between paths, optimistically.

        The local forest shows the move before the store confirms it; any
        store failure refreshes the forest back to server truth and re-raises.
        """
        source = as_path(source_path)
        target = as_path(target_path)
        item = self._require_item(source, item_id)
        if source == target:
            logger.debug("Move of %s to its own location ignored", item_id)
            return
        target_folder = self._require_folder(target)
        target_id = target_folder.id if target_folder is not None else None

        if isinstance(item, Folder):
            validate_folder_move(self._forest, item.id, target_id)
            order_index = sum(
                1 for c in children_at(self._forest, target) if isinstance(c, Folder)
            )
            moved: Item = replace(
                item,
                parent_id=target_id,
                order_index=order_index,
                last_modified=now_utc(),
                last_modified_by=self._user_id,
            )

            def remote() -> Awaitable[None]:
                return self._store.move_folder_to_parent(item.id, target_id, order_index)

        else:
            if target_folder is None:
                raise InvalidArgumentError(
                    "Files cannot be moved to the root level",
                    details={"file_id": item.id},
                )
            dest_id = target_folder.id
            moved = replace(
                item,
                folder_id=dest_id,
                last_modified=now_utc(),
                last_modified_by=self._user_id,
            )

            def remote() -> Awaitable[None]:
                return self._store.move_file_to_folder(item.id, dest_id)

        def patch(forest: Sequence[Folder]) -> list[Folder]:
            remaining = [c for c in children_at(forest, source) if c.id != item.id]
            forest = replace_children_at(forest, source, remaining)
            if target_id is None or target_id in self._loaded:
                return replace_children_at(forest, target, [*children_at(forest, target), moved])
            # Unloaded target: its children stay a placeholder, only the counts move.
            added_folders = 1 if isinstance(moved, Folder) else 0
            return update_folder(
                forest,
                target_id,
                lambda f: replace(
                    f,
                    item_count=f.item_count + 1,
                    subfolder_count=f.subfolder_count + added_folders,
                ),
            )

        await self._optimistic(patch, remote)
        logger.info("Moved %s to %s", item.id, "/".join(target) or "root")

    def set_sharing(self, path: DataRoomPath, item_id: str, label: str) -> None:
        """Change an item's sharing label locally. Not persisted; a refresh drops it."""
        item = self._require_item(path, item_id)
        updated = replace(item, sharing_label=label)
        siblings = [updated if c.id == item_id else c for c in children_at(self._forest, path)]
        self._forest = replace_children_at(self._forest, path, siblings)
        self._notify()

    async def reorder_folders(self, path: DataRoomPath, ordered_folder_ids: Sequence[str]) -> None:
        """Assign order_index by position, optimistically, then persist in one batch."""
        children = children_at(self._forest, path)
        folders = {c.id: c for c in children if isinstance(c, Folder)}
        unknown = [fid for fid in ordered_folder_ids if fid not in folders]
        if unknown:
            raise InvalidArgumentError(
                "Unknown folder ids in reorder",
                details={"folder_ids": unknown},
            )
        if len(set(ordered_folder_ids)) != len(ordered_folder_ids):
            raise InvalidArgumentError("Duplicate folder ids in reorder")

        updates = [OrderUpdate(fid, index) for index, fid in enumerate(ordered_folder_ids)]

        def patch(forest: Sequence[Folder]) -> list[Folder]:
            listed = set(ordered_folder_ids)
            reordered: list[Item] = [
                replace(folders[u.id], order_index=u.order_index) for u in updates
            ]
            rest = [c for c in children if isinstance(c, Folder) and c.id not in listed]
            files = [c for c in children if isinstance(c, File)]
            return replace_children_at(forest, path, [*reordered, *rest, *files])

        await self._optimistic(patch, lambda: self._store.update_folder_order(updates))

    async def move_folder_to_folder(self, folder_id: str, target_folder_id: Optional[str]) -> None:
        """
        Move a folder under another folder (None = root).

        Self-moves and moves into the folder's own loaded subtree are
        rejected before the store is called, leaving the forest untouched.
        """
        validate_folder_move(self._forest, folder_id, target_folder_id)

        if target_folder_id is None:
            order_index = len(self._forest)
        else:
            target = find_folder(self._forest, target_folder_id)
            if target is None:
                order_index = 0
            elif target.id in self._loaded:
                order_index = sum(1 for c in target.children if isinstance(c, Folder))
            else:
                order_index = target.subfolder_count

        await self._mutate(
            lambda: self._store.move_folder_to_parent(folder_id, target_folder_id, order_index)
        )
        logger.info("Moved folder %s to %s", folder_id, target_folder_id or "root")
        await self.refresh()

    # ----------------------------
    # Files and links
    # ----------------------------
    async def upload_files(
        self,
        path: DataRoomPath,
        blobs: Sequence[UploadBlob],
        cancel: Optional[CancellationToken] = None,
    ) -> UploadResult:
        """
        Upload blobs into the folder at path, then refresh.

        Raises:
            InvalidStateError: another batch is active.
            UploadCancelledError: the batch was cancelled (not an error).
            UploadFailedError: one file failed; later files were skipped.
            RefreshFailedError: files were stored but the refresh failed.
        """
        if self._active_upload is not None:
            raise InvalidStateError("An upload is already in progress")
        folder = self._require_target_folder(path, "Files cannot be uploaded to the root level")
        if folder.id not in self._loaded:
            await self.load_folder_children(folder.id)
            folder = self._require_target_folder(path, "Files cannot be uploaded to the root level")
        existing_names = [c.name for c in folder.children if isinstance(c, File)]

        cancel = cancel or CancellationToken()
        self._upload_cancel = cancel
        self._active_upload = UploadProgress(
            total_files=len(blobs),
            completed_files=0,
            total_bytes=sum(b.size for b in blobs),
            uploaded_bytes=0,
            cancel=cancel,
        )
        self._notify()

        coordinator = UploadCoordinator(
            self._store,
            self._settings,
            on_progress=self._on_upload_progress,
        )
        try:
            result = await coordinator.upload(folder.id, blobs, existing_names, cancel)
        except UploadCancelledError as exc:
            logger.info("Upload cancelled; %d files were stored", len(exc.uploaded))
            raise
        except Exception as exc:
            self._fail(exc)
            raise
        finally:
            self._active_upload = None
            self._upload_cancel = None
            self._notify()

        new_files: list[Item] = list(result.files)
        self._forest = update_folder(
            self._forest,
            folder.id,
            lambda f: replace(
                f,
                children=[*f.children, *new_files],
                item_count=f.item_count + len(new_files),
            ),
        )
        self._notify()

        try:
            await self.refresh()
        except Exception as exc:
            raise RefreshFailedError(
                "Files were uploaded but the data room could not be refreshed",
                details={"uploaded": len(result.files)},
                cause=exc,
            ) from exc
        return result

    def cancel_upload(self, reason: Optional[str] = None) -> bool:
        if self._upload_cancel is None:
            return False
        self._upload_cancel.cancel(reason)
        return True

    async def add_link(self, path: DataRoomPath, name: str, url: str) -> File:
        folder = self._require_target_folder(path, "Links cannot be added to the root level")
        link = await self._mutate(lambda: self._store.create_link(folder.id, name, url))
        logger.info("Added link %s to folder %s", link.id, folder.id)
        await self._reload_children(folder.id)
        return link

    async def signed_url(self, file_id: str) -> Optional[str]:
        """Retrieval URL for a file; None if it cannot be resolved."""
        try:
            return await self._store.signed_url(file_id, self._settings.signed_url_expiry)
        except Exception as exc:
            logger.warning("Signed URL lookup failed for %s: %s", file_id, exc)
            return None

    # ----------------------------
    # Trash
    # ----------------------------
    async def list_trash(self) -> TrashSummary:
        return await self._mutate(
            self._store.list_trash,
            timeout=self._settings.refresh_timeout,
            message="Loading the trash timed out",
        )

    async def restore_item(self, kind: ItemKind, item_id: str) -> None:
        """
        Restore a soft-deleted item, then refresh.

        NameConflictError means a live sibling now holds the same name; the
        caller must rename one of them first.
        """
        if kind == "folder":
            await self._mutate(lambda: self._store.restore_folder(item_id))
        elif kind == "file":
            await self._mutate(lambda: self._store.restore_file(item_id))
        else:
            raise InvalidArgumentError(f"Unknown item kind: {kind!r}")
        logger.info("Restored %s %s", kind, item_id)
        await self.refresh()

    async def hard_delete_item(self, kind: ItemKind, item_id: str) -> None:
        if kind == "folder":
            await self._mutate(lambda: self._store.hard_delete_folder(item_id))
        elif kind == "file":
            await self._mutate(lambda: self._store.hard_delete_file(item_id))
        else:
            raise InvalidArgumentError(f"Unknown item kind: {kind!r}")
        logger.info("Permanently deleted %s %s", kind, item_id)
        await self.refresh()

    # ----------------------------
    # Visibility
    # ----------------------------
    def on_hidden(self) -> None:
        """Record when the client was backgrounded and cancel any active upload."""
        self._hidden_at = self._clock()
        if self.cancel_upload("hidden"):
            logger.info("Active upload cancelled because the client was hidden")

    async def on_visible(self) -> bool:
        """Refresh if the client was hidden long enough. Returns True if it refreshed."""
        if self._hidden_at is None:
            return False
        idle = self._clock() - self._hidden_at
        self._hidden_at = None
        if idle < self._settings.idle_refresh_threshold:
            return False

        logger.debug("Hidden for %.1fs; refreshing", idle)
        try:
            await self.refresh()
        except Exception as exc:
            # Recorded in `error` by refresh().
            logger.warning("Idle refresh failed: %s", exc)
        return True

    # ----------------------------
    # Internals
    # ----------------------------
    async def _optimistic(
        self,
        patch: ForestPatch,
        remote: Callable[[], Awaitable[Any]],
    ) -> None:
        """Apply patch locally, persist with remote, then refresh (to confirm or revert)."""
        self._forest = patch(self._forest)
        self._notify()
        try:
            await self._call(remote)
        except Exception as exc:
            logger.info("Store rejected optimistic change (%s); reverting", exc.__class__.__name__)
            try:
                await self.refresh()
            except Exception as refresh_exc:
                logger.warning("Revert refresh failed: %s", refresh_exc)
            raise
        await self.refresh()

    async def _reload_children(self, folder_id: str) -> None:
        task = asyncio.create_task(self._fetch_children(folder_id))
        self._in_flight[folder_id] = task
        try:
            await task
        finally:
            if self._in_flight.get(folder_id) is task:
                del self._in_flight[folder_id]

    async def _fetch_children(self, folder_id: str) -> None:
        try:
            children = await self._call(
                lambda: self._store.fetch_folder_children(folder_id),
                timeout=self._settings.subtree_timeout,
                message="Loading the folder timed out",
            )
        except Exception as exc:
            self._fail(exc)
            raise

        items = children.as_items()
        self._forest = update_folder(
            self._forest,
            folder_id,
            lambda f: replace(
                f,
                children=items,
                subfolder_count=len(children.folders),
                item_count=len(items),
            ),
        )
        self._loaded.add(folder_id)
        self._notify()

    async def _call(
        self,
        fn: Callable[[], Awaitable[T]],
        *,
        timeout: Optional[float] = None,
        message: str = "Request timed out",
    ) -> T:
        return await call_remote(fn, policy=self._policy, timeout=timeout, message=message)

    async def _mutate(
        self,
        fn: Callable[[], Awaitable[T]],
        *,
        timeout: Optional[float] = None,
        message: str = "Request timed out",
    ) -> T:
        try:
            return await self._call(fn, timeout=timeout, message=message)
        except Exception as exc:
            self._fail(exc)
            raise

    def _require_folder(self, path: DataRoomPath) -> Optional[Folder]:
        """Folder at path; None for the root level."""
        if not path:
            return None
        folder = resolve_path(self._forest, path)
        if folder is None:
            raise NotFoundError("Folder not found", details={"path": "/".join(path)})
        return folder

    def _require_target_folder(self, path: DataRoomPath, root_message: str) -> Folder:
        folder = self._require_folder(path)
        if folder is None:
            raise InvalidArgumentError(root_message)
        return folder

    def _require_item(self, path: DataRoomPath, item_id: str) -> Item:
        item = find_item(self._forest, path, item_id)
        if item is None:
            raise NotFoundError(
                "Item not found",
                details={"path": "/".join(path), "item_id": item_id},
            )
        return item

    def _fail(self, exc: BaseException) -> None:
        self._error = exc
        self._notify()

    def _on_upload_progress(self, progress: UploadProgress) -> None:
        self._active_upload = progress
        self._notify()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self)
