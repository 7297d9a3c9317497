"""Sequential multi-file upload with smoothed progress and cooperative cancel."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, replace
from typing import Callable, Iterable, Optional, Sequence

from dataroom.config import DataRoomSettings
from dataroom.errors import UploadCancelledError, UploadFailedError
from dataroom.models import File, UploadBlob, UploadProgress, UploadResult
from dataroom.remote.base import RemoteStore
from dataroom.remote.retry import call_remote
from dataroom.util.cancel import CancellationToken
from dataroom.util.names import unique_file_name

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[UploadProgress], None]


@dataclass
class _BatchState:
    total_files: int
    total_bytes: int
    completed_files: int = 0
    uploaded_bytes: int = 0
    current_file_name: Optional[str] = None


class UploadCoordinator:
    """
    Upload a batch of blobs into one folder, strictly in submission order.

    Notes:
        - Names are made unique (case-insensitive) against the folder's
          existing names and against earlier files of the same batch.
        - Cancellation is checked at batch start and right before every
          network call; files already stored are kept.
        - While a file is in flight, an estimator advances the byte counter
          toward a cap of that file's size; the real size replaces the
          estimate once the call resolves.
        - The first failing file aborts the rest of the batch.
    """

    def __init__(
        self,
        store: RemoteStore,
        settings: Optional[DataRoomSettings] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self._store = store
        self._settings = settings or DataRoomSettings()
        self._on_progress = on_progress
        self._progress: Optional[UploadProgress] = None

    @property
    def progress(self) -> Optional[UploadProgress]:
        """Latest published snapshot (None before the first batch)."""
        return self._progress

    async def upload(
        self,
        folder_id: str,
        blobs: Sequence[UploadBlob],
        existing_names: Iterable[str] = (),
        cancel: Optional[CancellationToken] = None,
    ) -> UploadResult:
        cancel = cancel or CancellationToken()
        taken = {n.lower() for n in existing_names}
        state = _BatchState(
            total_files=len(blobs),
            total_bytes=sum(b.size for b in blobs),
        )
        uploaded: list[File] = []
        renamed: list[tuple[str, str]] = []

        self._check_cancel(cancel, uploaded)
        self._publish(state, cancel)

        for blob in blobs:
            final_name = unique_file_name(blob.name, taken)
            if final_name != blob.name:
                renamed.append((blob.name, final_name))
                blob = replace(blob, name=final_name)

            state.current_file_name = final_name
            self._publish(state, cancel)

            self._check_cancel(cancel, uploaded)
            try:
                record = await self._upload_one(folder_id, blob, state, cancel)
            except UploadCancelledError as exc:
                raise UploadCancelledError(
                    uploaded=uploaded,
                    details=exc.details,
                    cause=exc,
                ) from exc
            except Exception as exc:
                logger.info(
                    "Upload of %s failed after %d/%d files",
                    final_name,
                    len(uploaded),
                    state.total_files,
                )
                raise UploadFailedError(
                    f'Failed to upload "{final_name}"',
                    file_name=final_name,
                    uploaded=uploaded,
                    cause=exc,
                ) from exc

            uploaded.append(record)
            state.completed_files += 1
            state.uploaded_bytes += blob.size
            self._publish(state, cancel)

        state.current_file_name = None
        self._publish(state, cancel)
        logger.info(
            "Uploaded %d files (%d bytes) to folder %s",
            len(uploaded),
            state.uploaded_bytes,
            folder_id,
        )
        return UploadResult(files=uploaded, renamed=renamed)

    async def _upload_one(
        self,
        folder_id: str,
        blob: UploadBlob,
        state: _BatchState,
        cancel: CancellationToken,
    ) -> File:
        estimator: Optional[asyncio.Task[None]] = None
        if blob.size > 0:
            estimator = asyncio.create_task(self._estimate(blob.size, state, cancel))
        try:
            return await call_remote(
                lambda: self._store.upload_file(folder_id, blob),
                policy=self._settings.retry_policy(),
                cancel=cancel,
            )
        finally:
            if estimator is not None:
                estimator.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await estimator

    async def _estimate(self, size: int, state: _BatchState, cancel: CancellationToken) -> None:
        cap = int(size * self._settings.progress_estimate_cap)
        step = max(1, int(size * self._settings.progress_tick_fraction))
        base = state.uploaded_bytes
        estimated = 0
        while estimated < cap:
            await asyncio.sleep(self._settings.progress_tick_interval)
            estimated = min(cap, estimated + step)
            self._emit(
                UploadProgress(
                    total_files=state.total_files,
                    completed_files=state.completed_files,
                    total_bytes=state.total_bytes,
                    uploaded_bytes=base + estimated,
                    current_file_name=state.current_file_name,
                    cancel=cancel,
                )
            )

    def _check_cancel(self, cancel: CancellationToken, uploaded: list[File]) -> None:
        if cancel.cancelled:
            logger.info("Upload batch cancelled after %d files", len(uploaded))
            raise UploadCancelledError(
                uploaded=uploaded,
                details={"reason": cancel.reason} if cancel.reason else None,
            )

    def _publish(self, state: _BatchState, cancel: CancellationToken) -> None:
        self._emit(
            UploadProgress(
                total_files=state.total_files,
                completed_files=state.completed_files,
                total_bytes=state.total_bytes,
                uploaded_bytes=state.uploaded_bytes,
                current_file_name=state.current_file_name,
                cancel=cancel,
            )
        )

    def _emit(self, snapshot: UploadProgress) -> None:
        self._progress = snapshot
        if self._on_progress is not None:
            self._on_progress(snapshot)
