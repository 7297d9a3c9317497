import asyncio
import unittest

from dataroom.config import DataRoomSettings
from dataroom.errors import (
    NameConflictError,
    TransientNetworkError,
    UploadCancelledError,
    UploadFailedError,
)
from dataroom.models import UploadBlob
from dataroom.remote.memory import InMemoryRemoteStore
from dataroom.upload.coordinator import UploadCoordinator
from dataroom.util.cancel import CancellationToken


def _settings(**overrides) -> DataRoomSettings:
    values = {"retry_base_delay": 0, "progress_tick_interval": 0.001}
    values.update(overrides)
    return DataRoomSettings(_env_file=None, **values)


class _SlowStore(InMemoryRemoteStore):
    def __init__(self, delay: float) -> None:
        super().__init__()
        self.delay = delay

    async def upload_file(self, folder_id, blob):
        await asyncio.sleep(self.delay)
        return await super().upload_file(folder_id, blob)


class _FailingStore(InMemoryRemoteStore):
    def __init__(self, failing_name: str) -> None:
        super().__init__()
        self.failing_name = failing_name

    async def upload_file(self, folder_id, blob):
        if blob.name == self.failing_name:
            raise NameConflictError("taken")
        return await super().upload_file(folder_id, blob)


class TestUploadCoordinator(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.store = InMemoryRemoteStore()
        self.folder = self.store.seed_folder("Target")
        self.store.seed_file(self.folder.id, "a.txt")

    async def test_unique_names_in_submission_order(self) -> None:
        coordinator = UploadCoordinator(self.store, _settings())
        blobs = [UploadBlob("a.txt", b"1"), UploadBlob("a.txt", b"22"), UploadBlob("b.txt", b"333")]

        result = await coordinator.upload(self.folder.id, blobs, existing_names=["a.txt"])

        self.assertEqual([f.name for f in result.files], ["a (1).txt", "a (2).txt", "b.txt"])
        self.assertEqual(result.renamed, [("a.txt", "a (1).txt"), ("a.txt", "a (2).txt")])
        stored = await self.store.fetch_folder_children(self.folder.id)
        self.assertEqual(len(stored.files), 4)

    async def test_progress_snapshots(self) -> None:
        snapshots = []
        coordinator = UploadCoordinator(self.store, _settings(), on_progress=snapshots.append)
        blobs = [UploadBlob("x.txt", b"12345"), UploadBlob("y.txt", b"67890")]

        await coordinator.upload(self.folder.id, blobs)

        first, last = snapshots[0], snapshots[-1]
        self.assertEqual((first.total_files, first.completed_files), (2, 0))
        self.assertEqual(first.total_bytes, 10)
        self.assertEqual((last.completed_files, last.uploaded_bytes), (2, 10))
        self.assertIsNone(last.current_file_name)
        self.assertEqual(last.fraction, 1.0)
        self.assertIn("y.txt", [s.current_file_name for s in snapshots])
        self.assertIs(coordinator.progress, last)

    async def test_estimator_is_capped_while_in_flight(self) -> None:
        store = _SlowStore(delay=0.05)
        folder = store.seed_folder("Target")
        snapshots = []
        coordinator = UploadCoordinator(
            store,
            _settings(progress_tick_interval=0.002, progress_tick_fraction=0.2),
            on_progress=snapshots.append,
        )

        await coordinator.upload(folder.id, [UploadBlob("big.bin", b"x" * 1000)])

        in_flight = [s.uploaded_bytes for s in snapshots if s.completed_files == 0]
        self.assertTrue(any(0 < b for b in in_flight))
        self.assertLessEqual(max(in_flight), 900)
        self.assertEqual(snapshots[-1].uploaded_bytes, 1000)

    async def test_cancel_between_files_keeps_completed(self) -> None:
        token = CancellationToken()

        def cancel_after_first(progress) -> None:
            if progress.completed_files == 1:
                token.cancel("user")

        coordinator = UploadCoordinator(self.store, _settings(), on_progress=cancel_after_first)
        blobs = [UploadBlob("1.txt", b"1"), UploadBlob("2.txt", b"2"), UploadBlob("3.txt", b"3")]

        with self.assertRaises(UploadCancelledError) as ctx:
            await coordinator.upload(self.folder.id, blobs, cancel=token)

        self.assertEqual([f.name for f in ctx.exception.uploaded], ["1.txt"])
        uploads = [c for c in self.store.calls if c[0] == "upload_file"]
        self.assertEqual(len(uploads), 1)

    async def test_cancelled_before_start(self) -> None:
        token = CancellationToken()
        token.cancel()
        coordinator = UploadCoordinator(self.store, _settings())
        with self.assertRaises(UploadCancelledError) as ctx:
            await coordinator.upload(self.folder.id, [UploadBlob("1.txt", b"1")], cancel=token)
        self.assertEqual(ctx.exception.uploaded, [])
        self.assertEqual([c for c in self.store.calls if c[0] == "upload_file"], [])

    async def test_failure_aborts_remaining_batch(self) -> None:
        store = _FailingStore("b.txt")
        folder = store.seed_folder("Target")
        coordinator = UploadCoordinator(store, _settings())
        blobs = [UploadBlob("a.txt", b"1"), UploadBlob("b.txt", b"2"), UploadBlob("c.txt", b"3")]

        with self.assertRaises(UploadFailedError) as ctx:
            await coordinator.upload(folder.id, blobs)

        err = ctx.exception
        self.assertEqual(err.file_name, "b.txt")
        self.assertIsInstance(err.cause, NameConflictError)
        self.assertEqual([f.name for f in err.uploaded], ["a.txt"])
        names = [f.name for f in (await store.fetch_folder_children(folder.id)).files]
        self.assertEqual(names, ["a.txt"])

    async def test_transient_failure_is_retried(self) -> None:
        self.store.fail_next("upload_file", TransientNetworkError("blip"))
        coordinator = UploadCoordinator(self.store, _settings())

        result = await coordinator.upload(self.folder.id, [UploadBlob("n.txt", b"1")])

        self.assertEqual(len(result.files), 1)
        uploads = [c for c in self.store.calls if c[0] == "upload_file"]
        self.assertEqual(len(uploads), 2)


if __name__ == "__main__":
    unittest.main()
