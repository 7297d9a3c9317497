import os
import unittest

from dataroom import DriveBlobStore, InMemoryRemoteStore, StorageError, UploadBlob
from dataroom.util.ids import new_uuid


def _env(name: str) -> str:
    value = os.environ.get(name, "").strip()
    if not value:
        raise unittest.SkipTest(f"Missing env var: {name}")
    return value


class TestDriveBlobIntegration(unittest.IsolatedAsyncioTestCase):
    """
    Integration test with real Google Drive.

    Required env vars:
        - DATAROOM_IT_CREDENTIALS_FILE: service-account JSON key
        - DATAROOM_IT_BUCKET_FOLDER_ID: Drive folder used as the blob bucket
          (shared with the service account; a safe sandbox)
    """

    @classmethod
    def setUpClass(cls) -> None:
        cls.credentials_file = _env("DATAROOM_IT_CREDENTIALS_FILE")
        cls.bucket_id = _env("DATAROOM_IT_BUCKET_FOLDER_ID")

    async def test_blob_lifecycle_through_the_store(self) -> None:
        blobs = DriveBlobStore.from_service_account_file(self.credentials_file, self.bucket_id)
        store = InMemoryRemoteStore(blob_store=blobs)
        folder = store.seed_folder(f"dataroom_it_{new_uuid()[:8]}")

        # 1) upload
        record = await store.upload_file(folder.id, UploadBlob("it.txt", b"hello"))
        self.assertEqual(await blobs.get(record.storage_path), b"hello")

        # 2) rename moves the blob to a new key
        await store.rename_file(record.id, "renamed")
        renamed = store.file_record(record.id)
        self.assertEqual(renamed.name, "renamed.txt")
        self.assertEqual(await blobs.get(renamed.storage_path), b"hello")
        with self.assertRaises(StorageError):
            await blobs.get(record.storage_path)

        # 3) link
        self.assertTrue(await store.signed_url(record.id, 60))

        # 4) cleanup
        await store.hard_delete_folder(folder.id)
        with self.assertRaises(StorageError):
            await blobs.get(renamed.storage_path)


if __name__ == "__main__":
    unittest.main()
