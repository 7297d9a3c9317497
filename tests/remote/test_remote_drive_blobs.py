import json
import unittest
from unittest.mock import Mock, patch

from dataroom.config import DataRoomSettings
from dataroom.errors import (
    InvalidArgumentError,
    PermissionDeniedError,
    StorageError,
    TransientNetworkError,
)
from dataroom.remote.drive_blobs import DriveBlobStore, storage_key_hash
from dataroom.remote.fields import STORAGE_KEY_PROP


def _http_error(status: int, reason: str = "", content: bytes = b"{}"):
    from googleapiclient.errors import HttpError

    resp = Mock()
    resp.status = status
    resp.reason = reason
    return HttpError(resp=resp, content=content)


class TestDriveBlobStoreMocked(unittest.IsolatedAsyncioTestCase):
    def _service(self, found_id: str | None = "BLOB1"):
        service = Mock()
        files_resource = Mock()
        service.files.return_value = files_resource

        listing = Mock()
        listing.execute.return_value = {"files": [{"id": found_id}] if found_id else []}
        files_resource.list.return_value = listing
        return service, files_resource

    def test_storage_key_hash_is_fixed_length(self) -> None:
        short = storage_key_hash("a/b/c.txt")
        long = storage_key_hash("x" * 500)
        self.assertEqual(len(short), 40)
        self.assertEqual(len(long), 40)
        self.assertNotEqual(short, long)

    def test_requires_bucket(self) -> None:
        with self.assertRaises(InvalidArgumentError):
            DriveBlobStore(Mock(), "")

    def test_from_settings_requires_drive_fields(self) -> None:
        with self.assertRaises(InvalidArgumentError):
            DriveBlobStore.from_settings(DataRoomSettings(_env_file=None))

    async def test_put_creates_tagged_file_in_bucket(self) -> None:
        service, files_resource = self._service()
        store = DriveBlobStore(service, "BUCKET")

        with patch("googleapiclient.http.MediaIoBaseUpload") as media_cls:
            await store.put("F/1/report.pdf", b"%PDF", "application/pdf")

        kwargs = files_resource.create.call_args.kwargs
        self.assertEqual(kwargs["body"]["name"], "report.pdf")
        self.assertEqual(kwargs["body"]["parents"], ["BUCKET"])
        self.assertEqual(
            kwargs["body"]["appProperties"],
            {STORAGE_KEY_PROP: storage_key_hash("F/1/report.pdf")},
        )
        self.assertTrue(kwargs["supportsAllDrives"])
        self.assertEqual(media_cls.call_args.kwargs["mimetype"], "application/pdf")

    async def test_copy_looks_up_source_by_key(self) -> None:
        service, files_resource = self._service("SRC")
        store = DriveBlobStore(service, "BUCKET", supports_all_drives=False)

        await store.copy("F/1/a.txt", "F/1/b.txt")

        q = files_resource.list.call_args.kwargs["q"]
        self.assertIn("'BUCKET' in parents", q)
        self.assertIn(storage_key_hash("F/1/a.txt"), q)
        self.assertNotIn("supportsAllDrives", files_resource.list.call_args.kwargs)

        copy_kwargs = files_resource.copy.call_args.kwargs
        self.assertEqual(copy_kwargs["fileId"], "SRC")
        self.assertEqual(copy_kwargs["body"]["name"], "b.txt")

    async def test_delete_missing_blob_is_storage_error(self) -> None:
        service, files_resource = self._service(found_id=None)
        store = DriveBlobStore(service, "BUCKET")
        with self.assertRaises(StorageError):
            await store.delete("F/1/a.txt")
        files_resource.delete.assert_not_called()

    async def test_signed_url_prefers_content_link(self) -> None:
        service, files_resource = self._service()
        files_resource.get.return_value.execute.return_value = {
            "id": "BLOB1",
            "webContentLink": "https://drive/dl",
            "webViewLink": "https://drive/view",
        }
        store = DriveBlobStore(service, "BUCKET")
        self.assertEqual(await store.signed_url("F/1/a.txt", 60), "https://drive/dl")

    async def test_http_errors_are_mapped(self) -> None:
        service, files_resource = self._service()
        store = DriveBlobStore(service, "BUCKET")

        files_resource.delete.return_value.execute.side_effect = _http_error(503)
        with self.assertRaises(TransientNetworkError):
            await store.delete("k")

        files_resource.delete.return_value.execute.side_effect = _http_error(403, "forbidden")
        with self.assertRaises(PermissionDeniedError):
            await store.delete("k")

        payload = json.dumps(
            {"error": {"message": "Quota", "errors": [{"reason": "storageQuotaExceeded"}]}}
        ).encode("utf-8")
        files_resource.delete.return_value.execute.side_effect = _http_error(403, content=payload)
        with self.assertRaises(StorageError) as ctx:
            await store.delete("k")
        self.assertEqual(str(ctx.exception), "Quota")

        files_resource.delete.return_value.execute.side_effect = _http_error(404)
        with self.assertRaises(StorageError):
            await store.delete("k")

    async def test_os_errors_are_transient(self) -> None:
        service, files_resource = self._service()
        files_resource.list.return_value.execute.side_effect = ConnectionResetError("reset")
        store = DriveBlobStore(service, "BUCKET")
        with self.assertRaises(TransientNetworkError):
            await store.get("k")


if __name__ == "__main__":
    unittest.main()
