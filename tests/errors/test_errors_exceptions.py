import unittest

from dataroom.errors.exceptions import (
    DataRoomError,
    HttpErrorInfo,
    InvalidMoveError,
    NameConflictError,
    NotFoundError,
    OperationTimeoutError,
    PermissionDeniedError,
    StorageError,
    TransientNetworkError,
    UploadCancelledError,
    UploadFailedError,
    is_cancellation,
    is_user_facing,
    map_http_error,
)


class TestExceptions(unittest.TestCase):
    def test_base_error_keeps_details_and_cause(self) -> None:
        cause = RuntimeError("root")
        err = DataRoomError("msg", details={"k": "v"}, cause=cause)
        self.assertEqual(str(err), "msg")
        self.assertEqual(err.details["k"], "v")
        self.assertIs(err.cause, cause)

    def test_details_default_to_empty_dict(self) -> None:
        self.assertEqual(NotFoundError("x").details, {})

    def test_upload_errors_carry_uploaded_files(self) -> None:
        cancelled = UploadCancelledError(uploaded=["f1"])
        self.assertEqual(str(cancelled), "Upload cancelled")
        self.assertEqual(cancelled.uploaded, ["f1"])

        failed = UploadFailedError("boom", file_name="b.txt", uploaded=["f1"])
        self.assertEqual(failed.file_name, "b.txt")
        self.assertEqual(failed.details["file_name"], "b.txt")
        self.assertEqual(failed.uploaded, ["f1"])

    def test_map_http_error_basic(self) -> None:
        err = map_http_error(HttpErrorInfo(status_code=404, message="not found"))
        self.assertIsInstance(err, NotFoundError)
        self.assertEqual(str(err), "not found")

        err = map_http_error(HttpErrorInfo(status_code=409))
        self.assertIsInstance(err, NameConflictError)
        self.assertEqual(str(err), "HTTP error 409")

        err = map_http_error(HttpErrorInfo(status_code=412))
        self.assertIsInstance(err, NameConflictError)

        err = map_http_error(HttpErrorInfo(status_code=400))
        self.assertIsInstance(err, StorageError)

    def test_map_http_error_transient(self) -> None:
        for status in (401, 408, 429, 500, 503):
            err = map_http_error(HttpErrorInfo(status_code=status))
            self.assertIsInstance(err, TransientNetworkError, status)

    def test_map_http_error_403_permission_vs_quota(self) -> None:
        err = map_http_error(HttpErrorInfo(status_code=403, reason="forbidden"))
        self.assertIsInstance(err, PermissionDeniedError)

        err = map_http_error(HttpErrorInfo(status_code=403, reason="storageQuotaExceeded"))
        self.assertIsInstance(err, StorageError)

    def test_map_http_error_keeps_cause_and_details(self) -> None:
        cause = RuntimeError("http")
        err = map_http_error(
            HttpErrorInfo(status_code=404, reason="notFound", details={"domain": "global"}),
            cause=cause,
        )
        self.assertIs(err.cause, cause)
        self.assertEqual(err.details["status_code"], 404)
        self.assertEqual(err.details["domain"], "global")

    def test_classification_helpers(self) -> None:
        self.assertTrue(is_cancellation(UploadCancelledError()))
        self.assertFalse(is_cancellation(StorageError("x")))

        self.assertTrue(is_user_facing(PermissionDeniedError("x")))
        self.assertTrue(is_user_facing(NameConflictError("x")))
        self.assertTrue(is_user_facing(InvalidMoveError("x")))
        self.assertFalse(is_user_facing(TransientNetworkError("x")))
        self.assertFalse(is_user_facing(OperationTimeoutError("x")))
        self.assertFalse(is_user_facing(UploadCancelledError()))


if __name__ == "__main__":
    unittest.main()
