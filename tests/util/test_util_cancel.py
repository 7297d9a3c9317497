import unittest

from dataroom.errors import UploadCancelledError
from dataroom.util.cancel import CancellationToken


class TestCancellationToken(unittest.TestCase):
    def test_initially_not_cancelled(self) -> None:
        token = CancellationToken()
        self.assertFalse(token.cancelled)
        token.raise_if_cancelled()

    def test_cancel_keeps_first_reason(self) -> None:
        token = CancellationToken()
        token.cancel("hidden")
        token.cancel("user")
        self.assertTrue(token.cancelled)
        self.assertEqual(token.reason, "hidden")

    def test_raise_if_cancelled(self) -> None:
        token = CancellationToken()
        token.cancel("user")
        with self.assertRaises(UploadCancelledError) as ctx:
            token.raise_if_cancelled()
        self.assertEqual(ctx.exception.details["reason"], "user")


if __name__ == "__main__":
    unittest.main()
