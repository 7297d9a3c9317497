import unittest

from dataroom.models import File
from dataroom.util.mime import (
    DEFAULT_MIME,
    FILE_TYPE_CATEGORIES,
    file_type_category,
    guess_mime_type,
)


def _file(name: str, mime: str | None = None) -> File:
    return File(id="f", folder_id="d", name=name, mime_type=mime)


class TestUtilMime(unittest.TestCase):
    def test_guess_mime_type(self) -> None:
        self.assertEqual(guess_mime_type("report.pdf"), "application/pdf")
        self.assertEqual(guess_mime_type("no-extension"), DEFAULT_MIME)

    def test_category_prefers_mime_type(self) -> None:
        self.assertEqual(file_type_category(_file("scan", "application/pdf")), "pdf")
        self.assertEqual(file_type_category(_file("photo", "image/png")), "image")
        self.assertEqual(
            file_type_category(
                _file(
                    "deck",
                    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
                )
            ),
            "ppt",
        )

    def test_category_falls_back_to_extension(self) -> None:
        self.assertEqual(file_type_category(_file("Budget.XLSX", DEFAULT_MIME)), "excel")
        self.assertEqual(file_type_category(_file("memo.docx")), "word")
        self.assertEqual(file_type_category(_file("clip.mov")), "video")
        self.assertEqual(file_type_category(_file("notes.txt", "text/plain")), "other")

    def test_categories_are_closed(self) -> None:
        for name in ("a.pdf", "a.doc", "a.xls", "a.ppt", "a.png", "a.mp4", "a.zip"):
            self.assertIn(file_type_category(_file(name)), FILE_TYPE_CATEGORIES)


if __name__ == "__main__":
    unittest.main()
