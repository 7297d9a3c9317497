from __future__ import annotations

import mimetypes
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dataroom.models import File

DEFAULT_MIME: str = "application/octet-stream"

FILE_TYPE_CATEGORIES: tuple[str, ...] = (
    "pdf",
    "word",
    "excel",
    "ppt",
    "image",
    "video",
    "other",
)

_WORD_RE = re.compile(r"\.(doc|docx)$")
_EXCEL_RE = re.compile(r"\.(xls|xlsx)$")
_PPT_RE = re.compile(r"\.(ppt|pptx)$")
_IMAGE_RE = re.compile(r"\.(jpg|jpeg|png|gif|webp|svg|bmp)$")
_VIDEO_RE = re.compile(r"\.(mp4|webm|ogg|mov|avi|mkv)$")


def guess_mime_type(name: str) -> str:
    mime, _ = mimetypes.guess_type(name)
    return mime or DEFAULT_MIME


def file_type_category(file: File) -> str:
    """
    Map a file to a coarse category for filtering.

    The MIME type wins; the name's extension is the fallback for items
    stored as application/octet-stream.
    """
    mime = (file.mime_type or "").lower()
    name = file.name.lower()

    if "pdf" in mime or name.endswith(".pdf"):
        return "pdf"
    if "word" in mime or "msword" in mime or _WORD_RE.search(name):
        return "word"
    if "excel" in mime or "spreadsheet" in mime or _EXCEL_RE.search(name):
        return "excel"
    if "powerpoint" in mime or "presentation" in mime or _PPT_RE.search(name):
        return "ppt"
    if "image" in mime or _IMAGE_RE.search(name):
        return "image"
    if "video" in mime or _VIDEO_RE.search(name):
        return "video"
    return "other"
