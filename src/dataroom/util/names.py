"""File-name helpers: collision-free upload names and rename extension rules."""

from __future__ import annotations

from typing import Iterable

from dataroom.errors import InvalidArgumentError


def split_extension(name: str) -> tuple[str, str]:
    """
    Split name into (base, extension) where extension includes the dot.

    A leading dot (".env") or a trailing dot ("notes.") is not an extension.
    """
    dot = name.rfind(".")
    if dot <= 0 or dot == len(name) - 1:
        return name, ""
    return name[:dot], name[dot:]


def unique_file_name(name: str, taken: set[str]) -> str:
    """
    Return a name that is free in taken, and claim it.

    Uniqueness is case-insensitive: taken must hold lowercased names, and
    "Test.png" collides with "test.png".
    """
    key = name.lower()
    if key not in taken:
        taken.add(key)
        return name

    base, ext = split_extension(name)
    index = 1
    while True:
        candidate = f"{base} ({index}){ext}"
        if candidate.lower() not in taken:
            taken.add(candidate.lower())
            return candidate
        index += 1


def compute_unique_file_name_mappings(
    names: Iterable[str],
    existing: Iterable[str],
) -> list[tuple[str, str]]:
    """Return (original, final) for every name in the batch that had to change."""
    taken = {n.lower() for n in existing}
    mappings: list[tuple[str, str]] = []
    for name in names:
        final = unique_file_name(name, taken)
        if final != name:
            mappings.append((name, final))
    return mappings


def preserve_extension_on_rename(entered_name: str, original_name: str) -> str:
    """
    Keep the original extension when the new name omits one.

    - "report" over "x.pdf" -> "report.pdf"
    - "report.docx" over "x.pdf" -> "report.docx"
    """
    trimmed = entered_name.strip()
    if not trimmed:
        raise InvalidArgumentError("Name cannot be empty.")

    _, original_ext = split_extension(original_name)
    _, new_ext = split_extension(trimmed)
    if not new_ext and original_ext:
        return f"{trimmed}{original_ext}"
    return trimmed


_SIZE_UNITS: tuple[str, ...] = ("Bytes", "KB", "MB", "GB", "TB")


def format_bytes(size: int) -> str:
    if size <= 0:
        return "0 Bytes"
    value = float(size)
    i = 0
    while value >= 1024 and i < len(_SIZE_UNITS) - 1:
        value /= 1024
        i += 1
    value = round(value, 2)
    if value == int(value):
        return f"{int(value)} {_SIZE_UNITS[i]}"
    return f"{value} {_SIZE_UNITS[i]}"
