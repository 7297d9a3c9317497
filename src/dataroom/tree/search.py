"""Global search and filtering over flattened items."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from dataroom.errors import InvalidArgumentError
from dataroom.models import Folder, ItemWithPath
from dataroom.util.mime import file_type_category
from dataroom.util.time import calendar_date, parse_calendar_date


@dataclass(frozen=True, slots=True)
class SearchFilter:
    """
    search: case-insensitive substring of the item name ("" = any)
    file_type: a category from FILE_TYPE_CATEGORIES, or "all"
    date: calendar day YYYY-MM-DD of last_modified (UTC), or "" for any
    """

    search: str = ""
    file_type: str = "all"
    date: str = ""

    def __post_init__(self) -> None:
        if self.date:
            try:
                parse_calendar_date(self.date)
            except ValueError as exc:
                raise InvalidArgumentError(
                    "Invalid date filter", details={"date": self.date}, cause=exc
                ) from exc

    @property
    def has_file_type(self) -> bool:
        return bool(self.file_type) and self.file_type != "all"

    @property
    def has_date(self) -> bool:
        return bool(self.date)

    @property
    def search_key(self) -> str:
        return self.search.strip().lower()


def _matches_filters(entry: ItemWithPath, flt: SearchFilter) -> bool:
    item = entry.item
    if flt.has_file_type:
        if isinstance(item, Folder):
            return False
        if file_type_category(item) != flt.file_type:
            return False
    if flt.has_date:
        if item.last_modified is None:
            return False
        if calendar_date(item.last_modified) != flt.date.strip():
            return False
    return True


def apply_filters_only(items: Iterable[ItemWithPath], flt: SearchFilter) -> list[ItemWithPath]:
    """Filter by file type and date, ignoring the search term (per-folder view)."""
    if not flt.has_file_type and not flt.has_date:
        return list(items)
    return [e for e in items if _matches_filters(e, flt)]


def apply_search_and_filters(
    items: Iterable[ItemWithPath],
    flt: SearchFilter,
) -> list[ItemWithPath]:
    key = flt.search_key
    if not key and not flt.has_file_type and not flt.has_date:
        return list(items)
    return [
        e
        for e in items
        if (not key or key in e.item.name.lower()) and _matches_filters(e, flt)
    ]

