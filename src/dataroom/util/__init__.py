from .cancel import CancellationToken
from .ids import new_event_id, new_item_id, new_uuid
from .mime import DEFAULT_MIME, FILE_TYPE_CATEGORIES, file_type_category, guess_mime_type
from .names import (
    compute_unique_file_name_mappings,
    format_bytes,
    preserve_extension_on_rename,
    split_extension,
    unique_file_name,
)
from .slugs import slug_from_name, unique_slug
from .time import calendar_date, now_utc, normalize_dt, parse_calendar_date, to_rfc3339

__all__ = [
    "CancellationToken",
    "new_uuid",
    "new_item_id",
    "new_event_id",
    "DEFAULT_MIME",
    "FILE_TYPE_CATEGORIES",
    "guess_mime_type",
    "file_type_category",
    "slug_from_name",
    "unique_slug",
    "split_extension",
    "unique_file_name",
    "compute_unique_file_name_mappings",
    "preserve_extension_on_rename",
    "format_bytes",
    "now_utc",
    "parse_calendar_date",
    "to_rfc3339",
    "normalize_dt",
    "calendar_date",
]
