from __future__ import annotations

from datetime import date, datetime, timezone


def now_utc() -> datetime:
    """Return current time as tz-aware UTC datetime."""
    return datetime.now(timezone.utc)


def normalize_dt(dt: datetime) -> datetime:
    """Ensure datetime is tz-aware. Raises if naive."""
    if not isinstance(dt, datetime):
        raise TypeError("dt must be a datetime")
    if dt.tzinfo is None:
        raise ValueError("naive datetime is not allowed; timezone-aware required")
    return dt


def to_rfc3339(dt: datetime) -> str:
    """Convert tz-aware datetime to RFC3339 (UTC, with 'Z')."""
    dt = normalize_dt(dt).astimezone(timezone.utc)
    return dt.isoformat(timespec="microseconds").replace("+00:00", "Z")


def calendar_date(dt: datetime) -> str:
    """Return the UTC calendar day of dt as YYYY-MM-DD."""
    return normalize_dt(dt).astimezone(timezone.utc).strftime("%Y-%m-%d")


def parse_calendar_date(value: str) -> date:
    """
    Parse a YYYY-MM-DD day as entered in a date filter.

    Surrounding whitespace is ignored; anything else (times, offsets,
    impossible days) raises ValueError.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError("calendar date must be a non-empty string")
    s = value.strip()
    if len(s) != 10:
        raise ValueError(f"calendar date must be YYYY-MM-DD: {value!r}")
    return date.fromisoformat(s)
