from __future__ import annotations

import re
from typing import Iterable

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def slug_from_name(name: str) -> str:
    """Derive a URL-safe slug: lowercase, non-alphanumeric runs become '-'."""
    return _NON_ALNUM_RE.sub("-", name.lower()).strip("-")


def unique_slug(slug: str, existing: Iterable[str]) -> str:
    """Return slug, or the first free slug-1, slug-2, ... among existing."""
    taken = set(existing)
    if slug not in taken:
        return slug
    n = 1
    while f"{slug}-{n}" in taken:
        n += 1
    return f"{slug}-{n}"
