from __future__ import annotations

import uuid


def new_uuid() -> str:
    """Generate a UUID4 string."""
    return str(uuid.uuid4())


def new_item_id() -> str:
    """Generate a new folder/file id (server-assigned in the record store)."""
    return new_uuid()


def new_event_id() -> str:
    """Generate a new AuditEvent ID."""
    return new_uuid()
