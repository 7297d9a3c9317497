"""Audit event sinks and the best-effort emission wrapper."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from dataroom.models import AuditEvent
from dataroom.util.ids import new_event_id
from dataroom.util.time import now_utc, to_rfc3339

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("dataroom.audit")

FOLDER_CREATE = "folder.create"
FOLDER_RENAME = "folder.rename"
FOLDER_DELETE = "folder.delete"
FOLDER_RESTORE = "folder.restore"
FOLDER_HARD_DELETE = "folder.hard_delete"
FOLDER_MOVE = "folder.move"
FOLDER_REORDER = "folder.reorder"
FILE_UPLOAD = "file.upload"
FILE_LINK = "file.link"
FILE_RENAME = "file.rename"
FILE_DELETE = "file.delete"
FILE_RESTORE = "file.restore"
FILE_HARD_DELETE = "file.hard_delete"
FILE_MOVE = "file.move"


class AuditSink(ABC):
    @abstractmethod
    async def record(self, event: AuditEvent) -> None: ...


class LoggingAuditSink(AuditSink):
    """Writes every event to the dataroom.audit logger at INFO."""

    async def record(self, event: AuditEvent) -> None:
        audit_logger.info(
            "%s %s=%s by=%s at=%s details=%s",
            event.action,
            event.target_type,
            event.target_id,
            event.actor_id or "-",
            to_rfc3339(event.created_at) if event.created_at else "-",
            event.details,
        )


class MemoryAuditSink(AuditSink):
    """Keeps events in a list (tests, local development)."""

    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    async def record(self, event: AuditEvent) -> None:
        self.events.append(event)

    def actions(self) -> list[str]:
        return [e.action for e in self.events]


async def emit_audit(
    sink: Optional[AuditSink],
    action: str,
    target_type: str,
    target_id: str,
    details: Optional[dict[str, Any]] = None,
    *,
    actor_id: Optional[str] = None,
) -> None:
    """Record one audit event. Failures are logged and never propagate."""
    if sink is None:
        return
    event = AuditEvent(
        event_id=new_event_id(),
        action=action,
        target_type=target_type,
        target_id=target_id,
        details=dict(details or {}),
        actor_id=actor_id,
        created_at=now_utc(),
    )
    try:
        await sink.record(event)
    except Exception as exc:
        logger.warning(
            "Audit emission failed for %s %s=%s: %s",
            action,
            target_type,
            target_id,
            exc,
        )
