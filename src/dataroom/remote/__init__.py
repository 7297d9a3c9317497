"""Remote store adapters, blob stores, audit sinks and the retry wrapper."""

from __future__ import annotations

from .audit import AuditSink, LoggingAuditSink, MemoryAuditSink, emit_audit
from .base import BlobStore, RemoteStore
from .blobs import MemoryBlobStore
from .drive_blobs import DriveBlobStore
from .memory import InMemoryRemoteStore, storage_key
from .retry import RetryPolicy, call_remote, is_retryable, with_retry, with_timeout

__all__ = [
    "RemoteStore",
    "BlobStore",
    "InMemoryRemoteStore",
    "MemoryBlobStore",
    "DriveBlobStore",
    "storage_key",
    "AuditSink",
    "LoggingAuditSink",
    "MemoryAuditSink",
    "emit_audit",
    "RetryPolicy",
    "is_retryable",
    "with_retry",
    "with_timeout",
    "call_remote",
]
