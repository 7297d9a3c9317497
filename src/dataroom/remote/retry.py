"""Bounded retries with exponential backoff, and hard timeouts, for remote calls."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from dataroom.errors import (
    DataRoomError,
    OperationTimeoutError,
    TransientNetworkError,
    UploadCancelledError,
)
from dataroom.util.cancel import CancellationToken

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RETRYABLE_KEYWORDS: tuple[str, ...] = (
    "network",
    "fetch",
    "connection",
    "timed out",
    "timeout",
    "jwt",
    "token",
    "unauthorized",
)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 2
    base_delay: float = 0.5

    def delay_for(self, attempt: int) -> float:
        """Delay after the given 1-based failed attempt: base * 2**(attempt-1)."""
        return self.base_delay * (2 ** (attempt - 1))


def is_retryable(exc: BaseException) -> bool:
    """
    Classify an error as transient.

    Cancellation is never retried. Typed domain errors (permission, not found,
    conflict, invalid move...) are final; only transient network errors and
    timeouts among them are retried.
    """
    if isinstance(exc, (asyncio.CancelledError, UploadCancelledError)):
        return False
    if isinstance(exc, (TransientNetworkError, OperationTimeoutError)):
        return True
    if isinstance(exc, DataRoomError):
        return False
    if isinstance(exc, (ConnectionError, asyncio.TimeoutError, TimeoutError)):
        return True
    if isinstance(exc, OSError):
        # Local I/O (missing file, EACCES) does not heal on retry.
        return False
    msg = str(exc).lower()
    return any(key in msg for key in _RETRYABLE_KEYWORDS)


async def with_timeout(
    awaitable: Awaitable[T],
    seconds: float,
    message: str = "Request timed out",
) -> T:
    """Race awaitable against a deadline; raise OperationTimeoutError if it loses."""
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as exc:
        raise OperationTimeoutError(
            message,
            details={"timeout_sec": seconds},
            cause=exc,
        ) from exc


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    *,
    cancel: Optional[CancellationToken] = None,
) -> T:
    """
    Call fn until it succeeds, a non-retryable error occurs, or attempts run out.

    The last error is re-raised unchanged once attempts are exhausted.
    """
    policy = policy or RetryPolicy()
    for attempt in range(1, policy.max_attempts + 1):
        if cancel is not None:
            cancel.raise_if_cancelled()
        try:
            return await fn()
        except Exception as exc:
            if attempt >= policy.max_attempts or not is_retryable(exc):
                raise
            delay = policy.delay_for(attempt)
            logger.debug(
                "Retrying after %s (attempt %d/%d, wait %.2fs)",
                exc.__class__.__name__,
                attempt,
                policy.max_attempts,
                delay,
            )
            await asyncio.sleep(delay)
            if cancel is not None:
                cancel.raise_if_cancelled()

    raise DataRoomError("Unexpected retry loop termination")


async def call_remote(
    fn: Callable[[], Awaitable[T]],
    *,
    policy: Optional[RetryPolicy] = None,
    timeout: Optional[float] = None,
    message: str = "Request timed out",
    cancel: Optional[CancellationToken] = None,
) -> T:
    """Retry fn under policy, bounding each attempt by timeout when given."""
    if timeout is None:
        return await with_retry(fn, policy, cancel=cancel)

    async def attempt() -> T:
        return await with_timeout(fn(), timeout, message)

    return await with_retry(attempt, policy, cancel=cancel)
