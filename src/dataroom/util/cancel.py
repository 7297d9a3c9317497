from __future__ import annotations

from dataroom.errors import UploadCancelledError


class CancellationToken:
    """Cooperative cancellation flag, checked at well-defined points."""

    __slots__ = ("_cancelled", "reason")

    def __init__(self) -> None:
        self._cancelled = False
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str | None = None) -> None:
        if not self._cancelled:
            self._cancelled = True
            self.reason = reason

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise UploadCancelledError(
                "Upload cancelled",
                details={"reason": self.reason} if self.reason else None,
            )
