"""Cooperative cancellation for long-running scans."""

from __future__ import annotations

import threading
from collections.abc import Sequence
from typing import Any

__all__ = ["CancellationToken", "SearchCancelled", "check_cancelled"]


class SearchCancelled(RuntimeError):
    """Raised when a scan observes a cancelled token between steps.

    ``partial`` holds whatever the scan had produced before it stopped.
    """

    def __init__(self, message: str = "search cancelled", *, partial: Sequence[Any] = ()) -> None:
        super().__init__(message)
        self.partial = list(partial)


class CancellationToken:
    """Thread-safe flag shared between a caller and a running scan."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"CancellationToken(cancelled={self.cancelled})"


def check_cancelled(token: CancellationToken | None, partial: Sequence[Any] = ()) -> None:
    """Raise :class:`SearchCancelled` when ``token`` has been cancelled."""

    if token is not None and token.cancelled:
        raise SearchCancelled(partial=partial)
