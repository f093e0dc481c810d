"""Cooperative cancellation for in-flight queries."""
from __future__ import annotations

import threading

from edurag.errors import QueryCancelledError


class CancellationToken:
    """
    A one-way flag shared between the caller and a running query.

    The query polls it while waiting on slow external calls; once set it
    stays set.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason = ""

    def cancel(self, reason: str = "cancelled by caller") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Block up to `timeout` seconds; True if cancelled meanwhile."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise QueryCancelledError(self.reason)
