"""Cooperative cancellation token shared between a runner and its steps."""

from __future__ import annotations

import threading

from .errors import CancelledError


class CancelToken:
    """One-shot cancellation signal, safe to set from any thread."""

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or the timeout expires; return the signal state.

        Steps polling a remote resource use this as their sleep so a cancel
        interrupts the poll immediately.
        """
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancelledError("operation cancelled")

    def __repr__(self) -> str:
        return f"CancelToken(cancelled={self.cancelled})"
