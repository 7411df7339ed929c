from __future__ import annotations

import threading

from core.errors import OperationCancelled


class CancellationToken:
    """Handle checked by long-running operations before applying results.

    `done` is set once the owning task's outcome has been handled, whether it
    was delivered or dropped.
    """

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._event = threading.Event()
        self._done = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def finish(self) -> None:
        self._done.set()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled(self.name or "operation cancelled")

    def __repr__(self) -> str:
        if self.cancelled:
            state = "cancelled"
        elif self.done:
            state = "done"
        else:
            state = "active"
        return f"CancellationToken({self.name!r}, {state})"
