"""Shared plumbing for view-models that run work through a `TaskRunner`."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from PySide6.QtCore import QObject

from app.tasks import TaskRunner
from core.cancellation import CancellationToken
from core.errors import InvalidInputError, MediaError, NotFoundError, StorageError


def describe_error(error: Exception) -> str:
    """Short user-facing message for an operation failure."""
    if isinstance(error, InvalidInputError):
        return error.message
    if isinstance(error, NotFoundError):
        return f"{error.what} no longer exists"
    if isinstance(error, (StorageError, MediaError)):
        return str(error)
    return "Something went wrong"


class BaseVM(QObject):
    """Tracks the tokens of in-flight work so it can be cancelled on close."""

    def __init__(self, runner: TaskRunner, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._runner = runner
        self._tokens: list[CancellationToken] = []
        self._closed = False

    def _submit(
        self,
        name: str,
        work: Callable[[CancellationToken], Any],
        on_success: Callable[[Any], None] | None = None,
        on_failure: Callable[[Exception], None] | None = None,
        on_cancelled: Callable[[Any], None] | None = None,
    ) -> CancellationToken:
        token = CancellationToken(name)
        self._tokens = self.pending_tokens
        self._tokens.append(token)
        return self._runner.submit(
            name, work, on_success, on_failure, token=token, on_cancelled=on_cancelled
        )

    @property
    def pending_tokens(self) -> list[CancellationToken]:
        """Tokens of work whose outcome has not been handled yet."""
        return [t for t in self._tokens if not (t.cancelled or t.done)]

    def cancel_pending(self) -> None:
        for token in self._tokens:
            token.cancel()
        self._tokens.clear()

    def close(self) -> None:
        """Cancel pending work; late completions are dropped."""
        self._closed = True
        self.cancel_pending()

    @property
    def is_closed(self) -> bool:
        return self._closed
