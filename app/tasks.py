"""Background execution of storage, media and network work on a Qt thread pool."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal, Slot
from loguru import logger

from core.cancellation import CancellationToken
from core.errors import OperationCancelled


@dataclass
class _Pending:
    token: CancellationToken
    on_success: Callable[[Any], None] | None
    on_failure: Callable[[Exception], None] | None
    on_cancelled: Callable[[Any], None] | None = None


class _OperationTask(QRunnable):
    """QRunnable executing one storage/media/network operation.

    Emits `runner.taskFinished(pending, result, error)` upon completion; the
    runner delivers it on its own thread.
    """

    def __init__(self, *, work: Callable[[CancellationToken], Any], pending: _Pending, runner: TaskRunner):
        super().__init__()
        self._work = work
        self._pending = pending
        self._runner = runner

    def run(self) -> None:  # type: ignore[override]
        result: Any = None
        error: Exception | None = None
        try:
            self._pending.token.raise_if_cancelled()
            result = self._work(self._pending.token)
        except Exception as ex:  # pylint: disable=broad-exception-caught
            error = ex
        self._runner.taskFinished.emit(self._pending, result, error)


class TaskRunner(QObject):
    """Dispatches operations to a thread pool and reports back on this thread.

    Every submission gets a `CancellationToken`. Once cancelled, the task's
    completion is dropped instead of delivered, and an `OperationCancelled`
    raised by the work itself is dropped the same way. Work that succeeded
    after its token was cancelled hands its result to `on_cancelled`, so
    whatever it created can be cleaned up. With `inline=True` work runs
    synchronously on the calling thread.
    """

    taskFinished = Signal(object, object, object)

    def __init__(
        self, pool: QThreadPool | None = None, inline: bool = False, parent: QObject | None = None
    ) -> None:
        super().__init__(parent)
        self._inline = inline
        self._pool = None if inline else (pool or QThreadPool.globalInstance())
        self.taskFinished.connect(self._deliver)

    def submit(
        self,
        name: str,
        work: Callable[[CancellationToken], Any],
        on_success: Callable[[Any], None] | None = None,
        on_failure: Callable[[Exception], None] | None = None,
        token: CancellationToken | None = None,
        on_cancelled: Callable[[Any], None] | None = None,
    ) -> CancellationToken:
        """Run `work(token)` and route its outcome to the callbacks."""
        pending = _Pending(token or CancellationToken(name), on_success, on_failure, on_cancelled)
        task = _OperationTask(work=work, pending=pending, runner=self)
        if self._pool is None:
            task.run()
        else:
            self._pool.start(task)
        return pending.token

    def wait_for_done(self, msecs: int = -1) -> bool:
        """Block until queued work finishes (no-op when inline)."""
        if self._pool is None:
            return True
        return self._pool.waitForDone(msecs)

    @Slot(object, object, object)
    def _deliver(self, pending: _Pending, result: Any, error: Exception | None) -> None:
        token = pending.token
        try:
            self._dispatch(pending, result, error)
        finally:
            token.finish()

    def _dispatch(self, pending: _Pending, result: Any, error: Exception | None) -> None:
        token = pending.token
        if token.cancelled or isinstance(error, OperationCancelled):
            logger.debug("Dropping result of cancelled task {}", token.name)
            if error is None and pending.on_cancelled is not None:
                pending.on_cancelled(result)
            return
        if error is not None:
            logger.error("Task {} failed: {}", token.name, error)
            if pending.on_failure is not None:
                pending.on_failure(error)
            return
        if pending.on_success is not None:
            pending.on_success(result)
