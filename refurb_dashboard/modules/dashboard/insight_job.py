# refurb_dashboard/modules/dashboard/insight_job.py
from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal, Slot

_log = logging.getLogger(__name__)


class _JobRunnable(QRunnable):
    """Thin QRunnable wrapper that executes a callable on the pool."""

    def __init__(self, work: Callable[[], None]) -> None:
        super().__init__()
        self.setAutoDelete(True)
        self._work = work

    @Slot()
    def run(self) -> None:  # type: ignore[override]
        self._work()


class InsightJob(QObject):
    """
    Runs the (possibly slow) insight request off the UI thread.

    Signals are emitted from the worker thread; receivers living on the UI
    thread get them queued.

    Signals:
      - finished(tag: str, insights: object)
      - failed(tag: str, message: str)
    """

    finished = Signal(str, object)
    failed = Signal(str, str)

    def __init__(self, pool: Optional[QThreadPool] = None) -> None:
        super().__init__()
        self._pool = pool or QThreadPool.globalInstance()

    def run_async(self, tag: str, work: Callable[[], Any]) -> None:
        self._pool.start(_JobRunnable(lambda: self._run(tag, work)))

    # ---- runs in worker thread ----
    def _run(self, tag: str, work: Callable[[], Any]) -> None:
        try:
            result = work()
        except Exception as e:
            _log.exception("Insight job %s failed", tag)
            self.failed.emit(tag, str(e))
            return
        self.finished.emit(tag, result)
