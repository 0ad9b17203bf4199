"""Run note I/O on ``QThreadPool`` workers and report back on the GUI thread."""

from __future__ import annotations

from typing import Callable, Optional

from PyQt5 import QtCore

from ..tasks import Done

__all__ = ["QtTaskRunner"]


class _Signals(QtCore.QObject):
    finished = QtCore.pyqtSignal(object, object, object)


class _Job(QtCore.QRunnable):
    def __init__(self, job: Callable[[], object], done: Done, signals: _Signals) -> None:
        super().__init__()
        self._job = job
        self._done = done
        self._signals = signals
        self.setAutoDelete(True)

    def run(self) -> None:  # pragma: no cover - runs on a worker thread
        try:
            result = self._job()
        except Exception as exc:
            # Handed to the GUI thread; the callback decides what to surface.
            self._signals.finished.emit(self._done, None, exc)
            return
        self._signals.finished.emit(self._done, result, None)


class QtTaskRunner(QtCore.QObject):
    """Task runner whose ``done`` callbacks always fire on the owning thread.

    The signal object lives on the GUI thread, so emissions from pool workers
    are queued and delivered by the event loop between frames.
    """

    def __init__(self, parent: Optional[QtCore.QObject] = None, pool: Optional[QtCore.QThreadPool] = None) -> None:
        super().__init__(parent)
        self._pool = pool if pool is not None else QtCore.QThreadPool.globalInstance()
        self._signals = _Signals(self)
        self._signals.finished.connect(self._deliver)

    def __call__(self, job: Callable[[], object], done: Done) -> None:
        self._pool.start(_Job(job, done, self._signals))

    @QtCore.pyqtSlot(object, object, object)
    def _deliver(self, done: Done, result: object, error: object) -> None:
        done(result, error)  # type: ignore[arg-type]

    def wait_for_done(self, msecs: int = 2000) -> bool:
        return self._pool.waitForDone(msecs)
