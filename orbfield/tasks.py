"""Execution of note I/O jobs.

A runner takes a zero-argument ``job`` and a ``done(result, error)`` callback
and must call ``done`` exactly once.  The Qt viewer plugs in a thread-pool
runner (:mod:`orbfield.view.qt_tasks`); headless code and tests use
:func:`run_inline`.
"""

from __future__ import annotations

from typing import Callable, Optional, TypeVar

T = TypeVar("T")

Done = Callable[[Optional[T], Optional[BaseException]], None]
Runner = Callable[[Callable[[], T], Done], None]

__all__ = ["Done", "Runner", "run_inline", "DeferredRunner"]


def run_inline(job: Callable[[], T], done: Done) -> None:
    try:
        result = job()
    except Exception as exc:
        done(None, exc)
        return
    done(result, None)


class DeferredRunner:
    """Queue jobs until :meth:`run_pending` is called.

    Lets callers interleave other work between submitting a job and seeing its
    completion, the way a background thread would.
    """

    def __init__(self) -> None:
        self.pending: list = []

    def __call__(self, job: Callable[[], T], done: Done) -> None:
        self.pending.append((job, done))

    def run_pending(self, *, reverse: bool = False) -> int:
        batch = list(reversed(self.pending)) if reverse else list(self.pending)
        self.pending.clear()
        for job, done in batch:
            run_inline(job, done)
        return len(batch)
