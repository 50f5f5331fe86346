"""Seams for running remote calls and periodic work.

Services never block the caller's thread directly: they hand the blocking
call plus its continuations to a :class:`CallDispatcher`, and periodic work
to a :class:`Scheduler`. The Qt implementations live in
:mod:`supportdesk.services.qt_dispatch`; the ones here run inline and are
used by headless callers and tests.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, TypeVar

T = TypeVar("T")


class CallDispatcher(Protocol):
    """Run ``work`` and deliver its outcome to exactly one continuation."""

    def submit(
        self,
        work: Callable[[], T],
        on_success: Callable[[T], None],
        on_error: Callable[[Exception], None],
    ) -> None: ...


class Scheduler(Protocol):
    """Invoke ``callback`` every ``interval_ms`` until the returned callable runs."""

    def schedule_repeating(
        self, interval_ms: int, callback: Callable[[], None]
    ) -> Callable[[], None]: ...


class ImmediateDispatcher:
    """Run remote calls synchronously on the calling thread."""

    def submit(
        self,
        work: Callable[[], Any],
        on_success: Callable[[Any], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        try:
            result = work()
        except Exception as exc:
            on_error(exc)
            return
        on_success(result)


class ManualScheduler:
    """Scheduler driven by explicit :meth:`tick` calls."""

    def __init__(self) -> None:
        self._jobs: dict[int, tuple[int, Callable[[], None]]] = {}
        self._next_id = 0

    def schedule_repeating(
        self, interval_ms: int, callback: Callable[[], None]
    ) -> Callable[[], None]:
        job_id = self._next_id
        self._next_id += 1
        self._jobs[job_id] = (int(interval_ms), callback)

        def cancel() -> None:
            self._jobs.pop(job_id, None)

        return cancel

    @property
    def active_jobs(self) -> int:
        return len(self._jobs)

    def intervals(self) -> list[int]:
        return [interval for interval, _ in self._jobs.values()]

    def tick(self) -> None:
        """Fire every registered job once."""

        for _interval, callback in list(self._jobs.values()):
            callback()


__all__ = [
    "CallDispatcher",
    "ImmediateDispatcher",
    "ManualScheduler",
    "Scheduler",
]
