"""Qt-backed dispatcher and scheduler."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from PyQt6.QtCore import QObject, QTimer, pyqtSignal


logger = logging.getLogger(__name__)


class QtCallDispatcher(QObject):
    """Run blocking calls on worker threads and resume on the GUI thread.

    The worker emits ``_completed`` with the continuation to run; because the
    dispatcher lives on the GUI thread Qt queues the signal, so every
    continuation executes there and manager state is only touched from one
    thread.
    """

    _completed = pyqtSignal(object)

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._completed.connect(self._run_continuation)

    def submit(
        self,
        work: Callable[[], Any],
        on_success: Callable[[Any], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        def worker() -> None:
            try:
                result = work()
            except Exception as exc:
                self._completed.emit(lambda: on_error(exc))
                return
            self._completed.emit(lambda: on_success(result))

        name = getattr(work, "__name__", "chat-call")
        threading.Thread(target=worker, name=f"supportdesk-{name}", daemon=True).start()

    def _run_continuation(self, continuation: Callable[[], None]) -> None:
        continuation()


class QtScheduler(QObject):
    """Repeat callbacks with :class:`QTimer` instances owned by this object."""

    def schedule_repeating(
        self, interval_ms: int, callback: Callable[[], None]
    ) -> Callable[[], None]:
        timer = QTimer(self)
        timer.setInterval(int(interval_ms))
        timer.timeout.connect(callback)
        timer.start()
        logger.debug("Scheduled repeating job", extra={"interval_ms": interval_ms})

        def cancel() -> None:
            timer.stop()
            timer.deleteLater()

        return cancel


__all__ = ["QtCallDispatcher", "QtScheduler"]
