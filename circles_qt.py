"""Qt event-loop hosting for the genetic solver."""

from __future__ import annotations

from typing import Callable, Dict, Optional

from PySide6.QtCore import QCoreApplication, QEventLoop, QObject, QTimer

from circles_game import CirclesGame
from circles_genetic import GeneticStatus

STATUS_POLL_MS = 250


class QtIdleScheduler(QObject):
    """Scheduler backed by zero-interval single-shot timers.

    A zero-interval timer fires once the event loop has drained its pending
    events, so each generation step runs in an otherwise idle slice.
    """

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._timers: Dict[int, QTimer] = {}
        self._next_handle = 0

    @property
    def pending(self) -> int:
        return len(self._timers)

    def call_soon(self, callback: Callable[[], None]) -> int:
        self._next_handle += 1
        handle = self._next_handle
        timer = QTimer(self)
        timer.setSingleShot(True)
        timer.setInterval(0)
        timer.timeout.connect(lambda: self._fire(handle, callback))
        self._timers[handle] = timer
        timer.start()
        return handle

    def cancel(self, handle: object) -> None:
        timer = self._timers.pop(handle, None)  # type: ignore[arg-type]
        if timer is None:
            return
        timer.stop()
        timer.deleteLater()

    def _fire(self, handle: int, callback: Callable[[], None]) -> None:
        timer = self._timers.pop(handle, None)
        if timer is None:
            return
        timer.deleteLater()
        callback()


def ensure_app() -> QCoreApplication:
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    return app


def run_solve_blocking(
    game: CirclesGame,
    on_status: Optional[Callable[[GeneticStatus], None]] = None,
    poll_ms: int = STATUS_POLL_MS,
) -> Optional[GeneticStatus]:
    """Run the game's pending solve inside a local event loop until it ends.

    ``game`` must have been built with a ``QtIdleScheduler`` and
    ``request_solve()`` must already have been called.
    """
    ensure_app()
    loop = QEventLoop()
    poller = QTimer()
    poller.setInterval(max(1, poll_ms))

    def _poll() -> None:
        status = game.solve_status()
        if status is None or status.done or status.cancelled:
            poller.stop()
            loop.quit()
            return
        if on_status is not None:
            on_status(status)

    poller.timeout.connect(_poll)
    poller.start()
    # Catch solves that finish before the first poll.
    QTimer.singleShot(0, _poll)
    loop.exec()
    return game.solve_status()
