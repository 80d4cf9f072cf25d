"""Coalesce bursts of requests into one callback per frame."""

from __future__ import annotations

from typing import Callable

from PySide6.QtCore import QObject, QTimer

__all__ = ["FrameThrottle", "FRAME_INTERVAL_MS"]

FRAME_INTERVAL_MS = 16


class FrameThrottle(QObject):
    """Runs ``callback`` at most once per ``interval_ms`` however often it is requested."""

    def __init__(
        self,
        callback: Callable[[], None],
        *,
        interval_ms: int = FRAME_INTERVAL_MS,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._callback = callback
        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setInterval(interval_ms)
        self._timer.timeout.connect(self._fire)
        self.fired = 0

    @property
    def pending(self) -> bool:
        return self._timer.isActive()

    def request(self) -> None:
        if not self._timer.isActive():
            self._timer.start()

    def flush(self) -> None:
        """Run a pending callback now."""

        if self._timer.isActive():
            self._timer.stop()
            self._fire()

    def cancel(self) -> None:
        self._timer.stop()

    def _fire(self) -> None:
        self.fired += 1
        self._callback()
