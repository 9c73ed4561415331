# debounce.py
from __future__ import annotations

from typing import Optional

from PySide6.QtCore import QObject, QTimer, Signal


class Debouncer(QObject):
    """
    Emits `settled` once, `interval` seconds after the last `arm()`.

    Arming again before the interval elapses restarts it, so a burst of
    events yields a single settle.
    """

    settled = Signal()

    def __init__(self, interval: float = 1.0, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setInterval(max(0, int(round(interval * 1000))))
        self._timer.timeout.connect(self.settled.emit)

    @property
    def interval(self) -> float:
        return self._timer.interval() / 1000.0

    def arm(self) -> None:
        self._timer.start()

    def cancel(self) -> None:
        self._timer.stop()

    def is_pending(self) -> bool:
        return self._timer.isActive()
