from __future__ import annotations

import logging

from PySide6.QtCore import QObject, QTimer, Signal

from taskvault.services.notifications import ChangeNotifier, DataChange
from taskvault.services.retention import RetentionSweeper

logger = logging.getLogger(__name__)

MS_PER_HOUR = 60 * 60 * 1000
# QTimer intervals are a signed 32-bit millisecond count.
MAX_TIMER_MS = 2**31 - 1


def timer_interval_ms(interval_hours: int) -> int:
    interval = max(interval_hours, 1) * MS_PER_HOUR
    if interval > MAX_TIMER_MS:
        logger.warning(
            "Sweep interval of %s hours exceeds the timer range; using %s ms",
            interval_hours,
            MAX_TIMER_MS,
        )
        return MAX_TIMER_MS
    return interval


class DataChangedBridge(QObject):
    """Re-emits backend change notifications as a Qt signal for the UI."""

    dataChanged = Signal(str, str)

    def __init__(self, notifier: ChangeNotifier, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._unsubscribe = notifier.subscribe(self._forward)

    def _forward(self, change: DataChange) -> None:
        self.dataChanged.emit(change.reason.value, change.task_id or "")

    def detach(self) -> None:
        self._unsubscribe()


class RetentionScheduler(QObject):
    """Runs the retention sweep once on start and then on a fixed interval."""

    swept = Signal(int)

    def __init__(
        self,
        sweeper: RetentionSweeper,
        interval_hours: int = 24,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._sweeper = sweeper
        self.timer = QTimer(self)
        self.timer.setInterval(timer_interval_ms(interval_hours))
        self.timer.timeout.connect(self.run_once)

    def start(self) -> None:
        self.run_once()
        self.timer.start()

    def stop(self) -> None:
        self.timer.stop()

    def run_once(self) -> int:
        try:
            purged = self._sweeper.sweep()
        except Exception:  # noqa: BLE001
            logger.exception("Retention sweep failed")
            return 0
        self.swept.emit(len(purged))
        return len(purged)
