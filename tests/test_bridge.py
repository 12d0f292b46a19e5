from __future__ import annotations

import pytest

QtCore = pytest.importorskip("PySide6.QtCore")

from taskvault.domain.enums import ChangeReason  # noqa: E402
from taskvault.services.notifications import ChangeNotifier  # noqa: E402
from taskvault.ui.bridge import (  # noqa: E402
    MAX_TIMER_MS,
    DataChangedBridge,
    RetentionScheduler,
    timer_interval_ms,
)


@pytest.fixture(scope="module")
def qapp():
    app = QtCore.QCoreApplication.instance() or QtCore.QCoreApplication([])
    yield app


class FakeSweeper:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls = 0

    def sweep(self) -> list[str]:
        self.calls += 1
        if self.fail:
            raise RuntimeError("database locked")
        return ["expired-task"]


def test_bridge_reemits_changes_as_signal(qapp) -> None:
    notifier = ChangeNotifier()
    bridge = DataChangedBridge(notifier)
    received = []
    bridge.dataChanged.connect(lambda reason, task_id: received.append((reason, task_id)))

    notifier.emit(ChangeReason.TASK_CREATED, "abc")
    notifier.emit(ChangeReason.TASK_UPDATED)
    bridge.detach()
    notifier.emit(ChangeReason.TASK_DELETED, "abc")

    assert received == [("task_created", "abc"), ("task_updated", "")]


def test_scheduler_sweeps_on_start_and_arms_timer(qapp) -> None:
    sweeper = FakeSweeper()
    scheduler = RetentionScheduler(sweeper, interval_hours=24)
    counts = []
    scheduler.swept.connect(counts.append)

    scheduler.start()

    assert sweeper.calls == 1
    assert counts == [1]
    assert scheduler.timer.isActive()
    assert scheduler.timer.interval() == 24 * 60 * 60 * 1000

    scheduler.stop()
    assert not scheduler.timer.isActive()


def test_scheduler_survives_failing_sweep(qapp) -> None:
    scheduler = RetentionScheduler(FakeSweeper(fail=True))

    assert scheduler.run_once() == 0


def test_scheduler_interval_clamped_to_timer_range(qapp) -> None:
    assert timer_interval_ms(24) == 24 * 60 * 60 * 1000
    assert timer_interval_ms(1000) == MAX_TIMER_MS

    scheduler = RetentionScheduler(FakeSweeper(), interval_hours=1000)

    assert scheduler.timer.interval() == MAX_TIMER_MS
