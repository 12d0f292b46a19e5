from __future__ import annotations

import logging
import signal
import sys

from PySide6.QtCore import QCoreApplication

from taskvault.bootstrap import build_backend
from taskvault.config import SETTINGS
from taskvault.domain.errors import PersistenceError
from taskvault.infra.logging import setup_logging
from taskvault.ui.bridge import DataChangedBridge, RetentionScheduler

logger = logging.getLogger(__name__)


def main() -> int:
    setup_logging(SETTINGS)
    try:
        backend = build_backend(SETTINGS)
    except PersistenceError as exc:
        logger.critical("DB error: %s", exc)
        return 1

    app = QCoreApplication(sys.argv)
    app.setApplicationName("TaskVault")

    bridge = DataChangedBridge(backend.notifier, parent=app)
    bridge.dataChanged.connect(
        lambda reason, task_id: logger.debug("data changed reason=%s task=%s", reason, task_id)
    )
    scheduler = RetentionScheduler(
        backend.sweeper, interval_hours=SETTINGS.sweep_interval_hours, parent=app
    )
    scheduler.start()

    signal.signal(signal.SIGINT, lambda *_: app.quit())
    app.aboutToQuit.connect(scheduler.stop)
    app.aboutToQuit.connect(bridge.detach)

    logger.info("TaskVault backend running")
    code = app.exec()
    backend.close()
    return code


if __name__ == "__main__":
    sys.exit(main())
