from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class ExpiringTaskStore(Protocol):
    def purge_expired(self) -> list[str]: ...


class RetentionSweeper:
    """Purges archived tasks once their delete-after time has passed."""

    def __init__(self, store: ExpiringTaskStore) -> None:
        self._store = store

    def sweep(self) -> list[str]:
        purged = self._store.purge_expired()
        if purged:
            logger.info("Retention sweep purged %s archived task(s)", len(purged))
        else:
            logger.debug("Retention sweep found nothing to purge")
        return purged
