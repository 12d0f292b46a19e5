from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from taskvault.domain.enums import ChangeReason

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DataChange:
    reason: ChangeReason
    task_id: Optional[str] = None


Listener = Callable[[DataChange], None]


class ChangeNotifier:
    """Fire-and-forget "data changed" fan-out to interested observers."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, reason: ChangeReason | str, task_id: str | None = None) -> None:
        change = DataChange(reason=ChangeReason(reason), task_id=task_id)
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:  # noqa: BLE001
                logger.exception("Listener failed for %s", change.reason)
