from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Optional

from taskvault.domain.entities import (
    DeleteResult,
    GamificationStats,
    TaskDetail,
    TaskEntity,
    TaskListItem,
    TimelineEntryEntity,
)
from taskvault.domain.enums import ChangeReason, TimelineEntryType
from taskvault.domain.errors import NotFoundError, StorageError, ValidationError
from taskvault.infra.attachments import AttachmentStorage
from taskvault.infra.repository import TaskRepository

from .gamification import GamificationEngine
from .notifications import ChangeNotifier

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"title", "status", "priority", "pinned_summary", "touch"}
_FIELD_ALIASES = {
    "pinnedSummary": "pinned_summary",
    "updateTouched": "touch",
}


def _require(payload: dict, key: str) -> Any:
    if key not in payload or payload[key] is None:
        raise ValidationError(f"Missing required field {key!r}")
    return payload[key]


class TaskService:
    """Command/query facade used by the UI bridge.

    Each command delegates to the repository (whose post-commit hooks apply
    gamification) and then emits one data-changed notification.
    """

    def __init__(
        self,
        repo: TaskRepository,
        gamification: GamificationEngine,
        storage: AttachmentStorage,
        notifier: ChangeNotifier | None = None,
    ) -> None:
        self._repo = repo
        self._gamification = gamification
        self._storage = storage
        self._notifier = notifier or ChangeNotifier()
        self._commands: dict[str, Callable[[dict], Any]] = {
            "createTask": lambda p: self.create_task(p),
            "updateTask": lambda p: self.update_task(_require(p, "id"), p),
            "addTimelineEntry": lambda p: self.add_timeline_entry(
                _require(p, "taskId"),
                _require(p, "type"),
                p.get("content", ""),
                touch=p.get("touch", p.get("updateTouched", True)),
            ),
            "editTimelineEntry": lambda p: self.edit_timeline_entry(
                _require(p, "entryId"), _require(p, "content")
            ),
            "deleteTimelineEntry": lambda p: self.delete_timeline_entry(_require(p, "entryId")),
            "attachFile": lambda p: self.attach_file(_require(p, "taskId"), _require(p, "filePath")),
            "pasteImage": lambda p: self.paste_image(_require(p, "taskId"), _require(p, "data")),
            "searchTasks": lambda p: self.search_tasks(p.get("query", "")),
            "listTasks": lambda p: self.list_tasks(),
            "getTaskById": lambda p: self.get_task_by_id(_require(p, "id")),
            "deleteTask": lambda p: self.delete_task(_require(p, "id")),
            "getGamificationStats": lambda p: self.get_gamification_stats(),
            "getAttachmentPath": lambda p: self.get_attachment_path(_require(p, "relativePath")),
        }

    @property
    def notifier(self) -> ChangeNotifier:
        return self._notifier

    def handle(self, command: str, payload: dict | None = None) -> Any:
        handler = self._commands.get(command)
        if handler is None:
            raise ValidationError(f"Unknown command {command!r}")
        return handler(dict(payload or {}))

    # ---- queries ----

    def list_tasks(self) -> list[TaskListItem]:
        return self._repo.list_tasks()

    def search_tasks(self, query: str | None) -> list[TaskListItem]:
        return self._repo.search_tasks(query)

    def get_task_by_id(self, task_id: str) -> Optional[TaskDetail]:
        return self._repo.get_task(task_id)

    def get_gamification_stats(self) -> GamificationStats:
        return self._gamification.get_stats()

    def get_attachment_path(self, relative_path: str) -> Path:
        return self._storage.resolve(relative_path)

    # ---- commands ----

    def create_task(self, data: dict) -> TaskEntity:
        task = self._repo.create_task(data.get("title", ""), data.get("priority"))
        self._notifier.emit(ChangeReason.TASK_CREATED, task.id)
        return task

    def update_task(self, task_id: str, data: dict) -> TaskEntity:
        normalized = self._normalize_data(data)
        task = self._repo.update_task(task_id, **normalized)
        self._notifier.emit(ChangeReason.TASK_UPDATED, task_id)
        return task

    def add_timeline_entry(
        self,
        task_id: str,
        entry_type: TimelineEntryType | str,
        content: str,
        touch: bool = True,
    ) -> TimelineEntryEntity:
        entry = self._repo.append_timeline_entry(task_id, entry_type, content, touch=touch)
        self._notifier.emit(ChangeReason.TIMELINE_ENTRY_ADDED, task_id)
        return entry

    def edit_timeline_entry(self, entry_id: str, content: str) -> Optional[TimelineEntryEntity]:
        entry = self._repo.edit_timeline_entry(entry_id, content)
        if entry:
            self._notifier.emit(ChangeReason.TIMELINE_ENTRY_UPDATED, entry.task_id)
        return entry

    def delete_timeline_entry(self, entry_id: str) -> bool:
        owner_id = self._find_entry_owner(entry_id)
        deleted = self._repo.delete_timeline_entry(entry_id)
        if deleted:
            self._notifier.emit(ChangeReason.TIMELINE_ENTRY_DELETED, owner_id)
        return deleted

    def attach_file(self, task_id: str, source_path: str | Path) -> str:
        self._ensure_task(task_id)
        relative_path = self._storage.store_file(task_id, source_path)
        self._append_attachment(task_id, TimelineEntryType.FILE, relative_path)
        self._notifier.emit(ChangeReason.FILE_ATTACHED, task_id)
        return relative_path

    def paste_image(self, task_id: str, data: bytes) -> str:
        self._ensure_task(task_id)
        relative_path = self._storage.store_bytes(task_id, bytes(data))
        self._append_attachment(task_id, TimelineEntryType.IMAGE, relative_path)
        self._notifier.emit(ChangeReason.IMAGE_PASTED, task_id)
        return relative_path

    def delete_task(self, task_id: str) -> DeleteResult:
        result = self._repo.delete_task(task_id)
        if result.success:
            self._notifier.emit(ChangeReason.TASK_DELETED, task_id)
        return result

    # ---- helpers ----

    def _normalize_data(self, data: dict) -> dict:
        normalized = {}
        for key, value in data.items():
            key = _FIELD_ALIASES.get(key, key)
            if key == "id":
                continue
            if key not in UPDATABLE_FIELDS:
                raise ValidationError(f"Field {key!r} cannot be updated")
            normalized[key] = value
        return normalized

    def _ensure_task(self, task_id: str) -> None:
        if self._repo.get_task(task_id) is None:
            raise NotFoundError("Task", task_id)

    def _find_entry_owner(self, entry_id: str) -> str | None:
        entry = self._repo.get_timeline_entry(entry_id)
        return entry.task_id if entry else None

    def _append_attachment(
        self, task_id: str, entry_type: TimelineEntryType, relative_path: str
    ) -> None:
        try:
            self._repo.append_timeline_entry(task_id, entry_type, relative_path, touch=True)
        except Exception:
            try:
                self._storage.delete(relative_path)
            except StorageError:
                logger.warning("Attachment %s left orphaned", relative_path, exc_info=True)
            raise
