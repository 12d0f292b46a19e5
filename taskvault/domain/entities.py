from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .enums import MutationKind, TaskPriority, TaskStatus, TimelineEntryType


@dataclass(frozen=True)
class TaskEntity:
    id: str
    title: str
    status: TaskStatus
    priority: TaskPriority
    created_at: int
    last_touched_at: int
    archived_at: Optional[int]
    delete_after_at: Optional[int]
    pinned_summary: str


@dataclass(frozen=True)
class TimelineEntryEntity:
    id: str
    task_id: str
    type: TimelineEntryType
    content: str
    created_at: int
    sort_order: int


@dataclass(frozen=True)
class TaskListItem:
    task: TaskEntity
    idle_age: int
    days_old: int
    attachment_count: int = 0
    image_count: int = 0
    file_count: int = 0
    last_entry_type: Optional[TimelineEntryType] = None
    last_entry_content: str | None = None
    last_entry_at: Optional[int] = None
    is_neglected: bool = False
    idle_label: str = "Fresh"

    @property
    def id(self) -> str:
        return self.task.id


@dataclass(frozen=True)
class TaskDetail:
    task: TaskEntity
    timeline: list[TimelineEntryEntity] = field(default_factory=list)


@dataclass(frozen=True)
class GamificationStats:
    xp: int
    level: int
    streak: int
    last_active_date: int


@dataclass(frozen=True)
class DeleteResult:
    success: bool
    was_incomplete: bool


@dataclass(frozen=True)
class TaskMutation:
    """A committed change, handed to post-commit hooks."""

    kind: MutationKind
    task_id: str
    at: int
    touched: bool = False
    previous_touched_at: Optional[int] = None
    old_status: Optional[TaskStatus] = None
    new_status: Optional[TaskStatus] = None
    entry_type: Optional[TimelineEntryType] = None
    was_incomplete: bool = False

    @property
    def completed(self) -> bool:
        return self.old_status != TaskStatus.DONE and self.new_status == TaskStatus.DONE
