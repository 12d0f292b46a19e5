from __future__ import annotations

from enum import StrEnum

from .errors import ValidationError


class _ParsableEnum(StrEnum):
    @classmethod
    def parse(cls, value: object) -> "_ParsableEnum":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(member.value for member in cls)
            raise ValidationError(
                f"Invalid {cls.__name__} {value!r}; expected one of: {allowed}"
            ) from None


class TaskStatus(_ParsableEnum):
    OPEN = "OPEN"
    WAITING = "WAITING"
    BLOCKED = "BLOCKED"
    DONE = "DONE"
    ARCHIVED = "ARCHIVED"


class TaskPriority(_ParsableEnum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    TaskPriority.LOW: 1,
    TaskPriority.NORMAL: 2,
    TaskPriority.HIGH: 3,
}


class TimelineEntryType(_ParsableEnum):
    NOTE = "NOTE"
    IMAGE = "IMAGE"
    FILE = "FILE"
    STATUS = "STATUS"
    GAMIFY = "GAMIFY"

    @property
    def is_attachment(self) -> bool:
        return self in (TimelineEntryType.IMAGE, TimelineEntryType.FILE)

    @property
    def is_content(self) -> bool:
        return self in (TimelineEntryType.NOTE, TimelineEntryType.IMAGE, TimelineEntryType.FILE)


class GamificationEvent(StrEnum):
    CREATE_TASK = "create_task"
    ADD_CONTENT = "add_content"
    COMPLETE_TASK = "complete_task"
    DELETE_INCOMPLETE_TASK = "delete_incomplete_task"
    NECROMANCER_BONUS = "necromancer_bonus"

    @property
    def xp_delta(self) -> int:
        return _XP_DELTAS[self]


_XP_DELTAS = {
    GamificationEvent.CREATE_TASK: 5,
    GamificationEvent.ADD_CONTENT: 2,
    GamificationEvent.COMPLETE_TASK: 20,
    GamificationEvent.DELETE_INCOMPLETE_TASK: -5,
    GamificationEvent.NECROMANCER_BONUS: 50,
}


class MutationKind(StrEnum):
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    ENTRY_ADDED = "timeline_entry_added"
    ENTRY_UPDATED = "timeline_entry_updated"
    ENTRY_DELETED = "timeline_entry_deleted"
    TASK_DELETED = "task_deleted"


class ChangeReason(StrEnum):
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    TIMELINE_ENTRY_ADDED = "timeline_entry_added"
    TIMELINE_ENTRY_UPDATED = "timeline_entry_updated"
    TIMELINE_ENTRY_DELETED = "timeline_entry_deleted"
    TASK_DELETED = "task_deleted"
    FILE_ATTACHED = "file_attached"
    IMAGE_PASTED = "image_pasted"
