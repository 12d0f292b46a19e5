from __future__ import annotations

import logging
import uuid
from collections import Counter, defaultdict
from pathlib import PurePosixPath, PureWindowsPath
from typing import Callable, Iterable, Optional

from sqlalchemy import and_, delete, func, select
from sqlalchemy.orm import Session, sessionmaker

from taskvault.domain.derived import (
    MS_PER_DAY,
    NEGLECT_DAYS,
    attention_sort_key,
    days_between,
    idle_age,
    idle_label,
    now_ms,
)
from taskvault.domain.entities import (
    DeleteResult,
    TaskDetail,
    TaskEntity,
    TaskListItem,
    TaskMutation,
    TimelineEntryEntity,
)
from taskvault.domain.enums import MutationKind, TaskPriority, TaskStatus, TimelineEntryType
from taskvault.domain.errors import NotFoundError, StorageError, ValidationError

from .attachments import AttachmentStorage, basename
from .db import transaction
from .models import TaskModel, TimelineEntryModel

logger = logging.getLogger(__name__)

MutationHook = Callable[[TaskMutation], None]

STATUS_DONE = TaskStatus.DONE.value
STATUS_ARCHIVED = TaskStatus.ARCHIVED.value
SEARCHABLE_ENTRY_TYPES = (
    TimelineEntryType.NOTE.value,
    TimelineEntryType.IMAGE.value,
    TimelineEntryType.FILE.value,
)
BULK_DELETE = {"synchronize_session": False}


def _to_entity(model: TaskModel) -> TaskEntity:
    return TaskEntity(
        id=model.id,
        title=model.title,
        status=TaskStatus(model.status),
        priority=TaskPriority(model.priority),
        created_at=model.created_at,
        last_touched_at=model.last_touched_at,
        archived_at=model.archived_at,
        delete_after_at=model.delete_after_at,
        pinned_summary=model.pinned_summary,
    )


def _to_entry(model: TimelineEntryModel) -> TimelineEntryEntity:
    return TimelineEntryEntity(
        id=model.id,
        task_id=model.task_id,
        type=TimelineEntryType(model.type),
        content=model.content,
        created_at=model.created_at,
        sort_order=model.sort_order,
    )


def _require_title(title: str | None) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValidationError("Task title must not be empty")
    return cleaned


def _require_relative(path: str) -> str:
    if not path or PurePosixPath(path).is_absolute() or PureWindowsPath(path).is_absolute():
        raise ValidationError(f"Attachment path must be relative to storage, got {path!r}")
    return path


def _require_flag(value: object, name: str) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(f"{name} must be true or false, got {value!r}")
    return value


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _entry_matches(entry_type: str, content: str, needle: str) -> bool:
    if entry_type == TimelineEntryType.NOTE.value:
        return needle in content.lower()
    return needle in basename(content).lower()


class TaskRepository:
    """Tasks and their timelines, with derived read fields.

    Every mutation runs in one transaction. Registered hooks are called after
    the commit with a :class:`TaskMutation` describing what changed.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        storage: AttachmentStorage,
        clock: Callable[[], int] = now_ms,
        retention_days: int = 30,
    ) -> None:
        self._session_factory = session_factory
        self._storage = storage
        self._clock = clock
        self._retention_ms = retention_days * MS_PER_DAY
        self._hooks: list[MutationHook] = []

    def register_hook(self, hook: MutationHook) -> None:
        self._hooks.append(hook)

    # ---- queries ----

    def list_tasks(self) -> list[TaskListItem]:
        with transaction(self._session_factory) as session:
            stmt = select(TaskModel).order_by(TaskModel.created_at.asc(), TaskModel.id.asc())
            return self._with_derived(session, session.scalars(stmt).all())

    def search_tasks(self, query: str | None) -> list[TaskListItem]:
        needle = (query or "").strip()
        if not needle:
            return self.list_tasks()

        lowered = needle.lower()
        with transaction(self._session_factory) as session:
            matching_ids = set(
                session.scalars(
                    select(TaskModel.id).where(
                        TaskModel.title.ilike(f"%{_escape_like(needle)}%", escape="\\")
                    )
                )
            )
            entries = session.execute(
                select(
                    TimelineEntryModel.task_id,
                    TimelineEntryModel.type,
                    TimelineEntryModel.content,
                ).where(TimelineEntryModel.type.in_(SEARCHABLE_ENTRY_TYPES))
            ).all()
            matching_ids.update(
                row.task_id for row in entries if _entry_matches(row.type, row.content, lowered)
            )
            if not matching_ids:
                return []

            stmt = (
                select(TaskModel)
                .where(TaskModel.id.in_(sorted(matching_ids)))
                .order_by(TaskModel.created_at.asc(), TaskModel.id.asc())
            )
            return self._with_derived(session, session.scalars(stmt).all())

    def get_task(self, task_id: str) -> Optional[TaskDetail]:
        with transaction(self._session_factory) as session:
            task = session.get(TaskModel, task_id)
            if not task:
                return None
            entries = session.scalars(
                select(TimelineEntryModel)
                .where(TimelineEntryModel.task_id == task_id)
                .order_by(TimelineEntryModel.sort_order.asc(), TimelineEntryModel.created_at.asc())
            )
            return TaskDetail(task=_to_entity(task), timeline=[_to_entry(e) for e in entries])

    def get_timeline_entry(self, entry_id: str) -> Optional[TimelineEntryEntity]:
        with transaction(self._session_factory) as session:
            entry = session.get(TimelineEntryModel, entry_id)
            return _to_entry(entry) if entry else None

    def latest_timeline_entry(
        self, task_id: str, entry_type: TimelineEntryType | None = None
    ) -> Optional[TimelineEntryEntity]:
        with transaction(self._session_factory) as session:
            stmt = select(TimelineEntryModel).where(TimelineEntryModel.task_id == task_id)
            if entry_type is not None:
                stmt = stmt.where(TimelineEntryModel.type == TimelineEntryType.parse(entry_type).value)
            stmt = stmt.order_by(TimelineEntryModel.sort_order.desc()).limit(1)
            entry = session.scalars(stmt).first()
            return _to_entry(entry) if entry else None

    # ---- task mutations ----

    def create_task(
        self, title: str, priority: TaskPriority | str | None = TaskPriority.NORMAL
    ) -> TaskEntity:
        clean_title = _require_title(title)
        parsed_priority = TaskPriority.parse(TaskPriority.NORMAL if priority is None else priority)
        now = self._clock()
        with transaction(self._session_factory) as session:
            task = TaskModel(
                id=str(uuid.uuid4()),
                title=clean_title,
                status=TaskStatus.OPEN.value,
                priority=parsed_priority.value,
                created_at=now,
                last_touched_at=now,
                archived_at=None,
                delete_after_at=None,
                pinned_summary="",
            )
            session.add(task)
            session.flush()
            entity = _to_entity(task)

        logger.info("Task created id=%s priority=%s", entity.id, entity.priority)
        self._after_commit(TaskMutation(kind=MutationKind.TASK_CREATED, task_id=entity.id, at=now))
        return entity

    def update_task(
        self,
        task_id: str,
        *,
        title: str | None = None,
        status: TaskStatus | str | None = None,
        priority: TaskPriority | str | None = None,
        pinned_summary: str | None = None,
        touch: bool | None = None,
    ) -> TaskEntity:
        changes: dict[str, object] = {}
        if title is not None:
            changes["title"] = _require_title(title)
        if priority is not None:
            changes["priority"] = TaskPriority.parse(priority).value
        if pinned_summary is not None:
            changes["pinned_summary"] = pinned_summary
        new_status = TaskStatus.parse(status) if status is not None else None

        meaningful = bool(changes) or new_status is not None
        should_touch = meaningful if touch is None else _require_flag(touch, "touch")
        now = self._clock()

        with transaction(self._session_factory) as session:
            task = session.get(TaskModel, task_id)
            if not task:
                raise NotFoundError("Task", task_id)

            old_status = TaskStatus(task.status)
            previous_touched_at = task.last_touched_at
            for key, value in changes.items():
                setattr(task, key, value)

            if new_status is not None:
                task.status = new_status.value
                if new_status == TaskStatus.ARCHIVED:
                    task.archived_at = now
                    task.delete_after_at = now + self._retention_ms
                else:
                    task.archived_at = None
                    task.delete_after_at = None

            if should_touch:
                task.last_touched_at = now
            entity = _to_entity(task)

        if old_status != entity.status:
            logger.info("Task %s status %s -> %s", task_id, old_status, entity.status)
        self._after_commit(
            TaskMutation(
                kind=MutationKind.TASK_UPDATED,
                task_id=task_id,
                at=now,
                touched=should_touch,
                previous_touched_at=previous_touched_at,
                old_status=old_status,
                new_status=entity.status,
            )
        )
        return entity

    def delete_task(self, task_id: str) -> DeleteResult:
        with transaction(self._session_factory) as session:
            task = session.get(TaskModel, task_id)
            if not task:
                return DeleteResult(success=False, was_incomplete=False)
            was_incomplete = task.status != STATUS_DONE
            session.execute(
                delete(TimelineEntryModel).where(TimelineEntryModel.task_id == task_id),
                execution_options=BULK_DELETE,
            )
            session.execute(
                delete(TaskModel).where(TaskModel.id == task_id),
                execution_options=BULK_DELETE,
            )

        logger.info("Task deleted id=%s incomplete=%s", task_id, was_incomplete)
        self._discard_task_attachments(task_id)
        self._after_commit(
            TaskMutation(
                kind=MutationKind.TASK_DELETED,
                task_id=task_id,
                at=self._clock(),
                was_incomplete=was_incomplete,
            )
        )
        return DeleteResult(success=True, was_incomplete=was_incomplete)

    def purge_expired(self) -> list[str]:
        """Delete archived tasks whose retention window has passed. No hooks fire."""
        now = self._clock()
        expired = and_(
            TaskModel.status == STATUS_ARCHIVED,
            TaskModel.delete_after_at.is_not(None),
            TaskModel.delete_after_at <= now,
        )
        with transaction(self._session_factory) as session:
            candidates = list(session.scalars(select(TaskModel.id).where(expired)))
            if not candidates:
                return []
            # Re-check the predicate on delete so a task re-opened meanwhile survives.
            still_expired = select(TaskModel.id).where(TaskModel.id.in_(candidates), expired)
            session.execute(
                delete(TimelineEntryModel).where(TimelineEntryModel.task_id.in_(still_expired)),
                execution_options=BULK_DELETE,
            )
            session.execute(
                delete(TaskModel).where(TaskModel.id.in_(candidates), expired),
                execution_options=BULK_DELETE,
            )
            survivors = set(session.scalars(select(TaskModel.id).where(TaskModel.id.in_(candidates))))
            purged = [task_id for task_id in candidates if task_id not in survivors]

        for task_id in purged:
            self._discard_task_attachments(task_id)
        return purged

    # ---- timeline mutations ----

    def append_timeline_entry(
        self,
        task_id: str,
        entry_type: TimelineEntryType | str,
        content: str,
        touch: bool = True,
    ) -> TimelineEntryEntity:
        parsed_type = TimelineEntryType.parse(entry_type)
        content = content if content is not None else ""
        if parsed_type.is_attachment:
            _require_relative(content)
        touch = _require_flag(touch, "touch")
        now = self._clock()

        with transaction(self._session_factory) as session:
            task = session.get(TaskModel, task_id)
            if not task:
                raise NotFoundError("Task", task_id)
            previous_touched_at = task.last_touched_at
            entry = TimelineEntryModel(
                id=str(uuid.uuid4()),
                task_id=task_id,
                type=parsed_type.value,
                content=content,
                created_at=now,
                sort_order=self._next_sort_order(session, task_id),
            )
            session.add(entry)
            if touch:
                task.last_touched_at = now
            session.flush()
            result = _to_entry(entry)

        self._after_commit(
            TaskMutation(
                kind=MutationKind.ENTRY_ADDED,
                task_id=task_id,
                at=now,
                touched=touch,
                previous_touched_at=previous_touched_at,
                entry_type=parsed_type,
            )
        )
        return result

    def edit_timeline_entry(self, entry_id: str, content: str) -> Optional[TimelineEntryEntity]:
        if content is None:
            raise ValidationError("Timeline entry content must not be null")
        now = self._clock()
        with transaction(self._session_factory) as session:
            entry = session.get(TimelineEntryModel, entry_id)
            if not entry:
                return None
            if TimelineEntryType(entry.type).is_attachment:
                _require_relative(content)
            task = session.get(TaskModel, entry.task_id)
            previous_touched_at = task.last_touched_at
            entry.content = content
            task.last_touched_at = now
            result = _to_entry(entry)

        self._after_commit(
            TaskMutation(
                kind=MutationKind.ENTRY_UPDATED,
                task_id=result.task_id,
                at=now,
                touched=True,
                previous_touched_at=previous_touched_at,
                entry_type=result.type,
            )
        )
        return result

    def delete_timeline_entry(self, entry_id: str) -> bool:
        now = self._clock()
        with transaction(self._session_factory) as session:
            entry = session.get(TimelineEntryModel, entry_id)
            if not entry:
                return False
            removed = _to_entry(entry)
            task = session.get(TaskModel, removed.task_id)
            previous_touched_at = task.last_touched_at
            session.delete(entry)
            task.last_touched_at = now

        if removed.type.is_attachment:
            self._discard_attachment(removed.content)
        self._after_commit(
            TaskMutation(
                kind=MutationKind.ENTRY_DELETED,
                task_id=removed.task_id,
                at=now,
                touched=True,
                previous_touched_at=previous_touched_at,
                entry_type=removed.type,
            )
        )
        return True

    # ---- helpers ----

    def _after_commit(self, mutation: TaskMutation) -> None:
        for hook in self._hooks:
            hook(mutation)

    def _discard_attachment(self, relative_path: str) -> None:
        try:
            self._storage.delete(relative_path)
        except StorageError:
            logger.warning("Attachment %s left orphaned", relative_path, exc_info=True)

    def _discard_task_attachments(self, task_id: str) -> None:
        try:
            self._storage.delete_all(task_id)
        except StorageError:
            logger.warning("Attachment directory of task %s left orphaned", task_id, exc_info=True)

    def _with_derived(self, session: Session, tasks: Iterable[TaskModel]) -> list[TaskListItem]:
        tasks = list(tasks)
        if not tasks:
            return []
        task_ids = [task.id for task in tasks]

        counts: dict[str, Counter] = defaultdict(Counter)
        rows = session.execute(
            select(TimelineEntryModel.task_id, TimelineEntryModel.type, func.count())
            .where(TimelineEntryModel.task_id.in_(task_ids))
            .group_by(TimelineEntryModel.task_id, TimelineEntryModel.type)
        ).all()
        for owner_id, entry_type, count in rows:
            counts[owner_id][entry_type] = count

        latest = self._latest_entries(session, task_ids)
        now = self._clock()
        items = [self._to_list_item(task, counts[task.id], latest.get(task.id), now) for task in tasks]
        items.sort(key=lambda item: attention_sort_key(item.task.priority.rank, item.idle_age))
        return items

    @staticmethod
    def _latest_entries(session: Session, task_ids: list[str]) -> dict[str, TimelineEntryModel]:
        newest = (
            select(
                TimelineEntryModel.task_id,
                func.max(TimelineEntryModel.sort_order).label("max_order"),
            )
            .where(TimelineEntryModel.task_id.in_(task_ids))
            .group_by(TimelineEntryModel.task_id)
            .subquery()
        )
        stmt = select(TimelineEntryModel).join(
            newest,
            and_(
                TimelineEntryModel.task_id == newest.c.task_id,
                TimelineEntryModel.sort_order == newest.c.max_order,
            ),
        )
        return {entry.task_id: entry for entry in session.scalars(stmt)}

    @staticmethod
    def _to_list_item(
        model: TaskModel, counts: Counter, latest: TimelineEntryModel | None, now: int
    ) -> TaskListItem:
        task = _to_entity(model)
        idle_days = idle_age(task.last_touched_at, now)
        images = counts.get(TimelineEntryType.IMAGE.value, 0)
        files = counts.get(TimelineEntryType.FILE.value, 0)
        return TaskListItem(
            task=task,
            idle_age=idle_days,
            days_old=days_between(task.created_at, now),
            attachment_count=images + files,
            image_count=images,
            file_count=files,
            last_entry_type=TimelineEntryType(latest.type) if latest else None,
            last_entry_content=latest.content if latest else None,
            last_entry_at=latest.created_at if latest else None,
            is_neglected=task.priority == TaskPriority.HIGH and idle_days > NEGLECT_DAYS,
            idle_label=idle_label(idle_days),
        )

    @staticmethod
    def _next_sort_order(session: Session, task_id: str) -> int:
        max_order = session.scalar(
            select(func.max(TimelineEntryModel.sort_order)).where(
                TimelineEntryModel.task_id == task_id
            )
        )
        return (max_order or 0) + 1
