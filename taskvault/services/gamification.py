from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol

from sqlalchemy.orm import Session, sessionmaker

from taskvault.domain.derived import (
    NECROMANCER_IDLE_DAYS,
    days_between,
    idle_age,
    level_for,
    next_streak,
    now_ms,
)
from taskvault.domain.entities import GamificationStats, TaskMutation, TimelineEntryEntity
from taskvault.domain.enums import GamificationEvent, MutationKind, TimelineEntryType
from taskvault.infra.db import GAMIFICATION_KEY, transaction
from taskvault.infra.models import GamificationModel

logger = logging.getLogger(__name__)


class TimelineLog(Protocol):
    def latest_timeline_entry(
        self, task_id: str, entry_type: TimelineEntryType | None = None
    ) -> Optional[TimelineEntryEntity]: ...

    def append_timeline_entry(
        self, task_id: str, entry_type: TimelineEntryType | str, content: str, touch: bool = True
    ) -> TimelineEntryEntity: ...


def _to_stats(model: GamificationModel) -> GamificationStats:
    return GamificationStats(
        xp=model.xp,
        level=model.level,
        streak=model.streak,
        last_active_date=model.last_active_date,
    )


def bonus_message(idle_days: int) -> str:
    bonus = GamificationEvent.NECROMANCER_BONUS.xp_delta
    return f"Necromancer Bonus: +{bonus} XP (Task was idle for {idle_days} days)"


class GamificationEngine:
    """XP, level and streak bookkeeping on the single ``user_stats`` record."""

    def __init__(
        self,
        session_factory: sessionmaker,
        timeline: TimelineLog,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._session_factory = session_factory
        self._timeline = timeline
        self._clock = clock

    def get_stats(self) -> GamificationStats:
        with transaction(self._session_factory) as session:
            return _to_stats(self._load(session))

    def record(self, event: GamificationEvent) -> GamificationStats:
        now = self._clock()
        with transaction(self._session_factory) as session:
            stats = self._load(session)
            stats.xp = max(0, stats.xp + event.xp_delta)
            stats.level = level_for(stats.xp)
            stats.streak = next_streak(stats.streak, stats.last_active_date, now)
            stats.last_active_date = now
            result = _to_stats(stats)

        logger.debug(
            "Gamification %s xp=%s level=%s streak=%s", event, result.xp, result.level, result.streak
        )
        return result

    def check_necromancer_bonus(self, task_id: str, previous_touched_at: int) -> int:
        """Award the bonus for reviving a task idle for more than ten days.

        ``previous_touched_at`` is the task's touch time before the current
        interaction. A GAMIFY entry younger than the idle period means a bonus
        was already logged while the task sat neglected, so nothing is awarded.
        """
        now = self._clock()
        idle_days = idle_age(previous_touched_at, now)
        if idle_days <= NECROMANCER_IDLE_DAYS:
            return 0

        last_bonus = self._timeline.latest_timeline_entry(task_id, TimelineEntryType.GAMIFY)
        if last_bonus is not None and days_between(last_bonus.created_at, now) < idle_days:
            logger.debug("Necromancer bonus already granted for task %s", task_id)
            return 0

        self.record(GamificationEvent.NECROMANCER_BONUS)
        self._timeline.append_timeline_entry(
            task_id, TimelineEntryType.GAMIFY, bonus_message(idle_days), touch=False
        )
        logger.info("Necromancer bonus granted task=%s idle_days=%s", task_id, idle_days)
        return GamificationEvent.NECROMANCER_BONUS.xp_delta

    @staticmethod
    def _load(session: Session) -> GamificationModel:
        stats = session.get(GamificationModel, GAMIFICATION_KEY)
        if stats is None:
            stats = GamificationModel(
                key=GAMIFICATION_KEY, xp=0, level=1, streak=0, last_active_date=0
            )
            session.add(stats)
        return stats


class GamificationHook:
    """Post-commit hook turning repository mutations into gamification events."""

    def __init__(self, engine: GamificationEngine) -> None:
        self._engine = engine

    def __call__(self, mutation: TaskMutation) -> None:
        event = self._event_for(mutation)
        if event is not None:
            self._engine.record(event)
        if mutation.touched and mutation.previous_touched_at is not None:
            self._engine.check_necromancer_bonus(mutation.task_id, mutation.previous_touched_at)

    @staticmethod
    def _event_for(mutation: TaskMutation) -> GamificationEvent | None:
        if mutation.kind == MutationKind.TASK_CREATED:
            return GamificationEvent.CREATE_TASK
        if mutation.kind == MutationKind.TASK_UPDATED and mutation.completed:
            return GamificationEvent.COMPLETE_TASK
        if mutation.kind == MutationKind.ENTRY_ADDED and mutation.entry_type and mutation.entry_type.is_content:
            return GamificationEvent.ADD_CONTENT
        if mutation.kind == MutationKind.TASK_DELETED and mutation.was_incomplete:
            return GamificationEvent.DELETE_INCOMPLETE_TASK
        return None
