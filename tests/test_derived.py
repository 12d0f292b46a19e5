from __future__ import annotations

import pytest

from taskvault.domain.derived import (
    MS_PER_DAY,
    attention_sort_key,
    day_bucket,
    idle_age,
    idle_label,
    level_for,
    next_streak,
)
from taskvault.domain.enums import GamificationEvent, TaskPriority, TaskStatus
from taskvault.domain.errors import ValidationError

T0 = 1_700_000_000_000


@pytest.mark.parametrize("days", [0, 1, 2, 10, 11, 365, 1000])
def test_idle_age_counts_whole_days(days: int) -> None:
    assert idle_age(T0, T0 + days * MS_PER_DAY) == days
    assert idle_age(T0, T0 + days * MS_PER_DAY + MS_PER_DAY - 1) == days


def test_level_follows_xp() -> None:
    assert level_for(0) == 1
    assert level_for(99) == 1
    assert level_for(100) == 2
    assert level_for(250) == 3


def test_streak_same_day_is_unchanged() -> None:
    morning = day_bucket(T0) * MS_PER_DAY
    assert next_streak(4, morning, morning + MS_PER_DAY - 1) == 4


def test_streak_next_day_increments() -> None:
    assert next_streak(4, T0, T0 + MS_PER_DAY) == 5


def test_streak_resets_after_gap_or_first_run() -> None:
    assert next_streak(4, T0, T0 + 2 * MS_PER_DAY) == 1
    assert next_streak(0, 0, T0) == 1
    assert next_streak(4, T0, T0 - MS_PER_DAY) == 1


def test_idle_label() -> None:
    assert idle_label(0) == "Fresh"
    assert idle_label(1) == "1 day"
    assert idle_label(12) == "12 days"


def test_attention_sort_key_puts_priority_before_idleness() -> None:
    keys = sorted(
        [
            ("normal-100", attention_sort_key(TaskPriority.NORMAL.rank, 100)),
            ("high-2", attention_sort_key(TaskPriority.HIGH.rank, 2)),
            ("high-9", attention_sort_key(TaskPriority.HIGH.rank, 9)),
        ],
        key=lambda pair: pair[1],
    )
    assert [name for name, _ in keys] == ["high-9", "high-2", "normal-100"]


def test_parse_rejects_unknown_values() -> None:
    assert TaskStatus.parse("DONE") is TaskStatus.DONE
    with pytest.raises(ValidationError):
        TaskStatus.parse("done")
    with pytest.raises(ValidationError):
        TaskPriority.parse("URGENT")


def test_xp_deltas() -> None:
    assert GamificationEvent.CREATE_TASK.xp_delta == 5
    assert GamificationEvent.ADD_CONTENT.xp_delta == 2
    assert GamificationEvent.COMPLETE_TASK.xp_delta == 20
    assert GamificationEvent.DELETE_INCOMPLETE_TASK.xp_delta == -5
    assert GamificationEvent.NECROMANCER_BONUS.xp_delta == 50
