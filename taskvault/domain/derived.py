"""Per-read derivations: idle age, day buckets, levels, streaks and sort keys.

All time values are epoch milliseconds. Days are fixed 86_400_000 ms buckets
with no calendar or timezone awareness.
"""
from __future__ import annotations

import time

MS_PER_DAY = 86_400_000
NEGLECT_DAYS = 7
NECROMANCER_IDLE_DAYS = 10
XP_PER_LEVEL = 100


def now_ms() -> int:
    return int(time.time() * 1000)


def days_between(earlier_ms: int, later_ms: int) -> int:
    return (later_ms - earlier_ms) // MS_PER_DAY


def idle_age(last_touched_at: int, now: int) -> int:
    return days_between(last_touched_at, now)


def day_bucket(timestamp_ms: int) -> int:
    return timestamp_ms // MS_PER_DAY


def level_for(xp: int) -> int:
    return xp // XP_PER_LEVEL + 1


def next_streak(streak: int, last_active_ms: int, now: int) -> int:
    gap = day_bucket(now) - day_bucket(last_active_ms)
    if gap == 0:
        return streak
    if gap == 1:
        return streak + 1
    return 1


def idle_label(days: int) -> str:
    if days <= 0:
        return "Fresh"
    if days == 1:
        return "1 day"
    return f"{days} days"


def attention_sort_key(priority_rank: int, idle_days: int) -> tuple[int, int]:
    # Neglected high-priority work first.
    return (-priority_rank, -idle_days)
