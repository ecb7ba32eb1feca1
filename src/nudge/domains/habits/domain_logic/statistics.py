"""Habit statistics: pure functions over completion history.

Every function takes the reference moment and timezone explicitly so results
never depend on the process clock or locale.
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import date, timedelta
from zoneinfo import ZoneInfo

from nudge.domains.habits.domain_logic.models import (
    DAY_MS,
    MILESTONES,
    Completion,
    SnoozeEvent,
)
from nudge.domains.habits.domain_logic.temporal import days_back, local_date, local_datetime

_ONE_DAY = timedelta(days=1)

CONSECUTIVE_MISS_LIMIT = 10
TREND_MIN_COMPLETIONS = 14


def completion_days(completions: Iterable[Completion], tz: ZoneInfo) -> set[date]:
    """Collapse completions to the set of local calendar days they fall on."""
    return {local_date(c.timestamp, tz) for c in completions}


def completed_on(completions: Iterable[Completion], day: date, tz: ZoneInfo) -> bool:
    return any(local_date(c.timestamp, tz) == day for c in completions)


def has_completion_today(completions: Iterable[Completion], now_ms: int, tz: ZoneInfo) -> bool:
    return completed_on(completions, local_date(now_ms, tz), tz)


def streak(completions: Sequence[Completion], now_ms: int, tz: ZoneInfo) -> int:
    """Length of the run of completed days ending today, or yesterday if today is open."""
    days = completion_days(completions, tz)
    if not days:
        return 0
    cursor = local_date(now_ms, tz)
    if cursor not in days:
        cursor -= _ONE_DAY
    count = 0
    while cursor in days:
        count += 1
        cursor -= _ONE_DAY
    return count


def max_streak(completions: Sequence[Completion], tz: ZoneInfo) -> int:
    """Longest run of consecutive completed days anywhere in the history."""
    days = sorted(completion_days(completions, tz))
    if not days:
        return 0
    best = current = 1
    for prev, day in zip(days, days[1:]):
        if day - prev == _ONE_DAY:
            current += 1
            best = max(best, current)
        else:
            current = 1
    return best


def days_since_creation(created_at: int, now_ms: int) -> int:
    """Whole days since the habit was created, never less than 1."""
    return max(1, (now_ms - created_at) // DAY_MS)


def completion_rate(
    completions: Sequence[Completion], created_at: int, now_ms: int, tz: ZoneInfo
) -> float:
    if not completions:
        return 0.0
    rate = len(completion_days(completions, tz)) / days_since_creation(created_at, now_ms)
    return min(1.0, rate)


def consecutive_misses(
    completions: Sequence[Completion],
    now_ms: int,
    tz: ZoneInfo,
    limit: int = CONSECUTIVE_MISS_LIMIT,
) -> int:
    """Days without a completion walking back from yesterday, capped at ``limit``."""
    days = completion_days(completions, tz)
    misses = 0
    cursor = local_date(now_ms, tz) - _ONE_DAY
    while misses < limit and cursor not in days:
        misses += 1
        cursor -= _ONE_DAY
    return misses


def average_completion_hour(completions: Sequence[Completion], tz: ZoneInfo) -> int | None:
    if not completions:
        return None
    hours = [local_datetime(c.timestamp, tz).hour for c in completions]
    # Half rounds up, not to even.
    return int(math.floor(sum(hours) / len(hours) + 0.5))


def best_completion_hour(completions: Sequence[Completion], tz: ZoneInfo) -> int | None:
    """Most frequent completion hour; ties go to the earliest hour."""
    if not completions:
        return None
    counts = Counter(local_datetime(c.timestamp, tz).hour for c in completions)
    return min(counts, key=lambda hour: (-counts[hour], hour))


def worst_completion_hour(completions: Sequence[Completion], tz: ZoneInfo) -> int | None:
    best = best_completion_hour(completions, tz)
    if best is None:
        return None
    return (best + 12) % 24


def _count_on(completions: Iterable[Completion], days: set[date], tz: ZoneInfo) -> int:
    return sum(1 for c in completions if local_date(c.timestamp, tz) in days)


def trend(completions: Sequence[Completion], now_ms: int, tz: ZoneInfo) -> str:
    """Compare the last 7 days with the 7 before; 'stable' without enough history."""
    if len(completions) < TREND_MIN_COMPLETIONS:
        return "stable"
    today = local_date(now_ms, tz)
    recent = _count_on(completions, set(days_back(today, 7)), tz)
    previous = _count_on(completions, set(days_back(today, 7, offset=7)), tz)

    if recent == previous:
        return "stable"
    if recent >= previous * 1.2:
        return "improving"
    if recent <= previous * 0.8:
        return "declining"
    return "stable"


def momentum(completions: Sequence[Completion], now_ms: int, tz: ZoneInfo) -> str:
    """How many of the last 3 calendar days (today included) had a completion."""
    recent = set(days_back(local_date(now_ms, tz), 3))
    hits = len(completion_days(completions, tz) & recent)
    return {3: "strong", 2: "moderate", 1: "weak"}.get(hits, "negative")


def completion_pattern(completions: Sequence[Completion], now_ms: int, tz: ZoneInfo) -> str:
    """Coverage of the last 7 days: consistent (>=80%), irregular (>=50%), declining."""
    if len(completions) < 7:
        return "irregular"
    recent = set(days_back(local_date(now_ms, tz), 7))
    coverage = len(completion_days(completions, tz) & recent) / 7
    if coverage >= 0.8:
        return "consistent"
    if coverage >= 0.5:
        return "irregular"
    return "declining"


def weekly_pattern(completions: Sequence[Completion], tz: ZoneInfo) -> dict[str, float]:
    """Share of completions per weekday (sums to 1 when there is any history)."""
    names = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
    counts = Counter(local_datetime(c.timestamp, tz).weekday() for c in completions)
    total = sum(counts.values())
    return {name: (counts[i] / total if total else 0.0) for i, name in enumerate(names)}


def weekend_completion_rate(completions: Sequence[Completion], tz: ZoneInfo) -> float:
    if not completions:
        return 0.0
    weekend = sum(1 for c in completions if local_datetime(c.timestamp, tz).weekday() >= 5)
    return weekend / len(completions)


def snooze_frequency(snooze_count: int, completion_count: int) -> float:
    """snoozes / (snoozes + completions); 1.0 when only snoozes exist."""
    if snooze_count == 0:
        return 0.0
    if completion_count == 0:
        return 1.0
    return snooze_count / (snooze_count + completion_count)


def last_snooze_reason(snoozes: Sequence[SnoozeEvent]) -> str | None:
    if not snoozes:
        return None
    return max(snoozes, key=lambda s: s.timestamp).reason


def next_milestone(current_streak: int) -> int | None:
    return next((m for m in MILESTONES if m > current_streak), None)


def average_completion_delay(
    completions: Sequence[Completion], reminder_time: str, tz: ZoneInfo
) -> float | None:
    """Mean minutes between the configured reminder time and the completion."""
    if not completions:
        return None
    hour, minute = (int(p) for p in reminder_time.split(":"))
    reminder_minutes = hour * 60 + minute
    deltas = []
    for c in completions:
        local = local_datetime(c.timestamp, tz)
        deltas.append(local.hour * 60 + local.minute - reminder_minutes)
    return sum(deltas) / len(deltas)
