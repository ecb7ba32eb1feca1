"""Missed-day tracking.

Backfills one MissedEvent per past calendar day that has neither a
completion nor a snooze. Snoozes are deliberate deferrals, not misses.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date, timedelta
from zoneinfo import ZoneInfo

from nudge.domains.habits.domain_logic.models import (
    DEFAULT_CONFIG,
    Completion,
    Habit,
    MissedEvent,
    PlanningConfig,
    SnoozeEvent,
)
from nudge.domains.habits.domain_logic.statistics import completion_days
from nudge.domains.habits.domain_logic.temporal import day_start_ms, local_date

logger = logging.getLogger(__name__)

_ONE_DAY = timedelta(days=1)


def missed_event_id(habit_id: str, day_start: int) -> str:
    return f"missed-{habit_id}-{day_start}"


def track_missed_days(
    habit: Habit,
    completions: Sequence[Completion],
    snoozes: Sequence[SnoozeEvent],
    existing: Sequence[MissedEvent],
    now_ms: int,
    tz: ZoneInfo,
    config: PlanningConfig = DEFAULT_CONFIG,
) -> list[MissedEvent]:
    """Return MissedEvents for untracked missed days, newest first.

    Checks yesterday back to the habit's creation day, at most
    ``config.missed_lookback_days`` days. Today is never evaluated. Running
    again with the returned events added to ``existing`` yields nothing.
    """
    today = local_date(now_ms, tz)
    yesterday = today - _ONE_DAY
    earliest = max(
        local_date(habit.created_at, tz),
        today - timedelta(days=config.missed_lookback_days),
    )

    done = completion_days(completions, tz)
    snoozed = {local_date(s.timestamp, tz) for s in snoozes}
    tracked = {local_date(m.date, tz) for m in existing}

    new_events: list[MissedEvent] = []
    day = yesterday
    while day >= earliest:
        if day not in done and day not in snoozed and day not in tracked:
            start = day_start_ms(day, tz)
            new_events.append(
                MissedEvent(
                    id=missed_event_id(habit.id, start),
                    habit_id=habit.id,
                    date=start,
                    created_at=now_ms,
                )
            )
        day -= _ONE_DAY

    if new_events:
        logger.debug("Detected %d new missed days for habit %s", len(new_events), habit.id)
    return new_events


def missed_count(
    events: Sequence[MissedEvent],
    now_ms: int,
    tz: ZoneInfo,
    days: int | None = None,
) -> int:
    """Missed events overall, or within the last ``days`` days."""
    if days is None:
        return len(events)
    cutoff = local_date(now_ms, tz) - timedelta(days=days)
    return sum(1 for m in events if local_date(m.date, tz) >= cutoff)


def consecutive_missed_days(events: Sequence[MissedEvent], now_ms: int, tz: ZoneInfo) -> int:
    """Run of missed events ending yesterday."""
    missed_days = {local_date(m.date, tz) for m in events}
    count = 0
    cursor = local_date(now_ms, tz) - _ONE_DAY
    while cursor in missed_days:
        count += 1
        cursor -= _ONE_DAY
    return count


def was_missed_on(events: Sequence[MissedEvent], day: date, tz: ZoneInfo) -> bool:
    return any(local_date(m.date, tz) == day for m in events)
