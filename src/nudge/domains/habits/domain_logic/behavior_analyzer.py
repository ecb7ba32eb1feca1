"""Behavioral analysis: risk/opportunity flags and completion probability."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import timedelta
from zoneinfo import ZoneInfo

from nudge.domains.habits.domain_logic import statistics as stats
from nudge.domains.habits.domain_logic.models import (
    Behavior,
    Completion,
    Habit,
    Opportunities,
    PlanningContext,
    Risks,
    SnoozeEvent,
    TimeWindow,
)
from nudge.domains.habits.domain_logic.temporal import days_back, local_date

logger = logging.getLogger(__name__)

# Habits are considered still forming for their first 66 days.
HABIT_FORMING_DAYS = 66


def analyze_completion_pattern(
    habit: Habit,
    completions: Sequence[Completion],
    snoozes: Sequence[SnoozeEvent],
    now_ms: int,
    tz: ZoneInfo,
) -> Behavior:
    """Trend, momentum, risks and opportunities. Probability is filled in later."""
    return Behavior(
        trend=stats.trend(completions, now_ms, tz),
        momentum=stats.momentum(completions, now_ms, tz),
        risks=Risks(
            streak_at_risk=is_streak_at_risk(completions, now_ms, tz),
            motivation_declining=is_motivation_declining(completions, snoozes, now_ms, tz),
            habit_forming=stats.days_since_creation(habit.created_at, now_ms) < HABIT_FORMING_DAYS,
        ),
        opportunities=Opportunities(
            can_break_record=can_break_record(completions, now_ms, tz),
            can_reach_milestone=can_reach_milestone(stats.streak(completions, now_ms, tz)),
            optimal_time_window=find_optimal_time_window(completions, tz),
        ),
    )


def is_streak_at_risk(completions: Sequence[Completion], now_ms: int, tz: ZoneInfo) -> bool:
    return stats.streak(completions, now_ms, tz) > 5 and not stats.has_completion_today(
        completions, now_ms, tz
    )


def is_motivation_declining(
    completions: Sequence[Completion],
    snoozes: Sequence[SnoozeEvent],
    now_ms: int,
    tz: ZoneInfo,
) -> bool:
    """More snoozes than completions over the last 3 days (or no history at all)."""
    if not completions:
        return True
    recent = set(days_back(local_date(now_ms, tz), 3))
    recent_completions = sum(1 for c in completions if local_date(c.timestamp, tz) in recent)
    recent_snoozes = sum(1 for s in snoozes if local_date(s.timestamp, tz) in recent)
    return recent_snoozes > recent_completions


def can_break_record(completions: Sequence[Completion], now_ms: int, tz: ZoneInfo) -> bool:
    current = stats.streak(completions, now_ms, tz)
    if current == 0:
        return False
    return current == stats.max_streak(completions, tz) - 1


def can_reach_milestone(current_streak: int) -> bool:
    """The next milestone is at most one day away."""
    milestone = stats.next_milestone(current_streak)
    return milestone is not None and milestone - current_streak <= 1


def find_optimal_time_window(completions: Sequence[Completion], tz: ZoneInfo) -> TimeWindow | None:
    best = stats.best_completion_hour(completions, tz)
    if best is None:
        return None
    return TimeWindow(start_hour=best - 0.5, end_hour=best + 0.5)


def predict_completion_probability(
    habit: Habit,
    context: PlanningContext,
    completions: Sequence[Completion],
    snoozes: Sequence[SnoozeEvent],
    now_ms: int,
    tz: ZoneInfo,
) -> float:
    """Heuristic probability that the habit gets done, clamped to [0, 1]."""
    probability = 0.5
    hour = context.temporal.hour

    streak = stats.streak(completions, now_ms, tz)
    rate = stats.completion_rate(completions, habit.created_at, now_ms, tz)
    misses = stats.consecutive_misses(completions, now_ms, tz)
    last_reason = stats.last_snooze_reason(snoozes)

    best = stats.best_completion_hour(completions, tz)
    if best is not None and hour == best:
        probability += 0.2
    if streak > 7:
        probability += 0.15
    if context.temporal.is_weekend and stats.weekend_completion_rate(completions, tz) > 0.8:
        probability += 0.1
    if rate > 0.8:
        probability += 0.1

    if misses > 2:
        probability -= 0.3
    elif misses > 0:
        probability -= 0.15

    worst = stats.worst_completion_hour(completions, tz)
    if worst is not None and hour == worst:
        probability -= 0.2
    if last_reason == "tired" and context.temporal.time_of_day == "evening":
        probability -= 0.15
    if last_reason == "notHome" and context.temporal.time_of_day == "morning":
        probability -= 0.1

    state = context.user.current_state
    if state == "struggling":
        probability -= 0.2
    elif state == "motivated":
        probability += 0.15

    return max(0.0, min(1.0, probability))


def determine_optimal_strategy(probability: float) -> str:
    if probability > 0.7:
        return "gentle_reminder"
    if probability > 0.4:
        return "motivation_boost"
    if probability > 0.2:
        return "challenge"
    return "empathy_support"


def days_since_last_completion(
    completions: Sequence[Completion], now_ms: int, tz: ZoneInfo
) -> int | None:
    if not completions:
        return None
    last = max(c.timestamp for c in completions)
    delta: timedelta = local_date(now_ms, tz) - local_date(last, tz)
    return delta.days
