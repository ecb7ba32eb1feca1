"""Assembles the immutable PlanningContext for one habit planning call."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any
from zoneinfo import ZoneInfo

from nudge.domains.habits.domain_logic import statistics as stats
from nudge.domains.habits.domain_logic.missed_tracker import (
    consecutive_missed_days,
    missed_count,
    track_missed_days,
)
from nudge.domains.habits.domain_logic.models import (
    DEFAULT_CONFIG,
    Completion,
    ExternalContext,
    Habit,
    HabitContext,
    MilestoneProgress,
    MissedEvent,
    PlanningConfig,
    PlanningContext,
    SnoozeEvent,
    UserContext,
)
from nudge.domains.habits.domain_logic.temporal import build_temporal_context, local_datetime


def assess_emotional_connection(streak: int, rate: float, snooze_frequency: float) -> str:
    if streak > 14 and rate > 0.8 and snooze_frequency < 0.2:
        return "strong"
    if streak > 7 and rate > 0.6 and snooze_frequency < 0.4:
        return "moderate"
    return "weak"


def build_habit_context(
    habit: Habit,
    completions: Sequence[Completion],
    snoozes: Sequence[SnoozeEvent],
    missed: Sequence[MissedEvent],
    now_ms: int,
    tz: ZoneInfo,
    config: PlanningConfig = DEFAULT_CONFIG,
) -> HabitContext:
    """Derive streak/rate/pattern statistics and backfill missed days."""
    streak = stats.streak(completions, now_ms, tz)
    rate = stats.completion_rate(completions, habit.created_at, now_ms, tz)
    snooze_freq = stats.snooze_frequency(len(snoozes), len(completions))
    completed_today = stats.has_completion_today(completions, now_ms, tz)

    milestone = stats.next_milestone(streak)

    new_missed = track_missed_days(habit, completions, snoozes, missed, now_ms, tz, config)
    all_missed = [*missed, *new_missed]

    if habit.avg_completion_delay is not None:
        delay = habit.avg_completion_delay
    else:
        delay = stats.average_completion_delay(completions, habit.reminder_time, tz)

    return HabitContext(
        streak=streak,
        completion_rate=rate,
        consecutive_misses=stats.consecutive_misses(completions, now_ms, tz),
        has_completion_today=completed_today,
        average_completion_hour=stats.average_completion_hour(completions, tz),
        best_completion_hour=stats.best_completion_hour(completions, tz),
        worst_completion_hour=stats.worst_completion_hour(completions, tz),
        average_completion_delay=delay,
        completion_pattern=stats.completion_pattern(completions, now_ms, tz),
        weekly_pattern=stats.weekly_pattern(completions, tz),
        emotional_connection=assess_emotional_connection(streak, rate, snooze_freq),
        last_snooze_reason=stats.last_snooze_reason(snoozes),
        snooze_frequency=snooze_freq,
        milestone_progress=MilestoneProgress(
            next_milestone=milestone,
            days_to_milestone=milestone - streak if milestone is not None else None,
            is_at_risk=streak > 5 and not completed_today,
        ),
        missed_count=missed_count(all_missed, now_ms, tz),
        missed_count_last_7_days=missed_count(all_missed, now_ms, tz, days=7),
        missed_count_last_30_days=missed_count(all_missed, now_ms, tz, days=30),
        consecutive_missed_days=consecutive_missed_days(all_missed, now_ms, tz),
        new_missed_events=tuple(new_missed),
    )


def build_user_context(user_id: str, profile: dict[str, Any] | None = None) -> UserContext:
    """Normalize an optional client-supplied user profile (camelCase keys)."""
    p = profile or {}
    return UserContext(
        user_id=user_id,
        activity_profile={
            "most_active_hour": p.get("mostActiveHour", 10),
            "least_active_hour": p.get("leastActiveHour", 2),
            "preferred_notification_time": p.get("preferredNotificationTime"),
            "response_time_minutes": p.get("responseTimeToNotifications"),
        },
        emotional_profile={
            "current_state": p.get("currentState") or "stable",
            "needs_encouragement": bool(p.get("needsEncouragement", False)),
            "responds_to": {
                "challenges": p.get("respondsToChallenges") is not False,
                "support": p.get("respondsToSupport") is not False,
                "facts": p.get("respondsToFacts") is not False,
                "celebrations": p.get("respondsToCelebrations") is not False,
            },
            "preferred_tone": p.get("preferredTone") or "friendly",
        },
        interaction_history={
            "last_notification_reaction": p.get("lastNotificationReaction"),
            "notification_effectiveness": p.get("notificationEffectiveness") or {
                "reminder": 0.5,
                "motivation": 0.5,
                "celebration": 0.5,
                "challenge": 0.5,
            },
            "best_notification_times": list(p.get("bestNotificationTimes") or []),
            "worst_notification_times": list(p.get("worstNotificationTimes") or []),
        },
        life_context={
            "work_schedule": p.get("workSchedule") or "unknown",
            "typical_day_structure": p.get("typicalDayStructure") or {
                "wake_up": 7,
                "work_start": 9,
                "lunch": 13,
                "work_end": 18,
                "sleep": 23,
            },
        },
    )


def build_external_context(now_ms: int, tz: ZoneInfo) -> ExternalContext:
    month = local_datetime(now_ms, tz).month
    if 3 <= month <= 5:
        season = "spring"
    elif 6 <= month <= 8:
        season = "summer"
    elif 9 <= month <= 11:
        season = "autumn"
    else:
        season = "winter"
    return ExternalContext(season=season)


def build_planning_context(
    habit: Habit,
    now_ms: int,
    tz: ZoneInfo,
    *,
    user_id: str = "",
    user_profile: dict[str, Any] | None = None,
    config: PlanningConfig = DEFAULT_CONFIG,
) -> PlanningContext:
    """Build the snapshot from the history embedded in ``habit``."""
    return PlanningContext(
        temporal=build_temporal_context(now_ms, tz),
        habit=build_habit_context(
            habit,
            habit.completions,
            habit.snooze_events,
            habit.missed_events,
            now_ms,
            tz,
            config,
        ),
        user=build_user_context(user_id, user_profile),
        external=build_external_context(now_ms, tz),
    )
