"""Smart notifications: conditional candidates on top of the base reminders.

Rule categories are evaluated independently; inside a category the rules
form an if/elif chain so at most one fires. A candidate whose time is in
quiet hours or not in the future is dropped at creation.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from nudge.domains.habits.domain_logic.models import (
    DEFAULT_CONFIG,
    EmotionalState,
    Habit,
    Intent,
    Notification,
    PlanningConfig,
    PlanningContext,
    TextRequest,
)
from nudge.domains.habits.domain_logic.temporal import (
    at_local_time,
    is_quiet_hour,
    local_date,
    to_epoch_ms,
)

logger = logging.getLogger(__name__)

EVENING_HOUR = 19
AFTERNOON_HOUR = 14
STREAK_WARNING_HOUR = 20
LATE_COMPLETION_MINUTES = 60


def create_smart_notifications(
    habit: Habit,
    context: PlanningContext,
    intent: Intent,
    emotional_state: EmotionalState,
    now_ms: int,
    tz: ZoneInfo,
    config: PlanningConfig = DEFAULT_CONFIG,
) -> list[Notification]:
    """Evaluate every rule category for ``habit`` (which carries derived stats)."""
    gentle = emotional_state.state == "struggling" or intent.type == "wants_to_give_up"
    candidates: list[Notification | None] = []

    # Streak
    if habit.streak > 10:
        candidates.append(streak_celebration(habit, now_ms, tz, config))
    elif habit.streak == 0 and habit.consecutive_misses > 0:
        candidates.append(motivation_after_miss(habit, now_ms, tz, config, gentle=gentle))
    elif 0 < habit.streak < 3:
        candidates.append(new_streak_support(habit, now_ms, tz, config))

    # Completion rate
    if habit.completion_rate > 0.8:
        candidates.append(positive_reinforcement(habit, now_ms, tz, config))
    elif habit.completion_rate < 0.5:
        candidates.append(gentle_motivation(habit, now_ms, tz, config, gentle=gentle))

    # Streak at risk
    if habit.streak > 5 and not context.habit.has_completion_today:
        candidates.append(streak_warning(habit, now_ms, tz, config))

    # Timing
    delay = context.habit.average_completion_delay
    if delay is not None and delay > LATE_COMPLETION_MINUTES:
        candidates.append(early_reminder(habit, now_ms, tz, config))

    created = [c for c in candidates if c is not None]
    logger.debug("Smart candidates for habit %s: %s", habit.id, [c.type for c in created])
    return created


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

def streak_celebration(
    habit: Habit, now_ms: int, tz: ZoneInfo, config: PlanningConfig = DEFAULT_CONFIG
) -> Notification | None:
    scheduled = next_occurrence(now_ms, EVENING_HOUR, tz, config)
    if scheduled is None:
        return None
    return _candidate(
        habit,
        scheduled,
        "celebration",
        title=f"🎉 {habit.name}",
        body=f"{habit.streak} days in a row! Incredible 🎉",
        priority="low",
        request=TextRequest("celebration", "celebratory", f"streak {habit.streak} days"),
    )


def motivation_after_miss(
    habit: Habit,
    now_ms: int,
    tz: ZoneInfo,
    config: PlanningConfig = DEFAULT_CONFIG,
    *,
    gentle: bool = False,
) -> Notification | None:
    """Two hours after the usual reminder time, today only."""
    scheduled = _relative_to_reminder(habit, now_ms, tz, timedelta(hours=2))
    if not _deliverable(scheduled, now_ms, tz, config):
        return None
    return _candidate(
        habit,
        scheduled,
        "motivation",
        title=habit.title,
        body="Fresh start today. One small step is enough",
        priority="medium",
        request=TextRequest(
            "support" if gentle else "motivation",
            "gentle, without pressure" if gentle else "gentle push",
            f"{habit.consecutive_misses} consecutive misses",
        ),
    )


def new_streak_support(
    habit: Habit, now_ms: int, tz: ZoneInfo, config: PlanningConfig = DEFAULT_CONFIG
) -> Notification | None:
    scheduled = next_occurrence(now_ms, EVENING_HOUR, tz, config)
    if scheduled is None:
        return None
    return _candidate(
        habit,
        scheduled,
        "motivation",
        title=f"💪 {habit.name}",
        body=f"Day {habit.streak}! Keep building it",
        priority="medium",
        request=TextRequest("support", "encouraging", f"new streak {habit.streak} days"),
    )


def positive_reinforcement(
    habit: Habit, now_ms: int, tz: ZoneInfo, config: PlanningConfig = DEFAULT_CONFIG
) -> Notification | None:
    scheduled = next_occurrence(now_ms, EVENING_HOUR, tz, config)
    if scheduled is None:
        return None
    percent = f"{habit.completion_rate * 100:.0f}%"
    return _candidate(
        habit,
        scheduled,
        "personalized",
        title=f"⭐ {habit.name}",
        body=f"{percent} completion rate. You're doing great ⭐",
        priority="low",
        request=TextRequest("praise", "proud", f"high completion rate {percent}"),
    )


def gentle_motivation(
    habit: Habit,
    now_ms: int,
    tz: ZoneInfo,
    config: PlanningConfig = DEFAULT_CONFIG,
    *,
    gentle: bool = False,
) -> Notification | None:
    scheduled = next_occurrence(now_ms, AFTERNOON_HOUR, tz, config)
    if scheduled is None:
        return None
    percent = f"{habit.completion_rate * 100:.0f}%"
    return _candidate(
        habit,
        scheduled,
        "motivation",
        title=habit.title,
        body="A small step beats no step",
        priority="medium",
        request=TextRequest(
            "support" if gentle else "push",
            "supportive without pressure",
            f"low completion rate {percent}",
        ),
    )


def streak_warning(
    habit: Habit, now_ms: int, tz: ZoneInfo, config: PlanningConfig = DEFAULT_CONFIG
) -> Notification | None:
    """20:00 today; a warning for tomorrow would be about a different day."""
    scheduled = at_local_time(local_date(now_ms, tz), STREAK_WARNING_HOUR, 0, tz)
    if not _deliverable(scheduled, now_ms, tz, config):
        return None
    return _candidate(
        habit,
        scheduled,
        "streak_warning",
        title=f"🔥 {habit.name}",
        body=f"Don't lose your streak! Already {habit.streak} {days_word(habit.streak)}. "
        "There's still time!",
        priority="high",
        request=None,
    )


def early_reminder(
    habit: Habit, now_ms: int, tz: ZoneInfo, config: PlanningConfig = DEFAULT_CONFIG
) -> Notification | None:
    """One hour before the usual reminder time, today only."""
    scheduled = _relative_to_reminder(habit, now_ms, tz, timedelta(hours=-1))
    if not _deliverable(scheduled, now_ms, tz, config):
        return None
    return _candidate(
        habit,
        scheduled,
        "reminder",
        title=f"⏰ {habit.name}",
        body="Heads up: a little earlier today",
        priority="high",
        request=TextRequest("reminder", "gentle", "early reminder"),
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def next_occurrence(
    now_ms: int, hour: int, tz: ZoneInfo, config: PlanningConfig = DEFAULT_CONFIG
) -> int | None:
    """Today at ``hour`` or, once that has passed, tomorrow. None if in quiet hours."""
    today = local_date(now_ms, tz)
    scheduled = at_local_time(today, hour, 0, tz)
    if scheduled <= now_ms:
        scheduled = at_local_time(today + timedelta(days=1), hour, 0, tz)
    if is_quiet_hour(scheduled, tz, config):
        return None
    return scheduled


def days_word(days: int) -> str:
    return "day" if days == 1 else "days"


def _relative_to_reminder(habit: Habit, now_ms: int, tz: ZoneInfo, offset: timedelta) -> int:
    base = datetime.combine(local_date(now_ms, tz), datetime.min.time(), tzinfo=tz).replace(
        hour=habit.reminder_hour, minute=habit.reminder_minute
    )
    return to_epoch_ms(base + offset)


def _deliverable(timestamp: int, now_ms: int, tz: ZoneInfo, config: PlanningConfig) -> bool:
    return timestamp > now_ms and not is_quiet_hour(timestamp, tz, config)


def _candidate(
    habit: Habit,
    timestamp: int,
    notification_type: str,
    *,
    title: str,
    body: str,
    priority: str,
    request: TextRequest | None,
) -> Notification:
    return Notification(
        id=f"notif-{uuid.uuid4().hex[:16]}",
        habit_id=habit.id,
        title=title,
        body=body,
        timestamp=timestamp,
        type=notification_type,
        priority=priority,
        text_request=request,
    )
