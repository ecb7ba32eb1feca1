"""Base reminders: the guaranteed day-1/day-2 reminders per required slot.

These are the floor of the whole system: they bypass behavior and intent
gating and only the universal quiet-hour, cap and spacing rules apply.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from datetime import timedelta
from zoneinfo import ZoneInfo

from nudge.domains.habits.domain_logic import statistics as stats
from nudge.domains.habits.domain_logic.models import (
    DEFAULT_CONFIG,
    Completion,
    Habit,
    Notification,
    PlanningConfig,
    TextRequest,
)
from nudge.domains.habits.domain_logic.temporal import at_local_time, local_date

logger = logging.getLogger(__name__)

SLOT_HOURS = {"morning": 8, "afternoon": 14, "evening": 19}
PREFERRED_SLOT_HOURS = {"morning": 8, "afternoon": 14, "evening": 19, "anytime": 10}
DEFAULT_REMINDER_HOUR = 9

SLOT_EMOJI = {"morning": "🌅", "afternoon": "☀️", "evening": "🌙", "anytime": "⭐"}


def optimal_reminder_time(
    habit: Habit, completions: Sequence[Completion], tz: ZoneInfo
) -> tuple[int, int]:
    """(hour, minute) for an ``anytime`` slot.

    Average completion hour, else the configured reminder time, else the
    preferred slot's default, else 09:00.
    """
    average = stats.average_completion_hour(completions, tz)
    if average is not None:
        return average, 0
    if habit.reminder_time:
        return habit.reminder_hour, habit.reminder_minute
    if habit.preferred_time_slot:
        return PREFERRED_SLOT_HOURS[habit.preferred_time_slot], 0
    return DEFAULT_REMINDER_HOUR, 0


def clamp_to_delivery_window(
    hour: int, minute: int, config: PlanningConfig = DEFAULT_CONFIG
) -> tuple[int, int]:
    """Move a quiet-hour time to the nearest deliverable boundary."""
    if hour >= config.quiet_hours_start:
        return config.quiet_hours_start - 1, 0
    if hour < config.quiet_hours_end:
        return config.quiet_hours_end, 0
    return hour, minute


def resolve_slot_time(
    slot: str,
    habit: Habit,
    completions: Sequence[Completion],
    tz: ZoneInfo,
    config: PlanningConfig = DEFAULT_CONFIG,
) -> tuple[int, int]:
    if slot in SLOT_HOURS:
        hour, minute = SLOT_HOURS[slot], 0
    else:
        hour, minute = optimal_reminder_time(habit, completions, tz)
    return clamp_to_delivery_window(hour, minute, config)


def base_reminder_text(habit: Habit, slot: str) -> str:
    """Template copy; kept whenever text enrichment is unavailable."""
    emoji = SLOT_EMOJI.get(slot, "")
    if habit.streak > 7:
        text = f"{emoji} {habit.streak} days in a row! Keep going 💪"
    elif habit.streak > 0:
        text = f"{emoji} Day {habit.streak}! Don't stop now"
    else:
        text = f"{emoji} Time for {habit.name}!"
    return text.strip()


def create_base_reminders(
    habit: Habit,
    completions: Sequence[Completion],
    now_ms: int,
    tz: ZoneInfo,
    config: PlanningConfig = DEFAULT_CONFIG,
) -> list[Notification]:
    """Today's reminder per open slot (if still ahead) plus tomorrow's, always."""
    today = local_date(now_ms, tz)
    tomorrow = today + timedelta(days=1)
    reminders: list[Notification] = []

    for slot in habit.required_slots:
        hour, minute = resolve_slot_time(slot, habit, completions, tz, config)

        if slot not in habit.completed_slots_today:
            today_ts = at_local_time(today, hour, minute, tz)
            if today_ts > now_ms:
                reminders.append(_reminder(habit, slot, today_ts, "today"))
        else:
            logger.debug("Slot %s already completed today for habit %s", slot, habit.id)

        tomorrow_ts = at_local_time(tomorrow, hour, minute, tz)
        reminders.append(_reminder(habit, slot, tomorrow_ts, "tomorrow"))

    return reminders


def _reminder(habit: Habit, slot: str, timestamp: int, day: str) -> Notification:
    return Notification(
        id=f"base-reminder-{uuid.uuid4().hex[:12]}",
        habit_id=habit.id,
        title=habit.title,
        body=base_reminder_text(habit, slot),
        timestamp=timestamp,
        type="base_reminder",
        slot=slot,
        priority="high",
        is_base_reminder=True,
        text_request=TextRequest(
            text_type="reminder",
            context=f"base reminder for {slot} slot ({day})",
        ),
    )
