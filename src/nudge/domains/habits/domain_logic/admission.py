"""Admission filter: the last gate before notifications leave the planner.

Per habit: dedupe, drop quiet-hour and past candidates, cap by type priority,
then enforce minimum spacing. Across habits: a coarser pass that keeps the
batch under the client platform's pending-notification ceiling.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from zoneinfo import ZoneInfo

from nudge.domains.habits.domain_logic.models import (
    DEFAULT_CONFIG,
    HOUR_MS,
    Habit,
    Notification,
    PlanningConfig,
)
from nudge.domains.habits.domain_logic.temporal import is_quiet_hour

logger = logging.getLogger(__name__)

TYPE_PRIORITY = {
    "base_reminder": 10,
    "reminder": 10,
    "streak_warning": 10,
    "motivation": 5,
    "personalized": 4,
    "celebration": 3,
}
UNKNOWN_TYPE_PRIORITY = 1

GLOBAL_TIER = {
    "base_reminder": 3,
    "reminder": 3,
    "streak_warning": 3,
    "motivation": 2,
    "celebration": 1,
    "personalized": 1,
}


def needs_extended_support(habit: Habit) -> bool:
    """Multi-frequency, struggling, or a long streak with nothing done today."""
    reasons = []
    if habit.frequency in ("twice", "thrice"):
        reasons.append(f"frequency={habit.frequency}")
    if habit.completion_rate < 0.5:
        reasons.append(f"completion_rate={habit.completion_rate:.2f}")
    if habit.consecutive_misses >= 3:
        reasons.append(f"consecutive_misses={habit.consecutive_misses}")
    if habit.streak > 7 and not habit.completed_slots_today:
        reasons.append(f"streak={habit.streak} with no slot done today")

    if reasons:
        logger.debug("Extended support for habit %s: %s", habit.id, ", ".join(reasons))
    return bool(reasons)


def notification_cap(habit: Habit, config: PlanningConfig = DEFAULT_CONFIG) -> int:
    return config.extended_cap if needs_extended_support(habit) else config.base_cap


def type_priority(notification_type: str) -> int:
    return TYPE_PRIORITY.get(notification_type, UNKNOWN_TYPE_PRIORITY)


def deduplicate(notifications: Iterable[Notification]) -> list[Notification]:
    """One notification per (habit, timestamp); a base reminder wins the slot."""
    kept: dict[tuple[str, int], Notification] = {}
    for n in notifications:
        key = (n.habit_id, n.timestamp)
        current = kept.get(key)
        if current is None or (n.is_base_reminder and not current.is_base_reminder):
            kept[key] = n
    return list(kept.values())


def enforce_spacing(
    notifications: Sequence[Notification], min_spacing_hours: float
) -> list[Notification]:
    """Greedy pass in time order; the first notification is always kept."""
    min_gap = min_spacing_hours * HOUR_MS
    result: list[Notification] = []
    for n in sorted(notifications, key=lambda n: n.timestamp):
        if not result or n.timestamp - result[-1].timestamp >= min_gap:
            result.append(n)
    return result


def admit(
    candidates: Sequence[Notification],
    habit: Habit,
    now_ms: int,
    tz: ZoneInfo,
    config: PlanningConfig = DEFAULT_CONFIG,
) -> list[Notification]:
    """Per-habit admission; ``habit`` must carry its derived statistics."""
    admitted = deduplicate(candidates)
    admitted = [n for n in admitted if not is_quiet_hour(n.timestamp, tz, config)]
    admitted = [n for n in admitted if n.timestamp > now_ms]

    cap = notification_cap(habit, config)
    if len(admitted) > cap:
        admitted.sort(key=lambda n: (-type_priority(n.type), n.timestamp))
        logger.debug(
            "Capping habit %s: %d -> %d candidates", habit.id, len(admitted), cap
        )
        admitted = admitted[:cap]

    result = enforce_spacing(admitted, config.min_spacing_hours)
    logger.debug(
        "Admitted %d of %d candidates for habit %s", len(result), len(candidates), habit.id
    )
    return result


def admit_global(
    notifications: Sequence[Notification], config: PlanningConfig = DEFAULT_CONFIG
) -> list[Notification]:
    """Keep the whole batch under ``config.global_cap``, in time order."""
    batch = list(notifications)
    if len(batch) > config.global_cap:
        logger.info("Trimming batch to global cap: %d -> %d", len(batch), config.global_cap)
        batch.sort(key=lambda n: (-GLOBAL_TIER.get(n.type, 0), n.timestamp))
        batch = batch[: config.global_cap]
    return sorted(batch, key=lambda n: n.timestamp)
