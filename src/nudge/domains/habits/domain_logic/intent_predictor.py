"""Intent prediction and emotional-state detection.

Five detectors vote for what the user is most likely trying to do right now.
The highest priority tier wins; ties go to the most confident detector.
"""

from __future__ import annotations

from collections.abc import Sequence
from zoneinfo import ZoneInfo

from nudge.domains.habits.domain_logic import statistics as stats
from nudge.domains.habits.domain_logic.behavior_analyzer import days_since_last_completion
from nudge.domains.habits.domain_logic.models import (
    DAY_MS,
    Behavior,
    Completion,
    EmotionalState,
    Habit,
    Intent,
    PlanningContext,
    SnoozeEvent,
    UserNeed,
)

PRIORITY_ORDER = {"critical": 3, "high": 2, "medium": 1, "low": 0}

DEFAULT_INTENT = Intent(type="neutral", confidence=0.5, needs="standard_reminder", priority="low")

# (type, needs, priority)
_INTENTS = {
    "wants_to_complete": ("timing_reminder", "high"),
    "wants_to_postpone": ("gentle_push", "medium"),
    "wants_to_give_up": ("empathy_and_support", "critical"),
    "wants_to_continue_streak": ("streak_protection", "critical"),
    "wants_to_reach_milestone": ("milestone_support", "high"),
}


def predict_user_intent(
    habit: Habit,
    context: PlanningContext,
    behavior: Behavior,
    completions: Sequence[Completion],
    snoozes: Sequence[SnoozeEvent],
    now_ms: int,
    tz: ZoneInfo,
) -> Intent:
    detected = {
        "wants_to_complete": wants_to_complete(context, behavior, completions, tz),
        "wants_to_postpone": wants_to_postpone(context, behavior, completions, snoozes, now_ms, tz),
        "wants_to_give_up": wants_to_give_up(
            habit, context, behavior, completions, snoozes, now_ms, tz
        ),
        "wants_to_continue_streak": wants_to_continue_streak(behavior, completions, now_ms, tz),
        "wants_to_reach_milestone": wants_to_reach_milestone(completions, now_ms, tz),
    }

    candidates = []
    for intent_type, fired in detected.items():
        if not fired:
            continue
        needs, priority = _INTENTS[intent_type]
        candidates.append(
            Intent(
                type=intent_type,
                confidence=intent_confidence(intent_type, behavior, completions, now_ms, tz),
                needs=needs,
                priority=priority,
            )
        )

    if not candidates:
        return DEFAULT_INTENT
    return max(candidates, key=lambda i: (PRIORITY_ORDER[i.priority], i.confidence))


# ---------------------------------------------------------------------------
# Detectors
# ---------------------------------------------------------------------------

def wants_to_complete(
    context: PlanningContext,
    behavior: Behavior,
    completions: Sequence[Completion],
    tz: ZoneInfo,
) -> bool:
    if behavior.probability > 0.6:
        return True
    best = stats.best_completion_hour(completions, tz)
    if best is not None and abs(context.temporal.hour - best) <= 1:
        return True
    if behavior.momentum == "strong":
        return True
    return behavior.trend in ("improving", "stable")


def wants_to_postpone(
    context: PlanningContext,
    behavior: Behavior,
    completions: Sequence[Completion],
    snoozes: Sequence[SnoozeEvent],
    now_ms: int,
    tz: ZoneInfo,
) -> bool:
    if behavior.probability < 0.5:
        return True
    recent_snoozes = [s for s in snoozes if now_ms - s.timestamp <= 3 * DAY_MS]
    if len(recent_snoozes) >= 2:
        return True
    worst = stats.worst_completion_hour(completions, tz)
    return worst is not None and context.temporal.hour == worst


def wants_to_give_up(
    habit: Habit,
    context: PlanningContext,
    behavior: Behavior,
    completions: Sequence[Completion],
    snoozes: Sequence[SnoozeEvent],
    now_ms: int,
    tz: ZoneInfo,
) -> bool:
    if stats.consecutive_misses(completions, now_ms, tz) > 5:
        return True
    rate = stats.completion_rate(completions, habit.created_at, now_ms, tz)
    if rate < 0.3 and stats.snooze_frequency(len(snoozes), len(completions)) > 0.6:
        return True
    if behavior.trend == "declining" and behavior.momentum == "negative":
        return True
    return context.user.current_state == "struggling"


def wants_to_continue_streak(
    behavior: Behavior,
    completions: Sequence[Completion],
    now_ms: int,
    tz: ZoneInfo,
) -> bool:
    streak = stats.streak(completions, now_ms, tz)
    if behavior.risks.streak_at_risk and streak > 5:
        return True
    if streak > 7:
        return True
    milestone = stats.next_milestone(streak)
    return milestone is not None and milestone - streak <= 2


def wants_to_reach_milestone(
    completions: Sequence[Completion], now_ms: int, tz: ZoneInfo
) -> bool:
    streak = stats.streak(completions, now_ms, tz)
    milestone = stats.next_milestone(streak)
    return milestone is not None and milestone - streak <= 1


def intent_confidence(
    intent_type: str,
    behavior: Behavior,
    completions: Sequence[Completion],
    now_ms: int,
    tz: ZoneInfo,
) -> float:
    confidence = 0.5
    if intent_type == "wants_to_complete":
        confidence = behavior.probability
        if behavior.momentum == "strong":
            confidence += 0.2
    elif intent_type == "wants_to_postpone":
        confidence = 1 - behavior.probability
        if behavior.momentum == "negative":
            confidence += 0.2
    elif intent_type == "wants_to_give_up":
        confidence = min(0.9, stats.consecutive_misses(completions, now_ms, tz) / 10)
    elif intent_type == "wants_to_continue_streak":
        confidence = 0.9 if behavior.risks.streak_at_risk else 0.7
    elif intent_type == "wants_to_reach_milestone":
        confidence = 0.8
    return max(0.0, min(1.0, confidence))


# ---------------------------------------------------------------------------
# Emotional state
# ---------------------------------------------------------------------------

def detect_emotional_state(
    habit: Habit,
    completions: Sequence[Completion],
    snoozes: Sequence[SnoozeEvent],
    now_ms: int,
    tz: ZoneInfo,
) -> EmotionalState:
    """Ordered decision table; the first matching row wins."""
    streak = stats.streak(completions, now_ms, tz)
    rate = stats.completion_rate(completions, habit.created_at, now_ms, tz)
    misses = stats.consecutive_misses(completions, now_ms, tz)
    snooze_freq = stats.snooze_frequency(len(snoozes), len(completions))

    if streak > 14 and rate > 0.9 and snooze_freq < 0.2:
        return EmotionalState("confident", "high", "celebration_and_recognition", "strong", "low")

    if misses > 3 or (rate < 0.4 and snooze_freq > 0.5):
        return EmotionalState(
            "struggling", "low", "empathy_and_gentle_encouragement", "weak", "high"
        )

    if 0 < streak < 7 and rate > 0.5:
        return EmotionalState(
            "building", "moderate", "support_and_consistency_reminder", "moderate", "medium"
        )

    if 0 < misses <= 2 and streak == 0:
        since = days_since_last_completion(completions, now_ms, tz)
        if since is not None and since <= 3:
            return EmotionalState(
                "recovering", "moderate", "recovery_support", "moderate", "medium"
            )

    if 7 < streak <= 14 and rate > 0.7:
        return EmotionalState("stable", "moderate", "standard_reminder", "moderate", "low")

    return EmotionalState("neutral", "moderate", "standard_reminder", "moderate", "medium")


def determine_user_needs(
    behavior: Behavior,
    intent: Intent,
    emotional_state: EmotionalState,
) -> list[UserNeed]:
    """Needs implied by the analysis, most urgent first."""
    needs: list[UserNeed] = []

    if intent.type == "wants_to_continue_streak" and behavior.risks.streak_at_risk:
        needs.append(UserNeed("streak_protection", "critical", "Protect the streak from breaking"))
    if intent.type == "wants_to_give_up":
        needs.append(
            UserNeed("empathy_and_support", "critical", "Emotional support and understanding")
        )

    if emotional_state.state == "struggling":
        needs.append(
            UserNeed("gentle_encouragement", "high", "Gentle encouragement without pressure")
        )
    if behavior.probability < 0.4:
        needs.append(UserNeed("motivation_boost", "high", "Raise motivation"))

    if intent.type == "wants_to_reach_milestone":
        needs.append(UserNeed("milestone_support", "medium", "Support reaching the milestone"))
    if behavior.opportunities.can_break_record:
        needs.append(UserNeed("challenge", "medium", "A challenge to motivate"))

    if behavior.probability > 0.7:
        needs.append(UserNeed("timing_reminder", "low", "A simple timing reminder"))

    return needs
