"""MCP tools for notification planning.

``schedule_notifications`` takes the same camelCase request a mobile client
sends and returns the planned batch; ``analyze_habit`` exposes the behavior
and intent analysis for a single habit without scheduling anything.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any

from fastmcp import FastMCP

from nudge.domains.habits.domain_logic.models import (
    Habit,
    PlanningValidationError,
    parse_timestamp,
    validate_timezone,
)

if TYPE_CHECKING:
    from nudge.domains.habits.domain_logic.orchestrator import (
        HabitAnalysis,
        NotificationOrchestrator,
    )
    from nudge.domains.habits.domain_logic.scheduler import SchedulingService

logger = logging.getLogger(__name__)


def analysis_to_dict(analysis: HabitAnalysis) -> dict[str, Any]:
    """JSON-friendly summary of a habit analysis."""
    habit_ctx = analysis.context.habit
    temporal = analysis.context.temporal
    behavior = analysis.behavior
    window = behavior.opportunities.optimal_time_window

    return {
        "habitId": analysis.habit.id,
        "statistics": {
            "streak": habit_ctx.streak,
            "completionRate": round(habit_ctx.completion_rate, 3),
            "consecutiveMisses": habit_ctx.consecutive_misses,
            "hasCompletionToday": habit_ctx.has_completion_today,
            "averageCompletionHour": habit_ctx.average_completion_hour,
            "bestCompletionHour": habit_ctx.best_completion_hour,
            "worstCompletionHour": habit_ctx.worst_completion_hour,
            "averageCompletionDelay": habit_ctx.average_completion_delay,
            "completionPattern": habit_ctx.completion_pattern,
            "emotionalConnection": habit_ctx.emotional_connection,
            "snoozeFrequency": round(habit_ctx.snooze_frequency, 3),
            "nextMilestone": habit_ctx.milestone_progress.next_milestone,
            "missedCountLast7Days": habit_ctx.missed_count_last_7_days,
            "missedCountLast30Days": habit_ctx.missed_count_last_30_days,
        },
        "temporal": {
            "timeOfDay": temporal.time_of_day,
            "dayOfWeek": temporal.day_of_week,
            "isWeekend": temporal.is_weekend,
            "timezone": temporal.timezone,
        },
        "behavior": {
            "trend": behavior.trend,
            "momentum": behavior.momentum,
            "probability": round(behavior.probability, 3),
            "risks": {
                "streakAtRisk": behavior.risks.streak_at_risk,
                "motivationDeclining": behavior.risks.motivation_declining,
                "habitForming": behavior.risks.habit_forming,
            },
            "opportunities": {
                "canBreakRecord": behavior.opportunities.can_break_record,
                "canReachMilestone": behavior.opportunities.can_reach_milestone,
                "optimalTimeWindow": (
                    {"startHour": window.start_hour, "endHour": window.end_hour}
                    if window is not None
                    else None
                ),
            },
        },
        "intent": {
            "type": analysis.intent.type,
            "confidence": round(analysis.intent.confidence, 3),
            "needs": analysis.intent.needs,
            "priority": analysis.intent.priority,
        },
        "emotionalState": {
            "state": analysis.emotional_state.state,
            "energy": analysis.emotional_state.energy,
            "needs": analysis.emotional_state.needs,
            "motivation": analysis.emotional_state.motivation,
            "riskLevel": analysis.emotional_state.risk_level,
        },
        "userNeeds": [
            {"type": n.type, "urgency": n.urgency, "description": n.description}
            for n in analysis.needs
        ],
        "strategy": analysis.strategy,
        "newMissedEvents": [m.to_dict() for m in habit_ctx.new_missed_events],
    }


def register_planning_tools(
    mcp: FastMCP,
    scheduler: SchedulingService,
    orchestrator: NotificationOrchestrator,
) -> None:
    """Register notification planning tools on the MCP server."""

    @mcp.tool
    async def schedule_notifications(request: dict[str, Any]) -> str:
        """Plan the notifications for a user's habits over the next 48 hours.

        Args:
            request: ``{userId, timezone, now, habits[], userProfile?}``. Each
                habit needs ``id``, ``name``, ``createdAt`` and ``reminderTime``
                and may embed ``completions``, ``snoozeEvents`` and
                ``missedEvents``.

        Returns:
            JSON ``{notifications, validUntil, newMissedEvents}``, or
            ``{status: "invalid_request", error}`` for malformed input.
        """
        start_time = time.monotonic()
        try:
            response = await scheduler.schedule(request)
        except PlanningValidationError as exc:
            logger.warning("Rejected planning request: %s", exc)
            return json.dumps({"status": "invalid_request", "error": str(exc)})

        elapsed_ms = (time.monotonic() - start_time) * 1000
        logger.info(
            "schedule_notifications: %d notifications in %.0fms",
            len(response.notifications),
            elapsed_ms,
        )
        return json.dumps(response.to_dict(), ensure_ascii=False)

    @mcp.tool
    def analyze_habit(
        habit: dict[str, Any],
        now: int | str,
        timezone: str = "UTC",
        user_profile: dict[str, Any] | None = None,
    ) -> str:
        """Analyze one habit's statistics, behavior, intent and emotional state.

        Args:
            habit: A habit payload in the same shape as ``schedule_notifications``.
            now: Current moment as epoch milliseconds or ISO 8601 with offset.
            timezone: IANA zone the habit is tracked in (default: UTC).
            user_profile: Optional user profile (emotional / activity preferences).
        """
        try:
            tz = validate_timezone(timezone)
            now_ms = parse_timestamp(now, "now")
            parsed = Habit.from_dict(habit)
        except PlanningValidationError as exc:
            logger.warning("Rejected analyze_habit request: %s", exc)
            return json.dumps({"status": "invalid_request", "error": str(exc)})

        analysis = orchestrator.analyze(parsed, now_ms, tz, user_profile=user_profile)
        return json.dumps(analysis_to_dict(analysis), ensure_ascii=False)
