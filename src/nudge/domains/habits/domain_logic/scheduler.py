"""Scheduling service: plans every habit of a request and merges the batch."""

from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from typing import Any
from zoneinfo import ZoneInfo

from nudge.domains.habits.domain_logic.admission import admit_global
from nudge.domains.habits.domain_logic.base_reminders import clamp_to_delivery_window
from nudge.domains.habits.domain_logic.models import (
    DEFAULT_CONFIG,
    HOUR_MS,
    Habit,
    MissedEvent,
    Notification,
    PlanningConfig,
    PlanningRequest,
    PlanningResponse,
    parse_planning_request,
)
from nudge.domains.habits.domain_logic.orchestrator import NotificationOrchestrator
from nudge.domains.habits.domain_logic.temporal import at_local_time, local_date

logger = logging.getLogger(__name__)


def create_fallback_notification(
    habit: Habit, now_ms: int, tz: ZoneInfo, config: PlanningConfig = DEFAULT_CONFIG
) -> Notification:
    """One reminder at the next occurrence of the habit's reminder time."""
    hour, minute = clamp_to_delivery_window(habit.reminder_hour, habit.reminder_minute, config)
    today = local_date(now_ms, tz)
    timestamp = at_local_time(today, hour, minute, tz)
    if timestamp <= now_ms:
        timestamp = at_local_time(today + timedelta(days=1), hour, minute, tz)

    return Notification(
        id=f"fallback-{uuid.uuid4().hex[:12]}",
        habit_id=habit.id,
        title=habit.title,
        body=f"Time for {habit.name}!",
        timestamp=timestamp,
        type="reminder",
        priority="high",
    )


class SchedulingService:
    """Entry point for a whole planning request.

    Usage::

        service = SchedulingService(NotificationOrchestrator(generator))
        response = await service.schedule({"userId": "u1", "now": now_ms, "habits": [...]})
    """

    def __init__(
        self,
        orchestrator: NotificationOrchestrator | None = None,
        config: PlanningConfig | None = None,
    ) -> None:
        self.orchestrator = orchestrator or NotificationOrchestrator()
        self.config = config or self.orchestrator.config

    async def schedule(self, request: PlanningRequest | dict[str, Any]) -> PlanningResponse:
        """Plan every habit; malformed input raises PlanningValidationError up front."""
        if not isinstance(request, PlanningRequest):
            request = parse_planning_request(request)

        tz = request.tz
        notifications: list[Notification] = []
        new_missed: list[MissedEvent] = []

        for habit in request.habits:
            try:
                plan = await self.orchestrator.plan_habit(
                    habit,
                    request.now,
                    tz,
                    user_id=request.user_id,
                    user_profile=request.user_profile,
                )
            except Exception:
                logger.exception("Planning failed for habit %s; using fallback reminder", habit.id)
                notifications.append(
                    create_fallback_notification(habit, request.now, tz, self.config)
                )
                continue

            notifications.extend(plan.notifications)
            new_missed.extend(plan.new_missed_events)

        batch = admit_global(notifications, self.config)
        logger.info(
            "Scheduled %d notifications for user %s across %d habits (%d new missed days)",
            len(batch),
            request.user_id or "<anonymous>",
            len(request.habits),
            len(new_missed),
        )
        return PlanningResponse(
            notifications=batch,
            valid_until=request.now + self.config.planning_horizon_hours * HOUR_MS,
            new_missed_events=new_missed,
        )
