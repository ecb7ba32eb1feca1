"""Tests for the scheduling service."""

from __future__ import annotations

import asyncio

import pytest

from nudge.domains.habits.domain_logic.models import (
    HOUR_MS,
    PlanningConfig,
    PlanningValidationError,
)
from nudge.domains.habits.domain_logic.orchestrator import NotificationOrchestrator
from nudge.domains.habits.domain_logic.scheduler import (
    SchedulingService,
    create_fallback_notification,
)


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class _BrokenForOneHabit(NotificationOrchestrator):
    async def plan_habit(self, habit, now_ms, tz, **kwargs):
        if habit.id == "broken":
            raise ZeroDivisionError("bad statistics")
        return await super().plan_habit(habit, now_ms, tz, **kwargs)


def _request(at, habits, **overrides):
    request = {"userId": "user-1", "timezone": "UTC", "now": at(0, 7, 30), "habits": habits}
    request.update(overrides)
    return request


def test_schedules_every_habit(at, payload_factory):
    habits = [payload_factory(id="a", name="Read"), payload_factory(id="b", name="Run")]
    response = _run(SchedulingService().schedule(_request(at, habits)))

    assert {n.habit_id for n in response.notifications} == {"a", "b"}
    timestamps = [n.timestamp for n in response.notifications]
    assert timestamps == sorted(timestamps)


def test_valid_until_is_48_hours_ahead(at, payload_factory):
    response = _run(SchedulingService().schedule(_request(at, [payload_factory()])))
    assert response.valid_until == at(0, 7, 30) + 48 * HOUR_MS


def test_response_uses_wire_field_names(at, payload_factory):
    response = _run(SchedulingService().schedule(_request(at, [payload_factory()])))
    data = response.to_dict()

    assert set(data) == {"notifications", "validUntil", "newMissedEvents"}
    first = data["notifications"][0]
    assert first["habitId"] == "habit-1"
    assert first["isBaseReminder"] is True


def test_missing_habits_rejects_the_request(at):
    with pytest.raises(PlanningValidationError, match="habits"):
        _run(SchedulingService().schedule({"userId": "user-1", "now": at(0, 8)}))


def test_malformed_habit_rejects_the_whole_request(at, payload_factory):
    habits = [payload_factory(id="ok"), payload_factory(id="bad", name="")]
    with pytest.raises(PlanningValidationError, match="name"):
        _run(SchedulingService().schedule(_request(at, habits)))


@pytest.mark.parametrize("now", [1e20, float("inf"), float("nan"), -1])
def test_out_of_range_now_rejects_the_request(at, payload_factory, now):
    with pytest.raises(PlanningValidationError, match="now"):
        _run(SchedulingService().schedule(_request(at, [payload_factory()], now=now)))


def test_out_of_range_history_rejects_the_request(at, payload_factory):
    habit = payload_factory(completions=[{"timestamp": float("inf")}])
    with pytest.raises(PlanningValidationError, match="completions"):
        _run(SchedulingService().schedule(_request(at, [habit])))


def test_failed_habit_gets_a_fallback_reminder(at, payload_factory):
    habits = [payload_factory(id="broken"), payload_factory(id="fine")]
    service = SchedulingService(_BrokenForOneHabit())

    response = _run(service.schedule(_request(at, habits)))

    broken = [n for n in response.notifications if n.habit_id == "broken"]
    assert len(broken) == 1
    assert broken[0].type == "reminder"
    assert broken[0].timestamp == at(0, 9)
    assert any(n.habit_id == "fine" for n in response.notifications)


def test_global_cap_applies_across_habits(at, payload_factory):
    config = PlanningConfig(global_cap=3)
    habits = [payload_factory(id=f"h{i}") for i in range(4)]
    service = SchedulingService(NotificationOrchestrator(config=config))

    response = _run(service.schedule(_request(at, habits)))
    assert len(response.notifications) == 3


def test_new_missed_events_are_collected(at, payload_factory):
    habit = payload_factory(
        createdAt=at(-3, 8), completions=[{"timestamp": at(-1, 9)}]
    )
    response = _run(SchedulingService().schedule(_request(at, [habit])))
    assert len(response.new_missed_events) == 2
    assert response.to_dict()["newMissedEvents"][0]["habitId"] == "habit-1"


def test_known_missed_events_are_not_reported_again(at, payload_factory):
    habit = payload_factory(
        createdAt=at(-3, 8),
        completions=[{"timestamp": at(-1, 9)}],
        missedEvents=[{"date": at(-2, 0)}, {"date": at(-3, 0)}],
    )
    response = _run(SchedulingService().schedule(_request(at, [habit])))
    assert response.new_missed_events == []


class TestFallbackNotification:
    def test_next_occurrence_of_reminder_time(self, habit_factory, at, tz):
        habit = habit_factory()
        assert create_fallback_notification(habit, at(0, 8), tz).timestamp == at(0, 9)
        assert create_fallback_notification(habit, at(0, 10), tz).timestamp == at(1, 9)

    def test_quiet_reminder_time_is_clamped(self, habit_factory, at, tz):
        habit = habit_factory(reminder_time="23:15")
        assert create_fallback_notification(habit, at(0, 12), tz).timestamp == at(0, 21)
