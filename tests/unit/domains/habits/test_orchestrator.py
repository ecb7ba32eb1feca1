"""Tests for the per-habit planning pipeline."""

from __future__ import annotations

import asyncio
from dataclasses import replace

from nudge.core.llm.providers.mock import MockProvider
from nudge.core.llm.text_generator import NotificationTextGenerator
from nudge.domains.habits.domain_logic.models import Completion
from nudge.domains.habits.domain_logic.orchestrator import (
    NotificationOrchestrator,
    PlanningStage,
)


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class _FailingGenerator:
    async def generate_text(self, habit, text_type, options=None, *, allow_fallback=True):
        raise ConnectionError("no route to provider")


def _ten_day_streak(habit_factory, at):
    """Created 20 days ago; done at 09:00 for nine days and at 07:00 today."""
    habit = habit_factory(created_days_ago=20, completed_days=range(1, 10))
    return replace(habit, completions=habit.completions + (Completion(at(0, 7)),))


def test_all_stages_run_in_order(habit_factory, at, tz):
    plan = _run(NotificationOrchestrator().plan_habit(habit_factory(), at(0, 7, 30), tz))
    assert plan.stages == [
        PlanningStage.COLLECT_CONTEXT,
        PlanningStage.GENERATE_BASE,
        PlanningStage.ENRICH_TEXT,
        PlanningStage.ANALYZE_BEHAVIOR,
        PlanningStage.PREDICT_INTENT,
        PlanningStage.MERGE_CANDIDATES,
        PlanningStage.ADMIT,
        PlanningStage.DONE,
    ]


def test_ten_day_streak_completed_early_today(habit_factory, at, tz):
    habit = _ten_day_streak(habit_factory, at)
    plan = _run(NotificationOrchestrator().plan_habit(habit, at(0, 7, 30), tz))

    assert [(n.type, n.timestamp) for n in plan.notifications] == [
        ("base_reminder", at(0, 9)),
        ("base_reminder", at(1, 9)),
    ]
    assert plan.analysis.habit.streak == 10
    assert plan.analysis.context.habit.has_completion_today


def test_enrichment_failure_keeps_base_reminders(habit_factory, at, tz):
    habit = habit_factory(created_days_ago=20, completed_days=range(1, 10))
    orchestrator = NotificationOrchestrator(text_generator=_FailingGenerator())

    plan = _run(orchestrator.plan_habit(habit, at(0, 7, 30), tz))

    base = [n for n in plan.notifications if n.is_base_reminder]
    assert [n.timestamp for n in base] == [at(0, 9), at(1, 9)]
    assert all(n.body == "⭐ 9 days in a row! Keep going 💪" for n in base)
    assert not any(n.enriched_with_ai for n in plan.notifications)


def test_generated_text_is_used(habit_factory, at, tz):
    generator = NotificationTextGenerator(MockProvider("Ten pages before lunch 📚"))
    orchestrator = NotificationOrchestrator(text_generator=generator)

    plan = _run(orchestrator.plan_habit(habit_factory(), at(0, 7, 30), tz))

    base = [n for n in plan.notifications if n.is_base_reminder]
    assert base
    assert all(n.body == "Ten pages before lunch 📚" and n.enriched_with_ai for n in base)


def test_base_reminders_survive_admission(habit_factory, at, tz):
    # Extended support (low rate) plus several smart candidates.
    habit = habit_factory(created_days_ago=30, completed_days=range(3, 11))
    plan = _run(NotificationOrchestrator().plan_habit(habit, at(0, 7, 30), tz))

    admitted_ids = {n.id for n in plan.notifications}
    assert {n.id for n in plan.base_reminders} <= admitted_ids
    assert plan.notifications[0].timestamp > at(0, 7, 30)


def test_new_missed_events_are_reported(habit_factory, at, tz):
    habit = habit_factory(created_days_ago=4, completed_days=[1])
    plan = _run(NotificationOrchestrator().plan_habit(habit, at(0, 12), tz))
    assert len(plan.new_missed_events) == 3
    assert all(m.habit_id == habit.id for m in plan.new_missed_events)


def test_analyze_does_not_schedule(habit_factory, at, tz):
    habit = habit_factory(created_days_ago=30)
    analysis = NotificationOrchestrator().analyze(habit, at(0, 12), tz)

    assert analysis.intent.type == "wants_to_give_up"
    assert analysis.emotional_state.state == "struggling"
    assert analysis.habit.consecutive_misses == 10
    assert analysis.needs[0].type == "empathy_and_support"
