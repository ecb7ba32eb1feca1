"""Tests for the text enrichment fan-out."""

from __future__ import annotations

import asyncio

from nudge.core.llm.providers.mock import MockProvider
from nudge.core.llm.text_generator import NotificationTextGenerator
from nudge.domains.habits.domain_logic.base_reminders import create_base_reminders
from nudge.domains.habits.domain_logic.context_builder import build_planning_context
from nudge.domains.habits.domain_logic.enrichment import enrich_notifications, text_options


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class _FailingGenerator:
    async def generate_text(self, habit, text_type, options=None, *, allow_fallback=True):
        raise RuntimeError("provider exploded")


class _SlowGenerator:
    async def generate_text(self, habit, text_type, options=None, *, allow_fallback=True):
        await asyncio.sleep(5)
        return "too late"


class _CountingGenerator:
    def __init__(self):
        self.active = 0
        self.max_active = 0
        self.calls = []

    async def generate_text(self, habit, text_type, options=None, *, allow_fallback=True):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.calls.append((text_type, options))
        await asyncio.sleep(0.01)
        self.active -= 1
        return f"generated {len(self.calls)}"


def _setup(habit_factory, at, tz, **habit_kwargs):
    habit = habit_factory(
        frequency="thrice", required_slots=("morning", "afternoon", "evening"), **habit_kwargs
    )
    now = at(0, 6)
    reminders = create_base_reminders(habit, habit.completions, now, tz)
    return habit, build_planning_context(habit, now, tz), reminders


def test_generated_text_replaces_template(habit_factory, at, tz):
    habit, context, reminders = _setup(habit_factory, at, tz)
    generator = NotificationTextGenerator(MockProvider("Pages are waiting 📚"))

    enriched = _run(enrich_notifications(reminders, habit, context, generator))

    assert [n.body for n in enriched] == ["Pages are waiting 📚"] * len(reminders)
    assert all(n.enriched_with_ai for n in enriched)
    assert [n.id for n in enriched] == [n.id for n in reminders]


def test_failure_keeps_template_text(habit_factory, at, tz):
    habit, context, reminders = _setup(habit_factory, at, tz)
    enriched = _run(enrich_notifications(reminders, habit, context, _FailingGenerator()))
    assert enriched == reminders
    assert not any(n.enriched_with_ai for n in enriched)


def test_provider_failure_keeps_template_not_canned_copy(habit_factory, at, tz):
    habit, context, reminders = _setup(habit_factory, at, tz)
    generator = NotificationTextGenerator(
        MockProvider(error=RuntimeError("rate limited")),
        fallback_phrases={"reminder": ["Let's go!"]},
    )

    enriched = _run(enrich_notifications(reminders, habit, context, generator))

    assert [n.body for n in enriched] == [n.body for n in reminders]
    assert "Let's go!" not in [n.body for n in enriched]
    assert not any(n.enriched_with_ai for n in enriched)


def test_timeout_keeps_template_text(habit_factory, at, tz):
    habit, context, reminders = _setup(habit_factory, at, tz)
    enriched = _run(
        enrich_notifications(reminders, habit, context, _SlowGenerator(), timeout=0.05)
    )
    assert [n.body for n in enriched] == [n.body for n in reminders]


def test_without_generator_nothing_changes(habit_factory, at, tz):
    habit, context, reminders = _setup(habit_factory, at, tz)
    assert _run(enrich_notifications(reminders, habit, context, None)) == reminders


def test_concurrency_is_bounded_and_order_preserved(habit_factory, at, tz):
    habit, context, reminders = _setup(habit_factory, at, tz)
    generator = _CountingGenerator()

    enriched = _run(
        enrich_notifications(reminders, habit, context, generator, concurrency=2)
    )

    assert len(generator.calls) == len(reminders) == 6
    assert generator.max_active <= 2
    assert [n.timestamp for n in enriched] == [n.timestamp for n in reminders]


def test_options_carry_tone_and_temporal_context(habit_factory, at, tz):
    habit, _, reminders = _setup(habit_factory, at, tz)
    context = build_planning_context(habit, at(0, 6), tz, user_profile={"preferredTone": "calm"})

    options = text_options(reminders[0], context)
    assert options["tone"] == "calm"
    assert options["temporal_context"] == {"time_of_day": "morning", "day_of_week": "Tuesday"}
    assert "base reminder" in options["context"]
