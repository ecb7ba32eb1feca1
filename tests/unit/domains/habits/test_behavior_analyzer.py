"""Tests for the behavioral analyzer."""

from __future__ import annotations

import pytest

from nudge.domains.habits.domain_logic.behavior_analyzer import (
    analyze_completion_pattern,
    can_break_record,
    can_reach_milestone,
    determine_optimal_strategy,
    find_optimal_time_window,
    is_motivation_declining,
    is_streak_at_risk,
    predict_completion_probability,
)
from nudge.domains.habits.domain_logic.context_builder import build_planning_context
from nudge.domains.habits.domain_logic.models import Completion, SnoozeEvent


def _probability(habit, now, tz, user_profile=None):
    context = build_planning_context(habit, now, tz, user_profile=user_profile)
    return predict_completion_probability(
        habit, context, habit.completions, habit.snooze_events, now, tz
    )


class TestRisks:
    def test_long_streak_without_completion_today_is_at_risk(self, habit_factory, at, tz):
        habit = habit_factory(completed_days=range(1, 7))
        assert is_streak_at_risk(habit.completions, at(0, 12), tz)

    def test_completed_today_is_not_at_risk(self, habit_factory, at, tz):
        habit = habit_factory(completed_days=range(0, 7))
        assert not is_streak_at_risk(habit.completions, at(0, 12), tz)

    def test_motivation_declining_without_history(self, at, tz):
        assert is_motivation_declining([], [], at(0, 12), tz)

    def test_motivation_declining_when_snoozes_outnumber_completions(self, at, tz):
        completions = [Completion(at(-1, 9))]
        snoozes = [SnoozeEvent(at(-d, 10), "busy") for d in (0, 1, 2)]
        assert is_motivation_declining(completions, snoozes, at(0, 12), tz)
        assert not is_motivation_declining(completions, snoozes[:1], at(0, 12), tz)


class TestOpportunities:
    def test_one_day_from_personal_record(self, habit_factory, at, tz):
        habit = habit_factory(completed_days=[0, 1, 2, 3, 10, 11, 12, 13, 14])
        assert can_break_record(habit.completions, at(0, 12), tz)

    def test_no_record_without_current_streak(self, habit_factory, at, tz):
        habit = habit_factory(completed_days=[5, 6])
        assert not can_break_record(habit.completions, at(0, 12), tz)

    @pytest.mark.parametrize(
        ("streak", "expected"), [(6, True), (5, False), (13, True), (100, False)]
    )
    def test_can_reach_milestone(self, streak, expected):
        assert can_reach_milestone(streak) is expected

    def test_optimal_window_is_centered_on_best_hour(self, habit_factory, tz):
        habit = habit_factory(completed_days=range(1, 5), completion_hour=7)
        window = find_optimal_time_window(habit.completions, tz)
        assert (window.start_hour, window.end_hour) == (6.5, 7.5)
        assert find_optimal_time_window([], tz) is None


class TestAnalyzeCompletionPattern:
    def test_young_habit_is_still_forming(self, habit_factory, at, tz):
        behavior = analyze_completion_pattern(
            habit_factory(created_days_ago=30), (), (), at(0, 12), tz
        )
        assert behavior.risks.habit_forming
        assert behavior.probability == 0.5

    def test_old_habit_is_formed(self, habit_factory, at, tz):
        habit = habit_factory(created_days_ago=100, completed_days=range(0, 3))
        behavior = analyze_completion_pattern(habit, habit.completions, (), at(0, 12), tz)
        assert not behavior.risks.habit_forming
        assert behavior.momentum == "strong"


class TestCompletionProbability:
    def test_strong_habit_at_its_usual_hour(self, habit_factory, at, tz):
        habit = habit_factory(created_days_ago=10, completed_days=range(0, 10))
        # +0.2 usual hour, +0.15 streak > 7, +0.1 rate > 0.8
        assert _probability(habit, at(0, 9, 30), tz) == pytest.approx(0.95)

    def test_long_absence_lowers_probability(self, habit_factory, at, tz):
        habit = habit_factory(created_days_ago=30)
        assert _probability(habit, at(0, 12), tz) == pytest.approx(0.2)

    def test_struggling_user_state(self, habit_factory, at, tz):
        habit = habit_factory(created_days_ago=30)
        profile = {"currentState": "struggling"}
        assert _probability(habit, at(0, 12), tz, profile) == pytest.approx(0.0, abs=1e-9)

    def test_tired_snooze_lowers_evening_probability(self, habit_factory, at, tz):
        habit = habit_factory(
            created_days_ago=30, completed_days=[0], snoozed_days=[1], snooze_reason="tired"
        )
        evening = _probability(habit, at(0, 18), tz)
        afternoon = _probability(habit, at(0, 15), tz)
        assert afternoon - evening == pytest.approx(0.15)

    def test_probability_stays_in_unit_interval(self, habit_factory, at, tz):
        for hour in range(0, 24):
            habit = habit_factory(created_days_ago=10, completed_days=range(0, 10))
            assert 0.0 <= _probability(habit, at(0, hour), tz) <= 1.0


@pytest.mark.parametrize(
    ("probability", "strategy"),
    [
        (0.9, "gentle_reminder"),
        (0.5, "motivation_boost"),
        (0.3, "challenge"),
        (0.1, "empathy_support"),
    ],
)
def test_determine_optimal_strategy(probability, strategy):
    assert determine_optimal_strategy(probability) == strategy
