"""Tests for the admission filter."""

from __future__ import annotations

import itertools

import pytest

from nudge.domains.habits.domain_logic.admission import (
    admit,
    admit_global,
    deduplicate,
    enforce_spacing,
    needs_extended_support,
    notification_cap,
    type_priority,
)
from nudge.domains.habits.domain_logic.models import Notification, PlanningConfig

_ids = itertools.count()


def _notification(timestamp, type_="motivation", habit_id="habit-1", **kwargs):
    return Notification(
        id=f"n-{next(_ids)}",
        habit_id=habit_id,
        title="📚 Read",
        body="body",
        timestamp=timestamp,
        type=type_,
        **kwargs,
    )


def _base(timestamp, habit_id="habit-1"):
    return _notification(
        timestamp, "base_reminder", habit_id, priority="high", is_base_reminder=True
    )


class TestExtendedSupport:
    def test_steady_habit_uses_base_cap(self, habit_factory):
        habit = habit_factory(streak=3, completion_rate=0.9, completed_slots_today=("anytime",))
        assert not needs_extended_support(habit)
        assert notification_cap(habit) == 4

    @pytest.mark.parametrize(
        "overrides",
        [
            {"frequency": "twice", "completion_rate": 0.9},
            {"frequency": "thrice", "completion_rate": 0.9},
            {"completion_rate": 0.49},
            {"completion_rate": 0.9, "consecutive_misses": 3},
            {"completion_rate": 0.9, "streak": 8},
        ],
    )
    def test_extended_cap(self, habit_factory, overrides):
        habit = habit_factory(**overrides)
        assert needs_extended_support(habit)
        assert notification_cap(habit) == 15

    def test_long_streak_with_a_slot_done_today_uses_base_cap(self, habit_factory):
        habit = habit_factory(streak=8, completion_rate=0.9, completed_slots_today=("anytime",))
        assert notification_cap(habit) == 4


class TestDeduplicate:
    def test_base_reminder_wins_its_timestamp(self, at):
        smart = _notification(at(0, 9), "reminder")
        base = _base(at(0, 9))
        assert deduplicate([smart, base]) == [base]
        assert deduplicate([base, smart]) == [base]

    def test_different_habits_do_not_collide(self, at):
        a = _base(at(0, 9), habit_id="a")
        b = _base(at(0, 9), habit_id="b")
        assert deduplicate([a, b]) == [a, b]


class TestAdmit:
    def test_quiet_hours_and_past_candidates_are_dropped(self, habit_factory, at, tz):
        habit = habit_factory(completion_rate=0.9, completed_slots_today=("anytime",))
        candidates = [
            _base(at(0, 6)),  # quiet
            _base(at(0, 22)),  # quiet
            _notification(at(0, 8), "celebration"),  # past
            _base(at(0, 12)),
        ]
        assert [n.timestamp for n in admit(candidates, habit, at(0, 10), tz)] == [at(0, 12)]

    def test_cap_keeps_highest_priority_types(self, habit_factory, at, tz):
        habit = habit_factory(completion_rate=0.9, completed_slots_today=("anytime",))
        candidates = [
            _notification(at(0, 9), "celebration"),
            _notification(at(0, 12), "personalized"),
            _base(at(0, 15)),
            _notification(at(0, 18), "streak_warning"),
            _base(at(1, 9)),
            _notification(at(1, 15), "motivation"),
        ]
        admitted = admit(candidates, habit, at(0, 8), tz)
        assert [n.type for n in admitted] == [
            "base_reminder",
            "streak_warning",
            "base_reminder",
            "motivation",
        ]

    def test_spacing_is_enforced_in_time_order(self, habit_factory, at, tz):
        habit = habit_factory(completion_rate=0.3)  # extended cap
        candidates = [
            _base(at(0, 15)),
            _base(at(0, 9)),
            _notification(at(0, 10)),
            _notification(at(0, 12)),
        ]
        admitted = admit(candidates, habit, at(0, 8), tz)
        assert [n.timestamp for n in admitted] == [at(0, 9), at(0, 12), at(0, 15)]

    def test_admitted_notifications_respect_every_rule(self, habit_factory, at, tz):
        habit = habit_factory(completion_rate=0.9, completed_slots_today=("anytime",))
        candidates = [_notification(at(d, h), t) for d in (0, 1) for h in range(0, 24, 2)
                      for t in ("motivation", "celebration")]
        admitted = admit(candidates, habit, at(0, 10), tz)

        assert len(admitted) <= 4
        timestamps = [n.timestamp for n in admitted]
        assert timestamps == sorted(timestamps)
        assert all(t > at(0, 10) for t in timestamps)
        assert all(b - a >= 3 * 60 * 60 * 1000 for a, b in zip(timestamps, timestamps[1:]))

    def test_custom_spacing(self, at):
        config = PlanningConfig(min_spacing_hours=1)
        notifications = [_notification(at(0, 9)), _notification(at(0, 10))]
        assert len(enforce_spacing(notifications, config.min_spacing_hours)) == 2


class TestAdmitGlobal:
    def test_under_the_cap_only_sorts(self, at):
        later, earlier = _base(at(1, 9)), _base(at(0, 9))
        assert admit_global([later, earlier]) == [earlier, later]

    def test_trims_low_tiers_first(self, at):
        config = PlanningConfig(global_cap=3)
        batch = [
            _notification(at(0, 9), "celebration", habit_id="a"),
            _base(at(0, 12), habit_id="b"),
            _notification(at(0, 10), "motivation", habit_id="c"),
            _notification(at(0, 11), "streak_warning", habit_id="d"),
        ]
        admitted = admit_global(batch, config)
        assert [n.type for n in admitted] == ["motivation", "streak_warning", "base_reminder"]

    def test_default_ceiling_is_sixty(self, at):
        batch = [_base(at(0, 8) + i * 60_000, habit_id=f"h{i}") for i in range(70)]
        assert len(admit_global(batch)) == 60


def test_unknown_types_rank_last():
    assert type_priority("something_new") == 1
    assert type_priority("streak_warning") > type_priority("motivation")
