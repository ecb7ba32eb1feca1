"""Shared test fixtures for the Nudge planner tests."""

from __future__ import annotations

import sys
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Callable
from zoneinfo import ZoneInfo

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LLM_PROVIDER", "mock")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "")
    monkeypatch.setenv("OPENAI_API_KEY", "")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from nudge.domains.habits.domain_logic.models import (  # noqa: E402
    Completion,
    Habit,
    SnoozeEvent,
)

# ---------------------------------------------------------------------------
# Fixed clock
# ---------------------------------------------------------------------------

# A Tuesday. Every test expresses time as (days relative to TODAY, local hour).
TODAY = date(2026, 3, 10)
UTC = ZoneInfo("UTC")


def local_ms(day_offset: int, hour: int, minute: int = 0, tz: ZoneInfo = UTC) -> int:
    """Epoch ms of ``hour:minute`` local time, ``day_offset`` days from TODAY."""
    day = TODAY + timedelta(days=day_offset)
    dt = datetime(day.year, day.month, day.day, hour, minute, tzinfo=tz)
    return int(dt.timestamp() * 1000)


def make_habit(
    *,
    created_days_ago: int = 30,
    completed_days: tuple[int, ...] | list[int] | range = (),
    completion_hour: int = 9,
    snoozed_days: tuple[int, ...] | list[int] = (),
    snooze_reason: str | None = None,
    tz: ZoneInfo = UTC,
    **overrides: Any,
) -> Habit:
    """Build a habit whose history is given as day offsets (0 = today, 1 = yesterday)."""
    fields: dict[str, Any] = {
        "id": "habit-1",
        "name": "Read",
        "emoji": "📚",
        "created_at": local_ms(-created_days_ago, 8, tz=tz),
        "reminder_time": "09:00",
        "completions": tuple(
            Completion(timestamp=local_ms(-d, completion_hour, tz=tz)) for d in completed_days
        ),
        "snooze_events": tuple(
            SnoozeEvent(timestamp=local_ms(-d, 10, tz=tz), reason=snooze_reason)
            for d in snoozed_days
        ),
    }
    fields.update(overrides)
    return Habit(**fields)


def habit_payload(**overrides: Any) -> dict[str, Any]:
    """A camelCase habit as a client sends it."""
    payload: dict[str, Any] = {
        "id": "habit-1",
        "name": "Read",
        "emoji": "📚",
        "createdAt": local_ms(-30, 8),
        "reminderTime": "09:00",
        "frequency": "once",
        "requiredSlots": ["anytime"],
        "completedSlotsToday": [],
        "completions": [{"timestamp": local_ms(-d, 9)} for d in range(1, 6)],
        "snoozeEvents": [],
        "missedEvents": [],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def tz() -> ZoneInfo:
    return UTC


@pytest.fixture
def at() -> Callable[..., int]:
    """``at(day_offset, hour, minute=0)`` in UTC."""
    return local_ms


@pytest.fixture
def habit_factory() -> Callable[..., Habit]:
    return make_habit


@pytest.fixture
def payload_factory() -> Callable[..., dict[str, Any]]:
    return habit_payload
