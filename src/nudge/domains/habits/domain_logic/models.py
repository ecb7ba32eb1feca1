"""Habit planning models, request parsing and domain constants."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

if TYPE_CHECKING:
    from nudge.core.config.settings import Settings


# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

SLOTS = ("morning", "afternoon", "evening", "anytime")
FREQUENCIES = ("once", "twice", "thrice")
MILESTONES = (7, 14, 30, 100)

DAY_MS = 24 * 60 * 60 * 1000
HOUR_MS = 60 * 60 * 1000

# Accepted epoch-ms range; leaves room for horizon and timezone arithmetic.
MIN_TIMESTAMP_MS = 0
MAX_TIMESTAMP_MS = int(datetime(9000, 1, 1, tzinfo=timezone.utc).timestamp() * 1000)

_HH_MM = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


class PlanningValidationError(ValueError):
    """A planning request is malformed; nothing gets scheduled."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlanningConfig:
    """Tunables threaded through every pipeline stage."""

    quiet_hours_start: int = 22
    quiet_hours_end: int = 7
    min_spacing_hours: float = 3.0
    base_cap: int = 4
    extended_cap: int = 15
    global_cap: int = 60
    planning_horizon_hours: int = 48
    missed_lookback_days: int = 30
    enrichment_timeout_seconds: float = 10.0
    enrichment_concurrency: int = 4

    @classmethod
    def from_settings(cls, settings: Settings) -> PlanningConfig:
        return cls(
            quiet_hours_start=settings.quiet_hours_start,
            quiet_hours_end=settings.quiet_hours_end,
            min_spacing_hours=settings.min_spacing_hours,
            base_cap=settings.base_notification_cap,
            extended_cap=settings.extended_notification_cap,
            global_cap=settings.global_notification_cap,
            planning_horizon_hours=settings.planning_horizon_hours,
            missed_lookback_days=settings.missed_lookback_days,
            enrichment_timeout_seconds=settings.enrichment_timeout_seconds,
            enrichment_concurrency=settings.enrichment_concurrency,
        )


DEFAULT_CONFIG = PlanningConfig()


# ---------------------------------------------------------------------------
# History records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Completion:
    timestamp: int  # epoch ms


@dataclass(frozen=True)
class SnoozeEvent:
    timestamp: int  # epoch ms
    reason: str | None = None  # 'tired' | 'notHome' | 'busy' | ...


@dataclass(frozen=True)
class MissedEvent:
    """One calendar day with neither a completion nor a snooze."""

    id: str
    habit_id: str
    date: int  # local day start, epoch ms
    created_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "habitId": self.habit_id,
            "date": self.date,
            "createdAt": self.created_at,
        }


# ---------------------------------------------------------------------------
# Habit
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Habit:
    """A habit as supplied by the caller for one planning call.

    ``streak``, ``completion_rate`` and ``consecutive_misses`` are derived from
    history by the pipeline; whatever the caller sends is only a starting value.
    """

    id: str
    name: str
    created_at: int  # epoch ms
    reminder_time: str = "09:00"
    emoji: str = ""
    frequency: str = "once"
    required_slots: tuple[str, ...] = ("anytime",)
    completed_slots_today: tuple[str, ...] = ()
    preferred_time_slot: str | None = None
    avg_completion_delay: float | None = None  # minutes
    streak: int = 0
    completion_rate: float = 0.0
    consecutive_misses: int = 0
    completions: tuple[Completion, ...] = ()
    snooze_events: tuple[SnoozeEvent, ...] = ()
    missed_events: tuple[MissedEvent, ...] = ()

    @property
    def reminder_hour(self) -> int:
        return int(self.reminder_time.split(":")[0])

    @property
    def reminder_minute(self) -> int:
        return int(self.reminder_time.split(":")[1])

    @property
    def title(self) -> str:
        return f"{self.emoji} {self.name}".strip()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Habit:
        """Parse a camelCase habit payload, raising PlanningValidationError."""
        if not isinstance(data, dict):
            raise PlanningValidationError("habit must be an object")

        habit_id = data.get("id")
        if habit_id in (None, ""):
            raise PlanningValidationError("habit.id is required")
        label = f"habit {habit_id!r}"

        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            raise PlanningValidationError(f"{label}: name is required")

        if data.get("createdAt") is None:
            raise PlanningValidationError(f"{label}: createdAt is required")
        created_at = parse_timestamp(data["createdAt"], f"{label}.createdAt")

        reminder_time = data.get("reminderTime")
        if not isinstance(reminder_time, str) or not _HH_MM.match(reminder_time.strip()):
            raise PlanningValidationError(f"{label}: reminderTime must be HH:MM")
        hour, minute = reminder_time.strip().split(":")
        reminder_time = f"{int(hour):02d}:{minute}"

        frequency = data.get("frequency") or "once"
        if frequency not in FREQUENCIES:
            raise PlanningValidationError(
                f"{label}: frequency must be one of {', '.join(FREQUENCIES)}"
            )

        required_slots = _parse_slots(data.get("requiredSlots"), f"{label}.requiredSlots")
        if not required_slots:
            required_slots = ("anytime",)
        completed_slots = _parse_slots(
            data.get("completedSlotsToday"), f"{label}.completedSlotsToday"
        )

        preferred = data.get("preferredTimeSlot")
        if preferred is not None and preferred not in SLOTS:
            raise PlanningValidationError(f"{label}: unknown preferredTimeSlot {preferred!r}")

        delay = data.get("avgCompletionDelay")
        if delay is not None and (isinstance(delay, bool) or not isinstance(delay, (int, float))):
            raise PlanningValidationError(f"{label}: avgCompletionDelay must be a number")

        completions = tuple(
            Completion(
                timestamp=parse_timestamp(_field(c, "timestamp", label), f"{label}.completions")
            )
            for c in data.get("completions") or []
        )
        snoozes = tuple(
            SnoozeEvent(
                timestamp=parse_timestamp(_field(s, "timestamp", label), f"{label}.snoozeEvents"),
                reason=s.get("reason"),
            )
            for s in data.get("snoozeEvents") or []
        )
        missed = tuple(
            _parse_missed(m, str(habit_id), label) for m in data.get("missedEvents") or []
        )

        return cls(
            id=str(habit_id),
            name=name.strip(),
            created_at=created_at,
            reminder_time=reminder_time,
            emoji=str(data.get("emoji") or ""),
            frequency=frequency,
            required_slots=required_slots,
            completed_slots_today=completed_slots,
            preferred_time_slot=preferred,
            avg_completion_delay=float(delay) if delay is not None else None,
            streak=int(data.get("streak") or 0),
            completion_rate=float(data.get("completionRate") or 0.0),
            consecutive_misses=int(data.get("consecutiveMisses") or 0),
            completions=completions,
            snooze_events=snoozes,
            missed_events=missed,
        )


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TextRequest:
    """What to ask the copywriter for when enriching a notification."""

    text_type: str
    tone: str | None = None  # None: the user's preferred tone
    context: str = ""


@dataclass(frozen=True)
class Notification:
    """A notification candidate; created fresh each planning cycle."""

    id: str
    habit_id: str
    title: str
    body: str
    timestamp: int  # epoch ms
    type: str
    slot: str | None = None
    priority: str | None = None  # 'high' | 'medium' | 'low'
    is_base_reminder: bool = False
    enriched_with_ai: bool = False
    text_request: TextRequest | None = field(default=None, compare=False)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "habitId": self.habit_id,
            "title": self.title,
            "body": self.body,
            "timestamp": self.timestamp,
            "type": self.type,
        }
        if self.slot is not None:
            data["slot"] = self.slot
        if self.priority is not None:
            data["priority"] = self.priority
        if self.is_base_reminder:
            data["isBaseReminder"] = True
        if self.enriched_with_ai:
            data["enrichedWithAI"] = True
        return data


# ---------------------------------------------------------------------------
# Context snapshot
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TemporalContext:
    time_of_day: str  # 'morning' | 'afternoon' | 'evening' | 'night'
    day_of_week: str
    day_of_month: int
    month: int  # 1-12
    is_weekend: bool
    is_holiday: bool
    timezone: str
    local_time: datetime
    hour: int
    minute: int


@dataclass(frozen=True)
class MilestoneProgress:
    next_milestone: int | None
    days_to_milestone: int | None
    is_at_risk: bool


@dataclass(frozen=True)
class HabitContext:
    streak: int
    completion_rate: float
    consecutive_misses: int
    has_completion_today: bool
    average_completion_hour: int | None
    best_completion_hour: int | None
    worst_completion_hour: int | None
    average_completion_delay: float | None
    completion_pattern: str  # 'consistent' | 'irregular' | 'declining'
    weekly_pattern: dict[str, float]
    emotional_connection: str  # 'strong' | 'moderate' | 'weak'
    last_snooze_reason: str | None
    snooze_frequency: float
    milestone_progress: MilestoneProgress
    missed_count: int
    missed_count_last_7_days: int
    missed_count_last_30_days: int
    consecutive_missed_days: int
    new_missed_events: tuple[MissedEvent, ...] = ()


@dataclass(frozen=True)
class UserContext:
    user_id: str
    activity_profile: dict[str, Any]
    emotional_profile: dict[str, Any]
    interaction_history: dict[str, Any]
    life_context: dict[str, Any]

    @property
    def current_state(self) -> str:
        return self.emotional_profile.get("current_state", "stable")

    @property
    def preferred_tone(self) -> str:
        return self.emotional_profile.get("preferred_tone", "friendly")


@dataclass(frozen=True)
class ExternalContext:
    season: str
    weather_condition: str | None = None
    temperature: float | None = None


@dataclass(frozen=True)
class PlanningContext:
    """Immutable snapshot assembled once per habit planning call."""

    temporal: TemporalContext
    habit: HabitContext
    user: UserContext
    external: ExternalContext


# ---------------------------------------------------------------------------
# Behavior / intent
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TimeWindow:
    start_hour: float
    end_hour: float


@dataclass(frozen=True)
class Risks:
    streak_at_risk: bool
    motivation_declining: bool
    habit_forming: bool


@dataclass(frozen=True)
class Opportunities:
    can_break_record: bool
    can_reach_milestone: bool
    optimal_time_window: TimeWindow | None


@dataclass(frozen=True)
class Behavior:
    trend: str  # 'improving' | 'stable' | 'declining'
    momentum: str  # 'strong' | 'moderate' | 'weak' | 'negative'
    risks: Risks
    opportunities: Opportunities
    probability: float = 0.5


@dataclass(frozen=True)
class Intent:
    type: str
    confidence: float
    needs: str
    priority: str  # 'critical' | 'high' | 'medium' | 'low'


@dataclass(frozen=True)
class EmotionalState:
    state: str
    energy: str
    needs: str
    motivation: str
    risk_level: str


@dataclass(frozen=True)
class UserNeed:
    type: str
    urgency: str  # 'critical' | 'high' | 'medium' | 'low'
    description: str


# ---------------------------------------------------------------------------
# Request / response
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlanningRequest:
    user_id: str
    timezone: str
    now: int  # epoch ms
    habits: tuple[Habit, ...]
    user_profile: dict[str, Any] = field(default_factory=dict)

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@dataclass
class PlanningResponse:
    notifications: list[Notification]
    valid_until: int
    new_missed_events: list[MissedEvent] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "notifications": [n.to_dict() for n in self.notifications],
            "validUntil": self.valid_until,
            "newMissedEvents": [m.to_dict() for m in self.new_missed_events],
        }


def parse_planning_request(data: dict[str, Any]) -> PlanningRequest:
    """Validate a raw planning request. Rejects the whole request on any error."""
    if not isinstance(data, dict):
        raise PlanningValidationError("request must be an object")

    habits_raw = data.get("habits")
    if not isinstance(habits_raw, list):
        raise PlanningValidationError("Invalid request: habits array required")

    timezone = data.get("timezone") or "UTC"
    validate_timezone(timezone)

    if data.get("now") is None:
        raise PlanningValidationError("Invalid request: now is required")
    now = parse_timestamp(data["now"], "now")

    profile = data.get("userProfile") or {}
    if not isinstance(profile, dict):
        raise PlanningValidationError("userProfile must be an object")

    return PlanningRequest(
        user_id=str(data.get("userId") or ""),
        timezone=timezone,
        now=now,
        habits=tuple(Habit.from_dict(h) for h in habits_raw),
        user_profile=profile,
    )


def validate_timezone(name: Any) -> ZoneInfo:
    if not isinstance(name, str) or not name:
        raise PlanningValidationError("timezone must be an IANA zone name")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise PlanningValidationError(f"Unknown timezone: {name!r}") from exc


def parse_timestamp(value: Any, label: str) -> int:
    """Accept epoch milliseconds or an ISO 8601 string with an offset."""
    if isinstance(value, bool):
        raise PlanningValidationError(f"{label}: expected a timestamp, got a boolean")
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise PlanningValidationError(f"{label}: timestamp must be finite, got {value!r}")
        return _in_range(int(value), label)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as exc:
            raise PlanningValidationError(f"{label}: invalid timestamp {value!r}") from exc
        if parsed.tzinfo is None:
            raise PlanningValidationError(f"{label}: timestamp {value!r} has no UTC offset")
        try:
            timestamp_ms = int(parsed.timestamp() * 1000)
        except (OverflowError, OSError) as exc:
            raise PlanningValidationError(f"{label}: timestamp {value!r} is out of range") from exc
        return _in_range(timestamp_ms, label)
    raise PlanningValidationError(f"{label}: expected a timestamp, got {type(value).__name__}")


def _in_range(timestamp_ms: int, label: str) -> int:
    if not MIN_TIMESTAMP_MS <= timestamp_ms < MAX_TIMESTAMP_MS:
        raise PlanningValidationError(f"{label}: timestamp {timestamp_ms} is out of range")
    return timestamp_ms


def _parse_slots(value: Any, label: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise PlanningValidationError(f"{label} must be a list")
    unknown = [s for s in value if s not in SLOTS]
    if unknown:
        raise PlanningValidationError(f"{label}: unknown slots {unknown}")
    # Keep order, drop duplicates.
    return tuple(dict.fromkeys(value))


def _field(record: Any, name: str, label: str) -> Any:
    if not isinstance(record, dict) or record.get(name) is None:
        raise PlanningValidationError(f"{label}: history record missing {name!r}")
    return record[name]


def _parse_missed(record: Any, habit_id: str, label: str) -> MissedEvent:
    day = parse_timestamp(_field(record, "date", label), f"{label}.missedEvents")
    return MissedEvent(
        id=str(record.get("id") or f"missed-{habit_id}-{day}"),
        habit_id=str(record.get("habitId") or habit_id),
        date=day,
        created_at=parse_timestamp(record.get("createdAt") or day, f"{label}.missedEvents"),
    )
