"""Local-time helpers and the temporal context.

All calendar arithmetic happens in the request's IANA zone. Days are
``datetime.date`` values internally; epoch milliseconds at the boundary.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from nudge.domains.habits.domain_logic.models import (
    DEFAULT_CONFIG,
    PlanningConfig,
    TemporalContext,
)

_DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def local_datetime(timestamp_ms: int, tz: ZoneInfo) -> datetime:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=tz)


def local_date(timestamp_ms: int, tz: ZoneInfo) -> date:
    return local_datetime(timestamp_ms, tz).date()


def to_epoch_ms(dt: datetime) -> int:
    return int(round(dt.timestamp() * 1000))


def at_local_time(day: date, hour: int, minute: int, tz: ZoneInfo) -> int:
    """Epoch ms of ``hour:minute`` on ``day`` in ``tz``."""
    return to_epoch_ms(datetime.combine(day, time(hour, minute), tzinfo=tz))


def day_start_ms(day: date, tz: ZoneInfo) -> int:
    return at_local_time(day, 0, 0, tz)


def days_back(today: date, count: int, *, offset: int = 0) -> list[date]:
    """``count`` consecutive days ending ``offset`` days before ``today``, newest first."""
    return [today - timedelta(days=offset + i) for i in range(count)]


def time_of_day(hour: int) -> str:
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 22:
        return "evening"
    return "night"


def is_quiet_hour(
    timestamp_ms: int, tz: ZoneInfo, config: PlanningConfig = DEFAULT_CONFIG
) -> bool:
    """True when ``timestamp_ms`` falls in local quiet hours (``h >= start or h < end``)."""
    hour = local_datetime(timestamp_ms, tz).hour
    return hour >= config.quiet_hours_start or hour < config.quiet_hours_end


def build_temporal_context(now_ms: int, tz: ZoneInfo) -> TemporalContext:
    local = local_datetime(now_ms, tz)
    weekday = local.weekday()
    return TemporalContext(
        time_of_day=time_of_day(local.hour),
        day_of_week=_DAY_NAMES[weekday],
        day_of_month=local.day,
        month=local.month,
        is_weekend=weekday >= 5,
        is_holiday=False,
        timezone=tz.key,
        local_time=local,
        hour=local.hour,
        minute=local.minute,
    )
