"""Time utilities: UTC timestamps and the facility's local wall-clock.

Reservations are stored as absolute instants (timestamptz). Operating hours
and calendar-day boundaries are facility wall-clock values. Every comparison
between the two goes through this module.

The facility zone comes from FACILITY_TIMEZONE; callers never pass a zone.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from .settings import get_engine_settings

MINUTES_PER_DAY = 1440

# "23:59" as a closing time means open through the end of the day.
_END_OF_DAY_ALIASES = {(23, 59), (24, 0)}


def utc_now() -> datetime:
    """Return current UTC timestamp (timezone-aware)."""
    return datetime.now(timezone.utc)


def facility_tz() -> ZoneInfo:
    """Return the facility's timezone."""
    return ZoneInfo(get_engine_settings().facility_timezone)


def _require_aware(instant: datetime) -> datetime:
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise ValueError("instant must be timezone-aware")
    return instant


def to_local(instant: datetime) -> datetime:
    """Convert an absolute instant to facility wall-clock time."""
    return _require_aware(instant).astimezone(facility_tz())


def to_local_date(instant: datetime) -> date:
    """Facility calendar date of an instant."""
    return to_local(instant).date()


def to_local_clock(instant: datetime) -> tuple[int, int]:
    """Facility (hour, minute) of an instant."""
    local = to_local(instant)
    return local.hour, local.minute


def local_minute_of_day(instant: datetime) -> int:
    """Minutes since facility midnight (0-1439) of an instant."""
    hour, minute = to_local_clock(instant)
    return hour * 60 + minute


def local_wall_clock_to_instant(day: date, clock: time | tuple[int, int]) -> datetime:
    """Interpret (day, clock) as facility wall-clock and return the UTC instant.

    Ambiguous wall times (DST fall-back) resolve to the first occurrence.
    """
    if isinstance(clock, tuple):
        clock = time(clock[0], clock[1])
    local = datetime.combine(day, clock, tzinfo=facility_tz())
    return local.astimezone(timezone.utc)


def local_day_bounds(day: date) -> tuple[datetime, datetime]:
    """UTC instants of facility midnight at the start and end of day."""
    start = local_wall_clock_to_instant(day, time(0, 0))
    end = local_wall_clock_to_instant(day + timedelta(days=1), time(0, 0))
    return start, end


def is_weekend(day: date) -> bool:
    """Saturday or Sunday on the facility calendar."""
    return day.weekday() >= 5


def clock_to_minute(value: time | str, *, is_end: bool = False) -> int:
    """Convert a wall-clock value to a minute offset from local midnight.

    Accepts datetime.time or "HH:MM" / "HH:MM:SS" strings. When is_end is
    True, "23:59" (and "24:00") map to 1440: open through end of day.

    Raises:
        ValueError: If the value is not a valid wall-clock time.
    """
    if isinstance(value, time):
        hour, minute = value.hour, value.minute
    else:
        parts = value.strip().split(":")
        if len(parts) not in (2, 3):
            raise ValueError(f"invalid wall-clock time: {value!r}")
        try:
            hour, minute = int(parts[0]), int(parts[1])
        except ValueError as exc:
            raise ValueError(f"invalid wall-clock time: {value!r}") from exc
        if (hour, minute) != (24, 0) and not (0 <= hour < 24 and 0 <= minute < 60):
            raise ValueError(f"invalid wall-clock time: {value!r}")

    if is_end and (hour, minute) in _END_OF_DAY_ALIASES:
        return MINUTES_PER_DAY
    if (hour, minute) == (24, 0):
        raise ValueError("24:00 is only valid as a closing time")
    return hour * 60 + minute


def format_minute(minute: int) -> str:
    """Render a minute offset as HH:MM (1440 renders as 24:00)."""
    return f"{minute // 60:02d}:{minute % 60:02d}"
