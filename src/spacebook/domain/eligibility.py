"""Eligibility validation for booking requests.

Both validators are pure: they never touch storage and never raise for rule
violations. validate() accumulates every violated rule so the caller can
show all of them at once; check_operating_hours() needs a loaded Space and
reports the first violated bound.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from spacebook.domain.models import BookingRequest, EligibilityResult, OperatingHoursCheck, Space
from spacebook.infra.settings import EngineSettings, get_engine_settings
from spacebook.infra.time import (
    MINUTES_PER_DAY,
    format_minute,
    is_weekend,
    local_minute_of_day,
    to_local_date,
)

MAX_PURPOSE_LENGTH = 500


def parse_instant(value: Any) -> datetime | None:
    """Parse an aware datetime or ISO-8601 string; None if invalid or naive."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None or parsed.utcoffset() is None:
        return None
    return parsed


def parse_space_id(value: Any) -> int | None:
    """Return value as an int if it is integral, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def _check_instant(value: Any, field_name: str, errors: list[str]) -> datetime | None:
    if value is None or value == "":
        errors.append(f"{field_name} is required")
        return None
    parsed = parse_instant(value)
    if parsed is None:
        errors.append(f"Invalid {field_name} format (ISO 8601 with timezone offset required)")
    return parsed


def validate(
    request: BookingRequest,
    now: datetime,
    *,
    settings: EngineSettings | None = None,
) -> EligibilityResult:
    """Check a booking request against the structural booking rules.

    Rules are independent; all violations are reported, in rule order.

    Args:
        request: Raw booking request.
        now: Current instant (timezone-aware).
        settings: Rule bounds; loaded from the environment when omitted.
    """
    settings = settings or get_engine_settings()
    errors: list[str] = []

    if request.space_id is None:
        errors.append("spaceId is required")
    elif parse_space_id(request.space_id) is None:
        errors.append("spaceId must be an integer")

    start = _check_instant(request.start_at, "startTime", errors)
    end = _check_instant(request.end_at, "endTime", errors)

    if start is not None and end is not None and end <= start:
        errors.append("endTime must be after startTime")

    if start is not None:
        if start <= now:
            errors.append("startTime must be in the future")
        elif start > now + timedelta(days=settings.booking_horizon_days):
            errors.append(
                f"Bookings can only be made within {settings.booking_horizon_days} days in advance"
            )

    if start is not None and end is not None and end > start:
        duration = end - start
        if duration < timedelta(minutes=settings.min_booking_minutes):
            errors.append(
                f"Booking duration must be at least {settings.min_booking_minutes} minutes"
            )
        elif duration > timedelta(minutes=settings.max_booking_minutes):
            errors.append(
                f"Booking duration must be at most {settings.max_booking_minutes} minutes"
            )

    count = request.attendee_count
    if count is not None and (isinstance(count, bool) or not isinstance(count, int) or count < 1):
        errors.append("attendeeCount must be a positive integer")

    purpose = request.purpose
    if purpose is not None and (not isinstance(purpose, str) or len(purpose) > MAX_PURPOSE_LENGTH):
        errors.append(f"purpose must be at most {MAX_PURPOSE_LENGTH} characters")

    return EligibilityResult(valid=not errors, errors=errors)


def check_operating_hours(space: Space, start_at: datetime, end_at: datetime) -> OperatingHoursCheck:
    """Check that [start_at, end_at) fits the space's hours for that day.

    The day (and so weekday vs weekend hours) is the facility-local date of
    start_at. A reservation ending after local midnight only fits when the
    window runs through end of day and the end is exactly midnight.
    """
    day = to_local_date(start_at)
    window = space.operating_hours.for_weekend(is_weekend(day))
    if window is None:
        kind = "weekends" if is_weekend(day) else "weekdays"
        return OperatingHoursCheck(
            valid=False,
            message=f"Operating hours are not configured for {kind}",
        )

    start_minute = local_minute_of_day(start_at)
    end_minute = local_minute_of_day(end_at)
    days_after = (to_local_date(end_at) - day).days
    end_minute += days_after * MINUTES_PER_DAY

    if start_minute < window.start_minute:
        return OperatingHoursCheck(
            valid=False,
            message=f"Space opens at {format_minute(window.start_minute)}",
        )
    if end_minute > window.end_minute:
        return OperatingHoursCheck(
            valid=False,
            message=f"Space closes at {format_minute(window.end_minute)}",
        )
    return OperatingHoursCheck(valid=True)
