"""Engine configuration loaded from environment variables.

Values are read on every call so tests and long-running workers pick up
changes without a restart. Nothing here holds a connection or any other
shared state.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class EngineSettings:
    """Business-rule knobs for the reservation engine.

    Attributes:
        facility_timezone: IANA zone of the single facility (DST-aware).
        max_active_bookings: Per-user cap on future Confirmed reservations.
        booking_horizon_days: How far ahead a booking may start.
        min_booking_minutes: Shortest allowed reservation.
        max_booking_minutes: Longest allowed reservation.
        cancellation_grace_minutes: Minimum lead time for user cancellation.
        reminder_window_minutes: Default look-ahead of the reminder sweep.
        confirmation_code_attempts: Code generation retries before giving up.
    """

    facility_timezone: str = "Europe/Istanbul"
    max_active_bookings: int = 5
    booking_horizon_days: int = 14
    min_booking_minutes: int = 60
    max_booking_minutes: int = 180
    cancellation_grace_minutes: int = 15
    reminder_window_minutes: int = 70
    confirmation_code_attempts: int = 5


def _int_env(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def get_engine_settings() -> EngineSettings:
    """Load EngineSettings from the environment.

    Raises:
        ValueError: If a numeric variable is not a valid integer or is out
            of range.
    """
    defaults = EngineSettings()
    settings = EngineSettings(
        facility_timezone=os.environ.get("FACILITY_TIMEZONE") or defaults.facility_timezone,
        max_active_bookings=_int_env("MAX_ACTIVE_BOOKINGS", defaults.max_active_bookings, minimum=1),
        booking_horizon_days=_int_env("BOOKING_HORIZON_DAYS", defaults.booking_horizon_days, minimum=1),
        min_booking_minutes=_int_env("MIN_BOOKING_MINUTES", defaults.min_booking_minutes, minimum=1),
        max_booking_minutes=_int_env("MAX_BOOKING_MINUTES", defaults.max_booking_minutes, minimum=1),
        cancellation_grace_minutes=_int_env(
            "CANCELLATION_GRACE_MINUTES", defaults.cancellation_grace_minutes
        ),
        reminder_window_minutes=_int_env(
            "REMINDER_WINDOW_MINUTES", defaults.reminder_window_minutes, minimum=1
        ),
        confirmation_code_attempts=_int_env(
            "CONFIRMATION_CODE_ATTEMPTS", defaults.confirmation_code_attempts, minimum=1
        ),
    )
    if settings.min_booking_minutes > settings.max_booking_minutes:
        raise ValueError("MIN_BOOKING_MINUTES must not exceed MAX_BOOKING_MINUTES")
    return settings
