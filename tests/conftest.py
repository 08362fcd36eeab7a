"""Shared pytest fixtures for Spacebook tests."""
import sys
sys.dont_write_bytecode = True

from contextlib import contextmanager  # noqa: E402
from datetime import datetime, timedelta  # noqa: E402
from unittest.mock import MagicMock  # noqa: E402
from zoneinfo import ZoneInfo  # noqa: E402

import pytest  # noqa: E402

from spacebook.domain.models import (  # noqa: E402
    OperatingHours,
    OperatingWindow,
    Reservation,
    ReservationStatus,
    Space,
    SpaceStatus,
)

IST = ZoneInfo("Europe/Istanbul")

_ENGINE_ENV = (
    "FACILITY_TIMEZONE",
    "MAX_ACTIVE_BOOKINGS",
    "BOOKING_HORIZON_DAYS",
    "MIN_BOOKING_MINUTES",
    "MAX_BOOKING_MINUTES",
    "CANCELLATION_GRACE_MINUTES",
    "REMINDER_WINDOW_MINUTES",
    "CONFIRMATION_CODE_ATTEMPTS",
    "INTERNAL_TASK_SECRET",
    "TASKS_BACKEND",
)


@pytest.fixture(autouse=True)
def _engine_env(monkeypatch):
    """Every test starts from default engine settings."""
    for name in _ENGINE_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def cur():
    """Mocked psycopg2 cursor."""
    return MagicMock()


@pytest.fixture
def patch_txn(monkeypatch, cur):
    """Replace txn() in the given modules with one yielding the mock cursor.

    Usage: patch_txn("spacebook.domain.reservations")
    """

    @contextmanager
    def _txn(conn=None):
        yield cur

    def _apply(*module_paths: str):
        for path in module_paths:
            monkeypatch.setattr(f"{path}.txn", _txn)
        return cur

    return _apply


def _make_space(**overrides) -> Space:
    fields = {
        "id": 1,
        "name": "Study Room",
        "capacity": 10,
        "status": SpaceStatus.AVAILABLE,
        "operating_hours": OperatingHours(
            weekday=OperatingWindow(start_minute=8 * 60, end_minute=23 * 60),
            weekend=OperatingWindow(start_minute=10 * 60, end_minute=18 * 60),
        ),
    }
    fields.update(overrides)
    return Space(**fields)


def _make_reservation(**overrides) -> Reservation:
    start_at = overrides.pop("start_at", datetime(2026, 3, 10, 12, 0, tzinfo=IST))
    fields = {
        "id": 100,
        "space_id": 1,
        "user_id": 7,
        "start_at": start_at,
        "end_at": start_at + timedelta(hours=1),
        "status": ReservationStatus.CONFIRMED,
        "confirmation_code": "SB-ABCDEFGH",
    }
    fields.update(overrides)
    return Reservation(**fields)


@pytest.fixture
def make_space():
    """Factory for Space values (defaults: Available, 08:00-23:00 weekdays)."""
    return _make_space


@pytest.fixture
def make_reservation():
    """Factory for Reservation values (defaults: Confirmed, 1h on 2026-03-10 12:00 local)."""
    return _make_reservation
