"""Tests for booking request validation and operating-hours checks."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from spacebook.domain.eligibility import (
    MAX_PURPOSE_LENGTH,
    check_operating_hours,
    parse_instant,
    parse_space_id,
    validate,
)
from spacebook.domain.models import BookingRequest, OperatingHours, OperatingWindow
from spacebook.infra.settings import EngineSettings

IST = ZoneInfo("Europe/Istanbul")
NOW = datetime(2026, 3, 9, 9, 0, tzinfo=IST)  # Monday
TOMORROW_NOON = datetime(2026, 3, 10, 12, 0, tzinfo=IST)


def _request(start=TOMORROW_NOON, minutes=60, **overrides) -> BookingRequest:
    fields = {
        "space_id": 1,
        "start_at": start,
        "end_at": start + timedelta(minutes=minutes) if isinstance(start, datetime) else None,
        "attendee_count": 1,
    }
    fields.update(overrides)
    return BookingRequest(**fields)


class TestParsing:
    def test_parse_instant_accepts_z_suffix(self):
        assert parse_instant("2026-03-10T09:00:00Z") == datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)

    def test_parse_instant_accepts_offset(self):
        assert parse_instant("2026-03-10T12:00:00+03:00") == TOMORROW_NOON

    def test_parse_instant_rejects_naive(self):
        assert parse_instant("2026-03-10T12:00:00") is None
        assert parse_instant(datetime(2026, 3, 10, 12, 0)) is None

    def test_parse_instant_rejects_garbage(self):
        assert parse_instant("tomorrow") is None
        assert parse_instant(12345) is None

    def test_parse_space_id(self):
        assert parse_space_id(3) == 3
        assert parse_space_id("3") == 3
        assert parse_space_id(3.5) is None
        assert parse_space_id(True) is None
        assert parse_space_id("abc") is None


class TestValidate:
    def test_happy_path(self):
        result = validate(_request(), NOW)

        assert result.valid is True
        assert result.errors == []

    def test_exactly_60_minutes_valid(self):
        assert validate(_request(minutes=60), NOW).valid is True

    def test_59_minutes_rejected(self):
        result = validate(_request(minutes=59), NOW)

        assert result.valid is False
        assert any("60 minutes" in error for error in result.errors)

    def test_exactly_180_minutes_valid(self):
        assert validate(_request(minutes=180), NOW).valid is True

    def test_181_minutes_rejected(self):
        result = validate(_request(minutes=181), NOW)

        assert result.valid is False
        assert any("180 minutes" in error for error in result.errors)

    def test_horizon_rejection(self):
        result = validate(_request(start=NOW + timedelta(days=20)), NOW)

        assert result.valid is False
        assert any("14 days" in error for error in result.errors)

    def test_exactly_at_horizon_allowed(self):
        assert validate(_request(start=NOW + timedelta(days=14)), NOW).valid is True

    def test_start_in_past(self):
        result = validate(_request(start=NOW - timedelta(hours=1)), NOW)

        assert "startTime must be in the future" in result.errors

    def test_start_equal_now_rejected(self):
        result = validate(_request(start=NOW), NOW)

        assert "startTime must be in the future" in result.errors

    def test_end_not_after_start(self):
        result = validate(_request(end_at=TOMORROW_NOON), NOW)

        assert "endTime must be after startTime" in result.errors
        # Duration rule is not evaluated on an inverted interval
        assert not any("duration" in error for error in result.errors)

    def test_missing_fields(self):
        result = validate(BookingRequest(space_id=None, start_at=None, end_at=""), NOW)

        assert result.errors == [
            "spaceId is required",
            "startTime is required",
            "endTime is required",
        ]

    def test_invalid_formats(self):
        result = validate(BookingRequest(space_id="x", start_at="soon", end_at="later"), NOW)

        assert "spaceId must be an integer" in result.errors
        assert any(error.startswith("Invalid startTime format") for error in result.errors)
        assert any(error.startswith("Invalid endTime format") for error in result.errors)

    def test_string_instants_accepted(self):
        request = BookingRequest(
            space_id="1",
            start_at="2026-03-10T12:00:00+03:00",
            end_at="2026-03-10T13:00:00+03:00",
        )
        assert validate(request, NOW).valid is True

    @pytest.mark.parametrize("count", [0, -1, 1.5, "2", True])
    def test_attendee_count_must_be_positive_integer(self, count):
        result = validate(_request(attendee_count=count), NOW)

        assert "attendeeCount must be a positive integer" in result.errors

    def test_attendee_count_optional(self):
        assert validate(_request(attendee_count=None), NOW).valid is True

    def test_purpose_length(self):
        assert validate(_request(purpose="x" * MAX_PURPOSE_LENGTH), NOW).valid is True
        result = validate(_request(purpose="x" * (MAX_PURPOSE_LENGTH + 1)), NOW)
        assert "purpose must be at most 500 characters" in result.errors

    def test_errors_accumulate(self):
        request = _request(start=NOW + timedelta(days=20), minutes=30, attendee_count=0)

        result = validate(request, NOW)

        assert len(result.errors) == 3

    def test_settings_override(self):
        settings = EngineSettings(min_booking_minutes=30, booking_horizon_days=30)

        result = validate(_request(start=NOW + timedelta(days=20), minutes=30), NOW, settings=settings)

        assert result.valid is True

    def test_settings_from_environment(self, monkeypatch):
        monkeypatch.setenv("BOOKING_HORIZON_DAYS", "7")

        result = validate(_request(start=NOW + timedelta(days=10)), NOW)

        assert any("7 days" in error for error in result.errors)


class TestCheckOperatingHours:
    def test_inside_window(self, make_space):
        result = check_operating_hours(make_space(), TOMORROW_NOON, TOMORROW_NOON + timedelta(hours=1))

        assert result.valid is True
        assert result.message is None

    def test_exactly_at_open_and_close(self, make_space):
        start = datetime(2026, 3, 10, 8, 0, tzinfo=IST)
        end = datetime(2026, 3, 10, 23, 0, tzinfo=IST)

        assert check_operating_hours(make_space(), start, start + timedelta(hours=1)).valid
        assert check_operating_hours(make_space(), end - timedelta(hours=1), end).valid

    def test_before_opening(self, make_space):
        start = datetime(2026, 3, 10, 7, 30, tzinfo=IST)

        result = check_operating_hours(make_space(), start, start + timedelta(hours=1))

        assert result.valid is False
        assert result.message == "Space opens at 08:00"

    def test_after_closing(self, make_space):
        start = datetime(2026, 3, 10, 22, 30, tzinfo=IST)

        result = check_operating_hours(make_space(), start, start + timedelta(hours=1))

        assert result.valid is False
        assert result.message == "Space closes at 23:00"

    def test_weekend_not_configured(self, make_space):
        space = make_space(operating_hours=OperatingHours(weekday=OperatingWindow(480, 1380)))
        start = datetime(2026, 3, 14, 12, 0, tzinfo=IST)

        result = check_operating_hours(space, start, start + timedelta(hours=1))

        assert result.valid is False
        assert "not configured" in result.message
        assert "weekends" in result.message

    def test_end_of_day_window_allows_midnight_end(self, make_space):
        space = make_space(operating_hours=OperatingHours(weekday=OperatingWindow(480, 1440)))
        start = datetime(2026, 3, 10, 23, 0, tzinfo=IST)

        result = check_operating_hours(space, start, start + timedelta(hours=1))

        assert result.valid is True

    def test_end_of_day_window_rejects_past_midnight(self, make_space):
        space = make_space(operating_hours=OperatingHours(weekday=OperatingWindow(480, 1440)))
        start = datetime(2026, 3, 10, 23, 30, tzinfo=IST)

        result = check_operating_hours(space, start, start + timedelta(hours=1))

        assert result.valid is False
        assert result.message == "Space closes at 24:00"

    def test_utc_input_compared_in_local_time(self, make_space):
        # 05:30 UTC is 08:30 in Istanbul: inside the window
        start = datetime(2026, 3, 10, 5, 30, tzinfo=timezone.utc)

        assert check_operating_hours(make_space(), start, start + timedelta(hours=1)).valid
