"""Unit tests for space and user overlap detection.

These tests mock the database cursor so they run without Postgres.
"""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from spacebook.domain.conflicts import (
    USER_OVERLAP,
    assert_no_space_conflict,
    assert_no_user_overlap,
    find_space_conflict,
    find_user_overlap,
)
from spacebook.domain.errors import ConflictError, ErrorKind

IST = ZoneInfo("Europe/Istanbul")
START = datetime(2026, 3, 10, 12, 0, tzinfo=IST)
END = datetime(2026, 3, 10, 13, 0, tzinfo=IST)


def _no_conflict(cur):
    cur.fetchall.return_value = []


def _with_conflict(cur, reservation_id=99, start=START, end=END):
    cur.fetchall.return_value = [(reservation_id, start, end)]


class TestFindSpaceConflict:
    def test_no_overlap_returns_none(self, cur):
        _no_conflict(cur)

        assert find_space_conflict(cur, space_id=1, start_at=START, end_at=END) is None
        cur.execute.assert_called_once()

    def test_overlap_returns_first_id(self, cur):
        cur.fetchall.return_value = [(5, START, END), (6, START, END)]

        assert find_space_conflict(cur, space_id=1, start_at=START, end_at=END) == 5

    def test_half_open_params(self, cur):
        """Existing start < new end AND existing end > new start."""
        _no_conflict(cur)

        find_space_conflict(cur, space_id=1, start_at=START, end_at=END)

        sql, params = cur.execute.call_args[0]
        assert "start_at < %s" in sql
        assert "end_at > %s" in sql
        assert params == [1, END, START]

    def test_only_confirmed(self, cur):
        _no_conflict(cur)

        find_space_conflict(cur, space_id=1, start_at=START, end_at=END)

        sql = cur.execute.call_args[0][0]
        assert "status = 'Confirmed'" in sql

    def test_locks_by_default(self, cur):
        _no_conflict(cur)

        find_space_conflict(cur, space_id=1, start_at=START, end_at=END)

        sql = cur.execute.call_args[0][0]
        assert "FOR UPDATE" in sql
        assert "LIMIT" not in sql

    def test_lock_disabled(self, cur):
        _no_conflict(cur)

        find_space_conflict(cur, space_id=1, start_at=START, end_at=END, lock=False)

        assert "FOR UPDATE" not in cur.execute.call_args[0][0]

    def test_exclude_reservation(self, cur):
        _no_conflict(cur)

        find_space_conflict(cur, space_id=1, start_at=START, end_at=END, exclude_reservation_id=42)

        sql, params = cur.execute.call_args[0]
        assert "id != %s" in sql
        assert params[-1] == 42


class TestFindUserOverlap:
    def test_filters_by_user_without_lock(self, cur):
        _no_conflict(cur)

        assert find_user_overlap(cur, user_id=7, start_at=START, end_at=END) is None

        sql, params = cur.execute.call_args[0]
        assert "user_id = %s" in sql
        assert "FOR UPDATE" not in sql
        assert params[0] == 7

    def test_overlap_found(self, cur):
        _with_conflict(cur, reservation_id=12)

        assert find_user_overlap(cur, user_id=7, start_at=START, end_at=END) == 12


class TestAssertions:
    def test_space_conflict_raises(self, cur):
        _with_conflict(cur, reservation_id=99)

        with pytest.raises(ConflictError) as exc_info:
            assert_no_space_conflict(cur, space_id=1, start_at=START, end_at=END)

        assert exc_info.value.message == "Space is already booked at this time"
        assert exc_info.value.conflicting_reservation_id == 99
        assert exc_info.value.kind == ErrorKind.CONFLICT

    def test_space_no_conflict_passes(self, cur):
        _no_conflict(cur)

        assert_no_space_conflict(cur, space_id=1, start_at=START, end_at=END)

    def test_user_overlap_raises(self, cur):
        _with_conflict(cur, reservation_id=3)

        with pytest.raises(ConflictError, match=USER_OVERLAP):
            assert_no_user_overlap(cur, user_id=7, start_at=START, end_at=END)
