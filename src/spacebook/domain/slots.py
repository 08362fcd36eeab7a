"""Slot calculator - 15-minute availability grid for a space.

Availability is derived on demand from operating hours and Confirmed
reservations; nothing here is persisted. Reservations are projected onto
each day as local minute offsets, so a reservation crossing midnight marks
only the part that falls inside the queried day.

Overlap uses the same half-open rule as the write path:
    reservation_start < bucket_end AND reservation_end > bucket_start
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable

from psycopg2.extensions import connection as PgConnection

from spacebook.domain.errors import NotFoundError, ValidationError, storage_errors_translated
from spacebook.domain.models import DaySlots, Reservation, ReservationStatus, Slot, Space, SpaceStatus
from spacebook.infra.db import txn
from spacebook.infra.repositories.reservations_repository import list_confirmed_in_range
from spacebook.infra.repositories.spaces_repository import get_space
from spacebook.infra.time import (
    MINUTES_PER_DAY,
    format_minute,
    is_weekend,
    local_day_bounds,
    local_minute_of_day,
    to_local_date,
)

SLOT_MINUTES = 15
MAX_RANGE_DAYS = 31


def _local_span_on_day(reservation: Reservation, day: date) -> tuple[int, int] | None:
    """Minute span [start, end) of a reservation within one local day."""
    start_day = to_local_date(reservation.start_at)
    end_day = to_local_date(reservation.end_at)
    if start_day > day or end_day < day:
        return None

    start_minute = local_minute_of_day(reservation.start_at) if start_day == day else 0
    end_minute = local_minute_of_day(reservation.end_at) if end_day == day else MINUTES_PER_DAY
    if end_minute <= start_minute:
        return None
    return start_minute, end_minute


def compute_day_slots(space: Space, day: date, reservations: Iterable[Reservation]) -> DaySlots:
    """Compute the availability grid of one local calendar day.

    Args:
        space: The space (status and operating hours are used).
        day: Facility-local calendar date.
        reservations: Candidate reservations; non-Confirmed ones are ignored,
            as are those not touching this day.

    Returns:
        DaySlots(closed=True, slots=[]) when the day has no operating window,
        regardless of reservations. Otherwise ordered 15-minute slots covering
        the window; a trailing partial bucket is cut at closing time.
    """
    window = space.operating_hours.for_weekend(is_weekend(day))
    if window is None:
        return DaySlots(day=day, closed=True, slots=[])

    busy: list[tuple[int, int]] = []
    for reservation in reservations:
        if reservation.status != ReservationStatus.CONFIRMED:
            continue
        span = _local_span_on_day(reservation, day)
        if span is not None:
            busy.append(span)

    # Deleted spaces are never bookable either
    blocked = space.status != SpaceStatus.AVAILABLE

    slots: list[Slot] = []
    minute = window.start_minute
    while minute < window.end_minute:
        bucket_end = min(minute + SLOT_MINUTES, window.end_minute)
        taken = blocked or any(start < bucket_end and end > minute for start, end in busy)
        slots.append(
            Slot(start=format_minute(minute), end=format_minute(bucket_end), available=not taken)
        )
        minute = bucket_end

    return DaySlots(day=day, closed=False, slots=slots)


def compute_range(
    space: Space,
    start_date: date,
    end_date: date,
    reservations: Iterable[Reservation],
) -> list[DaySlots]:
    """Apply compute_day_slots to every date in [start_date, end_date].

    Raises:
        ValidationError: If end_date precedes start_date or the range is
            longer than MAX_RANGE_DAYS.
    """
    if end_date < start_date:
        raise ValidationError("endDate must not be before startDate")
    days = (end_date - start_date).days + 1
    if days > MAX_RANGE_DAYS:
        raise ValidationError(f"Date range must not exceed {MAX_RANGE_DAYS} days")

    reservations = list(reservations)
    return [
        compute_day_slots(space, start_date + timedelta(days=offset), reservations)
        for offset in range(days)
    ]


def get_availability(
    space_id: int,
    start_date: date,
    end_date: date,
    *,
    conn: PgConnection | None = None,
) -> list[DaySlots]:
    """Load a space and its reservations once, then compute the range.

    Raises:
        NotFoundError: If the space does not exist or is deleted.
        ValidationError: On an invalid date range.
    """
    if end_date < start_date:
        raise ValidationError("endDate must not be before startDate")

    range_start, _ = local_day_bounds(start_date)
    _, range_end = local_day_bounds(end_date)

    with storage_errors_translated(), txn(conn) as cur:
        space = get_space(cur, space_id)
        if space is None or space.status == SpaceStatus.DELETED:
            raise NotFoundError("Space not found")
        reservations = list_confirmed_in_range(cur, space_id, range_start, range_end)

    return compute_range(space, start_date, end_date, reservations)
