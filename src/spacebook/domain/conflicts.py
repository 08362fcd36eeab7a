"""Conflict detection for space and per-user overlaps.

Overlap formula:  (new_start < existing_end) AND (new_end > existing_start)
Strict inequality lets one booking end exactly when the next begins.

Only Confirmed reservations generate conflicts.
"""

from __future__ import annotations

import logging
from datetime import datetime

from psycopg2.extensions import cursor as PgCursor

from spacebook.domain.errors import SPACE_ALREADY_BOOKED, ConflictError

logger = logging.getLogger(__name__)

USER_OVERLAP = "You already have a booking that overlaps this time"


def _overlap_query(
    owner_column: str,
    owner_id: int,
    start_at: datetime,
    end_at: datetime,
    exclude_reservation_id: int | None,
    lock: bool,
) -> tuple[str, list]:
    conditions = [
        f"{owner_column} = %s",
        "status = 'Confirmed'",
        "start_at < %s",  # existing start < new end
        "end_at > %s",  # existing end > new start
    ]
    params: list = [owner_id, end_at, start_at]

    if exclude_reservation_id is not None:
        conditions.append("id != %s")
        params.append(exclude_reservation_id)

    # No LIMIT: with FOR UPDATE every overlapping row must be locked
    query = f"""
        SELECT id, start_at, end_at
        FROM reservations
        WHERE {" AND ".join(conditions)}
        ORDER BY start_at
        {"FOR UPDATE" if lock else ""}
    """
    return query, params


def find_space_conflict(
    cur: PgCursor,
    *,
    space_id: int,
    start_at: datetime,
    end_at: datetime,
    exclude_reservation_id: int | None = None,
    lock: bool = True,
) -> int | None:
    """Find a Confirmed reservation of the space overlapping the interval.

    Args:
        cur: Database cursor (should be within a transaction).
        space_id: Space identifier.
        start_at: Requested start (inclusive).
        end_at: Requested end (exclusive).
        exclude_reservation_id: Reservation ID to ignore.
        lock: If True, every overlapping row is locked FOR UPDATE, so a
            concurrent transaction that sees the same rows blocks until this
            one commits or rolls back.

    Returns:
        The ID of the first conflicting reservation, or None.
    """
    query, params = _overlap_query(
        "space_id", space_id, start_at, end_at, exclude_reservation_id, lock
    )
    cur.execute(query, params)
    rows = cur.fetchall()
    if not rows:
        return None

    conflicting_id, existing_start, existing_end = rows[0]
    logger.warning(
        "space conflict detected",
        extra={
            "extra_fields": {
                "space_id": space_id,
                "requested_start": start_at.isoformat(),
                "requested_end": end_at.isoformat(),
                "conflicting_reservation_id": conflicting_id,
                "existing_start": existing_start.isoformat(),
                "existing_end": existing_end.isoformat(),
                "locked_rows": len(rows) if lock else 0,
            },
        },
    )
    return conflicting_id


def find_user_overlap(
    cur: PgCursor,
    *,
    user_id: int,
    start_at: datetime,
    end_at: datetime,
    exclude_reservation_id: int | None = None,
) -> int | None:
    """Find one of the user's own Confirmed reservations overlapping the interval.

    Not row-locked; concurrent creates by the same user are serialized by
    the per-user advisory lock taken by the caller.
    """
    query, params = _overlap_query(
        "user_id", user_id, start_at, end_at, exclude_reservation_id, lock=False
    )
    cur.execute(query, params)
    rows = cur.fetchall()
    if not rows:
        return None

    conflicting_id = rows[0][0]
    logger.info(
        "user overlap detected",
        extra={
            "extra_fields": {
                "user_id": user_id,
                "conflicting_reservation_id": conflicting_id,
            },
        },
    )
    return conflicting_id


def assert_no_space_conflict(
    cur: PgCursor,
    *,
    space_id: int,
    start_at: datetime,
    end_at: datetime,
    exclude_reservation_id: int | None = None,
    lock: bool = True,
) -> None:
    """Raise ConflictError if the space is booked during the interval."""
    conflicting_id = find_space_conflict(
        cur,
        space_id=space_id,
        start_at=start_at,
        end_at=end_at,
        exclude_reservation_id=exclude_reservation_id,
        lock=lock,
    )
    if conflicting_id is not None:
        raise ConflictError(SPACE_ALREADY_BOOKED, conflicting_reservation_id=conflicting_id)


def assert_no_user_overlap(
    cur: PgCursor,
    *,
    user_id: int,
    start_at: datetime,
    end_at: datetime,
    exclude_reservation_id: int | None = None,
) -> None:
    """Raise ConflictError if the user already holds an overlapping booking."""
    conflicting_id = find_user_overlap(
        cur,
        user_id=user_id,
        start_at=start_at,
        end_at=end_at,
        exclude_reservation_id=exclude_reservation_id,
    )
    if conflicting_id is not None:
        raise ConflictError(USER_OVERLAP, conflicting_reservation_id=conflicting_id)
