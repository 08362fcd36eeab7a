"""Reservations repository - persistence for reservation records.

Uses raw SQL with psycopg2 (no ORM). Reservations are never deleted;
cancellation is a status change.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Literal

from psycopg2.extensions import cursor as PgCursor

from spacebook.domain.models import CancellationReason, Reservation, ReservationStatus
from spacebook.infra.db import fetchall, fetchone, for_update

RESERVATION_COLUMNS = """
    id, space_id, user_id, start_at, end_at, status, confirmation_code,
    attendee_count, purpose, cancellation_reason, cancelled_at,
    reminder_sent, created_at
"""

ListKind = Literal["upcoming", "past", "cancelled", "all"]


def row_to_reservation(row: tuple) -> Reservation:
    """Build a Reservation from a row selected with RESERVATION_COLUMNS."""
    (
        reservation_id,
        space_id,
        user_id,
        start_at,
        end_at,
        status,
        confirmation_code,
        attendee_count,
        purpose,
        cancellation_reason,
        cancelled_at,
        reminder_sent,
        created_at,
    ) = row
    return Reservation(
        id=reservation_id,
        space_id=space_id,
        user_id=user_id,
        start_at=start_at,
        end_at=end_at,
        status=ReservationStatus(status),
        confirmation_code=confirmation_code,
        attendee_count=attendee_count,
        purpose=purpose,
        cancellation_reason=CancellationReason(cancellation_reason) if cancellation_reason else None,
        cancelled_at=cancelled_at,
        reminder_sent=bool(reminder_sent),
        created_at=created_at,
    )


def get_reservation(cur: PgCursor, reservation_id: int, *, lock: bool = False) -> Reservation | None:
    """Load a reservation by id, optionally locking the row FOR UPDATE."""
    query = f"SELECT {RESERVATION_COLUMNS} FROM reservations WHERE id = %s"
    if lock:
        row = for_update(cur, query, (reservation_id,))
    else:
        row = fetchone(cur, query, (reservation_id,))
    return row_to_reservation(row) if row else None


def insert_reservation(
    cur: PgCursor,
    *,
    space_id: int,
    user_id: int,
    start_at: datetime,
    end_at: datetime,
    confirmation_code: str,
    attendee_count: int = 1,
    purpose: str | None = None,
) -> Reservation:
    """Insert a Confirmed reservation and return it."""
    cur.execute(
        f"""
        INSERT INTO reservations (
            space_id, user_id, start_at, end_at, status,
            confirmation_code, attendee_count, purpose
        )
        VALUES (%s, %s, %s, %s, 'Confirmed', %s, %s, %s)
        RETURNING {RESERVATION_COLUMNS}
        """,
        (space_id, user_id, start_at, end_at, confirmation_code, attendee_count, purpose),
    )
    return row_to_reservation(cur.fetchone())


def count_active_for_user(cur: PgCursor, user_id: int, now: datetime) -> int:
    """Count the user's Confirmed reservations that start after now."""
    cur.execute(
        """
        SELECT count(*) FROM reservations
        WHERE user_id = %s
          AND status = 'Confirmed'
          AND start_at > %s
        """,
        (user_id, now),
    )
    row = cur.fetchone()
    return int(row[0]) if row else 0


def confirmation_code_exists(cur: PgCursor, code: str) -> bool:
    return fetchone(cur, "SELECT 1 FROM reservations WHERE confirmation_code = %s", (code,)) is not None


def list_confirmed_in_range(
    cur: PgCursor,
    space_id: int,
    start_at: datetime,
    end_at: datetime,
) -> list[Reservation]:
    """Confirmed reservations of a space overlapping [start_at, end_at)."""
    rows = fetchall(
        cur,
        f"""
        SELECT {RESERVATION_COLUMNS}
        FROM reservations
        WHERE space_id = %s
          AND status = 'Confirmed'
          AND start_at < %s
          AND end_at > %s
        ORDER BY start_at
        """,
        (space_id, end_at, start_at),
    )
    return [row_to_reservation(row) for row in rows]


def mark_cancelled(
    cur: PgCursor,
    reservation_id: int,
    *,
    reason: CancellationReason,
    cancelled_at: datetime,
) -> Reservation | None:
    """Transition a Confirmed reservation to Cancelled.

    The status guard makes a concurrent double cancel update nothing.

    Returns:
        Updated reservation, or None if it was no longer Confirmed.
    """
    cur.execute(
        f"""
        UPDATE reservations
        SET status = 'Cancelled',
            cancellation_reason = %s,
            cancelled_at = %s,
            updated_at = now()
        WHERE id = %s AND status = 'Confirmed'
        RETURNING {RESERVATION_COLUMNS}
        """,
        (reason.value, cancelled_at, reservation_id),
    )
    row = cur.fetchone()
    return row_to_reservation(row) if row else None


def cancel_future_for_space(
    cur: PgCursor,
    space_id: int,
    *,
    reason: CancellationReason,
    now: datetime,
) -> list[Reservation]:
    """Cancel every Confirmed reservation of a space that starts after now.

    Returns:
        The cancelled reservations, ordered by start.
    """
    cur.execute(
        f"""
        UPDATE reservations
        SET status = 'Cancelled',
            cancellation_reason = %s,
            cancelled_at = %s,
            updated_at = now()
        WHERE space_id = %s AND status = 'Confirmed' AND start_at > %s
        RETURNING {RESERVATION_COLUMNS}
        """,
        (reason.value, now, space_id, now),
    )
    cancelled = [row_to_reservation(row) for row in cur.fetchall()]
    return sorted(cancelled, key=lambda r: r.start_at)


def find_needing_reminder(cur: PgCursor, now: datetime, window_minutes: int) -> list[Reservation]:
    """Confirmed, not yet reminded, starting in (now, now + window_minutes]."""
    cur.execute(
        f"""
        SELECT {RESERVATION_COLUMNS}
        FROM reservations
        WHERE status = 'Confirmed'
          AND reminder_sent = FALSE
          AND start_at > %s
          AND start_at <= %s
        ORDER BY start_at
        """,
        (now, now + timedelta(minutes=window_minutes)),
    )
    return [row_to_reservation(row) for row in cur.fetchall()]


def mark_reminder_sent(cur: PgCursor, reservation_id: int) -> bool:
    """Flip reminder_sent to TRUE.

    Returns:
        True if this call flipped the flag, False if it was already set
        (or the reservation does not exist).
    """
    cur.execute(
        """
        UPDATE reservations
        SET reminder_sent = TRUE, updated_at = now()
        WHERE id = %s AND reminder_sent = FALSE
        """,
        (reservation_id,),
    )
    return cur.rowcount > 0


def list_for_user(
    cur: PgCursor,
    user_id: int,
    *,
    kind: ListKind = "all",
    now: datetime,
    limit: int | None = None,
    offset: int | None = None,
) -> list[Reservation]:
    """List a user's reservations, newest start first.

    kind:
        upcoming: Confirmed and starting after now.
        past: started at or before now and Confirmed/Completed/No_Show.
        cancelled: Cancelled.
        all: everything.
    """
    conditions = ["user_id = %s"]
    params: list = [user_id]

    if kind == "upcoming":
        conditions.append("start_at > %s AND status = 'Confirmed'")
        params.append(now)
    elif kind == "past":
        conditions.append("start_at <= %s AND status IN ('Confirmed', 'Completed', 'No_Show')")
        params.append(now)
    elif kind == "cancelled":
        conditions.append("status = 'Cancelled'")
    elif kind != "all":
        raise ValueError(f"Unknown reservation list kind: {kind}")

    query = f"""
        SELECT {RESERVATION_COLUMNS}
        FROM reservations
        WHERE {" AND ".join(conditions)}
        ORDER BY start_at DESC
    """
    if limit is not None:
        query += " LIMIT %s"
        params.append(limit)
    if offset is not None:
        query += " OFFSET %s"
        params.append(offset)

    return [row_to_reservation(row) for row in fetchall(cur, query, params)]
