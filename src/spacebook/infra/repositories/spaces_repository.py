"""Spaces repository - read access and status updates for bookable spaces.

Uses raw SQL with psycopg2 (no ORM). Operating-hour columns are converted
to OperatingWindow minute offsets here, once.
"""

from __future__ import annotations

from datetime import datetime, time

from psycopg2.extensions import cursor as PgCursor

from spacebook.domain.models import OperatingHours, OperatingWindow, Space, SpaceStatus
from spacebook.infra.db import fetchone, for_update
from spacebook.infra.time import clock_to_minute

_SPACE_COLUMNS = """
    id, name, capacity, status,
    weekday_open, weekday_close, weekend_open, weekend_close
"""


def _window(open_at: time | str | None, close_at: time | str | None) -> OperatingWindow | None:
    if open_at is None or close_at is None:
        return None
    return OperatingWindow(
        start_minute=clock_to_minute(open_at),
        end_minute=clock_to_minute(close_at, is_end=True),
    )


def row_to_space(row: tuple) -> Space:
    """Build a Space from a row selected with _SPACE_COLUMNS."""
    (
        space_id,
        name,
        capacity,
        status,
        weekday_open,
        weekday_close,
        weekend_open,
        weekend_close,
    ) = row
    return Space(
        id=space_id,
        name=name,
        capacity=capacity,
        status=SpaceStatus(status),
        operating_hours=OperatingHours(
            weekday=_window(weekday_open, weekday_close),
            weekend=_window(weekend_open, weekend_close),
        ),
    )


def get_space(cur: PgCursor, space_id: int, *, lock: bool = False) -> Space | None:
    """Load a space by id.

    Args:
        cur: Database cursor.
        space_id: Space identifier.
        lock: If True, takes FOR UPDATE on the space row. Create and the
            maintenance cascade both lock it, which serializes them per space.

    Returns:
        Space or None if absent.
    """
    query = f"SELECT {_SPACE_COLUMNS} FROM spaces WHERE id = %s"
    row = for_update(cur, query, (space_id,)) if lock else fetchone(cur, query, (space_id,))
    return row_to_space(row) if row else None


def update_space_status(
    cur: PgCursor,
    space_id: int,
    status: SpaceStatus,
    *,
    maintenance_start: datetime | None = None,
    maintenance_end: datetime | None = None,
) -> Space | None:
    """Set a space's status (and maintenance window, if any).

    Returns:
        Updated Space, or None if the space does not exist.
    """
    cur.execute(
        f"""
        UPDATE spaces
        SET status = %s,
            maintenance_start_at = %s,
            maintenance_end_at = %s,
            deleted_at = CASE WHEN %s = 'Deleted' THEN now() ELSE deleted_at END,
            updated_at = now()
        WHERE id = %s
        RETURNING {_SPACE_COLUMNS}
        """,
        (status.value, maintenance_start, maintenance_end, status.value, space_id),
    )
    row = cur.fetchone()
    return row_to_space(row) if row else None
