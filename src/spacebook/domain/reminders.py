"""Reminder predicate and sweep.

A reservation needs a reminder when it is Confirmed, not yet reminded, and
starts within (now, now + window]. Delivery is at-least-once: the flag is
set in the same transaction as the outbox event, and the flag update is
guarded so two overlapping sweeps emit one event per reservation.
"""

from __future__ import annotations

import logging
from datetime import datetime

from psycopg2.extensions import connection as PgConnection

from spacebook.domain.errors import ValidationError, storage_errors_translated
from spacebook.domain.models import Reservation
from spacebook.domain.notifications import enqueue_notification
from spacebook.infra.db import txn
from spacebook.infra.repositories import reservations_repository as reservations_repo
from spacebook.infra.repositories.outbox_repository import (
    RESERVATION_REMINDER,
    emit_reservation_event,
)
from spacebook.infra.settings import get_engine_settings
from spacebook.infra.time import utc_now
from spacebook.observability.correlation import get_correlation_id

logger = logging.getLogger(__name__)


def _window(window_minutes: int | None) -> int:
    if window_minutes is None:
        return get_engine_settings().reminder_window_minutes
    if isinstance(window_minutes, bool) or not isinstance(window_minutes, int) or window_minutes < 1:
        raise ValidationError("windowMinutes must be a positive integer")
    return window_minutes


def find_needing_reminder(
    window_minutes: int | None = None,
    *,
    conn: PgConnection | None = None,
    now: datetime | None = None,
) -> list[Reservation]:
    """Reservations due a reminder, soonest first. Read-only."""
    window = _window(window_minutes)
    now = now or utc_now()
    with storage_errors_translated(), txn(conn) as cur:
        return reservations_repo.find_needing_reminder(cur, now, window)


def mark_reminder_sent(reservation_id: int, *, conn: PgConnection | None = None) -> bool:
    """Set the reminder flag.

    Returns:
        True if this call set it, False if it was already set or the
        reservation does not exist. Repeated calls are harmless.
    """
    with storage_errors_translated(), txn(conn) as cur:
        return reservations_repo.mark_reminder_sent(cur, reservation_id)


def send_due_reminders(
    window_minutes: int | None = None,
    *,
    conn: PgConnection | None = None,
    now: datetime | None = None,
    correlation_id: str | None = None,
) -> dict:
    """Emit reminder events for every reservation due one.

    Each reservation is handled in its own short transaction so one failure
    does not hold back the rest.

    Returns:
        {"total_found": int, "sent": int, "errors": int}
    """
    now = now or utc_now()
    correlation_id = correlation_id or get_correlation_id() or None
    due = find_needing_reminder(window_minutes, conn=conn, now=now)

    sent = 0
    errors = 0
    for reservation in due:
        try:
            with storage_errors_translated(), txn(conn) as cur:
                if not reservations_repo.mark_reminder_sent(cur, reservation.id):
                    # Another sweep got here first
                    continue
                event_id = emit_reservation_event(
                    cur, RESERVATION_REMINDER, reservation, correlation_id=correlation_id
                )
        except Exception:
            errors += 1
            logger.exception(
                "reminder failed",
                extra={"extra_fields": {"reservation_id": reservation.id}},
            )
            continue

        sent += 1
        enqueue_notification(event_id, correlation_id=correlation_id)

    logger.info(
        "reminder sweep completed",
        extra={"extra_fields": {"total_found": len(due), "sent": sent, "errors": errors}},
    )
    return {"total_found": len(due), "sent": sent, "errors": errors}
