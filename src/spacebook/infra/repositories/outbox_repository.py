"""Outbox repository - event emission for async notification delivery.

Events are written in the same transaction as the reservation change, so a
rolled-back booking never produces a notification and a committed one always
has its event.

Uses raw SQL with psycopg2 (no ORM).
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from psycopg2.extensions import cursor as PgCursor

from spacebook.domain.models import Reservation

RESERVATION_CREATED = "RESERVATION_CREATED"
RESERVATION_CANCELLED = "RESERVATION_CANCELLED"
RESERVATION_REMINDER = "RESERVATION_REMINDER"


@dataclass(frozen=True)
class OutboxEvent:
    id: int
    event_type: str
    aggregate_type: str
    aggregate_id: str
    payload: dict[str, Any]
    correlation_id: str | None
    delivered_at: datetime | None
    attempts: int


def emit_event(
    cur: PgCursor,
    *,
    event_type: str,
    aggregate_type: str,
    aggregate_id: str,
    payload: dict | None = None,
    correlation_id: str | None = None,
) -> int:
    """Emit an event to the outbox.

    Args:
        cur: Database cursor (within transaction).
        event_type: Event type (e.g., RESERVATION_CREATED).
        aggregate_type: Aggregate type (e.g., reservation).
        aggregate_id: Aggregate identifier.
        payload: Optional JSON payload (no PII).
        correlation_id: Optional correlation ID for tracing.

    Returns:
        The generated event ID.
    """
    payload_json = json.dumps(payload) if payload else None

    cur.execute(
        """
        INSERT INTO outbox_events (
            event_type, aggregate_type, aggregate_id, payload, correlation_id
        )
        VALUES (%s, %s, %s, %s, %s)
        RETURNING id
        """,
        (event_type, aggregate_type, aggregate_id, payload_json, correlation_id),
    )
    return cur.fetchone()[0]


def emit_reservation_event(
    cur: PgCursor,
    event_type: str,
    reservation: Reservation,
    *,
    correlation_id: str | None = None,
) -> int:
    """Emit a reservation lifecycle event carrying the reservation snapshot."""
    return emit_event(
        cur,
        event_type=event_type,
        aggregate_type="reservation",
        aggregate_id=str(reservation.id),
        payload=reservation.to_payload(),
        correlation_id=correlation_id,
    )


def get_event_for_update(cur: PgCursor, event_id: int) -> OutboxEvent | None:
    """Load and lock an outbox event so concurrent deliveries serialize."""
    cur.execute(
        """
        SELECT id, event_type, aggregate_type, aggregate_id, payload,
               correlation_id, delivered_at, attempts
        FROM outbox_events
        WHERE id = %s
        FOR UPDATE
        """,
        (event_id,),
    )
    row = cur.fetchone()
    if row is None:
        return None

    payload = row[4]
    if isinstance(payload, str):
        payload = json.loads(payload)

    return OutboxEvent(
        id=row[0],
        event_type=row[1],
        aggregate_type=row[2],
        aggregate_id=str(row[3]),
        payload=payload or {},
        correlation_id=row[5],
        delivered_at=row[6],
        attempts=row[7],
    )


def mark_delivered(cur: PgCursor, event_id: int) -> None:
    cur.execute(
        """
        UPDATE outbox_events
        SET delivered_at = now(), attempts = attempts + 1, last_error = NULL
        WHERE id = %s
        """,
        (event_id,),
    )


def record_failed_attempt(cur: PgCursor, event_id: int, error: str) -> None:
    """Count a failed delivery attempt; the event stays pending."""
    cur.execute(
        """
        UPDATE outbox_events
        SET attempts = attempts + 1, last_error = %s
        WHERE id = %s
        """,
        (error[:500], event_id),
    )
