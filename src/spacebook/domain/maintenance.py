"""Space status changes and the cancellation cascade they trigger.

Putting a space into Maintenance (or deleting it) cancels its future
Confirmed reservations in the same transaction as the status change, with
one RESERVATION_CANCELLED outbox event per affected reservation. The space
row is locked first, the same lock create_reservation takes, so no booking
can commit against the space while the cascade runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from psycopg2.extensions import connection as PgConnection

from spacebook.domain.errors import NotFoundError, ValidationError, storage_errors_translated
from spacebook.domain.models import CancellationReason, Reservation, Space, SpaceStatus
from spacebook.domain.notifications import enqueue_notifications
from spacebook.infra.db import txn
from spacebook.infra.repositories.outbox_repository import (
    RESERVATION_CANCELLED,
    emit_reservation_event,
)
from spacebook.infra.repositories.reservations_repository import cancel_future_for_space
from spacebook.infra.repositories.spaces_repository import get_space, update_space_status
from spacebook.infra.time import utc_now
from spacebook.observability.correlation import get_correlation_id

logger = logging.getLogger(__name__)

CASCADE_REASONS = {
    SpaceStatus.MAINTENANCE: CancellationReason.SPACE_MAINTENANCE,
    SpaceStatus.DELETED: CancellationReason.ADMINISTRATIVE,
}


@dataclass(frozen=True)
class StatusChangeResult:
    space: Space
    cancelled: list[Reservation] = field(default_factory=list)


def change_space_status(
    space_id: int,
    status: SpaceStatus | str,
    maintenance_window: tuple[datetime, datetime] | None = None,
    *,
    conn: PgConnection | None = None,
    now: datetime | None = None,
    correlation_id: str | None = None,
) -> StatusChangeResult:
    """Set a space's status and cascade cancellations.

    Args:
        space_id: Space to change.
        status: New status.
        maintenance_window: Optional (start, end) for Maintenance, stored on
            the space row. It does not narrow the cascade: while the space
            is in Maintenance it accepts no bookings, so every future
            Confirmed reservation is cancelled either way.
        conn: Optional connection to run the transaction on.
        now: Current instant (defaults to utc_now()).
        correlation_id: Optional correlation ID for tracing.

    Returns:
        StatusChangeResult with the updated space and the cancelled
        reservations (ordered by start).

    Raises:
        NotFoundError: No such space (deleted spaces can still be changed).
        ValidationError: Unknown status, or a window on a non-Maintenance
            status, or a window whose end is not after its start.
    """
    try:
        status = SpaceStatus(status)
    except ValueError:
        raise ValidationError(f"Unknown space status: {status}") from None

    if maintenance_window is not None:
        if status != SpaceStatus.MAINTENANCE:
            raise ValidationError("A maintenance window requires Maintenance status")
        window_start, window_end = maintenance_window
        if window_end <= window_start:
            raise ValidationError("Maintenance end must be after maintenance start")

    now = now or utc_now()
    correlation_id = correlation_id or get_correlation_id() or None
    reason = CASCADE_REASONS.get(status)
    event_ids: list[int] = []
    cancelled: list[Reservation] = []

    with storage_errors_translated(), txn(conn) as cur:
        if get_space(cur, space_id, lock=True) is None:
            raise NotFoundError("Space not found")

        updated = update_space_status(
            cur,
            space_id,
            status,
            maintenance_start=maintenance_window[0] if maintenance_window else None,
            maintenance_end=maintenance_window[1] if maintenance_window else None,
        )

        if reason is not None:
            cancelled = cancel_future_for_space(cur, space_id, reason=reason, now=now)
            for reservation in cancelled:
                event_ids.append(
                    emit_reservation_event(
                        cur, RESERVATION_CANCELLED, reservation, correlation_id=correlation_id
                    )
                )

    logger.info(
        "space status changed",
        extra={
            "extra_fields": {
                "space_id": space_id,
                "status": status.value,
                "cancelled_count": len(cancelled),
                "windowed": maintenance_window is not None,
            }
        },
    )
    enqueue_notifications(event_ids, correlation_id=correlation_id)
    return StatusChangeResult(space=updated, cancelled=cancelled)
