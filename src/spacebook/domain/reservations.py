"""Reservation transaction manager - create and cancel as atomic units.

Create orchestrates, inside a single DB transaction:
    lock space -> operating hours -> user lock -> active cap
    -> self overlap -> space overlap (FOR UPDATE) -> code -> insert -> outbox

Cancel orchestrates:
    lock reservation -> actor check -> policy -> update -> outbox

Lock order is always space row, then the per-user advisory lock, then
reservation rows. Notification delivery is enqueued only after commit and
can never undo or fail the operation.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime

from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from spacebook.domain.cancellation import check_actor, check_cancellable, parse_reason
from spacebook.domain.conflicts import assert_no_space_conflict, assert_no_user_overlap
from spacebook.domain.eligibility import (
    check_operating_hours,
    parse_instant,
    parse_space_id,
    validate,
)
from spacebook.domain.errors import (
    ConflictError,
    LimitExceededError,
    NotFoundError,
    ValidationError,
    storage_errors_translated,
)
from spacebook.domain.models import (
    BookingRequest,
    CancellationReason,
    Reservation,
    SpaceStatus,
)
from spacebook.domain.notifications import enqueue_notification
from spacebook.infra.db import advisory_xact_lock, txn
from spacebook.infra.repositories import reservations_repository as reservations_repo
from spacebook.infra.repositories.outbox_repository import (
    RESERVATION_CANCELLED,
    RESERVATION_CREATED,
    emit_reservation_event,
)
from spacebook.infra.repositories.spaces_repository import get_space
from spacebook.infra.settings import EngineSettings, get_engine_settings
from spacebook.infra.time import utc_now
from spacebook.observability.correlation import get_correlation_id
from spacebook.observability.redaction import safe_log_context

logger = logging.getLogger(__name__)

CODE_PREFIX = "SB-"
CODE_LENGTH = 8
# Uppercase letters and digits without 0/O and 1/I
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

# First key of pg_advisory_xact_lock(int, int) for per-user booking locks
USER_BOOKING_LOCK_NAMESPACE = 0x5342
_INT4_MAX = 2**31 - 1


def generate_confirmation_code() -> str:
    """Random human-shareable code, e.g. SB-7K3QX9MA."""
    return CODE_PREFIX + "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def _allocate_confirmation_code(cur: PgCursor, attempts: int) -> str:
    """Generate a code that no existing reservation uses.

    Raises:
        ConflictError: If every attempt collided.
    """
    for attempt in range(1, attempts + 1):
        code = generate_confirmation_code()
        if not reservations_repo.confirmation_code_exists(cur, code):
            return code
        logger.warning(
            "confirmation code collision",
            extra={"extra_fields": {"attempt": attempt}},
        )
    raise ConflictError("Could not generate a unique confirmation code")


def _lock_user(cur: PgCursor, user_id: int) -> None:
    # Keys collide only modulo int4 range, which over-serializes and is harmless
    advisory_xact_lock(cur, USER_BOOKING_LOCK_NAMESPACE, user_id % _INT4_MAX)


def create_reservation(
    user_id: int,
    request: BookingRequest,
    *,
    conn: PgConnection | None = None,
    now: datetime | None = None,
    settings: EngineSettings | None = None,
    correlation_id: str | None = None,
) -> Reservation:
    """Validate and commit a new Confirmed reservation.

    This function:
    1. Runs the eligibility validator (no storage access)
    2. Locks the space row with FOR UPDATE; it must exist and be Available
    3. Checks operating hours and capacity
    4. Takes the per-user advisory lock
    5. Enforces the per-user active booking cap
    6. Rejects overlap with the user's own Confirmed reservations
    7. Rejects overlap on the space, locking matching rows FOR UPDATE
    8. Allocates a unique confirmation code
    9. Inserts the reservation and its RESERVATION_CREATED outbox event
    10. After commit, enqueues notification delivery (best-effort)

    Args:
        user_id: Requesting user (already authenticated by the caller).
        request: Raw booking request.
        conn: Optional connection to run the transaction on.
        now: Current instant (defaults to utc_now()).
        settings: Rule bounds (defaults to environment).
        correlation_id: Optional correlation ID for tracing.

    Returns:
        The committed reservation.

    Raises:
        ValidationError: Invalid request, outside operating hours, or too
            many attendees.
        NotFoundError: Space absent or deleted.
        ConflictError: Space unavailable, self or space overlap, or no
            unique confirmation code.
        LimitExceededError: User already holds the maximum active bookings.
        TransientError: Storage failure; nothing was committed.
    """
    settings = settings or get_engine_settings()
    now = now or utc_now()
    correlation_id = correlation_id or get_correlation_id() or None

    result = validate(request, now, settings=settings)
    if not result.valid:
        logger.info(
            "booking request rejected",
            extra={"extra_fields": {"user_id": user_id, "errors": result.errors}},
        )
        raise ValidationError("; ".join(result.errors), errors=result.errors)

    space_id = parse_space_id(request.space_id)
    start_at = parse_instant(request.start_at)
    end_at = parse_instant(request.end_at)
    attendee_count = request.attendee_count if request.attendee_count is not None else 1

    with storage_errors_translated(), txn(conn) as cur:
        space = get_space(cur, space_id, lock=True)
        if space is None or space.status == SpaceStatus.DELETED:
            raise NotFoundError("Space not found")
        if space.status != SpaceStatus.AVAILABLE:
            raise ConflictError("Space is not available")

        hours = check_operating_hours(space, start_at, end_at)
        if not hours.valid:
            raise ValidationError(hours.message)

        if space.capacity and attendee_count > space.capacity:
            raise ValidationError(f"attendeeCount exceeds space capacity of {space.capacity}")

        _lock_user(cur, user_id)

        active = reservations_repo.count_active_for_user(cur, user_id, now)
        if active >= settings.max_active_bookings:
            logger.info(
                "active booking limit reached",
                extra={
                    "extra_fields": {
                        "user_id": user_id,
                        "active": active,
                        "limit": settings.max_active_bookings,
                    }
                },
            )
            raise LimitExceededError("Maximum active bookings reached")

        assert_no_user_overlap(cur, user_id=user_id, start_at=start_at, end_at=end_at)
        assert_no_space_conflict(cur, space_id=space_id, start_at=start_at, end_at=end_at)

        code = _allocate_confirmation_code(cur, settings.confirmation_code_attempts)
        reservation = reservations_repo.insert_reservation(
            cur,
            space_id=space_id,
            user_id=user_id,
            start_at=start_at,
            end_at=end_at,
            confirmation_code=code,
            attendee_count=attendee_count,
            purpose=request.purpose,
        )
        event_id = emit_reservation_event(
            cur, RESERVATION_CREATED, reservation, correlation_id=correlation_id
        )

    logger.info(
        "reservation created",
        extra={
            "extra_fields": {
                "reservation_id": reservation.id,
                "space_id": space_id,
                "user_id": user_id,
                "start_at": start_at.isoformat(),
                "end_at": end_at.isoformat(),
                **safe_log_context(purpose=request.purpose),
            }
        },
    )
    enqueue_notification(event_id, correlation_id=correlation_id)
    return reservation


def cancel_reservation(
    reservation_id: int,
    acting_user_id: int,
    reason: CancellationReason | str | None = CancellationReason.USER_REQUESTED,
    *,
    is_privileged: bool = False,
    conn: PgConnection | None = None,
    now: datetime | None = None,
    settings: EngineSettings | None = None,
    correlation_id: str | None = None,
) -> Reservation:
    """Cancel a Confirmed reservation.

    Administrative and Space_Maintenance reasons skip the past-start and
    grace-period checks and require is_privileged.

    Args:
        reservation_id: Reservation to cancel.
        acting_user_id: Who is cancelling.
        reason: Cancellation reason (default User_Requested).
        is_privileged: Caller's pre-made elevation decision.
        conn: Optional connection to run the transaction on.
        now: Current instant (defaults to utc_now()).
        settings: Rule bounds (defaults to environment).
        correlation_id: Optional correlation ID for tracing.

    Returns:
        The cancelled reservation.

    Raises:
        NotFoundError: No such reservation.
        UnauthorizedError: Not the owner and not privileged.
        ValidationError: Not Confirmed, already started, or inside the
            grace period.
        TransientError: Storage failure; nothing was committed.
    """
    reason = parse_reason(reason)
    settings = settings or get_engine_settings()
    now = now or utc_now()
    correlation_id = correlation_id or get_correlation_id() or None

    with storage_errors_translated(), txn(conn) as cur:
        reservation = reservations_repo.get_reservation(cur, reservation_id, lock=True)
        if reservation is None:
            raise NotFoundError("Booking not found")

        check_actor(reservation, acting_user_id, reason, is_privileged=is_privileged)
        check_cancellable(reservation, reason, now, settings.cancellation_grace_minutes)

        cancelled = reservations_repo.mark_cancelled(
            cur, reservation_id, reason=reason, cancelled_at=now
        )
        if cancelled is None:
            raise ValidationError("Only confirmed bookings may be cancelled")

        event_id = emit_reservation_event(
            cur, RESERVATION_CANCELLED, cancelled, correlation_id=correlation_id
        )

    logger.info(
        "reservation cancelled",
        extra={
            "extra_fields": {
                "reservation_id": reservation_id,
                "reason": reason.value,
                "by_owner": acting_user_id == cancelled.user_id,
            }
        },
    )
    enqueue_notification(event_id, correlation_id=correlation_id)
    return cancelled


def get_reservation(
    reservation_id: int,
    *,
    acting_user_id: int | None = None,
    is_privileged: bool = False,
    conn: PgConnection | None = None,
) -> Reservation:
    """Load one reservation.

    When acting_user_id is given, a non-privileged caller only sees their
    own reservations; others are reported as not found.

    Raises:
        NotFoundError: No such reservation (or not visible to the caller).
    """
    with storage_errors_translated(), txn(conn) as cur:
        reservation = reservations_repo.get_reservation(cur, reservation_id)

    if reservation is None:
        raise NotFoundError("Booking not found")
    if acting_user_id is not None and not is_privileged and reservation.user_id != acting_user_id:
        raise NotFoundError("Booking not found")
    return reservation


def list_user_reservations(
    user_id: int,
    kind: reservations_repo.ListKind = "all",
    *,
    limit: int | None = None,
    offset: int | None = None,
    conn: PgConnection | None = None,
    now: datetime | None = None,
) -> list[Reservation]:
    """List a user's reservations, newest start first.

    Raises:
        ValidationError: If kind is not upcoming, past, cancelled or all.
    """
    if kind not in ("upcoming", "past", "cancelled", "all"):
        raise ValidationError(f"Unknown booking filter: {kind}")
    now = now or utc_now()

    with storage_errors_translated(), txn(conn) as cur:
        return reservations_repo.list_for_user(
            cur, user_id, kind=kind, now=now, limit=limit, offset=offset
        )
