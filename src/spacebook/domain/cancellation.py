"""Cancellation policy - reservation status transitions and grace period.

Pure rules only; the cancel transaction lives in domain.reservations.

Transitions:
    Confirmed -> Cancelled | Completed | No_Show
    Cancelled, Completed, No_Show are terminal.

Grace period boundary is inclusive: a user may cancel when the lead time
before start is >= the grace period, so cancelling exactly at the threshold
succeeds and one minute later (lead time short by a minute) fails.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from spacebook.domain.errors import UnauthorizedError, ValidationError
from spacebook.domain.models import CancellationReason, Reservation, ReservationStatus

ALLOWED_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.CONFIRMED: frozenset(
        {
            ReservationStatus.CANCELLED,
            ReservationStatus.COMPLETED,
            ReservationStatus.NO_SHOW,
        }
    ),
    ReservationStatus.CANCELLED: frozenset(),
    ReservationStatus.COMPLETED: frozenset(),
    ReservationStatus.NO_SHOW: frozenset(),
}

# Reasons that skip the past-start and grace-period guards
BYPASS_REASONS = frozenset({CancellationReason.ADMINISTRATIVE, CancellationReason.SPACE_MAINTENANCE})


def can_transition(current: ReservationStatus, target: ReservationStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def parse_reason(value: CancellationReason | str | None) -> CancellationReason:
    """Coerce a reason value; None means User_Requested.

    Raises:
        ValidationError: If the value is not a known reason.
    """
    if value is None:
        return CancellationReason.USER_REQUESTED
    if isinstance(value, CancellationReason):
        return value
    try:
        return CancellationReason(value)
    except ValueError:
        raise ValidationError(f"Unknown cancellation reason: {value}") from None


def check_actor(
    reservation: Reservation,
    acting_user_id: int,
    reason: CancellationReason,
    *,
    is_privileged: bool,
) -> None:
    """Ownership and privilege check.

    The privilege decision itself is made by the caller; this only applies it.

    Raises:
        UnauthorizedError: If the actor neither owns the reservation nor is
            privileged, or uses a bypass reason without privilege.
    """
    if reason in BYPASS_REASONS and not is_privileged:
        raise UnauthorizedError(f"{reason.value} cancellations require elevated privilege")
    if reservation.user_id != acting_user_id and not is_privileged:
        raise UnauthorizedError("You can only cancel your own bookings")


def check_cancellable(
    reservation: Reservation,
    reason: CancellationReason,
    now: datetime,
    grace_minutes: int,
) -> None:
    """Apply status, past-start and grace-period rules.

    Raises:
        ValidationError: On the first violated rule.
    """
    if not can_transition(reservation.status, ReservationStatus.CANCELLED):
        raise ValidationError("Only confirmed bookings may be cancelled")

    if reason in BYPASS_REASONS:
        return

    if reservation.start_at <= now:
        raise ValidationError("Cannot cancel past bookings")

    if reservation.start_at - now < timedelta(minutes=grace_minutes):
        raise ValidationError(
            f"Bookings can only be cancelled at least {grace_minutes} minutes before start"
        )
