"""Value types shared by the reservation engine.

Rows are converted into these dataclasses at the repository boundary;
nothing downstream reads raw tuples or JSON columns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any


class SpaceStatus(str, Enum):
    AVAILABLE = "Available"
    MAINTENANCE = "Maintenance"
    DELETED = "Deleted"


class ReservationStatus(str, Enum):
    CONFIRMED = "Confirmed"
    CANCELLED = "Cancelled"
    COMPLETED = "Completed"
    NO_SHOW = "No_Show"


class CancellationReason(str, Enum):
    USER_REQUESTED = "User_Requested"
    ADMINISTRATIVE = "Administrative"
    SPACE_MAINTENANCE = "Space_Maintenance"


@dataclass(frozen=True)
class OperatingWindow:
    """Open interval of one day as minute offsets from local midnight.

    end_minute may be 1440 (open through end of day).
    """

    start_minute: int
    end_minute: int


@dataclass(frozen=True)
class OperatingHours:
    """Weekday and weekend windows. None means closed that kind of day."""

    weekday: OperatingWindow | None = None
    weekend: OperatingWindow | None = None

    def for_weekend(self, weekend: bool) -> OperatingWindow | None:
        return self.weekend if weekend else self.weekday


@dataclass(frozen=True)
class Space:
    id: int
    capacity: int
    status: SpaceStatus
    operating_hours: OperatingHours
    name: str | None = None


@dataclass(frozen=True)
class Reservation:
    id: int
    space_id: int
    user_id: int
    start_at: datetime
    end_at: datetime
    status: ReservationStatus
    confirmation_code: str
    attendee_count: int = 1
    purpose: str | None = None
    cancellation_reason: CancellationReason | None = None
    cancelled_at: datetime | None = None
    reminder_sent: bool = False
    created_at: datetime | None = None

    def to_payload(self) -> dict[str, Any]:
        """JSON-safe dict (no PII) for outbox payloads and task responses."""
        return {
            "reservation_id": self.id,
            "space_id": self.space_id,
            "user_id": self.user_id,
            "start_at": self.start_at.isoformat(),
            "end_at": self.end_at.isoformat(),
            "status": self.status.value,
            "confirmation_code": self.confirmation_code,
            "cancellation_reason": (
                self.cancellation_reason.value if self.cancellation_reason else None
            ),
        }


@dataclass(frozen=True)
class BookingRequest:
    """Raw create request as received from the transport layer.

    Fields are deliberately loose (Any) because the eligibility validator
    is responsible for rejecting malformed input.
    """

    space_id: Any
    start_at: Any
    end_at: Any
    attendee_count: Any = None
    purpose: Any = None


@dataclass(frozen=True)
class Slot:
    start: str
    end: str
    available: bool


@dataclass(frozen=True)
class DaySlots:
    day: date
    closed: bool
    slots: list[Slot] = field(default_factory=list)


@dataclass(frozen=True)
class EligibilityResult:
    valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class OperatingHoursCheck:
    valid: bool
    message: str | None = None


@dataclass(frozen=True)
class NotificationPreferences:
    email: bool = True
    in_app: bool = True


@dataclass(frozen=True)
class NotificationProfile:
    """Everything the notification worker needs to know about a user."""

    user_id: int
    email: str | None
    email_verified: bool
    full_name: str | None
    preferences: NotificationPreferences = field(default_factory=NotificationPreferences)
