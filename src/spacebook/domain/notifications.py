"""Reservation notifications - outbox-driven, delivered by a worker task.

Flow:
    engine transaction  -> outbox_events row (same commit as the reservation)
    after commit        -> enqueue_notification() -> deliver task (best-effort)
    worker task         -> deliver_notification() -> NotificationSink

The reservation outcome never depends on this module: enqueue failures are
logged and swallowed, and a failed delivery leaves the event pending for the
queue's own retry.
"""

from __future__ import annotations

import logging
from typing import Protocol

from psycopg2.extensions import connection as PgConnection

from spacebook.domain.models import NotificationProfile, Reservation
from spacebook.infra.db import txn
from spacebook.infra.repositories.outbox_repository import (
    RESERVATION_CANCELLED,
    RESERVATION_CREATED,
    RESERVATION_REMINDER,
    get_event_for_update,
    mark_delivered,
    record_failed_attempt,
)
from spacebook.infra.repositories.reservations_repository import get_reservation
from spacebook.infra.repositories.users_repository import get_notification_profile
from spacebook.observability.redaction import safe_log_context
from spacebook.tasks.client import TasksClient

logger = logging.getLogger(__name__)

DELIVER_TASK_PATH = "/tasks/notifications/deliver"

EMAIL = "email"
IN_APP = "in_app"

_tasks_client = TasksClient()


def _get_tasks_client() -> TasksClient:
    """Get tasks client (allows override in tests)."""
    return _tasks_client


class NotificationDeliveryError(Exception):
    """Raised when the sink failed; the event stays pending."""


class NotificationSink(Protocol):
    """Delivery channel implementation (email gateway, in-app feed, ...)."""

    def notify_created(
        self, reservation: Reservation, profile: NotificationProfile, channels: list[str]
    ) -> None: ...

    def notify_cancelled(
        self, reservation: Reservation, profile: NotificationProfile, channels: list[str]
    ) -> None: ...

    def notify_reminder(
        self, reservation: Reservation, profile: NotificationProfile, channels: list[str]
    ) -> None: ...


class LoggingNotificationSink:
    """Default sink: records what would be sent, without PII."""

    def _log(self, kind: str, reservation: Reservation, channels: list[str]) -> None:
        logger.info(
            "notification dispatched",
            extra={
                "extra_fields": safe_log_context(
                    kind=kind,
                    reservation_id=reservation.id,
                    confirmation_code=reservation.confirmation_code,
                    channels=",".join(channels),
                )
            },
        )

    def notify_created(self, reservation, profile, channels):
        self._log("created", reservation, channels)

    def notify_cancelled(self, reservation, profile, channels):
        self._log("cancelled", reservation, channels)

    def notify_reminder(self, reservation, profile, channels):
        self._log("reminder", reservation, channels)


_SINK_METHODS = {
    RESERVATION_CREATED: "notify_created",
    RESERVATION_CANCELLED: "notify_cancelled",
    RESERVATION_REMINDER: "notify_reminder",
}


def notification_channels(profile: NotificationProfile) -> list[str]:
    """Channels the user should be reached on.

    Email requires the preference AND a verified address.
    """
    channels = []
    if profile.preferences.email and profile.email and profile.email_verified:
        channels.append(EMAIL)
    if profile.preferences.in_app:
        channels.append(IN_APP)
    return channels


def deliver_task_id(event_id: int) -> str:
    return f"notify:{event_id}"


def enqueue_notification(event_id: int, *, correlation_id: str | None = None) -> bool:
    """Enqueue delivery of one outbox event. Never raises.

    Returns:
        True if a task was enqueued, False on duplicate or failure.
    """
    try:
        return _get_tasks_client().enqueue_http(
            task_id=deliver_task_id(event_id),
            url_path=DELIVER_TASK_PATH,
            payload={"task_id": deliver_task_id(event_id), "event_id": event_id},
            correlation_id=correlation_id,
        )
    except Exception:
        logger.exception(
            "notification enqueue failed",
            extra={"extra_fields": safe_log_context(event_id=event_id)},
        )
        return False


def enqueue_notifications(event_ids: list[int], *, correlation_id: str | None = None) -> int:
    """Enqueue several events; returns how many were enqueued."""
    return sum(
        1 for event_id in event_ids if enqueue_notification(event_id, correlation_id=correlation_id)
    )


def deliver_notification(
    event_id: int,
    *,
    sink: NotificationSink | None = None,
    conn: PgConnection | None = None,
) -> dict:
    """Deliver one outbox event through the sink.

    The event row is locked for the duration, so concurrent deliveries of
    the same event serialize and the second one sees it delivered.

    Returns:
        Dict with result status:
        - {"status": "not_found"} - no such event
        - {"status": "already_delivered"} - idempotent replay
        - {"status": "ignored"} - event type has no notification
        - {"status": "skipped", "reason": str} - nothing to send
        - {"status": "delivered", "channels": [...]}

    Raises:
        NotificationDeliveryError: If the sink raised. The failed attempt is
            recorded and the event stays pending.
    """
    sink = sink or LoggingNotificationSink()
    failure: Exception | None = None

    with txn(conn) as cur:
        event = get_event_for_update(cur, event_id)
        if event is None:
            return {"status": "not_found"}
        if event.delivered_at is not None:
            return {"status": "already_delivered"}

        method_name = _SINK_METHODS.get(event.event_type)
        if method_name is None:
            logger.warning(
                "outbox event has no notification",
                extra={"extra_fields": {"event_id": event_id, "event_type": event.event_type}},
            )
            mark_delivered(cur, event_id)
            return {"status": "ignored"}

        reservation = get_reservation(cur, int(event.aggregate_id))
        profile = get_notification_profile(cur, reservation.user_id) if reservation else None
        if reservation is None or profile is None:
            mark_delivered(cur, event_id)
            return {
                "status": "skipped",
                "reason": "reservation_missing" if reservation is None else "user_missing",
            }

        channels = notification_channels(profile)
        if not channels:
            mark_delivered(cur, event_id)
            return {"status": "skipped", "reason": "no_channels"}

        try:
            getattr(sink, method_name)(reservation, profile, channels)
        except Exception as exc:
            record_failed_attempt(cur, event_id, f"{exc.__class__.__name__}: {exc}")
            failure = exc
        else:
            mark_delivered(cur, event_id)

    if failure is not None:
        logger.error(
            "notification delivery failed",
            extra={
                "extra_fields": safe_log_context(
                    event_id=event_id,
                    event_type=event.event_type,
                    error=str(failure),
                )
            },
        )
        raise NotificationDeliveryError(str(failure)) from failure

    logger.info(
        "notification delivered",
        extra={
            "extra_fields": {
                "event_id": event_id,
                "event_type": event.event_type,
                "channels": channels,
            }
        },
    )
    return {"status": "delivered", "channels": channels}
