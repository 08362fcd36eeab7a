"""Tests for notification enqueue and outbox-driven delivery."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from spacebook.domain.models import NotificationPreferences, NotificationProfile
from spacebook.domain.notifications import (
    DELIVER_TASK_PATH,
    EMAIL,
    IN_APP,
    NotificationDeliveryError,
    deliver_notification,
    deliver_task_id,
    enqueue_notification,
    enqueue_notifications,
    notification_channels,
)
from spacebook.infra.repositories.outbox_repository import (
    RESERVATION_CANCELLED,
    RESERVATION_CREATED,
    OutboxEvent,
)

MODULE = "spacebook.domain.notifications"


def _profile(**overrides) -> NotificationProfile:
    fields = {
        "user_id": 7,
        "email": "ayse@example.com",
        "email_verified": True,
        "full_name": "Ayse",
        "preferences": NotificationPreferences(),
    }
    fields.update(overrides)
    return NotificationProfile(**fields)


def _event(event_type=RESERVATION_CREATED, delivered_at=None) -> OutboxEvent:
    return OutboxEvent(
        id=11,
        event_type=event_type,
        aggregate_type="reservation",
        aggregate_id="100",
        payload={"reservation_id": 100},
        correlation_id="cid",
        delivered_at=delivered_at,
        attempts=0,
    )


class TestChannels:
    def test_all_channels(self):
        assert notification_channels(_profile()) == [EMAIL, IN_APP]

    def test_unverified_email_skipped(self):
        assert notification_channels(_profile(email_verified=False)) == [IN_APP]

    def test_missing_email_skipped(self):
        assert notification_channels(_profile(email=None)) == [IN_APP]

    def test_preferences_respected(self):
        profile = _profile(preferences=NotificationPreferences(email=False, in_app=False))

        assert notification_channels(profile) == []


class TestEnqueue:
    def test_enqueues_deliver_task(self):
        client = MagicMock()
        client.enqueue_http.return_value = True

        with patch(f"{MODULE}._get_tasks_client", return_value=client):
            assert enqueue_notification(11, correlation_id="cid") is True

        client.enqueue_http.assert_called_once_with(
            task_id="notify:11",
            url_path=DELIVER_TASK_PATH,
            payload={"task_id": "notify:11", "event_id": 11},
            correlation_id="cid",
        )

    def test_failure_is_swallowed(self):
        client = MagicMock()
        client.enqueue_http.side_effect = RuntimeError("queue down")

        with patch(f"{MODULE}._get_tasks_client", return_value=client):
            assert enqueue_notification(11) is False

    def test_enqueue_many_counts_successes(self):
        client = MagicMock()
        client.enqueue_http.side_effect = [True, False, True]

        with patch(f"{MODULE}._get_tasks_client", return_value=client):
            assert enqueue_notifications([1, 2, 3]) == 2

    def test_task_id_stable_per_event(self):
        assert deliver_task_id(11) == deliver_task_id(11) == "notify:11"


class TestDeliver:
    @pytest.fixture
    def storage(self, patch_txn, make_reservation):
        cur = patch_txn(MODULE)
        with patch(f"{MODULE}.get_event_for_update", return_value=_event()) as get_event, \
             patch(f"{MODULE}.get_reservation", return_value=make_reservation()) as get_res, \
             patch(f"{MODULE}.get_notification_profile", return_value=_profile()) as get_prof, \
             patch(f"{MODULE}.mark_delivered") as delivered, \
             patch(f"{MODULE}.record_failed_attempt") as failed:
            yield MagicMock(
                cur=cur,
                get_event=get_event,
                get_reservation=get_res,
                get_profile=get_prof,
                mark_delivered=delivered,
                record_failed=failed,
            )

    def test_delivers_created(self, storage):
        sink = MagicMock()

        result = deliver_notification(11, sink=sink)

        assert result == {"status": "delivered", "channels": [EMAIL, IN_APP]}
        sink.notify_created.assert_called_once()
        storage.mark_delivered.assert_called_once_with(storage.cur, 11)

    def test_routes_cancelled_event(self, storage):
        storage.get_event.return_value = _event(RESERVATION_CANCELLED)
        sink = MagicMock()

        deliver_notification(11, sink=sink)

        sink.notify_cancelled.assert_called_once()
        sink.notify_created.assert_not_called()

    def test_missing_event(self, storage):
        storage.get_event.return_value = None

        assert deliver_notification(11, sink=MagicMock()) == {"status": "not_found"}

    def test_already_delivered_is_idempotent(self, storage):
        storage.get_event.return_value = _event(delivered_at=datetime(2026, 3, 9, tzinfo=timezone.utc))
        sink = MagicMock()

        assert deliver_notification(11, sink=sink) == {"status": "already_delivered"}
        sink.notify_created.assert_not_called()
        storage.mark_delivered.assert_not_called()

    def test_unknown_event_type_ignored(self, storage):
        storage.get_event.return_value = _event("SPACE_RENAMED")

        assert deliver_notification(11, sink=MagicMock()) == {"status": "ignored"}
        storage.mark_delivered.assert_called_once()

    def test_reservation_missing(self, storage):
        storage.get_reservation.return_value = None

        result = deliver_notification(11, sink=MagicMock())

        assert result == {"status": "skipped", "reason": "reservation_missing"}
        storage.mark_delivered.assert_called_once()

    def test_no_channels(self, storage):
        storage.get_profile.return_value = _profile(
            preferences=NotificationPreferences(email=False, in_app=False)
        )
        sink = MagicMock()

        result = deliver_notification(11, sink=sink)

        assert result == {"status": "skipped", "reason": "no_channels"}
        sink.notify_created.assert_not_called()

    def test_sink_failure_keeps_event_pending(self, storage):
        sink = MagicMock()
        sink.notify_created.side_effect = ConnectionError("smtp down")

        with pytest.raises(NotificationDeliveryError):
            deliver_notification(11, sink=sink)

        storage.record_failed.assert_called_once()
        assert "smtp down" in storage.record_failed.call_args.args[2]
        storage.mark_delivered.assert_not_called()

    def test_default_sink_logs(self, storage):
        assert deliver_notification(11)["status"] == "delivered"
