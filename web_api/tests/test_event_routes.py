"""Tests for the event message endpoints and error mapping."""

from datetime import datetime, timezone

import pytest

from notifier.enums import MessageStatus
from notifier.exceptions import (
    DispatchError,
    EventNotFoundError,
    MessageNotFoundError,
    NoRecipientsError,
    NotifierError,
    SchedulingError,
    StoreError,
    ValidationError,
)
from notifier.notifications.service import ScheduleResult


def _result(sent_immediately=False, recipient_count=None):
    return ScheduleResult(
        message_id="m1",
        scheduled_for=datetime(2030, 1, 1, 8, 0, tzinfo=timezone.utc),
        normalized_date="2030-01-01T10:00:00+02:00",
        original_date="2030-01-01 10:00:00",
        timezone="Africa/Cairo",
        sent_immediately=sent_immediately,
        recipient_count=recipient_count,
    )


class TestScheduleEventEndpoint:
    def test_schedules_future_event(self, client, mock_service):
        mock_service.schedule_event.return_value = _result()

        response = client.post(
            "/api/event",
            json={"date": "2030-01-01 10:00:00", "id": "evt-1", "message": "Hi"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Event scheduled successfully"
        assert data["messageId"] == "m1"
        assert data["scheduledFor"] == "2030-01-01T10:00:00+02:00"
        assert data["sentImmediately"] is False
        mock_service.schedule_event.assert_awaited_once_with(
            "2030-01-01 10:00:00", "evt-1", "Hi"
        )

    def test_reports_immediate_send(self, client, mock_service):
        mock_service.schedule_event.return_value = _result(
            sent_immediately=True, recipient_count=3
        )

        response = client.post(
            "/api/event",
            json={"date": "2020-01-01 10:00:00", "id": "evt-1", "message": "Hi"},
        )

        data = response.json()
        assert data["message"] == "Message sent immediately"
        assert data["recipientCount"] == 3

    def test_missing_fields_are_passed_through_as_none(self, client, mock_service):
        mock_service.schedule_event.side_effect = ValidationError(
            "Missing required fields: date, message", reason="missing_fields"
        )

        response = client.post("/api/event", json={"id": "evt-1"})

        assert response.status_code == 400
        assert response.json() == {
            "error": "missing_fields",
            "detail": "Missing required fields: date, message",
        }
        mock_service.schedule_event.assert_awaited_once_with(None, "evt-1", None)


class TestErrorMapping:
    @pytest.mark.parametrize(
        "error,status_code,reason",
        [
            (ValidationError("too long", reason="message_too_long"), 400, "message_too_long"),
            (SchedulingError("bad date", reason="invalid_date"), 422, "invalid_date"),
            (EventNotFoundError("evt-1"), 404, "event_not_found"),
            (NoRecipientsError("evt-1"), 502, "no_recipients"),
            (DispatchError("smtp down"), 502, "transport_failure"),
            (StoreError("db down"), 503, "store_unavailable"),
            (NotifierError("odd"), 500, "error"),
        ],
    )
    def test_error_status_and_reason(self, client, mock_service, error, status_code, reason):
        mock_service.schedule_event.side_effect = error

        response = client.post(
            "/api/event",
            json={"date": "2030-01-01 10:00:00", "id": "evt-1", "message": "Hi"},
        )

        assert response.status_code == status_code
        assert response.json()["error"] == reason

    def test_failed_immediate_send_includes_message_id(self, client, mock_service):
        error = NoRecipientsError("evt-1")
        error.message_id = "m1"
        mock_service.schedule_event.side_effect = error

        response = client.post(
            "/api/event",
            json={"date": "2020-01-01 10:00:00", "id": "evt-1", "message": "Hi"},
        )

        assert response.status_code == 502
        assert response.json()["messageId"] == "m1"


class TestMessageEndpoints:
    def test_get_message(self, client, mock_service):
        mock_service.get_message.return_value = {
            "message_id": "m1",
            "event_id": "evt-1",
            "content": "Hi",
            "status": MessageStatus.failed,
            "scheduled_at": datetime(2030, 1, 1, 8, 0, tzinfo=timezone.utc),
            "last_error": "no_recipients: No participants found for event evt-1",
        }

        response = client.get("/api/messages/m1")

        assert response.status_code == 200
        message = response.json()["message"]
        assert message["status"] == "failed"
        assert message["scheduled_at"] == "2030-01-01T10:00:00+02:00"
        assert message["last_error"].startswith("no_recipients")

    def test_get_unknown_message(self, client, mock_service):
        mock_service.get_message.side_effect = MessageNotFoundError("Message m9 not found")

        response = client.get("/api/messages/m9")

        assert response.status_code == 404
        assert response.json()["error"] == "message_not_found"

    def test_reschedule(self, client, mock_service):
        mock_service.reschedule_message.return_value = _result()

        response = client.patch("/api/messages/m1", json={"date": "2030-01-01 10:00:00"})

        assert response.status_code == 200
        assert response.json()["success"] is True
        mock_service.reschedule_message.assert_awaited_once_with(
            "m1", "2030-01-01 10:00:00"
        )

    def test_delete(self, client, mock_service):
        response = client.delete("/api/messages/m1")

        assert response.status_code == 200
        assert response.json() == {"success": True, "messageId": "m1"}
        mock_service.delete_message.assert_awaited_once_with("m1")


class TestMiscEndpoints:
    def test_test_route(self, client):
        response = client.get("/api/test")

        assert response.status_code == 200
        assert response.json() == {"message": "it Works"}

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
