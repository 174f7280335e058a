"""NotificationDispatcher and shipped sinks."""

import json
import logging

import httpx
import pytest

from tto_db.models.enums import QualityStatus
from tto_protocol.interfaces import NotificationSink
from tto_protocol.models.events import NotificationEventType
from tto_protocol.notifications import (
    LoggingNotificationSink,
    NotificationDispatcher,
    WebhookNotificationSink,
)

from helpers.mock_repo import MockSessionRow


class ExplodingSink(NotificationSink):
    async def send(self, event):
        raise RuntimeError("sink down")


@pytest.fixture
def session():
    return MockSessionRow(respondent_code="R42", interviewer_id="int-1")


class TestEventBuilders:
    def test_session_completed(self, session):
        e = NotificationDispatcher.session_completed(session)
        assert e.event_type == NotificationEventType.SESSION_COMPLETED
        assert e.alert_type == "session_complete"
        assert e.message == "Session R42 has been completed successfully."

    def test_session_flagged_with_notes(self, session):
        e = NotificationDispatcher.session_flagged(session, notes="invariant_responses")
        assert e.alert_type == "goal_at_risk"
        assert e.message.endswith("Note: invariant_responses")

    @pytest.mark.parametrize(
        "status,alert",
        [
            (QualityStatus.APPROVED, "quality_update"),
            (QualityStatus.FLAGGED, "goal_at_risk"),
            (QualityStatus.REJECTED, "goal_failed"),
            (QualityStatus.PENDING, "quality_update"),
        ],
    )
    def test_quality_alert_types(self, session, status, alert):
        e = NotificationDispatcher.quality_status_changed(session, status)
        assert e.alert_type == alert

    def test_flagged_message(self, session):
        e = NotificationDispatcher.quality_status_changed(
            session, QualityStatus.FLAGGED, "check VAS"
        )
        assert e.message == "Quality status updated for session R42: flagged. Note: check VAS"

    def test_payload_is_camel_case(self, session):
        payload = NotificationDispatcher.session_completed(session).to_payload()
        assert payload == {
            "sessionId": str(session.id),
            "respondentCode": "R42",
            "interviewerId": "int-1",
            "message": "Session R42 has been completed successfully.",
            "alertType": "session_complete",
        }


class TestDispatch:
    @pytest.mark.asyncio
    async def test_failing_sink_does_not_stop_others(self, session, sink, caplog):
        dispatcher = NotificationDispatcher([ExplodingSink()])
        dispatcher.register(sink)
        with caplog.at_level(logging.ERROR):
            await dispatcher.dispatch(dispatcher.session_completed(session))
        assert len(sink.events) == 1
        assert "ExplodingSink" in caplog.text

    @pytest.mark.asyncio
    async def test_logging_sink(self, session, caplog):
        sink = LoggingNotificationSink()
        with caplog.at_level(logging.INFO):
            await sink.send(NotificationDispatcher.session_completed(session))
        assert "[session_complete] int-1" in caplog.text


class TestWebhookSink:
    @staticmethod
    def _client(calls, status=200):
        def handler(request: httpx.Request) -> httpx.Response:
            calls.append((str(request.url), json.loads(request.content)))
            return httpx.Response(status)

        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_alert_body(self, session):
        calls = []
        async with self._client(calls) as client:
            sink = WebhookNotificationSink("http://alerts/send", client=client)
            await sink.send(NotificationDispatcher.session_completed(session))
        assert calls == [
            (
                "http://alerts/send",
                {
                    "interviewerId": "int-1",
                    "alertType": "session_complete",
                    "message": "Session R42 has been completed successfully.",
                },
            )
        ]

    @pytest.mark.asyncio
    async def test_email_only_for_flag_and_review_events(self):
        session = MockSessionRow(respondent_code="R7", interviewer_id="iv@example.org")
        calls = []
        async with self._client(calls) as client:
            sink = WebhookNotificationSink(
                "http://alerts/send", email_url="http://mail/send", client=client
            )
            await sink.send(NotificationDispatcher.session_completed(session))
            await sink.send(NotificationDispatcher.session_flagged(session))

        urls = [u for u, _ in calls]
        assert urls == ["http://alerts/send", "http://alerts/send", "http://mail/send"]
        email = calls[-1][1]
        assert email["recipientEmail"] == "iv@example.org"
        assert email["template"] == "session_flagged"
        assert email["data"]["respondentCode"] == "R7"

    @pytest.mark.asyncio
    async def test_no_address_skips_email(self, session):
        calls = []
        async with self._client(calls) as client:
            sink = WebhookNotificationSink(
                None, email_url="http://mail/send", client=client
            )
            await sink.send(NotificationDispatcher.session_flagged(session))
        assert calls == []

    @pytest.mark.asyncio
    async def test_http_error_swallowed_by_dispatcher(self, session, sink):
        calls = []
        async with self._client(calls, status=500) as client:
            dispatcher = NotificationDispatcher(
                [WebhookNotificationSink("http://alerts/send", client=client), sink]
            )
            await dispatcher.dispatch(dispatcher.session_completed(session))
        assert len(calls) == 1
        assert len(sink.events) == 1
