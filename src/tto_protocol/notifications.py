"""NotificationDispatcher — fans protocol events out to notification sinks.

Events and their alert types::

    session_completed       -> session_complete
    session_flagged         -> goal_at_risk
    quality_status_changed  -> quality_update (approved / pending)
                               goal_at_risk   (flagged)
                               goal_failed    (rejected)

Delivery is best effort.  A failing sink is logged and skipped; it never
fails the write that produced the event.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

import httpx

from tto_db.models.enums import QualityStatus

from tto_protocol.interfaces import NotificationSink
from tto_protocol.models.events import NotificationEvent, NotificationEventType

logger = logging.getLogger(__name__)

_QUALITY_ALERT_TYPES: dict[QualityStatus, str] = {
    QualityStatus.APPROVED: "quality_update",
    QualityStatus.FLAGGED: "goal_at_risk",
    QualityStatus.REJECTED: "goal_failed",
    QualityStatus.PENDING: "quality_update",
}

# Events that also trigger an email when an email endpoint is configured
_EMAIL_EVENTS = frozenset(
    {NotificationEventType.SESSION_FLAGGED, NotificationEventType.QUALITY_STATUS_CHANGED}
)


def _with_note(message: str, label: str, notes: str | None) -> str:
    return f"{message} {label}: {notes}" if notes else message


class NotificationDispatcher:
    """Builds notification events and delivers them to every sink."""

    def __init__(self, sinks: Iterable[NotificationSink] = ()) -> None:
        self._sinks: list[NotificationSink] = list(sinks)

    def register(self, sink: NotificationSink) -> None:
        self._sinks.append(sink)

    # ------------------------------------------------------------------
    # Event builders
    # ------------------------------------------------------------------

    @staticmethod
    def session_completed(session) -> NotificationEvent:
        return NotificationEvent(
            event_type=NotificationEventType.SESSION_COMPLETED,
            session_id=session.id,
            respondent_code=session.respondent_code,
            interviewer_id=session.interviewer_id,
            message=f"Session {session.respondent_code} has been completed successfully.",
            alert_type="session_complete",
        )

    @staticmethod
    def session_flagged(session, notes: str | None = None) -> NotificationEvent:
        message = f"Session {session.respondent_code} has been flagged for review."
        return NotificationEvent(
            event_type=NotificationEventType.SESSION_FLAGGED,
            session_id=session.id,
            respondent_code=session.respondent_code,
            interviewer_id=session.interviewer_id,
            message=_with_note(message, "Note", notes),
            alert_type="goal_at_risk",
        )

    @staticmethod
    def quality_status_changed(
        session, status: QualityStatus, notes: str | None = None
    ) -> NotificationEvent:
        status = QualityStatus(status)
        code = session.respondent_code
        if status == QualityStatus.APPROVED:
            message = f"Great work! Session {code} has been approved."
        elif status == QualityStatus.REJECTED:
            message = _with_note(f"Session {code} was rejected.", "Reason", notes)
        else:
            message = _with_note(
                f"Quality status updated for session {code}: {status.value}.",
                "Note",
                notes,
            )
        return NotificationEvent(
            event_type=NotificationEventType.QUALITY_STATUS_CHANGED,
            session_id=session.id,
            respondent_code=code,
            interviewer_id=session.interviewer_id,
            message=message,
            alert_type=_QUALITY_ALERT_TYPES[status],
        )

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def dispatch(self, event: NotificationEvent) -> None:
        """Send ``event`` to every sink; failures are logged, not raised."""
        logger.info(
            "Notification %s for session %s (%s)",
            event.event_type.value,
            event.session_id,
            event.alert_type,
        )
        for sink in self._sinks:
            try:
                await sink.send(event)
            except Exception:
                logger.exception(
                    "Notification sink %s failed for %s on session %s",
                    type(sink).__name__,
                    event.event_type.value,
                    event.session_id,
                )


# ------------------------------------------------------------------
# Shipped sinks
# ------------------------------------------------------------------


class LoggingNotificationSink(NotificationSink):
    """Writes each event to the log.  The default when nothing else is set."""

    def __init__(self, logger_name: str = "tto_protocol.notifications.events") -> None:
        self._log = logging.getLogger(logger_name)

    async def send(self, event: NotificationEvent) -> None:
        self._log.info("[%s] %s: %s", event.alert_type, event.interviewer_id, event.message)


class WebhookNotificationSink(NotificationSink):
    """POSTs events to an in-app alert endpoint and optionally an email endpoint.

    Alert body: ``{interviewerId, alertType, message}``.

    Email body: ``{recipientEmail, template, data}``, sent only for flag and
    review events and only when ``email_url`` is set and the recipient can
    be resolved.  ``email_lookup`` maps an interviewer id to an address;
    the default treats ids that look like addresses as addresses.
    """

    def __init__(
        self,
        alert_url: str | None,
        *,
        email_url: str | None = None,
        email_lookup: Callable[[str], str | None] | None = None,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._alert_url = alert_url
        self._email_url = email_url
        self._email_lookup = email_lookup or _email_from_id
        self._timeout = timeout
        self._client = client

    async def send(self, event: NotificationEvent) -> None:
        if self._client is not None:
            await self._deliver(self._client, event)
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            await self._deliver(client, event)

    async def _deliver(self, client: httpx.AsyncClient, event: NotificationEvent) -> None:
        if self._alert_url:
            resp = await client.post(
                self._alert_url,
                json={
                    "interviewerId": event.interviewer_id,
                    "alertType": event.alert_type,
                    "message": event.message,
                },
            )
            resp.raise_for_status()

        if self._email_url and event.event_type in _EMAIL_EVENTS:
            recipient = self._email_lookup(event.interviewer_id)
            if recipient is None:
                logger.debug("No email address for interviewer %s", event.interviewer_id)
                return
            resp = await client.post(
                self._email_url,
                json={
                    "recipientEmail": recipient,
                    "template": event.event_type.value,
                    "data": event.to_payload(),
                },
            )
            resp.raise_for_status()


def _email_from_id(interviewer_id: str) -> str | None:
    return interviewer_id if "@" in interviewer_id else None
