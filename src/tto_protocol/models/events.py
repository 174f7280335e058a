"""Event contracts emitted by the core.

``NotificationEvent`` goes to notification sinks; ``ChangeEvent`` feeds
realtime subscribers that keep a client view in sync.
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field


class NotificationEventType(str, enum.Enum):
    SESSION_COMPLETED = "session_completed"
    SESSION_FLAGGED = "session_flagged"
    QUALITY_STATUS_CHANGED = "quality_status_changed"


class NotificationEvent(BaseModel):
    event_type: NotificationEventType
    session_id: uuid.UUID
    respondent_code: str
    interviewer_id: str
    message: str
    alert_type: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_payload(self) -> dict[str, str]:
        """Wire payload: ``{sessionId, respondentCode, interviewerId, message, alertType}``."""
        return {
            "sessionId": str(self.session_id),
            "respondentCode": self.respondent_code,
            "interviewerId": self.interviewer_id,
            "message": self.message,
            "alertType": self.alert_type,
        }


class ChangeEvent(BaseModel):
    """One row-level change, keyed by ``(table, record_id)``."""

    table: str
    record_id: uuid.UUID
    # owner of the session the row belongs to; used to scope subscriptions
    interviewer_id: str | None = None
    op: Literal["insert", "update", "delete"]
    record: dict[str, Any] | None = None
    version: int | None = None
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
