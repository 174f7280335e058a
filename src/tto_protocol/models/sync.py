"""Offline synchronisation models.

A ``PendingAction`` is one interviewer write captured on the device.  The
client-generated ``id`` is the idempotency key: the server applies a given
id at most once and answers duplicates with the first result.
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field


class ActionType(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class PendingAction(BaseModel):
    """A queued write, replayed in enqueue order.

    ``record_id`` names the target row for updates and deletes of rows
    other than the session itself (e.g. a note).
    """

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    type: ActionType
    table: str
    session_id: uuid.UUID | None = None
    record_id: uuid.UUID | None = None
    payload: dict[str, Any] = {}
    enqueued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ReplayResult(BaseModel):
    """Server answer for one replayed action.

    ``duplicate`` is true when the id had already been applied and
    ``result`` is the stored outcome of that first application.
    """

    action_id: uuid.UUID
    status: Literal["applied", "rejected"]
    duplicate: bool = False
    result: dict[str, Any] | None = None
    error: str | None = None
    detail: str | None = None


class ReplayReport(BaseModel):
    """Outcome of one client-side drain of the offline queue."""

    applied: list[uuid.UUID] = []
    rejected: list[ReplayResult] = []
    remaining: int = 0
    # Set when the drain stopped early (persistence failure or cancellation)
    stopped_by: str | None = None
    # True when another replay already held the lock
    skipped: bool = False


class QueueLoadReport(BaseModel):
    """What happened when the queue file was read at startup."""

    loaded: int = 0
    reset: bool = False
    error: str | None = None
