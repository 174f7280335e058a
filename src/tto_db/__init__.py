"""tto_db — PostgreSQL persistence layer for TTO interview sessions.

This package provides the ORM models, async engine factory, and repository
for creating, updating, and querying interview sessions and their response
tables.  It is consumed by the protocol engine and the FastAPI server.
"""

from tto_db.engine import get_engine, get_session_factory
from tto_db.models.enums import InterviewStep, QualityStatus, SessionStatus
from tto_db.models.responses import (
    DCEResponse,
    Demographics,
    EQ5DResponse,
    SessionNote,
    TTOResponse,
)
from tto_db.models.session import InterviewSession
from tto_db.models.sync import AppliedAction
from tto_db.repository import SessionRepository

__all__ = [
    "AppliedAction",
    "DCEResponse",
    "Demographics",
    "EQ5DResponse",
    "InterviewSession",
    "InterviewStep",
    "QualityStatus",
    "SessionNote",
    "SessionRepository",
    "SessionStatus",
    "TTOResponse",
    "get_engine",
    "get_session_factory",
]
