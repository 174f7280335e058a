"""ORM models for tto_db."""

from tto_db.models.base import Base
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

__all__ = [
    "AppliedAction",
    "Base",
    "DCEResponse",
    "Demographics",
    "EQ5DResponse",
    "InterviewSession",
    "InterviewStep",
    "QualityStatus",
    "SessionNote",
    "SessionStatus",
    "TTOResponse",
]
