"""Child response tables of an interview session.

Each table is written independently of the session row.  Structural
invariants (one EQ-5D row per session, unique task numbers, value bounds,
the worse-than-death sign rule) are enforced here with constraints so a
buggy client cannot persist a row the protocol would never produce.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Float,
    ForeignKey,
    SmallInteger,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from tto_db.models.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _session_fk() -> Mapped[uuid.UUID]:
    return mapped_column(
        UUID(as_uuid=True),
        ForeignKey("interview_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


class EQ5DResponse(Base):
    """EQ-5D-5L warm-up answers: five dimension levels plus the VAS score."""

    __tablename__ = "eq5d_responses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    session_id: Mapped[uuid.UUID] = _session_fk()

    mobility: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    self_care: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    usual_activities: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    pain_discomfort: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    anxiety_depression: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    vas_score: Mapped[int] = mapped_column(SmallInteger, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        UniqueConstraint("session_id", name="uq_eq5d_session"),
        CheckConstraint(
            "mobility BETWEEN 1 AND 5 AND self_care BETWEEN 1 AND 5 "
            "AND usual_activities BETWEEN 1 AND 5 "
            "AND pain_discomfort BETWEEN 1 AND 5 "
            "AND anxiety_depression BETWEEN 1 AND 5",
            name="ck_eq5d_levels",
        ),
        CheckConstraint("vas_score BETWEEN 0 AND 100", name="ck_eq5d_vas"),
    )


class TTOResponse(Base):
    """One confirmed Time Trade-Off task.

    Immutable after insert; the flags are computed before the row is written.
    """

    __tablename__ = "tto_responses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    session_id: Mapped[uuid.UUID] = _session_fk()

    task_number: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    # Five-digit EQ-5D-5L code, e.g. "21232"
    health_state: Mapped[str] = mapped_column(Text, nullable=False)

    final_value: Mapped[float] = mapped_column(Float, nullable=False)
    is_worse_than_death: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    # Lead-time years; only set when the lead-time branch was used
    lead_time_value: Mapped[float | None] = mapped_column(Float, nullable=True)

    flagged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    flag_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    moves_count: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)
    time_spent_seconds: Mapped[int] = mapped_column(
        SmallInteger, nullable=False, default=0
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow, index=True
    )

    __table_args__ = (
        UniqueConstraint("session_id", "task_number", name="uq_tto_session_task"),
        CheckConstraint("task_number >= 1", name="ck_tto_task_positive"),
        CheckConstraint(
            "final_value BETWEEN -1 AND 1", name="ck_tto_value_range"
        ),
        CheckConstraint(
            "is_worse_than_death = (final_value < 0)", name="ck_tto_wtd_sign"
        ),
    )


class DCEResponse(Base):
    """One discrete-choice task: which of two health states was preferred."""

    __tablename__ = "dce_responses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    session_id: Mapped[uuid.UUID] = _session_fk()

    task_number: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    state_a: Mapped[str] = mapped_column(Text, nullable=False)
    state_b: Mapped[str] = mapped_column(Text, nullable=False)
    chosen_state: Mapped[str] = mapped_column(Text, nullable=False)
    time_spent_seconds: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        UniqueConstraint("session_id", "task_number", name="uq_dce_session_task"),
        CheckConstraint(
            "chosen_state = state_a OR chosen_state = state_b",
            name="ck_dce_chosen_is_option",
        ),
    )


class Demographics(Base):
    """Respondent background answers; at most one row per session."""

    __tablename__ = "demographics"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    session_id: Mapped[uuid.UUID] = _session_fk()

    age: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    gender: Mapped[str | None] = mapped_column(Text, nullable=True)
    education: Mapped[str | None] = mapped_column(Text, nullable=True)
    employment: Mapped[str | None] = mapped_column(Text, nullable=True)
    ethnicity: Mapped[str | None] = mapped_column(Text, nullable=True)
    marital_status: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        UniqueConstraint("session_id", name="uq_demographics_session"),
        CheckConstraint("age IS NULL OR age BETWEEN 0 AND 130", name="ck_demo_age"),
    )


class SessionNote(Base):
    """Free-text interviewer/admin note attached to a session."""

    __tablename__ = "session_notes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    session_id: Mapped[uuid.UUID] = _session_fk()

    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )
