"""InterviewSession ORM model — one row per respondent interview.

The session row carries protocol position (``current_step``) and the
administrator review columns.  Responses live in child tables
(``tto_db.models.responses``) which are written independently; there is no
multi-table transaction between them.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Index, Integer, String, Text, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import ARRAY, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from tto_db.models.base import Base
from tto_db.models.enums import InterviewStep, QualityStatus, SessionStatus


class InterviewSession(Base):
    """One row per interview.

    ``respondent_code`` is assigned by the interviewer and is unique per
    interviewer, not globally.
    """

    __tablename__ = "interview_sessions"

    # --- Primary key ---
    # Client may supply the id (sessions created while offline)
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # --- Identity ---
    respondent_code: Mapped[str] = mapped_column(Text, nullable=False)
    interviewer_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    language: Mapped[str] = mapped_column(String(8), nullable=False, default="en")

    # --- Protocol position ---
    status: Mapped[SessionStatus] = mapped_column(
        String(20),
        nullable=False,
        default=SessionStatus.IN_PROGRESS,
        index=True,
    )
    current_step: Mapped[InterviewStep] = mapped_column(
        String(20),
        nullable=False,
        default=InterviewStep.CONSENT,
    )

    # --- Advisory flags raised by the session-level quality check ---
    auto_flags: Mapped[list[str]] = mapped_column(
        ARRAY(Text),
        nullable=False,
        server_default=text("'{}'::text[]"),
        default=list,
    )

    # --- Administrator review (written only under admin authority) ---
    quality_status: Mapped[QualityStatus] = mapped_column(
        String(20),
        nullable=False,
        default=QualityStatus.PENDING,
        server_default=text("'pending'"),
    )
    quality_reviewed_by: Mapped[str | None] = mapped_column(Text, nullable=True)
    quality_reviewed_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    quality_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # --- Optimistic concurrency ---
    # Every UPDATE is checked against it (a stale flush raises StaleDataError),
    # but only interviewer-side writes bump it: SessionRepository increments
    # it by hand and leaves it alone for the quality_* review columns.
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # --- Timestamps ---
    started_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}

    __table_args__ = (
        UniqueConstraint(
            "interviewer_id", "respondent_code", name="uq_interviewer_respondent"
        ),
        CheckConstraint(
            "status IN ('in_progress', 'completed', 'abandoned')",
            name="ck_session_status",
        ),
        CheckConstraint(
            "quality_status IN ('pending', 'approved', 'flagged', 'rejected')",
            name="ck_quality_status",
        ),
        # A completed session has reached the terminal step and has a timestamp
        CheckConstraint(
            "status != 'completed' OR "
            "(current_step = 'complete' AND completed_at IS NOT NULL)",
            name="ck_completed_is_terminal",
        ),
        # --- Indexes for the filtered range queries ---
        Index("ix_sessions_interviewer_started", "interviewer_id", "started_at"),
        Index("ix_sessions_quality_status", "quality_status"),
    )

    def __repr__(self) -> str:
        return (
            f"<InterviewSession(id={self.id!s}, respondent={self.respondent_code!r}, "
            f"interviewer={self.interviewer_id!r}, status={self.status!r}, "
            f"step={self.current_step!r})>"
        )
