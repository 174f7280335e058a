"""Async CRUD repository for interview sessions and their response tables.

All public methods accept an ``AsyncSession`` so the caller controls
transaction boundaries.  Methods call ``flush()`` but never ``commit()``.

The repository deliberately avoids business-logic validation — that belongs
in the protocol engine.  It *does* enforce structural invariants (unique
task numbers, value bounds, one EQ-5D row per session) via DB constraints.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

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

# Demographic columns that may be written; anything else is ignored.
DEMOGRAPHIC_FIELDS = (
    "age",
    "gender",
    "education",
    "employment",
    "ethnicity",
    "marital_status",
)


def _stamp(session: InterviewSession, *, bump_version: bool = True) -> datetime:
    """Set ``updated_at``; interviewer-side writes also take the next ``version``."""
    now = datetime.now(timezone.utc)
    session.updated_at = now
    if bump_version:
        session.version = session.version + 1
    return now


class SessionRepository:
    """Async read/write operations on the interview tables."""

    # ------------------------------------------------------------------
    # Sessions — create / read
    # ------------------------------------------------------------------

    async def create_session(
        self,
        db: AsyncSession,
        *,
        interviewer_id: str,
        respondent_code: str,
        language: str = "en",
        session_pk: uuid.UUID | None = None,
    ) -> InterviewSession:
        """Insert a new session row at the consent step and return it."""
        session = InterviewSession(
            interviewer_id=interviewer_id,
            respondent_code=respondent_code,
            language=language,
            status=SessionStatus.IN_PROGRESS,
            current_step=InterviewStep.CONSENT,
            quality_status=QualityStatus.PENDING,
            auto_flags=[],
            version=1,
        )
        if session_pk is not None:
            session.id = session_pk
        db.add(session)
        await db.flush()  # Populate defaults (id, timestamps, version)
        return session

    async def get_by_id(
        self, db: AsyncSession, session_pk: uuid.UUID
    ) -> InterviewSession | None:
        """Fetch a session by its primary-key UUID."""
        return await db.get(InterviewSession, session_pk)

    async def get_by_interviewer_and_code(
        self, db: AsyncSession, interviewer_id: str, respondent_code: str
    ) -> InterviewSession | None:
        """Fetch a session by the unique (interviewer_id, respondent_code) pair."""
        stmt = select(InterviewSession).where(
            InterviewSession.interviewer_id == interviewer_id,
            InterviewSession.respondent_code == respondent_code,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_sessions(
        self,
        db: AsyncSession,
        *,
        interviewer_id: str | None = None,
        status: str | None = None,
        quality_status: str | None = None,
        started_from: datetime | None = None,
        started_to: datetime | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[InterviewSession]:
        """Filtered range query over sessions, most recent first.

        Every filter is optional; ``None`` means "don't filter on this".
        ``started_to`` is exclusive.
        """
        stmt = select(InterviewSession)
        if interviewer_id is not None:
            stmt = stmt.where(InterviewSession.interviewer_id == interviewer_id)
        if status is not None:
            stmt = stmt.where(InterviewSession.status == status)
        if quality_status is not None:
            stmt = stmt.where(InterviewSession.quality_status == quality_status)
        if started_from is not None:
            stmt = stmt.where(InterviewSession.started_at >= started_from)
        if started_to is not None:
            stmt = stmt.where(InterviewSession.started_at < started_to)
        stmt = (
            stmt.order_by(InterviewSession.started_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Sessions — interviewer-side updates
    # ------------------------------------------------------------------

    async def set_step(
        self, db: AsyncSession, session: InterviewSession, step: InterviewStep
    ) -> InterviewSession:
        """Move the session to ``step`` (forward or back)."""
        session.current_step = step
        _stamp(session)
        await db.flush()
        return session

    async def complete_session(
        self, db: AsyncSession, session: InterviewSession
    ) -> InterviewSession:
        """Finalize the session at the terminal step.

        The CHECK constraint ``ck_completed_is_terminal`` enforces that a
        completed row sits on ``complete`` with ``completed_at`` set.
        """
        session.current_step = InterviewStep.COMPLETE
        session.status = SessionStatus.COMPLETED
        session.completed_at = _stamp(session)
        await db.flush()
        return session

    async def abandon_session(
        self, db: AsyncSession, session: InterviewSession
    ) -> InterviewSession:
        """Mark an in-progress session as abandoned."""
        session.status = SessionStatus.ABANDONED
        _stamp(session)
        await db.flush()
        return session

    async def set_language(
        self, db: AsyncSession, session: InterviewSession, language: str
    ) -> InterviewSession:
        """Change the interview language."""
        session.language = language
        _stamp(session)
        await db.flush()
        return session

    async def save_auto_flags(
        self, db: AsyncSession, session: InterviewSession, flags: list[str]
    ) -> InterviewSession:
        """Replace the session-level advisory flags."""
        # New list so SQLAlchemy detects the mutation
        session.auto_flags = list(flags)
        _stamp(session)
        await db.flush()
        return session

    # ------------------------------------------------------------------
    # Sessions — administrator review columns
    # ------------------------------------------------------------------

    async def set_quality_review(
        self,
        db: AsyncSession,
        session: InterviewSession,
        *,
        status: QualityStatus,
        reviewed_by: str,
        notes: str | None,
    ) -> InterviewSession:
        """Write all four ``quality_*`` columns together.

        Review writes never bump ``version``, so a decision landing between
        two interviewer writes does not make the interviewer's next write
        stale.
        """
        session.quality_status = status
        session.quality_reviewed_by = reviewed_by
        session.quality_reviewed_at = _stamp(session, bump_version=False)
        session.quality_notes = notes
        await db.flush()
        return session

    async def set_quality_notes(
        self, db: AsyncSession, session: InterviewSession, notes: str | None
    ) -> InterviewSession:
        """Update only the review notes (same-state re-review)."""
        session.quality_notes = notes
        _stamp(session, bump_version=False)
        await db.flush()
        return session

    # ------------------------------------------------------------------
    # EQ-5D
    # ------------------------------------------------------------------

    async def get_eq5d(
        self, db: AsyncSession, session_pk: uuid.UUID
    ) -> EQ5DResponse | None:
        stmt = select(EQ5DResponse).where(EQ5DResponse.session_id == session_pk)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def create_eq5d(
        self,
        db: AsyncSession,
        session: InterviewSession,
        *,
        mobility: int,
        self_care: int,
        usual_activities: int,
        pain_discomfort: int,
        anxiety_depression: int,
        vas_score: int,
    ) -> EQ5DResponse:
        row = EQ5DResponse(
            session_id=session.id,
            mobility=mobility,
            self_care=self_care,
            usual_activities=usual_activities,
            pain_discomfort=pain_discomfort,
            anxiety_depression=anxiety_depression,
            vas_score=vas_score,
        )
        db.add(row)
        await db.flush()
        return row

    # ------------------------------------------------------------------
    # TTO
    # ------------------------------------------------------------------

    async def list_tto(
        self, db: AsyncSession, session_pk: uuid.UUID
    ) -> list[TTOResponse]:
        """All TTO rows for a session ordered by task number."""
        stmt = (
            select(TTOResponse)
            .where(TTOResponse.session_id == session_pk)
            .order_by(TTOResponse.task_number)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def list_tto_in_range(
        self,
        db: AsyncSession,
        *,
        interviewer_id: str | None = None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
        flagged: bool | None = None,
    ) -> list[TTOResponse]:
        """Filtered range query over TTO rows across sessions."""
        stmt = select(TTOResponse).join(
            InterviewSession, InterviewSession.id == TTOResponse.session_id
        )
        if interviewer_id is not None:
            stmt = stmt.where(InterviewSession.interviewer_id == interviewer_id)
        if created_from is not None:
            stmt = stmt.where(TTOResponse.created_at >= created_from)
        if created_to is not None:
            stmt = stmt.where(TTOResponse.created_at < created_to)
        if flagged is not None:
            stmt = stmt.where(TTOResponse.flagged == flagged)
        stmt = stmt.order_by(TTOResponse.created_at)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def create_tto(
        self,
        db: AsyncSession,
        session: InterviewSession,
        *,
        task_number: int,
        health_state: str,
        final_value: float,
        is_worse_than_death: bool,
        lead_time_value: float | None,
        flagged: bool,
        flag_reason: str | None,
        moves_count: int,
        time_spent_seconds: int,
    ) -> TTOResponse:
        row = TTOResponse(
            session_id=session.id,
            task_number=task_number,
            health_state=health_state,
            final_value=final_value,
            is_worse_than_death=is_worse_than_death,
            lead_time_value=lead_time_value,
            flagged=flagged,
            flag_reason=flag_reason,
            moves_count=moves_count,
            time_spent_seconds=time_spent_seconds,
        )
        db.add(row)
        await db.flush()
        return row

    # ------------------------------------------------------------------
    # DCE
    # ------------------------------------------------------------------

    async def list_dce(
        self, db: AsyncSession, session_pk: uuid.UUID
    ) -> list[DCEResponse]:
        stmt = (
            select(DCEResponse)
            .where(DCEResponse.session_id == session_pk)
            .order_by(DCEResponse.task_number)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def create_dce(
        self,
        db: AsyncSession,
        session: InterviewSession,
        *,
        task_number: int,
        state_a: str,
        state_b: str,
        chosen_state: str,
        time_spent_seconds: int | None = None,
    ) -> DCEResponse:
        row = DCEResponse(
            session_id=session.id,
            task_number=task_number,
            state_a=state_a,
            state_b=state_b,
            chosen_state=chosen_state,
            time_spent_seconds=time_spent_seconds,
        )
        db.add(row)
        await db.flush()
        return row

    # ------------------------------------------------------------------
    # Demographics
    # ------------------------------------------------------------------

    async def get_demographics(
        self, db: AsyncSession, session_pk: uuid.UUID
    ) -> Demographics | None:
        stmt = select(Demographics).where(Demographics.session_id == session_pk)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def save_demographics(
        self,
        db: AsyncSession,
        session: InterviewSession,
        fields: dict[str, Any],
    ) -> Demographics:
        """Upsert demographics, last write wins per field.

        Only keys present in ``fields`` are written; omitted keys keep
        their stored value.
        """
        row = await self.get_demographics(db, session.id)
        if row is None:
            row = Demographics(session_id=session.id)
            db.add(row)
        for key in DEMOGRAPHIC_FIELDS:
            if key in fields:
                setattr(row, key, fields[key])
        await db.flush()
        return row

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    async def list_notes(
        self, db: AsyncSession, session_pk: uuid.UUID
    ) -> list[SessionNote]:
        """Notes for a session, newest first."""
        stmt = (
            select(SessionNote)
            .where(SessionNote.session_id == session_pk)
            .order_by(SessionNote.created_at.desc())
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def get_note(
        self, db: AsyncSession, note_pk: uuid.UUID
    ) -> SessionNote | None:
        return await db.get(SessionNote, note_pk)

    async def create_note(
        self,
        db: AsyncSession,
        session: InterviewSession,
        *,
        content: str,
        created_by: str,
        note_pk: uuid.UUID | None = None,
    ) -> SessionNote:
        note = SessionNote(
            session_id=session.id, content=content, created_by=created_by
        )
        if note_pk is not None:
            note.id = note_pk
        db.add(note)
        await db.flush()
        return note

    async def update_note(
        self, db: AsyncSession, note: SessionNote, content: str
    ) -> SessionNote:
        note.content = content
        note.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return note

    async def delete_note(self, db: AsyncSession, note: SessionNote) -> None:
        await db.delete(note)
        await db.flush()

    # ------------------------------------------------------------------
    # Replay ledger
    # ------------------------------------------------------------------

    async def get_applied_action(
        self, db: AsyncSession, action_pk: uuid.UUID
    ) -> AppliedAction | None:
        return await db.get(AppliedAction, action_pk)

    async def record_applied_action(
        self,
        db: AsyncSession,
        *,
        action_pk: uuid.UUID,
        session_pk: uuid.UUID | None,
        actor_id: str,
        action_type: str,
        target_table: str,
        result: dict[str, Any],
    ) -> AppliedAction:
        """Write the ledger row; same transaction as the mutation itself."""
        row = AppliedAction(
            id=action_pk,
            session_id=session_pk,
            actor_id=actor_id,
            action_type=action_type,
            target_table=target_table,
            result=result,
        )
        db.add(row)
        await db.flush()
        return row
