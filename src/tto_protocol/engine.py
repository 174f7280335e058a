"""InterviewEngine — the orchestrator for the TTO interview protocol.

Stateless engine pattern: each call loads session state from the database,
validates the request, persists changes, and returns the result.  No
in-memory state is kept between calls.

The engine accepts an ``AsyncSession`` from the caller so that the caller
(typically a FastAPI endpoint) controls transaction boundaries, and an
``ActorContext`` naming who is acting.  Sessions belonging to another
interviewer are reported as not found.  Notifications and change events
are parked in the transaction's outbox (``tto_protocol.outbox``) and go
out only once the caller has committed.

Step overview:
    consent       — respondent agrees to take part (no data)
    warmup        — EQ-5D-5L self-report + VAS (one row)
    practice      — practice TTO on a fixed state (not stored)
    tto           — N valuation tasks, one row each, task cursor
    feedback      — review of the TTO answers (no data)
    dce           — M discrete-choice tasks, one row each
    demographics  — respondent background (one row, mergeable)
    complete      — terminal; finalization runs exactly once
"""

from __future__ import annotations

import logging
import re
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator

from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from tto_db.models.enums import InterviewStep, QualityStatus, SessionStatus
from tto_db.models.session import InterviewSession
from tto_db.repository import SessionRepository

from tto_protocol import outbox
from tto_protocol.catalogue import ProtocolCatalogue
from tto_protocol.changefeed import ChangeFeed
from tto_protocol.constants import (
    RESPONDENT_CODE_MAX_LENGTH,
    RESPONDENT_CODE_PATTERN,
    STEP_LABELS,
    SUPPORTED_LANGUAGES,
)
from tto_protocol.context import ActorContext
from tto_protocol.errors import (
    ConcurrencyConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    PersistenceError,
    ValidationError,
)
from tto_protocol.models.answers import (
    DCESubmission,
    DemographicsAnswers,
    EQ5DAnswers,
    ReviewDecision,
    TTOSubmission,
)
from tto_protocol.models.events import ChangeEvent
from tto_protocol.models.session import (
    DCEResponseInfo,
    DemographicsInfo,
    EQ5DInfo,
    NoteInfo,
    SessionBundle,
    SessionInfo,
    StepView,
    TTOResponseInfo,
)
from tto_protocol.notifications import NotificationDispatcher
from tto_protocol.quality import QualityFlagger
from tto_protocol.review import QualityReviewWorkflow
from tto_protocol.sequencer import StepProgress, StepSequencer
from tto_protocol.valuation import TTOValuationEngine

logger = logging.getLogger(__name__)

_RESPONDENT_CODE_RE = re.compile(RESPONDENT_CODE_PATTERN)


class InterviewEngine:
    """Orchestrates an interview across its steps.

    Args:
        catalogue: a loaded :class:`ProtocolCatalogue`
        dispatcher: where completion / flag / review events go
        change_feed: optional feed that receives a ``ChangeEvent`` per write
    """

    def __init__(
        self,
        catalogue: ProtocolCatalogue,
        *,
        dispatcher: NotificationDispatcher | None = None,
        change_feed: ChangeFeed | None = None,
        flagger: QualityFlagger | None = None,
        valuation: TTOValuationEngine | None = None,
    ) -> None:
        self._catalogue = catalogue
        self._repo = SessionRepository()
        self._dispatcher = dispatcher or NotificationDispatcher()
        self._feed = change_feed
        self._flagger = flagger or QualityFlagger()
        self._valuation = valuation or TTOValuationEngine()
        self._sequencer = StepSequencer(
            catalogue.tto_task_count, catalogue.dce_task_count
        )

    @property
    def repository(self) -> SessionRepository:
        return self._repo

    @property
    def catalogue(self) -> ProtocolCatalogue:
        return self._catalogue

    # ==================================================================
    # Session lifecycle
    # ==================================================================

    async def create_session(
        self,
        db: AsyncSession,
        actor: ActorContext,
        *,
        respondent_code: str,
        language: str = "en",
        session_id: uuid.UUID | None = None,
    ) -> SessionInfo:
        """Create a new interview at the consent step.

        ``session_id`` lets a device that created the session offline keep
        its own id.  The caller must ``await db.commit()`` to persist, then
        ``await outbox.deliver(db)`` to publish the change event.

        Raises:
            ValidationError: malformed or duplicate respondent code, or an
                unsupported language
        """
        code = self._validate_respondent_code(respondent_code)
        if language not in SUPPORTED_LANGUAGES:
            raise ValidationError(f"Unsupported language: {language!r}")

        existing = await self._repo.get_by_interviewer_and_code(db, actor.user_id, code)
        if existing is not None:
            raise ValidationError(f"Respondent code {code!r} already exists")
        if session_id is not None and await self._repo.get_by_id(db, session_id) is not None:
            raise ValidationError(f"Session {session_id} already exists")

        with self._db_errors("create session"):
            row = await self._repo.create_session(
                db,
                interviewer_id=actor.user_id,
                respondent_code=code,
                language=language,
                session_pk=session_id,
            )
        logger.info(
            "Session %s created by %s (respondent=%s)", row.id, actor.user_id, code
        )
        info = self._to_session_info(row)
        self._emit(db, row, "interview_sessions", row.id, "insert", info.model_dump(mode="json"), info.version)
        return info

    async def get_session(
        self, db: AsyncSession, actor: ActorContext, session_id: uuid.UUID | str
    ) -> SessionInfo:
        """Fetch session info.  Raises ``NotFoundError`` if missing or foreign."""
        row = await self._load_session(db, actor, session_id)
        return self._to_session_info(row)

    async def list_sessions(
        self,
        db: AsyncSession,
        actor: ActorContext,
        *,
        interviewer_id: str | None = None,
        status: SessionStatus | None = None,
        quality_status: QualityStatus | None = None,
        started_from: datetime | None = None,
        started_to: datetime | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[SessionInfo]:
        """List sessions, most recent first.

        Interviewers only see their own sessions; admins may filter by any
        interviewer or none.
        """
        if not actor.is_admin:
            if interviewer_id is not None and interviewer_id != actor.user_id:
                raise PermissionDeniedError(
                    f"{actor.user_id} may not list sessions of {interviewer_id}"
                )
            interviewer_id = actor.user_id

        rows = await self._repo.list_sessions(
            db,
            interviewer_id=interviewer_id,
            status=SessionStatus(status).value if status else None,
            quality_status=QualityStatus(quality_status).value if quality_status else None,
            started_from=started_from,
            started_to=started_to,
            limit=limit,
            offset=offset,
        )
        return [self._to_session_info(r) for r in rows]

    async def abandon(
        self,
        db: AsyncSession,
        actor: ActorContext,
        session_id: uuid.UUID | str,
        *,
        expected_version: int | None = None,
    ) -> SessionInfo:
        """Mark an in-progress session as abandoned.  No further writes are accepted."""
        row = await self._load_session(db, actor, session_id)
        self._check_version(row, expected_version)
        self._require_in_progress(row)
        with self._db_errors("abandon session"):
            await self._repo.abandon_session(db, row)
        logger.info("Session %s abandoned at %s", row.id, row.current_step)
        return self._session_changed(db, row)

    async def set_language(
        self,
        db: AsyncSession,
        actor: ActorContext,
        session_id: uuid.UUID | str,
        language: str,
    ) -> SessionInfo:
        if language not in SUPPORTED_LANGUAGES:
            raise ValidationError(f"Unsupported language: {language!r}")
        row = await self._load_session(db, actor, session_id)
        self._require_in_progress(row)
        with self._db_errors("set language"):
            await self._repo.set_language(db, row, language)
        return self._session_changed(db, row)

    # ==================================================================
    # Step API
    # ==================================================================

    async def get_current_step(
        self, db: AsyncSession, actor: ActorContext, session_id: uuid.UUID | str
    ) -> StepView:
        """Return what the interviewer should show now.  Read-only."""
        row = await self._load_session(db, actor, session_id)
        progress = await self._load_progress(db, row)
        return self._build_step_view(row, progress)

    async def advance(
        self,
        db: AsyncSession,
        actor: ActorContext,
        session_id: uuid.UUID | str,
        *,
        from_step: InterviewStep,
        expected_version: int | None = None,
    ) -> StepView:
        """Move forward one step from ``from_step``.

        Reaching ``complete`` finalizes the session exactly once: status,
        completed_at, the session-level quality check and the completion
        notification.  Advancing a completed session from ``complete`` is
        a no-op.

        Raises:
            InvalidTransitionError: ``from_step`` is stale, or the session
                is abandoned
            StepIncompleteError: the current step's data is not recorded
            ConcurrencyConflictError: ``expected_version`` is stale
        """
        row = await self._load_session(db, actor, session_id)
        self._check_version(row, expected_version)
        from_step = InterviewStep(from_step)
        status = SessionStatus(row.status)

        if status == SessionStatus.ABANDONED:
            raise InvalidTransitionError("Session is abandoned")

        progress = await self._load_progress(db, row)
        current = InterviewStep(row.current_step)
        next_step = self._sequencer.advance(current, from_step, progress)

        if status == SessionStatus.COMPLETED:
            # already finalized; from_step == complete here
            return self._build_step_view(row, progress)

        if next_step == InterviewStep.COMPLETE:
            await self._finalize(db, row)
        else:
            with self._db_errors("advance step"):
                await self._repo.set_step(db, row, next_step)
            logger.info("Session %s advanced %s -> %s", row.id, current.value, next_step.value)
        self._session_changed(db, row)
        return self._build_step_view(row, progress)

    async def back(
        self,
        db: AsyncSession,
        actor: ActorContext,
        session_id: uuid.UUID | str,
        *,
        to_step: InterviewStep | None = None,
        expected_version: int | None = None,
    ) -> StepView:
        """Return to an earlier step (default: the previous one).

        Non-destructive: recorded answers stay in place.
        """
        row = await self._load_session(db, actor, session_id)
        self._check_version(row, expected_version)
        current = InterviewStep(row.current_step)
        target = self._sequencer.back(current, row.status, to_step)
        with self._db_errors("step back"):
            await self._repo.set_step(db, row, target)
        logger.info("Session %s went back %s -> %s", row.id, current.value, target.value)
        self._session_changed(db, row)
        progress = await self._load_progress(db, row)
        return self._build_step_view(row, progress)

    # ==================================================================
    # Responses
    # ==================================================================

    async def submit_eq5d(
        self,
        db: AsyncSession,
        actor: ActorContext,
        session_id: uuid.UUID | str,
        answers: EQ5DAnswers,
    ) -> EQ5DInfo:
        """Record the warm-up answers.  At most once per session."""
        row = await self._load_session(db, actor, session_id)
        self._require_step(row, InterviewStep.WARMUP)
        if await self._repo.get_eq5d(db, row.id) is not None:
            raise ValidationError("EQ-5D-5L answers already recorded for this session")
        with self._db_errors("record EQ-5D answers"):
            eq5d = await self._repo.create_eq5d(db, row, **answers.model_dump())
        info = EQ5DInfo.model_validate(eq5d)
        self._emit(db, row, "eq5d_responses", eq5d.id, "insert", info.model_dump(mode="json"))
        return info

    async def submit_tto(
        self,
        db: AsyncSession,
        actor: ActorContext,
        session_id: uuid.UUID | str,
        submission: TTOSubmission,
    ) -> TTOResponseInfo:
        """Value the health state at the task cursor and store the answer.

        The value comes from the valuation engine and the flags from the
        quality flagger; neither is accepted from the caller.  Flags are
        advisory and never block the write.
        """
        row = await self._load_session(db, actor, session_id)
        self._require_step(row, InterviewStep.TTO)
        progress = await self._load_progress(db, row)
        task_number = self._sequencer.next_tto_task(progress)
        if task_number is None:
            raise ValidationError(
                f"All {self._catalogue.tto_task_count} TTO tasks are already recorded"
            )
        if submission.task_number is not None and submission.task_number != task_number:
            raise ValidationError(
                f"Expected TTO task {task_number}, got {submission.task_number}"
            )

        state = self._catalogue.tto_state(task_number)
        valuation = self._valuation.evaluate(submission)
        flags = self._flagger.evaluate_response(
            time_spent_seconds=submission.time_spent_seconds,
            moves_count=submission.moves_count,
        )

        with self._db_errors("record TTO answer"):
            tto = await self._repo.create_tto(
                db,
                row,
                task_number=task_number,
                health_state=state.code,
                final_value=valuation.final_value,
                is_worse_than_death=valuation.is_worse_than_death,
                lead_time_value=valuation.lead_time_value,
                flagged=flags.flagged,
                flag_reason=flags.flag_reason,
                moves_count=submission.moves_count,
                time_spent_seconds=submission.time_spent_seconds,
            )
        logger.info(
            "Session %s TTO task %d (%s) = %s%s",
            row.id,
            task_number,
            state.code,
            valuation.final_value,
            f" [flagged: {', '.join(flags.reasons)}]" if flags.flagged else "",
        )
        info = TTOResponseInfo.model_validate(tto)
        self._emit(db, row, "tto_responses", tto.id, "insert", info.model_dump(mode="json"))
        return info

    async def submit_dce(
        self,
        db: AsyncSession,
        actor: ActorContext,
        session_id: uuid.UUID | str,
        submission: DCESubmission,
    ) -> DCEResponseInfo:
        """Record the choice for the DCE task at the cursor."""
        row = await self._load_session(db, actor, session_id)
        self._require_step(row, InterviewStep.DCE)
        progress = await self._load_progress(db, row)
        task_number = self._sequencer.next_dce_task(progress)
        if task_number is None:
            raise ValidationError(
                f"All {self._catalogue.dce_task_count} choice tasks are already recorded"
            )
        if submission.task_number is not None and submission.task_number != task_number:
            raise ValidationError(
                f"Expected choice task {task_number}, got {submission.task_number}"
            )

        pair = self._catalogue.dce_pair(task_number)
        if submission.chosen_state not in (pair.state_a, pair.state_b):
            raise ValidationError(
                f"Chosen state {submission.chosen_state!r} is not one of "
                f"{pair.state_a}/{pair.state_b}"
            )
        with self._db_errors("record choice"):
            dce = await self._repo.create_dce(
                db,
                row,
                task_number=task_number,
                state_a=pair.state_a,
                state_b=pair.state_b,
                chosen_state=submission.chosen_state,
                time_spent_seconds=submission.time_spent_seconds,
            )
        info = DCEResponseInfo.model_validate(dce)
        self._emit(db, row, "dce_responses", dce.id, "insert", info.model_dump(mode="json"))
        return info

    async def save_demographics(
        self,
        db: AsyncSession,
        actor: ActorContext,
        session_id: uuid.UUID | str,
        answers: DemographicsAnswers,
    ) -> DemographicsInfo:
        """Merge demographic fields into the session's row, last write wins."""
        row = await self._load_session(db, actor, session_id)
        self._require_step(row, InterviewStep.DEMOGRAPHICS)
        fields = answers.model_dump(exclude_unset=True)
        with self._db_errors("save demographics"):
            demo = await self._repo.save_demographics(db, row, fields)
        info = DemographicsInfo.model_validate(demo)
        self._emit(db, row, "demographics", demo.id, "update", info.model_dump(mode="json"))
        return info

    # ==================================================================
    # Notes
    # ==================================================================

    async def list_notes(
        self, db: AsyncSession, actor: ActorContext, session_id: uuid.UUID | str
    ) -> list[NoteInfo]:
        row = await self._load_session(db, actor, session_id)
        notes = await self._repo.list_notes(db, row.id)
        return [NoteInfo.model_validate(n) for n in notes]

    async def add_note(
        self,
        db: AsyncSession,
        actor: ActorContext,
        session_id: uuid.UUID | str,
        content: str,
        *,
        note_id: uuid.UUID | None = None,
    ) -> NoteInfo:
        """Attach a note.  Allowed in any session status."""
        row = await self._load_session(db, actor, session_id)
        with self._db_errors("add note"):
            note = await self._repo.create_note(
                db, row, content=content, created_by=actor.user_id, note_pk=note_id
            )
        info = NoteInfo.model_validate(note)
        self._emit(db, row, "session_notes", note.id, "insert", info.model_dump(mode="json"))
        return info

    async def update_note(
        self,
        db: AsyncSession,
        actor: ActorContext,
        session_id: uuid.UUID | str,
        note_id: uuid.UUID | str,
        content: str,
    ) -> NoteInfo:
        row = await self._load_session(db, actor, session_id)
        note = await self._load_note(db, row, note_id)
        with self._db_errors("update note"):
            await self._repo.update_note(db, note, content)
        info = NoteInfo.model_validate(note)
        self._emit(db, row, "session_notes", note.id, "update", info.model_dump(mode="json"))
        return info

    async def delete_note(
        self,
        db: AsyncSession,
        actor: ActorContext,
        session_id: uuid.UUID | str,
        note_id: uuid.UUID | str,
    ) -> None:
        row = await self._load_session(db, actor, session_id)
        note = await self._load_note(db, row, note_id)
        with self._db_errors("delete note"):
            await self._repo.delete_note(db, note)
        self._emit(db, row, "session_notes", note.id, "delete")

    # ==================================================================
    # Review & export
    # ==================================================================

    async def review_quality(
        self,
        db: AsyncSession,
        actor: ActorContext,
        session_id: uuid.UUID | str,
        decision: ReviewDecision,
    ) -> SessionInfo:
        """Apply an administrator quality decision.

        Raises:
            PermissionDeniedError: the actor is not an administrator
        """
        actor.require_admin("review session quality")
        row = await self._load_session(db, actor, session_id)
        workflow = QualityReviewWorkflow(self._repo, self._dispatcher)
        with self._db_errors("record review"):
            await workflow.apply(db, actor, row, decision.status, decision.notes)
        return self._session_changed(db, row)

    async def list_tto_responses(
        self,
        db: AsyncSession,
        actor: ActorContext,
        *,
        interviewer_id: str | None = None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
        flagged: bool | None = None,
    ) -> list[TTOResponseInfo]:
        """TTO rows across sessions by interviewer and date range."""
        if not actor.is_admin:
            if interviewer_id is not None and interviewer_id != actor.user_id:
                raise PermissionDeniedError(
                    f"{actor.user_id} may not read responses of {interviewer_id}"
                )
            interviewer_id = actor.user_id
        rows = await self._repo.list_tto_in_range(
            db,
            interviewer_id=interviewer_id,
            created_from=created_from,
            created_to=created_to,
            flagged=flagged,
        )
        return [TTOResponseInfo.model_validate(r) for r in rows]

    async def get_bundle(
        self, db: AsyncSession, actor: ActorContext, session_id: uuid.UUID | str
    ) -> SessionBundle:
        """Session plus every child row, for export collaborators."""
        row = await self._load_session(db, actor, session_id)
        eq5d = await self._repo.get_eq5d(db, row.id)
        demographics = await self._repo.get_demographics(db, row.id)
        return SessionBundle(
            session=self._to_session_info(row),
            eq5d=EQ5DInfo.model_validate(eq5d) if eq5d is not None else None,
            tto=[TTOResponseInfo.model_validate(r) for r in await self._repo.list_tto(db, row.id)],
            dce=[DCEResponseInfo.model_validate(r) for r in await self._repo.list_dce(db, row.id)],
            demographics=(
                DemographicsInfo.model_validate(demographics)
                if demographics is not None
                else None
            ),
            notes=[NoteInfo.model_validate(n) for n in await self._repo.list_notes(db, row.id)],
        )

    # ==================================================================
    # Internal: finalization
    # ==================================================================

    async def _finalize(self, db: AsyncSession, row: InterviewSession) -> None:
        """Enter ``complete``: status, timestamp, session check, notifications."""
        tto_rows = await self._repo.list_tto(db, row.id)
        flags = self._flagger.evaluate_session(r.final_value for r in tto_rows)

        with self._db_errors("complete session"):
            await self._repo.complete_session(db, row)
            if flags:
                merged = sorted(set(row.auto_flags or []) | set(flags))
                await self._repo.save_auto_flags(db, row, merged)
        logger.info("Session %s completed (flags=%s)", row.id, flags or "none")

        dispatcher = self._dispatcher
        completed = dispatcher.session_completed(row)
        outbox.defer(db, lambda: dispatcher.dispatch(completed))
        if flags:
            flagged = dispatcher.session_flagged(row, notes=", ".join(flags))
            outbox.defer(db, lambda: dispatcher.dispatch(flagged))

    # ==================================================================
    # Internal: loading and guards
    # ==================================================================

    async def _load_session(
        self, db: AsyncSession, actor: ActorContext, session_id: uuid.UUID | str
    ) -> InterviewSession:
        """Load a session row or raise ``NotFoundError``.

        A session the actor may not access is reported exactly like a
        missing one.
        """
        try:
            pk = session_id if isinstance(session_id, uuid.UUID) else uuid.UUID(str(session_id))
        except ValueError:
            raise NotFoundError(f"Session not found: {session_id}") from None
        row = await self._repo.get_by_id(db, pk)
        if row is None or not actor.can_access(row.interviewer_id):
            raise NotFoundError(f"Session not found: {session_id} (actor={actor.user_id})")
        return row

    async def _load_note(self, db: AsyncSession, row: InterviewSession, note_id):
        try:
            pk = note_id if isinstance(note_id, uuid.UUID) else uuid.UUID(str(note_id))
        except ValueError:
            raise NotFoundError(f"Note not found: {note_id}") from None
        note = await self._repo.get_note(db, pk)
        if note is None or note.session_id != row.id:
            raise NotFoundError(f"Note not found: {note_id} on session {row.id}")
        return note

    async def _load_progress(self, db: AsyncSession, row: InterviewSession) -> StepProgress:
        """Collect which child rows exist; the sequencer's guards read this."""
        eq5d = await self._repo.get_eq5d(db, row.id)
        tto_rows = await self._repo.list_tto(db, row.id)
        dce_rows = await self._repo.list_dce(db, row.id)
        demographics = await self._repo.get_demographics(db, row.id)
        return StepProgress(
            eq5d_done=eq5d is not None,
            tto_tasks=tuple(r.task_number for r in tto_rows),
            dce_tasks=tuple(r.task_number for r in dce_rows),
            demographics_done=demographics is not None,
        )

    @staticmethod
    def _check_version(row: InterviewSession, expected_version: int | None) -> None:
        if expected_version is not None and row.version != expected_version:
            raise ConcurrencyConflictError(
                f"Session {row.id} is at version {row.version}, "
                f"caller expected {expected_version}"
            )

    @staticmethod
    def _require_in_progress(row: InterviewSession) -> None:
        status = SessionStatus(row.status)
        if status != SessionStatus.IN_PROGRESS:
            raise InvalidTransitionError(f"Session {row.id} is {status.value}")

    def _require_step(self, row: InterviewSession, step: InterviewStep) -> None:
        self._require_in_progress(row)
        current = InterviewStep(row.current_step)
        if current != step:
            raise InvalidTransitionError(
                f"Session {row.id} is at {current.value}, not {step.value}"
            )

    @staticmethod
    def _validate_respondent_code(raw: str) -> str:
        code = (raw or "").strip()
        if not code:
            raise ValidationError("Respondent code is required")
        if len(code) > RESPONDENT_CODE_MAX_LENGTH:
            raise ValidationError(
                f"Respondent code must be at most {RESPONDENT_CODE_MAX_LENGTH} characters"
            )
        if not _RESPONDENT_CODE_RE.match(code):
            raise ValidationError(
                "Respondent code may only contain letters, numbers, hyphens and underscores"
            )
        return code

    @contextmanager
    def _db_errors(self, what: str) -> Iterator[None]:
        """Translate SQLAlchemy failures into protocol errors."""
        try:
            yield
        except StaleDataError as exc:
            raise ConcurrencyConflictError(f"Concurrent update during {what}") from exc
        except IntegrityError as exc:
            raise ValidationError(f"Cannot {what}: conflicts with an existing record") from exc
        except (OperationalError, InterfaceError) as exc:
            logger.error("Database unavailable during %s: %s", what, exc)
            raise PersistenceError(f"Cannot {what}: database unavailable") from exc

    # ==================================================================
    # Internal: views and change events
    # ==================================================================

    def _build_step_view(self, row: InterviewSession, progress: StepProgress) -> StepView:
        step = InterviewStep(row.current_step)
        status = SessionStatus(row.status)
        view = StepView(
            session_id=row.id,
            status=status.value,
            step=step.value,
            step_label=STEP_LABELS[step.value],
            step_index=step.index,
            total_steps=len(InterviewStep),
            version=row.version,
            tto_completed=len(progress.tto_tasks),
            tto_total=self._catalogue.tto_task_count,
            dce_completed=len(progress.dce_tasks),
            dce_total=self._catalogue.dce_task_count,
            can_advance=False,
            can_go_back=status == SessionStatus.IN_PROGRESS and step.index > 0,
        )

        if step == InterviewStep.PRACTICE:
            view.health_state = self._catalogue.practice_state
        elif step == InterviewStep.TTO:
            view.tto_task = self._sequencer.next_tto_task(progress)
            if view.tto_task is not None:
                view.health_state = self._catalogue.tto_state(view.tto_task)
        elif step == InterviewStep.DCE:
            view.dce_task = self._sequencer.next_dce_task(progress)
            if view.dce_task is not None:
                view.dce_pair = self._catalogue.dce_pair(view.dce_task)

        if step != InterviewStep.COMPLETE:
            view.missing = self._sequencer.missing_requirement(step, progress)
            view.can_advance = status == SessionStatus.IN_PROGRESS and view.missing is None
        return view

    def _session_changed(self, db: AsyncSession, row: InterviewSession) -> SessionInfo:
        info = self._to_session_info(row)
        self._emit(db, row, "interview_sessions", row.id, "update", info.model_dump(mode="json"), info.version)
        return info

    def _emit(
        self,
        db: AsyncSession,
        row: InterviewSession,
        table: str,
        record_id: uuid.UUID,
        op: str,
        record: dict | None = None,
        version: int | None = None,
    ) -> None:
        """Queue a change event; it reaches the feed after the commit."""
        feed = self._feed
        if feed is None:
            return
        event = ChangeEvent(
            table=table,
            record_id=record_id,
            interviewer_id=row.interviewer_id,
            op=op,
            record=record,
            version=version,
        )
        outbox.defer(db, lambda: feed.publish(event))

    @staticmethod
    def _to_session_info(row: InterviewSession) -> SessionInfo:
        """Convert an ORM row to a public SessionInfo."""
        return SessionInfo(
            id=row.id,
            respondent_code=row.respondent_code,
            interviewer_id=row.interviewer_id,
            language=row.language,
            status=SessionStatus(row.status).value,
            current_step=InterviewStep(row.current_step).value,
            quality_status=QualityStatus(row.quality_status).value,
            quality_reviewed_by=row.quality_reviewed_by,
            quality_reviewed_at=row.quality_reviewed_at,
            quality_notes=row.quality_notes,
            auto_flags=list(row.auto_flags or []),
            version=row.version,
            started_at=row.started_at,
            completed_at=row.completed_at,
            updated_at=row.updated_at,
        )
