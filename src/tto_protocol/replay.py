"""ActionReplayService — applies queued device actions on the server.

Each ``PendingAction`` is applied at most once.  Its client-generated id is
written to the ``applied_actions`` ledger in the same transaction as the
mutation; a repeated id short-circuits to the stored first result.

Supported actions::

    interview_sessions  create   {respondent_code, language?}
                        update   {language} | {status: "abandoned"}
                                 | {current_step, from_step, expected_version?}
                                 | {quality_status, quality_notes?}  (admin only)
    eq5d_responses      create   EQ5DAnswers
    tto_responses       create   TTOSubmission
    dce_responses       create   DCESubmission
    demographics        create / update   DemographicsAnswers (field merge)
    session_notes       create / update   {content}   (record_id = note id)
                        delete

Interviewer-authored fields merge last-write-wins.  An action from a
non-admin touching any ``quality_*`` column is rejected outright.
"""

from __future__ import annotations

import logging
from typing import Any

import pydantic
from sqlalchemy.ext.asyncio import AsyncSession

from tto_db.models.enums import InterviewStep

from tto_protocol.constants import ADMIN_AUTHORITY_FIELDS
from tto_protocol.context import ActorContext
from tto_protocol.engine import InterviewEngine
from tto_protocol.errors import InvalidTransitionError, PermissionDeniedError, ValidationError
from tto_protocol.models.answers import (
    DCESubmission,
    DemographicsAnswers,
    EQ5DAnswers,
    NoteInput,
    ReviewDecision,
    TTOSubmission,
)
from tto_protocol.models.sync import ActionType, PendingAction, ReplayResult

logger = logging.getLogger(__name__)


def _parse(model: type[pydantic.BaseModel], payload: dict[str, Any]):
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid {model.__name__} payload: {exc}") from exc


class ActionReplayService:
    def __init__(self, engine: InterviewEngine) -> None:
        self._engine = engine

    async def apply(
        self, db: AsyncSession, actor: ActorContext, action: PendingAction
    ) -> ReplayResult:
        """Apply ``action`` once; repeated ids return the first result.

        Raises whatever ``ProtocolError`` the underlying operation raises;
        nothing is written to the ledger in that case.
        """
        repo = self._engine.repository
        applied = await repo.get_applied_action(db, action.id)
        if applied is not None:
            logger.info("Action %s already applied; returning stored result", action.id)
            return ReplayResult(
                action_id=action.id, status="applied", duplicate=True, result=applied.result
            )

        self._check_authority(actor, action)
        result = await self._dispatch(db, actor, action)

        await repo.record_applied_action(
            db,
            action_pk=action.id,
            session_pk=action.session_id,
            actor_id=actor.user_id,
            action_type=action.type.value,
            target_table=action.table,
            result=result,
        )
        logger.info(
            "Applied %s %s on %s (session=%s)",
            action.type.value, action.table, action.id, action.session_id,
        )
        return ReplayResult(action_id=action.id, status="applied", result=result)

    @staticmethod
    def _check_authority(actor: ActorContext, action: PendingAction) -> None:
        touched = ADMIN_AUTHORITY_FIELDS & set(action.payload)
        if touched and not actor.is_admin:
            logger.warning(
                "Rejected action %s from %s: touches %s",
                action.id, actor.user_id, sorted(touched),
            )
            raise PermissionDeniedError(
                f"Only administrators may change {', '.join(sorted(touched))}"
            )

    async def _dispatch(
        self, db: AsyncSession, actor: ActorContext, action: PendingAction
    ) -> dict[str, Any]:
        engine = self._engine
        payload = action.payload
        sid = action.session_id
        kind = (action.table, action.type)

        if kind == ("interview_sessions", ActionType.CREATE):
            info = await engine.create_session(
                db,
                actor,
                respondent_code=payload.get("respondent_code", ""),
                language=payload.get("language", "en"),
                session_id=sid,
            )
            return info.model_dump(mode="json")

        if sid is None:
            raise ValidationError(f"{action.table} {action.type.value} requires session_id")

        if kind == ("interview_sessions", ActionType.UPDATE):
            return await self._update_session(db, actor, sid, payload)
        if kind == ("eq5d_responses", ActionType.CREATE):
            info = await engine.submit_eq5d(db, actor, sid, _parse(EQ5DAnswers, payload))
        elif kind == ("tto_responses", ActionType.CREATE):
            info = await engine.submit_tto(db, actor, sid, _parse(TTOSubmission, payload))
        elif kind == ("dce_responses", ActionType.CREATE):
            info = await engine.submit_dce(db, actor, sid, _parse(DCESubmission, payload))
        elif action.table == "demographics" and action.type != ActionType.DELETE:
            info = await engine.save_demographics(
                db, actor, sid, _parse(DemographicsAnswers, payload)
            )
        elif kind == ("session_notes", ActionType.CREATE):
            note = _parse(NoteInput, payload)
            info = await engine.add_note(db, actor, sid, note.content, note_id=action.record_id)
        elif kind == ("session_notes", ActionType.UPDATE):
            note = _parse(NoteInput, payload)
            info = await engine.update_note(db, actor, sid, self._record_id(action), note.content)
        elif kind == ("session_notes", ActionType.DELETE):
            await engine.delete_note(db, actor, sid, self._record_id(action))
            return {"deleted": str(action.record_id)}
        else:
            raise ValidationError(
                f"Unsupported action: {action.type.value} on {action.table}"
            )
        return info.model_dump(mode="json")

    async def _update_session(
        self, db: AsyncSession, actor: ActorContext, sid, payload: dict[str, Any]
    ) -> dict[str, Any]:
        engine = self._engine
        if "quality_status" in payload:
            decision = _parse(
                ReviewDecision,
                {"status": payload["quality_status"], "notes": payload.get("quality_notes")},
            )
            info = await engine.review_quality(db, actor, sid, decision)
            return info.model_dump(mode="json")
        if "current_step" in payload:
            return await self._move_step(db, actor, sid, payload)
        if payload.get("status") == "abandoned":
            info = await engine.abandon(db, actor, sid)
            return info.model_dump(mode="json")
        if "language" in payload:
            info = await engine.set_language(db, actor, sid, payload["language"])
            return info.model_dump(mode="json")
        raise ValidationError(f"Unsupported session update: {sorted(payload)}")

    async def _move_step(
        self, db: AsyncSession, actor: ActorContext, sid, payload: dict[str, Any]
    ) -> dict[str, Any]:
        try:
            target = InterviewStep(payload["current_step"])
            from_step = InterviewStep(payload["from_step"])
        except (KeyError, ValueError) as exc:
            raise ValidationError(f"Step update needs valid current_step and from_step: {exc}") from exc
        expected = payload.get("expected_version")

        if target.index > from_step.index:
            if target.index != from_step.index + 1:
                raise InvalidTransitionError(
                    f"Cannot skip from {from_step.value} to {target.value}"
                )
            view = await self._engine.advance(
                db, actor, sid, from_step=from_step, expected_version=expected
            )
        else:
            view = await self._engine.get_current_step(db, actor, sid)
            if view.step != from_step.value:
                raise InvalidTransitionError(
                    f"Cannot go back from {from_step.value}: session is at {view.step}"
                )
            view = await self._engine.back(
                db, actor, sid, to_step=target, expected_version=expected
            )
        return view.model_dump(mode="json")

    @staticmethod
    def _record_id(action: PendingAction):
        if action.record_id is None:
            raise ValidationError(f"{action.type.value} on {action.table} requires record_id")
        return action.record_id
