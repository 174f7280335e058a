"""Session management endpoints — create, get, list, abandon, export bundle.

All endpoints require the ``X-User-ID`` header.  Interviewers see only
their own sessions; a foreign session answers 404 exactly like a missing
one.  Respondent codes are unique per interviewer.
"""

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from tto_db.models.enums import QualityStatus, SessionStatus
from tto_protocol.context import ActorContext
from tto_protocol.engine import InterviewEngine
from tto_protocol.models.session import SessionBundle, SessionInfo

from tto_server.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from tto_server.dependencies import get_actor, get_db, get_engine_service

router = APIRouter(tags=["sessions"])


# ------------------------------------------------------------------
# Request models
# ------------------------------------------------------------------

class CreateSessionRequest(BaseModel):
    """Body for POST /sessions.

    ``id`` is set by devices that created the session while offline.
    """
    respondent_code: str
    language: str = "en"
    id: uuid.UUID | None = None


class UpdateSessionRequest(BaseModel):
    """Body for PATCH /sessions/{session_id}."""
    language: str


class AbandonRequest(BaseModel):
    expected_version: int | None = None


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.post("/sessions", status_code=201)
async def create_session(
    body: CreateSessionRequest,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    engine: InterviewEngine = Depends(get_engine_service),
) -> SessionInfo:
    """Create a new interview at the consent step.

    Returns 201 on success, 400 for a malformed or duplicate respondent code.
    """
    return await engine.create_session(
        db,
        actor,
        respondent_code=body.respondent_code,
        language=body.language,
        session_id=body.id,
    )


@router.get("/sessions")
async def list_sessions(
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    engine: InterviewEngine = Depends(get_engine_service),
    interviewer_id: str | None = Query(None),
    status: SessionStatus | None = Query(None),
    quality_status: QualityStatus | None = Query(None),
    started_from: datetime | None = Query(None),
    started_to: datetime | None = Query(None),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
) -> list[SessionInfo]:
    """List sessions, most recent first.

    ``interviewer_id`` is honoured for admins; interviewers always get
    their own sessions.
    """
    return await engine.list_sessions(
        db,
        actor,
        interviewer_id=interviewer_id,
        status=status,
        quality_status=quality_status,
        started_from=started_from,
        started_to=started_to,
        limit=limit,
        offset=offset,
    )


@router.get("/sessions/{session_id}")
async def get_session(
    session_id: str,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    engine: InterviewEngine = Depends(get_engine_service),
) -> SessionInfo:
    """Get session info; used to resume an interview after a reload."""
    return await engine.get_session(db, actor, session_id)


@router.patch("/sessions/{session_id}")
async def update_session(
    session_id: str,
    body: UpdateSessionRequest,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    engine: InterviewEngine = Depends(get_engine_service),
) -> SessionInfo:
    """Change the interview language."""
    return await engine.set_language(db, actor, session_id, body.language)


@router.post("/sessions/{session_id}/abandon")
async def abandon_session(
    session_id: str,
    body: AbandonRequest | None = None,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    engine: InterviewEngine = Depends(get_engine_service),
) -> SessionInfo:
    """Mark an in-progress session as abandoned (409 if already finished)."""
    return await engine.abandon(
        db,
        actor,
        session_id,
        expected_version=body.expected_version if body else None,
    )


@router.get("/sessions/{session_id}/bundle")
async def get_bundle(
    session_id: str,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    engine: InterviewEngine = Depends(get_engine_service),
) -> SessionBundle:
    """Session with every child row, for export tools."""
    return await engine.get_bundle(db, actor, session_id)
