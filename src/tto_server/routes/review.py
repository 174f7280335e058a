"""Quality review endpoints — administrator decisions and flagged responses.

Writes require ``X-User-Role: admin``; interviewers get 403.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tto_protocol.context import ActorContext
from tto_protocol.engine import InterviewEngine
from tto_protocol.models.answers import ReviewDecision
from tto_protocol.models.session import SessionInfo, TTOResponseInfo

from tto_server.dependencies import get_actor, get_db, get_engine_service

router = APIRouter(tags=["review"])


@router.put("/sessions/{session_id}/review")
async def review_session(
    session_id: str,
    body: ReviewDecision,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    engine: InterviewEngine = Depends(get_engine_service),
) -> SessionInfo:
    """Set ``quality_status`` (and notes).  Same-state calls only update notes."""
    return await engine.review_quality(db, actor, session_id, body)


@router.get("/review/tto-responses")
async def list_tto_responses(
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    engine: InterviewEngine = Depends(get_engine_service),
    interviewer_id: str | None = Query(None),
    created_from: datetime | None = Query(None),
    created_to: datetime | None = Query(None),
    flagged: bool | None = Query(None),
) -> list[TTOResponseInfo]:
    """TTO rows across sessions, filtered by interviewer, date range and flag."""
    return await engine.list_tto_responses(
        db,
        actor,
        interviewer_id=interviewer_id,
        created_from=created_from,
        created_to=created_to,
        flagged=flagged,
    )
