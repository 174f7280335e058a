"""Step endpoints — read the current step, move forward, move back.

Both write endpoints name the step the client believes it is on
(``from_step``) and may echo the session ``version`` it last read.  A
mismatch answers 409 and the client must re-sync before retrying.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from tto_db.models.enums import InterviewStep
from tto_protocol.context import ActorContext
from tto_protocol.engine import InterviewEngine
from tto_protocol.models.session import StepView

from tto_server.dependencies import get_actor, get_db, get_engine_service

router = APIRouter(tags=["steps"])


# ------------------------------------------------------------------
# Request models
# ------------------------------------------------------------------

class AdvanceRequest(BaseModel):
    """Body for POST /sessions/{session_id}/step/advance."""
    from_step: InterviewStep
    expected_version: int | None = None


class BackRequest(BaseModel):
    """Body for POST /sessions/{session_id}/step/back.

    ``to_step`` defaults to the previous step.
    """
    to_step: InterviewStep | None = None
    expected_version: int | None = None


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.get("/sessions/{session_id}/step")
async def get_current_step(
    session_id: str,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    engine: InterviewEngine = Depends(get_engine_service),
) -> StepView:
    """Return the current step, task cursor, and what still blocks advancing."""
    return await engine.get_current_step(db, actor, session_id)


@router.post("/sessions/{session_id}/step/advance")
async def advance(
    session_id: str,
    body: AdvanceRequest,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    engine: InterviewEngine = Depends(get_engine_service),
) -> StepView:
    """Advance one step.  Reaching ``complete`` finalizes the session."""
    return await engine.advance(
        db,
        actor,
        session_id,
        from_step=body.from_step,
        expected_version=body.expected_version,
    )


@router.post("/sessions/{session_id}/step/back")
async def back(
    session_id: str,
    body: BackRequest,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    engine: InterviewEngine = Depends(get_engine_service),
) -> StepView:
    """Go back to an earlier step without discarding answers."""
    return await engine.back(
        db,
        actor,
        session_id,
        to_step=body.to_step,
        expected_version=body.expected_version,
    )
