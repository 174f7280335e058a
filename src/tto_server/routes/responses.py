"""Response capture endpoints — EQ-5D, TTO, DCE, demographics, notes.

Each data-collecting endpoint is only accepted while the session sits on
the matching step.  TTO values and quality flags are computed server-side
from the submitted slider position, never taken from the client.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tto_protocol.context import ActorContext
from tto_protocol.engine import InterviewEngine
from tto_protocol.models.answers import (
    DCESubmission,
    DemographicsAnswers,
    EQ5DAnswers,
    NoteInput,
    TTOSubmission,
)
from tto_protocol.models.session import (
    DCEResponseInfo,
    DemographicsInfo,
    EQ5DInfo,
    NoteInfo,
    TTOResponseInfo,
)

from tto_server.dependencies import get_actor, get_db, get_engine_service

router = APIRouter(tags=["responses"])


@router.post("/sessions/{session_id}/eq5d", status_code=201)
async def submit_eq5d(
    session_id: str,
    body: EQ5DAnswers,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    engine: InterviewEngine = Depends(get_engine_service),
) -> EQ5DInfo:
    return await engine.submit_eq5d(db, actor, session_id, body)


@router.post("/sessions/{session_id}/tto", status_code=201)
async def submit_tto(
    session_id: str,
    body: TTOSubmission,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    engine: InterviewEngine = Depends(get_engine_service),
) -> TTOResponseInfo:
    """Record the TTO answer for the current task.

    Standard answers send ``chosen_years``; worse-than-death answers send
    ``worse_than_death: true`` and ``lead_years``.
    """
    return await engine.submit_tto(db, actor, session_id, body)


@router.post("/sessions/{session_id}/dce", status_code=201)
async def submit_dce(
    session_id: str,
    body: DCESubmission,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    engine: InterviewEngine = Depends(get_engine_service),
) -> DCEResponseInfo:
    return await engine.submit_dce(db, actor, session_id, body)


@router.put("/sessions/{session_id}/demographics")
async def save_demographics(
    session_id: str,
    body: DemographicsAnswers,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    engine: InterviewEngine = Depends(get_engine_service),
) -> DemographicsInfo:
    """Merge the sent fields; omitted fields keep their stored value."""
    return await engine.save_demographics(db, actor, session_id, body)


# ------------------------------------------------------------------
# Notes
# ------------------------------------------------------------------

@router.get("/sessions/{session_id}/notes")
async def list_notes(
    session_id: str,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    engine: InterviewEngine = Depends(get_engine_service),
) -> list[NoteInfo]:
    return await engine.list_notes(db, actor, session_id)


@router.post("/sessions/{session_id}/notes", status_code=201)
async def add_note(
    session_id: str,
    body: NoteInput,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    engine: InterviewEngine = Depends(get_engine_service),
) -> NoteInfo:
    return await engine.add_note(db, actor, session_id, body.content)


@router.patch("/sessions/{session_id}/notes/{note_id}")
async def update_note(
    session_id: str,
    note_id: str,
    body: NoteInput,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    engine: InterviewEngine = Depends(get_engine_service),
) -> NoteInfo:
    return await engine.update_note(db, actor, session_id, note_id, body.content)


@router.delete("/sessions/{session_id}/notes/{note_id}", status_code=204)
async def delete_note(
    session_id: str,
    note_id: str,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    engine: InterviewEngine = Depends(get_engine_service),
) -> None:
    await engine.delete_note(db, actor, session_id, note_id)
