"""Offline sync endpoints — replay queued actions and stream changes.

``POST /sync/actions`` applies one queued action.  Its client-generated id
makes the call idempotent: a repeat returns the first result with
``duplicate: true``.  Errors use the normal ``{"detail", "error"}`` body so
the device can tell a retryable failure (5xx) from a rejection (4xx).

``GET /sync/changes`` streams change events as newline-delimited JSON.
"""

from typing import AsyncIterator

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from tto_protocol.changefeed import ChangeFeed
from tto_protocol.context import ActorContext
from tto_protocol.models.sync import PendingAction, ReplayResult
from tto_protocol.replay import ActionReplayService

from tto_server.dependencies import get_actor, get_change_feed, get_db, get_replay_service

router = APIRouter(prefix="/sync", tags=["sync"])


@router.post("/actions")
async def replay_action(
    action: PendingAction,
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    replay: ActionReplayService = Depends(get_replay_service),
) -> ReplayResult:
    return await replay.apply(db, actor, action)


@router.get("/changes")
async def stream_changes(
    table: list[str] | None = Query(None),
    actor: ActorContext = Depends(get_actor),
    feed: ChangeFeed = Depends(get_change_feed),
) -> StreamingResponse:
    """Stream change events; interviewers only receive their own sessions' rows."""

    async def lines() -> AsyncIterator[str]:
        async for event in feed.subscribe(tables=table):
            if event.interviewer_id is not None and not actor.can_access(event.interviewer_id):
                continue
            yield event.model_dump_json() + "\n"

    return StreamingResponse(lines(), media_type="application/x-ndjson")
