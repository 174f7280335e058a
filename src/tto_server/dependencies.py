"""FastAPI dependency injection — DB sessions, engine services, and actor identity.

Each request that touches the database gets a fresh ``AsyncSession`` via
``get_db()``.  The session is committed on success and rolled back on error,
matching the convention where engine/repository call ``flush()`` but never
``commit()``.  Events the engine parked in the session's outbox are
delivered after the commit and dropped on rollback.
"""

import hmac
from typing import AsyncGenerator

from fastapi import Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tto_db.engine import get_session_factory
from tto_protocol import outbox
from tto_protocol.catalogue import ProtocolCatalogue
from tto_protocol.changefeed import ChangeFeed
from tto_protocol.context import ActorContext, ActorRole
from tto_protocol.engine import InterviewEngine
from tto_protocol.replay import ActionReplayService


# ------------------------------------------------------------------
# Database session — transaction boundary lives here
# ------------------------------------------------------------------

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async DB session; commit on success, rollback on error.

    Repository methods call ``flush()`` but never ``commit()``, so this
    dependency is the single place where transactions are finalised.
    """
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            outbox.discard(session)
            raise
        await outbox.deliver(session)


# ------------------------------------------------------------------
# Engine, replay, catalogue, feed — stashed on app.state during lifespan
# ------------------------------------------------------------------

def get_engine_service(request: Request) -> InterviewEngine:
    """Return the InterviewEngine singleton from ``app.state``."""
    return request.app.state.engine


def get_replay_service(request: Request) -> ActionReplayService:
    return request.app.state.replay


def get_catalogue(request: Request) -> ProtocolCatalogue:
    return request.app.state.catalogue


def get_change_feed(request: Request) -> ChangeFeed:
    return request.app.state.change_feed


# ------------------------------------------------------------------
# Actor identity — X-User-ID / X-User-Role headers
# ------------------------------------------------------------------

async def get_actor(
    request: Request,
    x_user_id: str | None = Header(None, alias="X-User-ID"),
    x_user_role: str | None = Header(None, alias="X-User-Role"),
    x_proxy_secret: str | None = Header(None, alias="X-Proxy-Secret"),
) -> ActorContext:
    """Build the request-scoped ``ActorContext`` from identity headers.

    Returns 401 if ``X-User-ID`` is missing.  ``X-User-Role`` defaults to
    ``interviewer``.

    When ``TRUSTED_PROXY_SECRET`` is configured, the request must also
    carry a matching ``X-Proxy-Secret`` header, proving the identity
    headers were injected by a trusted API gateway.  When
    ``ADMIN_USER_IDS`` is configured, only those users may claim the
    admin role.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-ID header is required")

    settings = request.app.state.settings

    # --- Proxy-secret validation (opt-in via TRUSTED_PROXY_SECRET) ---
    expected_secret: str | None = settings.trusted_proxy_secret
    if expected_secret:
        if not x_proxy_secret:
            raise HTTPException(
                status_code=403,
                detail="X-Proxy-Secret header is required",
            )
        # Constant-time comparison to prevent timing side-channels.
        if not hmac.compare_digest(x_proxy_secret, expected_secret):
            raise HTTPException(status_code=403, detail="Invalid proxy secret")

    try:
        role = ActorRole((x_user_role or ActorRole.INTERVIEWER.value).lower())
    except ValueError:
        raise HTTPException(status_code=400, detail="Unknown X-User-Role") from None

    if role == ActorRole.ADMIN and settings.admin_user_ids:
        if x_user_id not in settings.admin_user_ids:
            raise HTTPException(status_code=403, detail="Admin role not granted")

    return ActorContext(user_id=x_user_id, role=role)
