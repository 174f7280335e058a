"""Application factory and CLI entry point.

``create_app()`` builds the FastAPI application with:
  - Lifespan handler that loads the protocol catalogue and builds the engine once
  - CORS middleware
  - Global exception handlers (ProtocolError → 400/403/404/409/503)
  - All API routes mounted under ``/api/v1``
  - A ``/health`` endpoint for readiness checks

The ``cli()`` function is the ``tto-server`` console-script entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from tto_db.engine import dispose_engine, get_engine
from tto_protocol.catalogue import ProtocolCatalogue
from tto_protocol.changefeed import ChangeFeed
from tto_protocol.engine import InterviewEngine
from tto_protocol.errors import ProtocolError
from tto_protocol.notifications import (
    LoggingNotificationSink,
    NotificationDispatcher,
    WebhookNotificationSink,
)
from tto_protocol.replay import ActionReplayService

from tto_server.config import ServerSettings, load_settings
from tto_server.errors import generic_error_handler, protocol_error_handler
from tto_server.routes import register_routes

logger = logging.getLogger(__name__)


def build_dispatcher(settings: ServerSettings) -> NotificationDispatcher:
    """Logging sink always; webhook sink when a notify URL is configured."""
    dispatcher = NotificationDispatcher([LoggingNotificationSink()])
    if settings.notify_alert_url or settings.notify_email_url:
        dispatcher.register(
            WebhookNotificationSink(
                settings.notify_alert_url,
                email_url=settings.notify_email_url,
                timeout=settings.notify_timeout_seconds,
            )
        )
    return dispatcher


# ------------------------------------------------------------------
# Lifespan — runs once at startup/shutdown
# ------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialise shared resources at startup, tear down on shutdown.

    Startup:
      1. Load ``v1/protocol.yaml`` into a ``ProtocolCatalogue``
      2. Build the notification dispatcher, change feed and ``InterviewEngine``
      3. Stash them on ``app.state`` for dependency injection

    Shutdown:
      1. Dispose the database engine's connection pool
    """
    settings: ServerSettings = app.state.settings

    # --- Load catalogue ---
    catalogue = ProtocolCatalogue(catalogue_dir=settings.catalogue_dir)
    catalogue.load()

    # --- Build engine ---
    feed = ChangeFeed()
    engine = InterviewEngine(
        catalogue, dispatcher=build_dispatcher(settings), change_feed=feed
    )

    app.state.catalogue = catalogue
    app.state.change_feed = feed
    app.state.engine = engine
    app.state.replay = ActionReplayService(engine)

    yield

    # --- Shutdown ---
    await dispose_engine()
    logger.info("Database engine disposed")


# ------------------------------------------------------------------
# Factory
# ------------------------------------------------------------------

def create_app(settings: ServerSettings | None = None) -> FastAPI:
    """Build and return the configured FastAPI application."""
    if settings is None:
        settings = load_settings()

    # --- Configure logging ---
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="TTO Interview API Server",
        description="REST API for the TTO health-state valuation interview protocol",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store settings so the lifespan handler can read them
    app.state.settings = settings

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Exception handlers ---
    app.add_exception_handler(ProtocolError, protocol_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)

    # --- Health check (outside /api/v1 prefix) ---
    @app.get("/health")
    async def health() -> dict:
        """Readiness check — verifies DB connectivity."""
        try:
            engine = get_engine()
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return {"status": "ok"}
        except Exception as exc:
            logger.error("Health check failed: %s", exc)
            return {"status": "error", "detail": str(exc)}

    # --- Mount all API routes ---
    register_routes(app)

    return app


# ------------------------------------------------------------------
# Module-level ASGI export (for uvicorn tto_server.app:app)
# ------------------------------------------------------------------
app = create_app()


# ------------------------------------------------------------------
# CLI entry point
# ------------------------------------------------------------------

def cli() -> None:
    """Console-script entry point: ``tto-server``."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "tto_server.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )
