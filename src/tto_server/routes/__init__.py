"""Route registration — mounts all routers under ``/api/v1``."""

from fastapi import FastAPI

from tto_server.routes.reference import router as reference_router
from tto_server.routes.responses import router as responses_router
from tto_server.routes.review import router as review_router
from tto_server.routes.sessions import router as sessions_router
from tto_server.routes.steps import router as steps_router
from tto_server.routes.sync import router as sync_router

API_PREFIX = "/api/v1"


def register_routes(app: FastAPI) -> None:
    """Include all sub-routers under the versioned API prefix."""
    app.include_router(sessions_router, prefix=API_PREFIX)
    app.include_router(steps_router, prefix=API_PREFIX)
    app.include_router(responses_router, prefix=API_PREFIX)
    app.include_router(review_router, prefix=API_PREFIX)
    app.include_router(sync_router, prefix=API_PREFIX)
    app.include_router(reference_router, prefix=API_PREFIX)
