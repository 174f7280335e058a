"""Global exception handlers — map protocol exceptions to HTTP status codes.

The engine raises typed ``ProtocolError`` subclasses.  Rather than catching
these in every route, one handler looks the class up in a status table.
Each body is ``{"detail", "error"}``; ``error`` is the stable code the
offline transport uses to rebuild the exception on the device.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from tto_protocol.errors import (
    ConcurrencyConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    PersistenceError,
    ProtocolError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# --- Exception class → HTTP status.  Checked in order; first match wins. ---
_STATUS_BY_ERROR: list[tuple[type[ProtocolError], int]] = [
    (ValidationError, 400),
    (NotFoundError, 404),
    (PermissionDeniedError, 403),
    (InvalidTransitionError, 409),
    (ConcurrencyConflictError, 409),
    (PersistenceError, 503),
]


# --- Client-safe messages keyed by HTTP status code ---
# Identifiers and internals stay in the server log.  400 and 409 keep the
# message because the interviewer must act on it (fix a field, re-sync
# the step).
_SAFE_MESSAGES: dict[int, str] = {
    403: "Not permitted",
    404: "Resource not found",
    503: "Service temporarily unavailable",
}


def status_for(exc: ProtocolError) -> int:
    for cls, status in _STATUS_BY_ERROR:
        if isinstance(exc, cls):
            return status
    return 400


async def protocol_error_handler(request: Request, exc: ProtocolError) -> JSONResponse:
    """Map a ``ProtocolError`` to its status and a client-safe body."""
    status = status_for(exc)
    if status >= 500:
        logger.error("%s [%d] at %s: %s", type(exc).__name__, status, request.url, exc.message)
    else:
        logger.warning("%s [%d] at %s: %s", type(exc).__name__, status, request.url, exc.message)
    detail = _SAFE_MESSAGES.get(status, exc.message)
    return JSONResponse(status_code=status, content={"detail": detail, "error": exc.code})


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions — log full traceback, return 500."""
    logger.exception("Unhandled exception at %s", request.url)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error": "internal_error"},
    )
