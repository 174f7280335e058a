"""Exception taxonomy for the interview protocol.

Every error the engine raises on purpose derives from ``ProtocolError``.
Each class carries a stable ``code`` that the HTTP layer puts in the error
body, so remote callers (the offline replay transport in particular) can
rebuild the same exception type on their side.
"""


class ProtocolError(Exception):
    """Base class for protocol-level failures."""

    code = "protocol_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ProtocolError):
    """Malformed input: bad respondent code, duplicate code, bad payload.

    Surfaced inline to the user; nothing was written.
    """

    code = "validation_error"


class NotFoundError(ProtocolError):
    """The session (or note) does not exist or belongs to someone else."""

    code = "not_found"


class PersistenceError(ProtocolError):
    """A network or write failure.  Retryable through the offline queue."""

    code = "persistence_error"


class PermissionDeniedError(ProtocolError, PermissionError):
    """The actor lacks authority for the change (e.g. non-admin review).

    Also a builtin ``PermissionError`` so generic handlers catch it.
    """

    code = "permission_denied"


class InvalidTransitionError(ProtocolError):
    """A step change requested from a stale or illegal position.

    The client must re-sync ``current_step`` before retrying.
    """

    code = "invalid_transition"


class StepIncompleteError(InvalidTransitionError):
    """Advance requested before the step's child-table write exists."""

    code = "step_incomplete"


class ConcurrencyConflictError(ProtocolError):
    """The caller acted on a stale read; re-fetch before writing."""

    code = "concurrency_conflict"


# code -> class, used to rebuild exceptions from HTTP error bodies
ERRORS_BY_CODE: dict[str, type[ProtocolError]] = {
    cls.code: cls
    for cls in (
        ProtocolError,
        ValidationError,
        NotFoundError,
        PersistenceError,
        PermissionDeniedError,
        InvalidTransitionError,
        StepIncompleteError,
        ConcurrencyConflictError,
    )
}
