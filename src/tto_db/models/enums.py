"""Database-level enumerations for interview sessions."""

import enum


class SessionStatus(str, enum.Enum):
    """Lifecycle states for an interview session.

    Transitions:
        in_progress -> completed  (current_step reached ``complete``)
        in_progress -> abandoned  (interviewer gave up on the interview)
    """

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class InterviewStep(str, enum.Enum):
    """Ordered interview protocol steps.

    Declaration order *is* protocol order; ``index`` relies on it.
    ``tto`` is repeated once per health state, tracked by a task cursor
    derived from the persisted TTO rows rather than by extra enum members.
    """

    CONSENT = "consent"
    WARMUP = "warmup"
    PRACTICE = "practice"
    TTO = "tto"
    FEEDBACK = "feedback"
    DCE = "dce"
    DEMOGRAPHICS = "demographics"
    COMPLETE = "complete"

    @property
    def index(self) -> int:
        return list(InterviewStep).index(self)


class QualityStatus(str, enum.Enum):
    """Administrator review states.

    Any state may move to any other; review is correctable.
    """

    PENDING = "pending"
    APPROVED = "approved"
    FLAGGED = "flagged"
    REJECTED = "rejected"
