"""tto_protocol — TTO interview session protocol engine.

Public API:
    InterviewEngine        — stateless orchestrator for the interview steps
    ProtocolCatalogue      — loads the health states and choice pairs from YAML
    StepSequencer          — the step state machine and its data guards
    TTOValuationEngine     — TTO answer -> utility value (incl. worse than dead)
    QualityFlagger         — advisory response / session quality heuristics
    QualityReviewWorkflow  — administrator review transitions
    NotificationDispatcher — fans protocol events out to sinks
    ActionReplayService    — server-side idempotent replay of queued actions

Device side:
    OfflineActionQueue     — durable FIFO of writes made while offline
    OptimisticState        — pending/committed dual-state record view
    ChangeFeed             — realtime change events, merged as upserts
    HttpActionTransport    — httpx transport for queued actions
    OfflineSessionClient   — queue + optimistic state + transport together

Interfaces:
    NotificationSink       — ABC for notification delivery
    ActionTransport        — ABC for carrying queued actions to the server
"""

from tto_protocol.catalogue import ProtocolCatalogue
from tto_protocol.changefeed import ChangeFeed
from tto_protocol.client import OfflineSessionClient
from tto_protocol.context import ActorContext, ActorRole
from tto_protocol.engine import InterviewEngine
from tto_protocol.errors import (
    ConcurrencyConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    PersistenceError,
    ProtocolError,
    StepIncompleteError,
    ValidationError,
)
from tto_protocol.interfaces import ActionTransport, NotificationSink
from tto_protocol.notifications import (
    LoggingNotificationSink,
    NotificationDispatcher,
    WebhookNotificationSink,
)
from tto_protocol.offline import OfflineActionQueue
from tto_protocol.optimistic import OptimisticState
from tto_protocol.quality import QualityFlagger
from tto_protocol.replay import ActionReplayService
from tto_protocol.review import QualityReviewWorkflow
from tto_protocol.sequencer import StepProgress, StepSequencer
from tto_protocol.transport import HttpActionTransport
from tto_protocol.valuation import TTOValuation, TTOValuationEngine

__all__ = [
    # Engine & catalogue
    "InterviewEngine",
    "ProtocolCatalogue",
    # Components
    "QualityFlagger",
    "QualityReviewWorkflow",
    "StepProgress",
    "StepSequencer",
    "TTOValuation",
    "TTOValuationEngine",
    # Notifications
    "LoggingNotificationSink",
    "NotificationDispatcher",
    "NotificationSink",
    "WebhookNotificationSink",
    # Sync
    "ActionReplayService",
    "ActionTransport",
    "ChangeFeed",
    "HttpActionTransport",
    "OfflineActionQueue",
    "OfflineSessionClient",
    "OptimisticState",
    # Context & errors
    "ActorContext",
    "ActorRole",
    "ConcurrencyConflictError",
    "InvalidTransitionError",
    "NotFoundError",
    "PermissionDeniedError",
    "PersistenceError",
    "ProtocolError",
    "StepIncompleteError",
    "ValidationError",
]
