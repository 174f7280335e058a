"""Public model re-exports for tto_protocol.

Consumers should import from ``tto_protocol.models`` rather than reaching
into sub-modules directly.
"""

# --- Catalogue ---
from tto_protocol.models.catalogue import DIMENSIONS, DCEPair, HealthState

# --- Request bodies ---
from tto_protocol.models.answers import (
    DCESubmission,
    DemographicsAnswers,
    EQ5DAnswers,
    NoteInput,
    ReviewDecision,
    TTOSubmission,
)

# --- Session / step ---
from tto_protocol.models.session import (
    DCEResponseInfo,
    DemographicsInfo,
    EQ5DInfo,
    NoteInfo,
    SessionBundle,
    SessionInfo,
    StepView,
    TTOResponseInfo,
)

# --- Offline sync ---
from tto_protocol.models.sync import (
    ActionType,
    PendingAction,
    QueueLoadReport,
    ReplayReport,
    ReplayResult,
)

# --- Events ---
from tto_protocol.models.events import (
    ChangeEvent,
    NotificationEvent,
    NotificationEventType,
)

__all__ = [
    # Catalogue
    "DCEPair",
    "DIMENSIONS",
    "HealthState",
    # Request bodies
    "DCESubmission",
    "DemographicsAnswers",
    "EQ5DAnswers",
    "NoteInput",
    "ReviewDecision",
    "TTOSubmission",
    # Session
    "DCEResponseInfo",
    "DemographicsInfo",
    "EQ5DInfo",
    "NoteInfo",
    "SessionBundle",
    "SessionInfo",
    "StepView",
    "TTOResponseInfo",
    # Sync
    "ActionType",
    "PendingAction",
    "QueueLoadReport",
    "ReplayReport",
    "ReplayResult",
    # Events
    "ChangeEvent",
    "NotificationEvent",
    "NotificationEventType",
]
