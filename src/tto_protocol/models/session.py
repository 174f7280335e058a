"""Session and step models — the contract between the engine and API callers.

These models define what the engine returns for a session and its current
step.  They are intentionally decoupled from the ORM models in ``tto_db``
so that API consumers never see database internals.

Child-row views are built with ``from_attributes`` so the engine can hand
ORM rows (or any attribute-compatible object) straight to ``model_validate``.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from tto_protocol.models.catalogue import DCEPair, HealthState


class SessionInfo(BaseModel):
    """Public view of session state for API consumers.

    ``version`` must be echoed back as ``expected_version`` on step writes
    so that a stale resume is detected instead of silently overwritten.
    """

    id: uuid.UUID
    respondent_code: str
    interviewer_id: str
    language: str
    status: str
    current_step: str
    quality_status: str
    quality_reviewed_by: str | None = None
    quality_reviewed_at: datetime | None = None
    quality_notes: str | None = None
    auto_flags: list[str] = []
    version: int
    started_at: datetime
    completed_at: datetime | None = None
    updated_at: datetime


class StepView(BaseModel):
    """What the interviewer's screen should show right now.

    ``tto_task`` / ``dce_task`` are the next task numbers to collect (the
    cursor derived from persisted rows); ``None`` once every task of that
    kind has been answered.  ``missing`` names the child write that still
    blocks ``advance``.
    """

    session_id: uuid.UUID
    status: str
    step: str
    step_label: str
    step_index: int
    total_steps: int
    version: int

    health_state: HealthState | None = None
    tto_task: int | None = None
    tto_completed: int = 0
    tto_total: int = 0
    dce_pair: DCEPair | None = None
    dce_task: int | None = None
    dce_completed: int = 0
    dce_total: int = 0

    can_advance: bool
    can_go_back: bool
    missing: str | None = None


# ------------------------------------------------------------------
# Child-row views
# ------------------------------------------------------------------


class EQ5DInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    mobility: int
    self_care: int
    usual_activities: int
    pain_discomfort: int
    anxiety_depression: int
    vas_score: int
    created_at: datetime | None = None


class TTOResponseInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    session_id: uuid.UUID
    task_number: int
    health_state: str
    final_value: float
    is_worse_than_death: bool
    lead_time_value: float | None = None
    flagged: bool
    flag_reason: str | None = None
    moves_count: int
    time_spent_seconds: int
    created_at: datetime | None = None


class DCEResponseInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    session_id: uuid.UUID
    task_number: int
    state_a: str
    state_b: str
    chosen_state: str
    time_spent_seconds: int | None = None
    created_at: datetime | None = None


class DemographicsInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    age: int | None = None
    gender: str | None = None
    education: str | None = None
    employment: str | None = None
    ethnicity: str | None = None
    marital_status: str | None = None


class NoteInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    session_id: uuid.UUID
    content: str
    created_by: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SessionBundle(BaseModel):
    """Read-only snapshot of a session and every child row.

    Consumed by export collaborators (CSV/JSON/report generators) that
    live outside this package.
    """

    session: SessionInfo
    eq5d: EQ5DInfo | None = None
    tto: list[TTOResponseInfo] = []
    dce: list[DCEResponseInfo] = []
    demographics: DemographicsInfo | None = None
    notes: list[NoteInfo] = []
