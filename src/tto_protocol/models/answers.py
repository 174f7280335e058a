"""Request bodies for the data-collecting steps and the review workflow.

The same models validate HTTP bodies and replayed offline payloads, so a
queued action is held to exactly the rules of a live request.
"""

from pydantic import BaseModel, Field, model_validator

from tto_db.models.enums import QualityStatus


class EQ5DAnswers(BaseModel):
    """Warm-up answers: five EQ-5D-5L levels and the 0-100 VAS."""

    mobility: int = Field(ge=1, le=5)
    self_care: int = Field(ge=1, le=5)
    usual_activities: int = Field(ge=1, le=5)
    pain_discomfort: int = Field(ge=1, le=5)
    anxiety_depression: int = Field(ge=1, le=5)
    vas_score: int = Field(ge=0, le=100)


class TTOSubmission(BaseModel):
    """A confirmed TTO answer.

    Standard branch: ``chosen_years`` (years in full health, 0-10).
    Worse-than-death branch: ``worse_than_death=True`` and ``lead_years``
    (lead-time years traded, 0-10).

    ``task_number`` may be omitted; the engine then uses the session's
    task cursor.  When given it must equal the cursor.
    """

    task_number: int | None = Field(default=None, ge=1)
    worse_than_death: bool = False
    chosen_years: float | None = None
    lead_years: float | None = None
    moves_count: int = Field(ge=0)
    time_spent_seconds: int = Field(ge=0)

    @model_validator(mode="after")
    def _branch_fields(self) -> "TTOSubmission":
        if self.worse_than_death:
            if self.lead_years is None:
                raise ValueError("lead_years is required when worse_than_death is set")
        elif self.chosen_years is None:
            raise ValueError("chosen_years is required for a standard TTO answer")
        return self


class DCESubmission(BaseModel):
    """The state chosen in one discrete-choice task."""

    task_number: int | None = Field(default=None, ge=1)
    chosen_state: str
    time_spent_seconds: int | None = Field(default=None, ge=0)


class DemographicsAnswers(BaseModel):
    """Respondent background; every field optional.

    Only fields the caller actually sent are written (``exclude_unset``),
    so two partial saves merge last-write-wins per field.
    """

    age: int | None = Field(default=None, ge=0, le=120)
    gender: str | None = None
    education: str | None = None
    employment: str | None = None
    ethnicity: str | None = None
    marital_status: str | None = None


class NoteInput(BaseModel):
    content: str = Field(min_length=1)


class ReviewDecision(BaseModel):
    """Administrator quality decision for a completed session."""

    status: QualityStatus
    notes: str | None = None
