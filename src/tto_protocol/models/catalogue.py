"""Pydantic models for the protocol catalogue (``v1/protocol.yaml``)."""

from pydantic import BaseModel, Field, field_validator

# Dimension order defines the digit order of the five-digit state code.
DIMENSIONS: tuple[str, ...] = (
    "mobility",
    "self_care",
    "usual_activities",
    "pain_discomfort",
    "anxiety_depression",
)

LEVEL_LABELS: dict[int, str] = {
    1: "No problems",
    2: "Slight problems",
    3: "Moderate problems",
    4: "Severe problems",
    5: "Extreme problems / Unable",
}


class HealthState(BaseModel):
    """An EQ-5D-5L health state described by five dimension levels."""

    mobility: int = Field(ge=1, le=5)
    self_care: int = Field(ge=1, le=5)
    usual_activities: int = Field(ge=1, le=5)
    pain_discomfort: int = Field(ge=1, le=5)
    anxiety_depression: int = Field(ge=1, le=5)
    description: str | None = None

    @property
    def code(self) -> str:
        """Five-digit state code, e.g. ``"21231"``."""
        return "".join(str(getattr(self, dim)) for dim in DIMENSIONS)

    def describe(self) -> dict[str, str]:
        """Dimension -> level label, for rendering the state card."""
        return {dim: LEVEL_LABELS[getattr(self, dim)] for dim in DIMENSIONS}


class DCEPair(BaseModel):
    """Two state codes compared in one discrete-choice task."""

    state_a: str
    state_b: str

    @field_validator("state_a", "state_b")
    @classmethod
    def _five_levels(cls, v: str) -> str:
        if len(v) != 5 or any(c not in "12345" for c in v):
            raise ValueError(f"Invalid EQ-5D-5L state code: {v!r}")
        return v
