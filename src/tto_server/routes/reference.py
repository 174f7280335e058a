"""Reference data endpoints — protocol steps, health states, choice pairs, languages.

These are read-only endpoints that expose the catalogue loaded from
``v1/protocol.yaml``.  They don't require authentication since the data
is public reference information.
"""

from fastapi import APIRouter, Depends

from tto_db.models.enums import InterviewStep
from tto_protocol.catalogue import ProtocolCatalogue
from tto_protocol.constants import STEP_LABELS, SUPPORTED_LANGUAGES

from tto_server.dependencies import get_catalogue

router = APIRouter(prefix="/reference", tags=["reference"])


@router.get("/steps")
def list_steps() -> list[dict]:
    """Return the protocol steps in order."""
    return [
        {"id": step.value, "index": step.index, "label": STEP_LABELS[step.value]}
        for step in InterviewStep
    ]


@router.get("/health-states")
def list_health_states(
    catalogue: ProtocolCatalogue = Depends(get_catalogue),
) -> list[dict]:
    """Return the TTO health states in task order."""
    return [
        {"task_number": i, "code": state.code, "dimensions": state.describe()}
        for i, state in enumerate(catalogue.tto_states, start=1)
    ]


@router.get("/dce-pairs")
def list_dce_pairs(
    catalogue: ProtocolCatalogue = Depends(get_catalogue),
) -> list[dict]:
    """Return the discrete-choice pairs in task order."""
    return [
        {"task_number": i, "state_a": pair.state_a, "state_b": pair.state_b}
        for i, pair in enumerate(catalogue.dce_pairs, start=1)
    ]


@router.get("/languages")
def list_languages() -> list[dict]:
    return [{"code": code, "name": name} for code, name in SUPPORTED_LANGUAGES.items()]
