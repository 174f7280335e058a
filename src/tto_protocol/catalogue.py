"""ProtocolCatalogue — loads the interview protocol from ``v1/protocol.yaml``.

The catalogue is loaded once at startup and fixes the number of TTO tasks
(N) and DCE tasks (M) that a complete interview must contain.

Usage::

    catalogue = ProtocolCatalogue()     # defaults to v1/ relative to repo root
    catalogue.load()

    state = catalogue.tto_state(1)      # health state for TTO task 1
    pair = catalogue.dce_pair(3)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from tto_protocol.models.catalogue import DCEPair, HealthState

logger = logging.getLogger(__name__)

CATALOGUE_FILE = "protocol.yaml"


def find_repo_root(start: Optional[Path] = None) -> Path:
    """Walk upwards from *start* to find the repo root (dir with pyproject.toml or .git).

    Falls back to cwd if no marker is found.
    """
    p = (start or Path(__file__).resolve()).parent
    for parent in [p, *p.parents]:
        if (parent / "pyproject.toml").exists() or (parent / ".git").exists():
            return parent
    return Path.cwd()


def load_yaml(path: Path | str) -> Any:
    """Load a single YAML file and return the parsed contents."""
    if isinstance(path, str):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing YAML file: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


class ProtocolCatalogue:
    """Typed view of the protocol YAML.

    Attributes populated after :meth:`load`:

        tto_states      — list[HealthState], index 0 is task 1
        practice_state  — HealthState | None
        dce_pairs       — list[DCEPair], index 0 is task 1
    """

    def __init__(self, catalogue_dir: str | Path | None = None) -> None:
        if catalogue_dir is None:
            catalogue_dir = find_repo_root() / "v1"
        self._base = Path(catalogue_dir)

        self.tto_states: list[HealthState] = []
        self.practice_state: HealthState | None = None
        self.dce_pairs: list[DCEPair] = []

    def load(self) -> None:
        """Parse the catalogue YAML.  Raises ``FileNotFoundError`` if missing."""
        raw = load_yaml(self._base / CATALOGUE_FILE) or {}
        self.tto_states = [HealthState(**s) for s in raw.get("tto_states", [])]
        practice = raw.get("practice_state")
        self.practice_state = HealthState(**practice) if practice else None
        self.dce_pairs = [DCEPair(**p) for p in raw.get("dce_pairs", [])]

        if not self.tto_states:
            raise ValueError(f"{self._base / CATALOGUE_FILE}: no tto_states defined")
        logger.info(
            "ProtocolCatalogue loaded: %d TTO tasks, %d DCE tasks",
            self.tto_task_count,
            self.dce_task_count,
        )

    @classmethod
    def from_states(
        cls,
        tto_states: list[HealthState],
        dce_pairs: list[DCEPair] | None = None,
    ) -> ProtocolCatalogue:
        """Build an in-memory catalogue without touching the filesystem."""
        catalogue = cls(catalogue_dir=".")
        catalogue.tto_states = list(tto_states)
        catalogue.dce_pairs = list(dce_pairs or [])
        return catalogue

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    @property
    def tto_task_count(self) -> int:
        return len(self.tto_states)

    @property
    def dce_task_count(self) -> int:
        return len(self.dce_pairs)

    def tto_state(self, task_number: int) -> HealthState:
        """Health state valued in TTO task ``task_number`` (1-based)."""
        if not 1 <= task_number <= self.tto_task_count:
            raise KeyError(f"No TTO task {task_number}")
        return self.tto_states[task_number - 1]

    def dce_pair(self, task_number: int) -> DCEPair:
        """State pair compared in DCE task ``task_number`` (1-based)."""
        if not 1 <= task_number <= self.dce_task_count:
            raise KeyError(f"No DCE task {task_number}")
        return self.dce_pairs[task_number - 1]
