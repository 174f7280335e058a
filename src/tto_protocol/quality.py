"""QualityFlagger — advisory heuristics over TTO responses.

Per response (evaluated when the TTO row is inserted):

    too_fast            time_spent_seconds < TOO_FAST_SECONDS
    no_slider_movement  moves_count == 0

A response keeps a single ``flag_reason``; when several rules fire the
highest-priority one wins (``no_slider_movement`` before ``too_fast``).

Per session (evaluated once, at completion):

    invariant_responses  INVARIANT_RESPONSE_THRESHOLD or more TTO rows
                         share an identical final_value

Flags never block a submission or a step transition.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Iterable

from tto_protocol.constants import INVARIANT_RESPONSE_THRESHOLD, TOO_FAST_SECONDS

logger = logging.getLogger(__name__)

FLAG_TOO_FAST = "too_fast"
FLAG_NO_SLIDER_MOVEMENT = "no_slider_movement"
FLAG_INVARIANT_RESPONSES = "invariant_responses"

# First match wins when choosing the stored flag_reason
RESPONSE_FLAG_PRIORITY: tuple[str, ...] = (FLAG_NO_SLIDER_MOVEMENT, FLAG_TOO_FAST)


@dataclass(frozen=True)
class ResponseFlags:
    flagged: bool
    flag_reason: str | None
    reasons: tuple[str, ...] = ()


class QualityFlagger:
    def __init__(
        self,
        too_fast_seconds: int = TOO_FAST_SECONDS,
        invariant_threshold: int = INVARIANT_RESPONSE_THRESHOLD,
    ) -> None:
        self._too_fast_seconds = too_fast_seconds
        self._invariant_threshold = invariant_threshold

    def evaluate_response(
        self, *, time_spent_seconds: int, moves_count: int
    ) -> ResponseFlags:
        """Apply the per-response rules to one TTO answer."""
        fired: set[str] = set()
        if time_spent_seconds < self._too_fast_seconds:
            fired.add(FLAG_TOO_FAST)
        if moves_count == 0:
            fired.add(FLAG_NO_SLIDER_MOVEMENT)

        reasons = tuple(r for r in RESPONSE_FLAG_PRIORITY if r in fired)
        if not reasons:
            return ResponseFlags(flagged=False, flag_reason=None)
        if len(reasons) > 1:
            logger.info("TTO response matched several flags %s; storing %s", reasons, reasons[0])
        return ResponseFlags(flagged=True, flag_reason=reasons[0], reasons=reasons)

    def evaluate_session(self, final_values: Iterable[float]) -> list[str]:
        """Session-level flags from the full set of TTO values."""
        counts = Counter(round(v, 6) for v in final_values)
        flags: list[str] = []
        if counts and max(counts.values()) >= self._invariant_threshold:
            value, n = counts.most_common(1)[0]
            logger.info("Invariant responses: value %s repeated %d times", value, n)
            flags.append(FLAG_INVARIANT_RESPONSES)
        return flags
