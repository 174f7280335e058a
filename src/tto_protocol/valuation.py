"""TTOValuationEngine — converts a confirmed TTO answer into a utility value.

Life A is ``TTO_DURATION_YEARS`` (10) years in the described health state.

Standard branch (state better than dead)::

    value = chosen_years / 10          # chosen_years in [0, 10]

Worse-than-death branch (lead-time TTO)::

    value = -(lead_years / 10)         # lead_years in [0, 10], clamped at -1

Both sliders move on a ``TTO_SLIDER_STEP`` (0.5-year) grid.  Off-grid or
out-of-range input is rejected rather than rounded.
"""

import math
from dataclasses import dataclass

from tto_protocol.constants import TTO_DURATION_YEARS, TTO_MIN_VALUE, TTO_SLIDER_STEP
from tto_protocol.errors import ValidationError
from tto_protocol.models.answers import TTOSubmission

# Tolerance for the grid check on float input
_GRID_EPSILON = 1e-9


@dataclass(frozen=True)
class TTOValuation:
    final_value: float
    is_worse_than_death: bool
    lead_time_value: float | None = None


class TTOValuationEngine:
    """Pure computation; holds no per-session state."""

    def __init__(
        self,
        duration_years: float = TTO_DURATION_YEARS,
        slider_step: float = TTO_SLIDER_STEP,
    ) -> None:
        self._duration = duration_years
        self._step = slider_step

    def evaluate(self, submission: TTOSubmission) -> TTOValuation:
        """Dispatch on the submission's branch."""
        if submission.worse_than_death:
            return self.value_worse_than_death(submission.lead_years)
        return self.value_standard(submission.chosen_years)

    def value_standard(self, chosen_years: float) -> TTOValuation:
        """Value of a state judged better than dead.  Never negative."""
        years = self._check_years(chosen_years, "chosen_years")
        value = round(years / self._duration, 6)
        return TTOValuation(final_value=value, is_worse_than_death=False)

    def value_worse_than_death(self, lead_years: float) -> TTOValuation:
        """Value of a state judged worse than dead.  Never positive.

        Zero lead years is the indifference point with death: the value is
        0.0 and the answer is not worse than dead, but the lead time is
        still recorded.
        """
        years = self._check_years(lead_years, "lead_years")
        value = max(-(years / self._duration), TTO_MIN_VALUE)
        value = round(value, 6)
        if value == 0:
            # drop the sign of -0.0
            return TTOValuation(final_value=0.0, is_worse_than_death=False, lead_time_value=years)
        return TTOValuation(final_value=value, is_worse_than_death=True, lead_time_value=years)

    # ------------------------------------------------------------------

    def _check_years(self, years: float | None, name: str) -> float:
        if years is None or isinstance(years, bool):
            raise ValidationError(f"{name} is required")
        years = float(years)
        if math.isnan(years) or math.isinf(years):
            raise ValidationError(f"{name} must be a finite number, got {years}")
        if years < 0 or years > self._duration:
            raise ValidationError(
                f"{name} must be between 0 and {self._duration:g}, got {years:g}"
            )
        steps = years / self._step
        if abs(steps - round(steps)) > _GRID_EPSILON:
            raise ValidationError(
                f"{name} must be a multiple of {self._step:g}, got {years:g}"
            )
        return years
