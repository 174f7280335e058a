"""TTOValuationEngine tests — both branches, grid and bounds."""

import pytest

from tto_protocol.errors import ValidationError
from tto_protocol.models.answers import TTOSubmission
from tto_protocol.valuation import TTOValuationEngine

GRID = [i * 0.5 for i in range(21)]  # 0.0 .. 10.0


@pytest.fixture
def valuation():
    return TTOValuationEngine()


class TestStandardBranch:
    def test_scenario_a_seven_and_a_half_years(self, valuation):
        v = valuation.value_standard(7.5)
        assert v.final_value == pytest.approx(0.75)
        assert v.is_worse_than_death is False
        assert v.lead_time_value is None

    @pytest.mark.parametrize("years", GRID)
    def test_value_is_years_over_ten(self, valuation, years):
        assert valuation.value_standard(years).final_value == pytest.approx(years / 10)

    def test_mapping_is_non_decreasing(self, valuation):
        values = [valuation.value_standard(y).final_value for y in GRID]
        assert values == sorted(values)

    def test_never_negative(self, valuation):
        assert min(valuation.value_standard(y).final_value for y in GRID) >= 0

    @pytest.mark.parametrize("years", [-0.5, 10.5, 7.3, 0.25])
    def test_out_of_range_or_off_grid_rejected(self, valuation, years):
        with pytest.raises(ValidationError):
            valuation.value_standard(years)

    def test_nan_rejected(self, valuation):
        with pytest.raises(ValidationError):
            valuation.value_standard(float("nan"))


class TestWorseThanDeathBranch:
    def test_scenario_b_three_lead_years(self, valuation):
        v = valuation.value_worse_than_death(3)
        assert v.final_value == pytest.approx(-0.30)
        assert v.is_worse_than_death is True
        assert v.lead_time_value == 3

    @pytest.mark.parametrize("lead", GRID[1:])
    def test_value_is_minus_lead_over_ten(self, valuation, lead):
        v = valuation.value_worse_than_death(lead)
        assert v.final_value == pytest.approx(-(lead / 10))
        assert v.final_value >= -1
        assert v.is_worse_than_death is True

    def test_full_lead_time_bottoms_out_at_minus_one(self, valuation):
        assert valuation.value_worse_than_death(10).final_value == -1.0

    def test_zero_lead_years_is_not_worse_than_dead(self, valuation):
        v = valuation.value_worse_than_death(0)
        assert v.final_value == 0.0
        assert v.is_worse_than_death is False
        assert v.lead_time_value == 0

    def test_more_lead_time_never_raises_the_value(self, valuation):
        values = [valuation.value_worse_than_death(l).final_value for l in GRID]
        assert values == sorted(values, reverse=True)

    @pytest.mark.parametrize("lead", [-1, 11, 2.2])
    def test_invalid_lead_rejected(self, valuation, lead):
        with pytest.raises(ValidationError):
            valuation.value_worse_than_death(lead)


class TestEvaluate:
    def test_dispatches_on_branch(self, valuation):
        std = TTOSubmission(chosen_years=5, moves_count=3, time_spent_seconds=20)
        wtd = TTOSubmission(
            worse_than_death=True, lead_years=5, moves_count=3, time_spent_seconds=20
        )
        assert valuation.evaluate(std).final_value == pytest.approx(0.5)
        assert valuation.evaluate(wtd).final_value == pytest.approx(-0.5)

    def test_wtd_submission_requires_lead_years(self):
        with pytest.raises(Exception):
            TTOSubmission(worse_than_death=True, moves_count=1, time_spent_seconds=20)

    def test_standard_submission_requires_chosen_years(self):
        with pytest.raises(Exception):
            TTOSubmission(moves_count=1, time_spent_seconds=20)
