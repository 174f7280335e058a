"""QualityFlagger tests — per-response rules, priority, session check."""

import pytest

from tto_protocol.quality import (
    FLAG_INVARIANT_RESPONSES,
    FLAG_NO_SLIDER_MOVEMENT,
    FLAG_TOO_FAST,
    QualityFlagger,
)


@pytest.fixture
def flagger():
    return QualityFlagger(too_fast_seconds=10, invariant_threshold=3)


class TestResponseFlags:
    def test_scenario_c_fast_and_unmoved(self, flagger):
        flags = flagger.evaluate_response(time_spent_seconds=4, moves_count=0)
        assert flags.flagged is True
        assert flags.flag_reason == FLAG_NO_SLIDER_MOVEMENT
        assert set(flags.reasons) == {FLAG_NO_SLIDER_MOVEMENT, FLAG_TOO_FAST}

    def test_too_fast_only(self, flagger):
        flags = flagger.evaluate_response(time_spent_seconds=9, moves_count=5)
        assert flags.flagged is True
        assert flags.flag_reason == FLAG_TOO_FAST

    def test_no_movement_only(self, flagger):
        flags = flagger.evaluate_response(time_spent_seconds=60, moves_count=0)
        assert flags.flag_reason == FLAG_NO_SLIDER_MOVEMENT

    def test_threshold_is_exclusive(self, flagger):
        flags = flagger.evaluate_response(time_spent_seconds=10, moves_count=1)
        assert flags.flagged is False
        assert flags.flag_reason is None


class TestSessionFlags:
    def test_three_identical_values_flag_session(self, flagger):
        assert flagger.evaluate_session([0.5, 0.5, 0.7, 0.5]) == [FLAG_INVARIANT_RESPONSES]

    def test_two_identical_values_do_not(self, flagger):
        assert flagger.evaluate_session([0.5, 0.5, 0.7]) == []

    def test_empty_session(self, flagger):
        assert flagger.evaluate_session([]) == []

    def test_negative_values_count_too(self, flagger):
        assert flagger.evaluate_session([-0.3, -0.3, -0.3]) == [FLAG_INVARIANT_RESPONSES]
