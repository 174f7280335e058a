"""ProtocolCatalogue tests — loads the shipped v1/protocol.yaml."""

import pytest

from tto_protocol.catalogue import ProtocolCatalogue
from tto_protocol.models.catalogue import DCEPair, HealthState


class TestShippedCatalogue:
    def test_task_counts(self, catalogue):
        assert catalogue.tto_task_count == 10
        assert catalogue.dce_task_count == 7

    def test_state_codes_are_five_levels(self, catalogue):
        for state in catalogue.tto_states:
            assert len(state.code) == 5
            assert set(state.code) <= set("12345")

    def test_state_codes_are_unique(self, catalogue):
        codes = [s.code for s in catalogue.tto_states]
        assert len(codes) == len(set(codes))

    def test_first_state_code(self, catalogue):
        assert catalogue.tto_state(1).code == "21231"

    def test_practice_state_present(self, catalogue):
        assert catalogue.practice_state is not None
        assert catalogue.practice_state.description

    def test_dce_pairs_compare_different_states(self, catalogue):
        for pair in catalogue.dce_pairs:
            assert pair.state_a != pair.state_b

    @pytest.mark.parametrize("task", [0, 11])
    def test_unknown_tto_task(self, catalogue, task):
        with pytest.raises(KeyError):
            catalogue.tto_state(task)


class TestCatalogueModels:
    def test_describe_uses_level_labels(self):
        state = HealthState(
            mobility=1, self_care=2, usual_activities=3, pain_discomfort=4, anxiety_depression=5
        )
        assert state.code == "12345"
        assert state.describe()["anxiety_depression"] == "Extreme problems / Unable"

    def test_level_out_of_range(self):
        with pytest.raises(Exception):
            HealthState(
                mobility=6, self_care=1, usual_activities=1, pain_discomfort=1, anxiety_depression=1
            )

    def test_bad_pair_code(self):
        with pytest.raises(Exception):
            DCEPair(state_a="1234", state_b="11111")


class TestLoading:
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ProtocolCatalogue(catalogue_dir=tmp_path).load()

    def test_empty_catalogue_rejected(self, tmp_path):
        (tmp_path / "protocol.yaml").write_text("dce_pairs: []\n")
        with pytest.raises(ValueError):
            ProtocolCatalogue(catalogue_dir=tmp_path).load()

    def test_from_states(self):
        state = HealthState(
            mobility=1, self_care=1, usual_activities=1, pain_discomfort=1, anxiety_depression=1
        )
        c = ProtocolCatalogue.from_states([state, state])
        assert c.tto_task_count == 2
        assert c.dce_task_count == 0
