"""Tests for probability and consequence tensors."""
from __future__ import annotations

import math

import numpy as np
import pytest

from decision_programming.core.errors import ProbabilityError, ShapeError
from decision_programming.models.diagram import InfluenceDiagram
from decision_programming.models.tensors import Consequences, Probabilities


@pytest.fixture
def diagram() -> InfluenceDiagram:
    return InfluenceDiagram(
        chance=[1, 2],
        decision=[3],
        value=[4],
        arcs=[(1, 2), (1, 4), (3, 4)],
        states=[2, 3, 2],
    )


def _probabilities() -> dict:
    return {
        1: [0.4, 0.6],
        2: [[0.2, 0.3, 0.5], [1.0, 0.0, 0.0]],
    }


class TestProbabilities:
    def test_valid_tensors(self, diagram):
        probabilities = Probabilities(diagram, _probabilities())
        assert set(probabilities) == {1, 2}
        assert probabilities[2].shape == (2, 3)
        assert probabilities[1].dtype == np.float64

    def test_every_slice_sums_to_one(self, diagram):
        probabilities = Probabilities(diagram, _probabilities())
        for j in probabilities:
            assert np.allclose(probabilities[j].sum(axis=-1), 1.0, atol=1e-6)

    def test_tensors_are_read_only(self, diagram):
        probabilities = Probabilities(diagram, _probabilities())
        with pytest.raises(ValueError):
            probabilities[1][0] = 1.0

    def test_wrong_shape(self, diagram):
        with pytest.raises(ShapeError, match="node 2"):
            Probabilities(diagram, _probabilities() | {2: [0.2, 0.3, 0.5]})

    def test_information_set_axis_order(self, diagram):
        with pytest.raises(ShapeError, match=r"expected \(2, 3\)"):
            Probabilities(diagram, _probabilities() | {2: np.full((3, 2), 0.5)})

    def test_missing_tensor(self, diagram):
        with pytest.raises(ShapeError, match="Missing"):
            Probabilities(diagram, {1: [0.4, 0.6]})

    def test_tensor_for_non_chance_node(self, diagram):
        with pytest.raises(ShapeError, match="not chance"):
            Probabilities(diagram, _probabilities() | {3: [0.5, 0.5]})

    def test_ragged_tensor(self, diagram):
        with pytest.raises(ShapeError, match="dense"):
            Probabilities(diagram, _probabilities() | {2: [[0.5, 0.5], [1.0, 0.0, 0.0]]})

    def test_negative_entry(self, diagram):
        with pytest.raises(ProbabilityError, match="non-negative"):
            Probabilities(diagram, _probabilities() | {1: [-0.1, 1.1]})

    def test_nan_entry(self, diagram):
        with pytest.raises(ProbabilityError):
            Probabilities(diagram, _probabilities() | {1: [math.nan, 1.0]})

    def test_slice_not_summing_to_one(self, diagram):
        with pytest.raises(ProbabilityError, match=r"information state \(1,\)"):
            Probabilities(diagram, _probabilities() | {2: [[0.2, 0.3, 0.5], [0.5, 0.0, 0.0]]})

    def test_sum_within_tolerance(self, diagram):
        Probabilities(diagram, _probabilities() | {1: [0.4, 0.6 + 1e-7]})

    def test_active_states(self, diagram):
        probabilities = Probabilities(diagram, _probabilities() | {2: [[0.5, 0.0, 0.5], [1.0, 0.0, 0.0]]})
        assert probabilities.active_states(2) == (0, 2)


class TestConsequences:
    def test_valid_tensor(self, diagram):
        consequences = Consequences(diagram, {4: [[1.0, -2.0], [0.5, 3.0]]})
        assert consequences[4][1, 1] == 3.0

    def test_wrong_shape(self, diagram):
        with pytest.raises(ShapeError, match="Consequence tensor of node 4"):
            Consequences(diagram, {4: [1.0, 2.0]})

    def test_missing_tensor(self, diagram):
        with pytest.raises(ShapeError, match="value"):
            Consequences(diagram, {})

    def test_any_real_values(self, diagram):
        consequences = Consequences(diagram, {4: [[-1e9, 0.0], [1e9, -0.5]]})
        assert consequences[4].min() == -1e9
