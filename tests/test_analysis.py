"""Tests for strategy decoding, compatible paths and state probabilities."""
from __future__ import annotations

import numpy as np
import pytest

from decision_programming.core.analysis import (
    CompatiblePaths,
    conditional_state_probabilities,
    decode_strategy,
    state_probabilities,
    utility_distribution,
)
from decision_programming.core.errors import ConsistencyError, DomainError
from decision_programming.core.formulation import DecisionVariables
from decision_programming.core.optimization import MilpModel, Solution
from decision_programming.core.paths import ForbiddenPath, PathProbability
from decision_programming.models.strategy import DecisionStrategy


def _solution(model: MilpModel, ones=()) -> Solution:
    values = np.zeros(model.num_variables)
    for variable in ones:
        values[variable.index] = 1.0
    return Solution(status="optimal", message="", objective_value=0.0, values=values)


class TestDecodeStrategy:
    def test_decodes_one_state_per_context(self, weather):
        model = MilpModel()
        z = DecisionVariables(model, weather.diagram)
        strategy = decode_strategy(z, _solution(model, [z[3][(0, 1)], z[3][(1, 0)]]))
        rule = strategy.rule(3)
        assert rule.information_set == (2,)
        assert rule.choices == (1, 0)
        assert rule((1,)) == 0

    def test_within_tolerance(self, weather):
        model = MilpModel()
        z = DecisionVariables(model, weather.diagram)
        solution = _solution(model, [z[3][(0, 0)], z[3][(1, 1)]])
        solution.values[z[3][(0, 0)].index] = 1.0 - 1e-9
        solution.values[z[3][(0, 1)].index] = 1e-9
        assert decode_strategy(z, solution).rule(3).choices == (0, 1)

    def test_idempotent(self, weather):
        model = MilpModel()
        z = DecisionVariables(model, weather.diagram)
        solution = _solution(model, [z[3][(0, 1)], z[3][(1, 1)]])
        assert decode_strategy(z, solution) == decode_strategy(z, solution)

    def test_no_indicator_set(self, weather):
        model = MilpModel()
        z = DecisionVariables(model, weather.diagram)
        with pytest.raises(ConsistencyError, match=r"information state \(0,\)"):
            decode_strategy(z, _solution(model, [z[3][(1, 0)]]))

    def test_two_indicators_set(self, weather):
        model = MilpModel()
        z = DecisionVariables(model, weather.diagram)
        ones = [z[3][(0, 0)], z[3][(1, 0)], z[3][(1, 1)]]
        with pytest.raises(ConsistencyError, match="found 2"):
            decode_strategy(z, _solution(model, ones))

    def test_no_decisions(self, coin):
        diagram, _ = coin
        model = MilpModel()
        model.add_variable()
        strategy = decode_strategy(DecisionVariables(model, diagram), _solution(model))
        assert strategy.rules == ()


class TestCompatiblePaths:
    def test_follows_strategy(self, weather, weather_strategy):
        paths = list(CompatiblePaths(weather.diagram, weather_strategy))
        assert paths == [(0, 0, 0), (0, 1, 1), (1, 0, 0), (1, 1, 1)]

    def test_restartable(self, weather, weather_strategy):
        paths = CompatiblePaths(weather.diagram, weather_strategy)
        assert list(paths) == list(paths)

    def test_fixed_chance_state(self, weather, weather_strategy):
        paths = list(CompatiblePaths(weather.diagram, weather_strategy, {1: 1}))
        assert paths == [(1, 0, 0), (1, 1, 1)]

    def test_fixed_decision_state(self, weather, weather_strategy):
        paths = list(CompatiblePaths(weather.diagram, weather_strategy, {3: 1}))
        assert paths == [(0, 1, 1), (1, 1, 1)]

    def test_contradicting_fixed_decision(self, weather, weather_strategy):
        with pytest.raises(DomainError, match="Decision node 3"):
            CompatiblePaths(weather.diagram, weather_strategy, {2: 1, 3: 0})

    def test_strategy_for_other_diagram(self, two_decisions, weather_strategy):
        with pytest.raises(DomainError, match="Strategy covers"):
            CompatiblePaths(two_decisions.diagram, weather_strategy)


class TestStateProbabilities:
    def test_single_chance_node(self, coin):
        diagram, probabilities = coin
        strategy = DecisionStrategy(rules=())
        result = state_probabilities(diagram, PathProbability(diagram, probabilities), strategy)
        assert result.probability(1, 0) == pytest.approx(0.3)
        assert result.probability(1, 1) == pytest.approx(0.7)
        assert result.mass == 1.0
        assert result.fixed_state(1) is None

    def test_umbrella_problem(self, weather, weather_probability, weather_strategy):
        result = state_probabilities(weather.diagram, weather_probability, weather_strategy)
        assert result.probabilities[1] == pytest.approx((0.7, 0.3))
        assert result.probabilities[2] == pytest.approx((0.65, 0.35))
        assert result.probabilities[3] == pytest.approx((0.65, 0.35))

    def test_each_node_sums_to_one(self, weather, weather_probability, weather_strategy):
        result = state_probabilities(weather.diagram, weather_probability, weather_strategy)
        for probs in result.probabilities.values():
            assert sum(probs) == pytest.approx(1.0)

    def test_conditional(self, weather, weather_probability, weather_strategy):
        prior = state_probabilities(weather.diagram, weather_probability, weather_strategy)
        rainy = conditional_state_probabilities(
            weather.diagram, weather_probability, weather_strategy, 1, 1, prior
        )
        assert rainy.fixed == {1: 1}
        assert rainy.fixed_state(1) == 1
        assert rainy.mass == pytest.approx(0.3)
        assert rainy.probabilities[1] == pytest.approx((0.0, 1.0))
        assert rainy.probabilities[2] == pytest.approx((0.3, 0.7))
        assert rainy.active_states(1) == (1,)

    def test_conditioning_is_order_independent(self, weather, weather_probability, weather_strategy):
        args = (weather.diagram, weather_probability, weather_strategy)
        prior = state_probabilities(*args)
        weather_first = conditional_state_probabilities(
            *args, 2, 1, conditional_state_probabilities(*args, 1, 0, prior)
        )
        forecast_first = conditional_state_probabilities(
            *args, 1, 0, conditional_state_probabilities(*args, 2, 1, prior)
        )
        assert weather_first.fixed == forecast_first.fixed == {1: 0, 2: 1}
        assert weather_first.mass == pytest.approx(forecast_first.mass)
        for node in weather.diagram.nodes:
            assert weather_first.probabilities[node] == pytest.approx(forecast_first.probabilities[node])

    def test_conditioning_on_unrelated_state_first(self, weather, weather_probability, weather_strategy):
        args = (weather.diagram, weather_probability, weather_strategy)
        prior = state_probabilities(*args)
        direct = conditional_state_probabilities(*args, 2, 0, prior)
        # the decision is determined by the forecast, so fixing it changes nothing further
        via_decision = conditional_state_probabilities(
            *args, 2, 0, conditional_state_probabilities(*args, 3, 0, prior)
        )
        assert direct.probabilities[1] == pytest.approx(via_decision.probabilities[1])

    def test_zero_probability_state(self, weather, weather_probability, weather_strategy):
        prior = state_probabilities(weather.diagram, weather_probability, weather_strategy)
        rainy = conditional_state_probabilities(
            weather.diagram, weather_probability, weather_strategy, 1, 1, prior
        )
        with pytest.raises(DomainError, match="probability 0"):
            conditional_state_probabilities(
                weather.diagram, weather_probability, weather_strategy, 1, 0, prior.model_copy(
                    update={"probabilities": {**prior.probabilities, 1: (0.0, 1.0)}}
                )
            )
        with pytest.raises(DomainError, match="already fixed"):
            conditional_state_probabilities(
                weather.diagram, weather_probability, weather_strategy, 1, 0, rainy
            )

    def test_state_out_of_range(self, weather, weather_probability, weather_strategy):
        prior = state_probabilities(weather.diagram, weather_probability, weather_strategy)
        with pytest.raises(DomainError):
            conditional_state_probabilities(
                weather.diagram, weather_probability, weather_strategy, 1, 5, prior
            )


class TestUtilityDistribution:
    def test_umbrella_problem(self, weather, weather_probability, weather_strategy):
        distribution = utility_distribution(
            weather.diagram, weather_probability, weather.path_utility, weather_strategy
        )
        assert distribution.utilities == (0.0, 70.0, 80.0, 100.0)
        assert distribution.probabilities == pytest.approx((0.09, 0.21, 0.14, 0.56))
        assert distribution.statistics().mean == pytest.approx(81.9)

    def test_equal_utilities_are_merged(self, weather, weather_probability):
        never = DecisionStrategy.model_validate(
            {"rules": [{"node": 3, "information_set": [2], "information_states": [2], "choices": [0, 0]}]}
        )
        distribution = utility_distribution(
            weather.diagram, weather_probability, weather.path_utility, never
        )
        assert distribution.utilities == (0.0, 100.0)
        assert distribution.probabilities == pytest.approx((0.3, 0.7))
        assert len(distribution.pairs()) == 2

    def test_forbidden_paths_are_dropped(self, weather, weather_strategy):
        path_probability = PathProbability(
            weather.diagram, weather.probabilities, [ForbiddenPath.of([1, 2], [(1, 0)])]
        )
        distribution = utility_distribution(
            weather.diagram, path_probability, weather.path_utility, weather_strategy
        )
        assert 0.0 not in distribution.utilities
        assert sum(distribution.probabilities) == pytest.approx(0.91)
