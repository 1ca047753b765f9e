"""Shared test fixtures for the Decision Programming compiler."""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from decision_programming.core.paths import PathProbability, PathUtility
from decision_programming.core.workflow import CompiledDiagram
from decision_programming.main import app
from decision_programming.models.diagram import InfluenceDiagram
from decision_programming.models.schemas import DiagramDefinition
from decision_programming.models.strategy import DecisionStrategy, LocalDecisionRule
from decision_programming.models.tensors import Consequences, Probabilities

# Weather (1) -> forecast (2) -> umbrella decision (3); utility (4) depends on weather and decision.
WEATHER_DEFINITION = {
    "chance": [1, 2],
    "decision": [3],
    "value": [4],
    "arcs": [[1, 2], [2, 3], [1, 4], [3, 4]],
    "states": [2, 2, 2],
    "probabilities": {
        "1": [0.7, 0.3],
        "2": [[0.8, 0.2], [0.3, 0.7]],
    },
    "consequences": {
        "4": [[100.0, 80.0], [0.0, 70.0]],
    },
}


@pytest.fixture
def weather_definition() -> dict:
    """JSON body of the umbrella problem."""
    return {**WEATHER_DEFINITION}


@pytest.fixture
def weather() -> CompiledDiagram:
    """Umbrella problem: the optimal strategy takes the umbrella only on a rainy forecast."""
    return CompiledDiagram.from_definition(DiagramDefinition.model_validate(WEATHER_DEFINITION))


@pytest.fixture
def weather_probability(weather: CompiledDiagram) -> PathProbability:
    return PathProbability(weather.diagram, weather.probabilities)


@pytest.fixture
def weather_strategy() -> DecisionStrategy:
    """No umbrella on a sunny forecast, umbrella on a rainy one."""
    rule = LocalDecisionRule(node=3, information_set=(2,), information_states=(2,), choices=(0, 1))
    return DecisionStrategy(rules=(rule,))


@pytest.fixture
def coin() -> tuple[InfluenceDiagram, Probabilities]:
    """Single chance node with probabilities 0.3 and 0.7."""
    diagram = InfluenceDiagram(chance=[1], decision=[], value=[], arcs=[], states=[2])
    return diagram, Probabilities(diagram, {1: [0.3, 0.7]})


@pytest.fixture
def single_decision() -> tuple[InfluenceDiagram, Probabilities, PathUtility]:
    """One decision node whose states are worth 1 and -1."""
    diagram = InfluenceDiagram(chance=[], decision=[1], value=[2], arcs=[(1, 2)], states=[2])
    consequences = Consequences(diagram, {2: [1.0, -1.0]})
    return diagram, Probabilities(diagram, {}), PathUtility(diagram, consequences)


@pytest.fixture
def two_decisions() -> CompiledDiagram:
    """Two independent binary decisions with a joint payoff table."""
    return CompiledDiagram.from_definition(
        DiagramDefinition(
            chance=[],
            decision=[1, 2],
            value=[3],
            arcs=[(1, 3), (2, 3)],
            states=[2, 2],
            consequences={3: [[10.0, 1.0], [2.0, 3.0]]},
        )
    )


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c
