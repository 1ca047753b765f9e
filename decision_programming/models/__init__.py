"""Diagram, tensor, strategy and result models."""

from decision_programming.models.diagram import InfluenceDiagram, NodeKind
from decision_programming.models.results import (
    RiskMeasure,
    StateProbabilities,
    UtilityDistribution,
    UtilityStatistics,
)
from decision_programming.models.strategy import DecisionStrategy, LocalDecisionRule
from decision_programming.models.tensors import Consequences, Probabilities

__all__ = [
    "Consequences",
    "DecisionStrategy",
    "InfluenceDiagram",
    "LocalDecisionRule",
    "NodeKind",
    "Probabilities",
    "RiskMeasure",
    "StateProbabilities",
    "UtilityDistribution",
    "UtilityStatistics",
]
