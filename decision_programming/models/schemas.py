"""Request and response models of the HTTP service."""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from decision_programming.core.paths import ForbiddenPath
from decision_programming.models.results import (
    RiskMeasure,
    StateProbabilities,
    UtilityDistribution,
    UtilityStatistics,
)
from decision_programming.models.strategy import DecisionStrategy


class DiagramDefinition(BaseModel):
    """Influence diagram together with its tensors.

    Tensors are nested lists whose axes follow the node's information set in
    ascending node order; chance node tensors have the node's own states as
    the last axis.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    chance: list[int]
    decision: list[int] = Field(default_factory=list)
    value: list[int] = Field(default_factory=list)
    arcs: list[tuple[int, int]] = Field(default_factory=list)
    states: list[int]
    probabilities: dict[int, Any] = Field(default_factory=dict, description="Chance node -> tensor")
    consequences: dict[int, Any] = Field(default_factory=dict, description="Value node -> tensor")


class ForbiddenPathSpec(BaseModel):
    """State combinations of ``nodes`` that no path may take."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    nodes: list[int]
    states: list[list[int]]

    def to_rule(self) -> ForbiddenPath:
        return ForbiddenPath.of(self.nodes, self.states)


class SolveRequest(BaseModel):
    """Diagram plus formulation options."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    diagram: DiagramDefinition
    objective: Literal["expected_value", "cvar"] = "expected_value"
    alpha: float = Field(default=0.2, description="CVaR level, used when objective is 'cvar'")
    probability_scale_factor: float = 1.0
    probability_cut: bool = True
    positive_utility: bool = Field(
        default=False, description="Shift utilities to be >= 1 in the expected-value objective"
    )
    fixed: dict[int, int] = Field(default_factory=dict, description="Node -> fixed state")
    forbidden_paths: list[ForbiddenPathSpec] = Field(default_factory=list)
    risk_levels: list[float] = Field(default_factory=lambda: [0.05, 0.1, 0.2])


class ValidationSummary(BaseModel):
    """Shape of a validated diagram."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    num_chance: int
    num_decision: int
    num_value: int
    num_arcs: int
    path_count: int
    information_sets: dict[int, list[int]]


class SolveResponse(BaseModel):
    """Optimal strategy and its analysis."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    objective: str
    objective_value: float
    solver_status: str
    strategy: DecisionStrategy
    state_probabilities: StateProbabilities
    conditional_state_probabilities: StateProbabilities | None = None
    utility_distribution: UtilityDistribution
    statistics: UtilityStatistics | None = None
    risk_measures: list[RiskMeasure] = Field(default_factory=list)
    num_path_variables: int
    num_variables: int
    num_constraints: int
    computation_time_ms: int = 0
