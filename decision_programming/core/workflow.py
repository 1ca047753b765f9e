"""Compile, solve and analyze a diagram definition end to end.

This is the orchestration the HTTP routes call into; it can also be used
directly from Python.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from decision_programming.config import PathConfig
from decision_programming.core.analysis import (
    conditional_state_probabilities,
    decode_strategy,
    state_probabilities,
    utility_distribution,
)
from decision_programming.core.errors import DomainError
from decision_programming.core.formulation import (
    DecisionVariables,
    PathCompatibilityVariables,
    conditional_value_at_risk,
    expected_value,
)
from decision_programming.core.optimization import MilpModel, solve
from decision_programming.core.paths import (
    ForbiddenPath,
    PathProbability,
    PathSpace,
    PathUtility,
    PositivePathUtility,
)
from decision_programming.models.diagram import InfluenceDiagram
from decision_programming.models.schemas import DiagramDefinition, SolveRequest, SolveResponse
from decision_programming.models.tensors import Consequences, Probabilities

logger = logging.getLogger(__name__)

Objective = Literal["expected_value", "cvar"]


@dataclass(frozen=True)
class CompiledDiagram:
    """Validated diagram with its tensors and path functions."""

    diagram: InfluenceDiagram
    probabilities: Probabilities
    consequences: Consequences
    path_utility: PathUtility

    @classmethod
    def from_definition(cls, definition: DiagramDefinition) -> CompiledDiagram:
        diagram = InfluenceDiagram.from_definition(definition)
        probabilities = Probabilities(diagram, definition.probabilities)
        consequences = Consequences(diagram, definition.consequences)
        return cls(diagram, probabilities, consequences, PathUtility(diagram, consequences))


@dataclass
class DecisionModel:
    """An optimization model built for one diagram and objective."""

    model: MilpModel
    z: DecisionVariables
    x_s: PathCompatibilityVariables
    path_probability: PathProbability


def check_path_count(diagram: InfluenceDiagram) -> None:
    """Reject path spaces too large to enumerate.

    Raises:
        DomainError: If the path count exceeds the blocking threshold.
    """
    count = diagram.path_count
    if count > PathConfig.PATH_COUNT_BLOCKING_THRESHOLD:
        raise DomainError(
            f"Diagram has {count} paths, more than the limit of "
            f"{PathConfig.PATH_COUNT_BLOCKING_THRESHOLD}"
        )


def build_model(
    compiled: CompiledDiagram,
    objective: Objective = "expected_value",
    alpha: float = 0.2,
    probability_scale_factor: float = 1.0,
    probability_cut: bool = True,
    positive_utility: bool = False,
    fixed: dict[int, int] | None = None,
    forbidden_paths: Iterable[ForbiddenPath] = (),
) -> DecisionModel:
    """Create decision and path variables and set the objective to maximize."""
    diagram = compiled.diagram
    model = MilpModel()
    path_probability = PathProbability(diagram, compiled.probabilities, forbidden_paths)
    z = DecisionVariables(model, diagram)
    x_s = PathCompatibilityVariables(
        model, z, path_probability, fixed=fixed, probability_cut=probability_cut
    )

    if objective == "expected_value":
        utility = compiled.path_utility
        if positive_utility:
            utility = PositivePathUtility(PathSpace(diagram.states), compiled.path_utility)
        expression = expected_value(model, x_s, utility, probability_scale_factor)
    elif objective == "cvar":
        expression = conditional_value_at_risk(
            model, x_s, compiled.path_utility, alpha, probability_scale_factor
        )
    else:
        raise DomainError(f"Unknown objective {objective!r}")

    model.set_objective(expression, "max")
    return DecisionModel(model, z, x_s, path_probability)


def solve_request(request: SolveRequest) -> SolveResponse:
    """Compile the request's diagram, optimize it and analyze the result."""
    start = time.perf_counter()
    compiled = CompiledDiagram.from_definition(request.diagram)
    check_path_count(compiled.diagram)

    built = build_model(
        compiled,
        objective=request.objective,
        alpha=request.alpha,
        probability_scale_factor=request.probability_scale_factor,
        probability_cut=request.probability_cut,
        positive_utility=request.positive_utility,
        fixed=request.fixed,
        forbidden_paths=[spec.to_rule() for spec in request.forbidden_paths],
    )
    solution = solve(built.model)
    strategy = decode_strategy(built.z, solution)

    diagram = compiled.diagram
    probabilities = state_probabilities(diagram, built.path_probability, strategy)
    conditional = None
    if request.fixed:
        conditional = probabilities
        for node in sorted(request.fixed):
            conditional = conditional_state_probabilities(
                diagram, built.path_probability, strategy, node, request.fixed[node], conditional
            )

    distribution = utility_distribution(
        diagram, built.path_probability, compiled.path_utility, strategy
    )
    statistics = None
    risk_measures = []
    if distribution.utilities:
        statistics = distribution.statistics()
        risk_measures = distribution.risk_measures(request.risk_levels)

    elapsed_ms = int((time.perf_counter() - start) * 1000)
    logger.info(
        "Solved %s for %r in %d ms (objective %.6g)",
        request.objective,
        diagram,
        elapsed_ms,
        solution.objective_value,
    )
    return SolveResponse(
        objective=request.objective,
        objective_value=solution.objective_value,
        solver_status=solution.status,
        strategy=strategy,
        state_probabilities=probabilities,
        conditional_state_probabilities=conditional,
        utility_distribution=distribution,
        statistics=statistics,
        risk_measures=risk_measures,
        num_path_variables=len(built.x_s),
        num_variables=built.model.num_variables,
        num_constraints=built.model.num_constraints,
        computation_time_ms=elapsed_ms,
    )
