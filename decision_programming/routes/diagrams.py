from __future__ import annotations

import logging

from fastapi import APIRouter

from decision_programming.core.errors import (
    DecisionProgrammingError,
    InfeasibilityError,
    SolverError,
)
from decision_programming.core.workflow import CompiledDiagram, solve_request
from decision_programming.models.schemas import (
    DiagramDefinition,
    SolveRequest,
    SolveResponse,
    ValidationSummary,
)
from decision_programming.routes.errors import infeasible, invalid_diagram, solver_failed

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["diagrams"])


@router.post("/diagrams/validate", response_model=ValidationSummary)
def validate_diagram(definition: DiagramDefinition) -> ValidationSummary:
    """Build the diagram and its tensors, reporting the first violated invariant."""
    try:
        compiled = CompiledDiagram.from_definition(definition)
    except DecisionProgrammingError as e:
        logger.info("Rejected diagram: %s", e)
        raise invalid_diagram(e) from e

    diagram = compiled.diagram
    return ValidationSummary(
        num_chance=len(diagram.chance_nodes),
        num_decision=len(diagram.decision_nodes),
        num_value=len(diagram.value_nodes),
        num_arcs=len(diagram.arcs),
        path_count=diagram.path_count,
        information_sets={
            j: list(diagram.information_set(j)) for j in diagram.nodes + diagram.value_nodes
        },
    )


@router.post("/diagrams/solve", response_model=SolveResponse)
def solve_diagram(request: SolveRequest) -> SolveResponse:
    """Optimize a decision strategy and return its analysis."""
    try:
        return solve_request(request)
    except InfeasibilityError as e:
        logger.warning("Infeasible problem: %s", e)
        raise infeasible(e) from e
    except DecisionProgrammingError as e:
        logger.info("Rejected solve request: %s", e)
        raise invalid_diagram(e) from e
    except SolverError as e:
        logger.error("Solver failure: %s", e)
        raise solver_failed(e) from e
