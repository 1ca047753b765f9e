"""Error taxonomy for diagram construction, formulation and analysis.

Every error derives from ``DecisionProgrammingError`` so callers can catch the
whole family at once. Messages always name the violated invariant and the
offending node, index or value.
"""
from __future__ import annotations


class DecisionProgrammingError(ValueError):
    """Base class for all validation and domain errors."""


class StructuralError(DecisionProgrammingError):
    """Malformed graph: bad node partition, misordered arcs, bad state counts."""


class ShapeError(DecisionProgrammingError):
    """Tensor dimensions do not match the information set and state counts."""


class ProbabilityError(DecisionProgrammingError):
    """Negative probabilities or a conditional slice that does not sum to one."""


class DomainError(DecisionProgrammingError):
    """An argument lies outside the domain of the operation."""


class ConsistencyError(DecisionProgrammingError):
    """Solved decision indicators do not describe a deterministic strategy.

    This signals an upstream formulation or solver problem, not a user error.
    """


class InfeasibilityError(DecisionProgrammingError):
    """The formulation is provably infeasible before it reaches a solver."""


class SolverError(RuntimeError):
    """Raised when the optimizer fails to return a usable assignment."""


def safe_error_message(error: Exception) -> str:
    """Extract a safe error message from an exception.

    Args:
        error: The exception to extract message from

    Returns:
        The message for validation/domain errors, the type name otherwise
    """
    if isinstance(error, (ValueError, SolverError)):
        return str(error)
    return type(error).__name__
