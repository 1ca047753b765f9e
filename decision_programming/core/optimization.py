"""Linear optimization model and the MILP solver boundary.

The formulation builders only need an object that can create variables, add
linear constraints and set a linear objective (``OptimizationModel``).
``MilpModel`` is such an object; ``solve`` hands it to HiGHS through
``scipy.optimize.milp`` and reads the assignment back.
"""
from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from numbers import Real
from typing import Literal, Protocol, Union, runtime_checkable

import numpy as np
from scipy.optimize import Bounds, LinearConstraint, milp
from scipy.sparse import csr_array

from decision_programming.config import SolverConfig
from decision_programming.core.errors import InfeasibilityError, SolverError

logger = logging.getLogger(__name__)

Sense = Literal["<=", ">=", "=="]
ObjectiveSense = Literal["max", "min"]


class _Affine:
    """Arithmetic shared by variables and expressions."""

    __slots__ = ()

    def to_expression(self) -> LinearExpression:
        raise NotImplementedError

    def __add__(self, other: Operand) -> LinearExpression:
        result = self.to_expression().copy()
        result.add(other)
        return result

    __radd__ = __add__

    def __sub__(self, other: Operand) -> LinearExpression:
        result = self.to_expression().copy()
        result.add(other, -1.0)
        return result

    def __rsub__(self, other: Operand) -> LinearExpression:
        result = as_expression(other).copy()
        result.add(self, -1.0)
        return result

    def __mul__(self, factor: float) -> LinearExpression:
        if not isinstance(factor, Real):
            return NotImplemented
        result = LinearExpression()
        result.add(self, float(factor))
        return result

    __rmul__ = __mul__

    def __truediv__(self, divisor: float) -> LinearExpression:
        if not isinstance(divisor, Real):
            return NotImplemented
        return self * (1.0 / float(divisor))

    def __neg__(self) -> LinearExpression:
        return self * -1.0


class Variable(_Affine):
    """A decision variable, identified by its column index in the model."""

    __slots__ = ("index", "name")

    def __init__(self, index: int, name: str = "") -> None:
        self.index = index
        self.name = name

    def to_expression(self) -> LinearExpression:
        return LinearExpression({self.index: 1.0})

    def __repr__(self) -> str:
        return f"Variable({self.name or self.index})"


class LinearExpression(_Affine):
    """Sparse affine expression ``sum(coef * var) + constant``.

    Arithmetic operators return new expressions; ``add`` accumulates in place
    and is what the builders use for long sums.
    """

    __slots__ = ("terms", "constant")

    def __init__(self, terms: dict[int, float] | None = None, constant: float = 0.0) -> None:
        self.terms: dict[int, float] = dict(terms) if terms else {}
        self.constant = float(constant)

    def to_expression(self) -> LinearExpression:
        return self

    def copy(self) -> LinearExpression:
        return LinearExpression(self.terms, self.constant)

    def add(self, other: Operand, factor: float = 1.0) -> LinearExpression:
        """Add ``factor * other`` to this expression in place."""
        if isinstance(other, Variable):
            self.terms[other.index] = self.terms.get(other.index, 0.0) + factor
        elif isinstance(other, LinearExpression):
            for index, coef in other.terms.items():
                self.terms[index] = self.terms.get(index, 0.0) + factor * coef
            self.constant += factor * other.constant
        elif isinstance(other, Real):
            self.constant += factor * float(other)
        else:
            raise TypeError(f"Cannot add {type(other).__name__} to a linear expression")
        return self

    def __repr__(self) -> str:
        return f"LinearExpression({len(self.terms)} terms, constant={self.constant})"


Operand = Union[Variable, LinearExpression, float, int]


def as_expression(value: Operand) -> LinearExpression:
    if isinstance(value, _Affine):
        return value.to_expression()
    return LinearExpression(constant=float(value))


def quicksum(items: Iterable[Operand]) -> LinearExpression:
    """Sum variables and expressions without quadratic copying."""
    total = LinearExpression()
    for item in items:
        total.add(item)
    return total


@runtime_checkable
class OptimizationModel(Protocol):
    """What the formulation builders require from an optimization model."""

    def add_variable(
        self,
        lower: float | None = 0.0,
        upper: float | None = None,
        binary: bool = False,
        name: str = "",
    ) -> Variable:
        ...

    def add_constraint(self, lhs: Operand, sense: Sense, rhs: Operand = 0.0, name: str = "") -> int:
        ...

    def set_objective(self, expression: Operand, sense: ObjectiveSense = "max") -> None:
        ...


@dataclass
class _Row:
    terms: dict[int, float]
    lower: float
    upper: float
    name: str


class MilpModel:
    """Mixed-integer linear model collected in memory."""

    def __init__(self) -> None:
        self.variables: list[Variable] = []
        self._lower: list[float] = []
        self._upper: list[float] = []
        self._integrality: list[int] = []
        self._rows: list[_Row] = []
        self.objective: LinearExpression = LinearExpression()
        self.sense: ObjectiveSense = "max"

    @property
    def num_variables(self) -> int:
        return len(self.variables)

    @property
    def num_constraints(self) -> int:
        return len(self._rows)

    @property
    def num_binaries(self) -> int:
        return sum(self._integrality)

    def add_variable(
        self,
        lower: float | None = 0.0,
        upper: float | None = None,
        binary: bool = False,
        name: str = "",
    ) -> Variable:
        variable = Variable(len(self.variables), name)
        self.variables.append(variable)
        if binary:
            lower, upper = 0.0, 1.0
        self._lower.append(-math.inf if lower is None else float(lower))
        self._upper.append(math.inf if upper is None else float(upper))
        self._integrality.append(1 if binary else 0)
        return variable

    def add_constraint(self, lhs: Operand, sense: Sense, rhs: Operand = 0.0, name: str = "") -> int:
        """Add ``lhs <sense> rhs`` and return the row index."""
        expression = as_expression(lhs) - rhs
        bound = -expression.constant
        terms = {i: c for i, c in expression.terms.items() if c != 0.0}
        if sense == "<=":
            row = _Row(terms, -math.inf, bound, name)
        elif sense == ">=":
            row = _Row(terms, bound, math.inf, name)
        elif sense == "==":
            row = _Row(terms, bound, bound, name)
        else:
            raise ValueError(f"Unknown constraint sense {sense!r}")
        self._rows.append(row)
        return len(self._rows) - 1

    def set_objective(self, expression: Operand, sense: ObjectiveSense = "max") -> None:
        if sense not in ("max", "min"):
            raise ValueError(f"Unknown objective sense {sense!r}")
        self.objective = as_expression(expression).copy()
        self.sense = sense

    def bounds(self) -> Bounds:
        return Bounds(np.array(self._lower), np.array(self._upper))

    def integrality(self) -> np.ndarray:
        return np.array(self._integrality, dtype=np.int8)

    def constraint_matrix(self) -> LinearConstraint | None:
        if not self._rows:
            return None
        data: list[float] = []
        rows: list[int] = []
        cols: list[int] = []
        for r, row in enumerate(self._rows):
            for index, coef in row.terms.items():
                rows.append(r)
                cols.append(index)
                data.append(coef)
        coords = (np.array(rows, dtype=np.int64), np.array(cols, dtype=np.int64))
        matrix = csr_array(
            (np.array(data, dtype=np.float64), coords),
            shape=(len(self._rows), self.num_variables),
        )
        lower = np.array([row.lower for row in self._rows])
        upper = np.array([row.upper for row in self._rows])
        return LinearConstraint(matrix, lower, upper)

    def objective_vector(self) -> np.ndarray:
        c = np.zeros(self.num_variables)
        for index, coef in self.objective.terms.items():
            c[index] = coef
        # milp minimizes
        return -c if self.sense == "max" else c


_STATUS_NAMES = {
    0: "optimal",
    1: "limit_reached",
    2: "infeasible",
    3: "unbounded",
    4: "error",
}


@dataclass(frozen=True)
class Solution:
    """Variable assignment returned by the solver."""

    status: str
    message: str
    objective_value: float
    values: np.ndarray

    def value(self, item: Operand) -> float:
        if isinstance(item, Variable):
            return float(self.values[item.index])
        if isinstance(item, LinearExpression):
            total = item.constant
            for index, coef in item.terms.items():
                total += coef * float(self.values[index])
            return float(total)
        return float(item)


def solve(
    model: MilpModel,
    time_limit: float = SolverConfig.TIME_LIMIT_SECONDS,
    mip_rel_gap: float = SolverConfig.MIP_REL_GAP,
) -> Solution:
    """Solve the model with HiGHS.

    Raises:
        InfeasibilityError: If the solver proves the model infeasible.
        SolverError: If no assignment is returned for any other reason.
    """
    if model.num_variables == 0:
        raise SolverError("Model has no variables")

    logger.info(
        "Solving MILP: %d variables (%d binary), %d constraints",
        model.num_variables,
        model.num_binaries,
        model.num_constraints,
    )
    result = milp(
        model.objective_vector(),
        integrality=model.integrality(),
        bounds=model.bounds(),
        constraints=model.constraint_matrix(),
        options={"time_limit": time_limit, "mip_rel_gap": mip_rel_gap, "disp": False},
    )
    status = _STATUS_NAMES.get(result.status, "error")
    if status == "infeasible":
        raise InfeasibilityError(f"Solver reports the model is infeasible: {result.message}")
    if result.x is None:
        raise SolverError(f"MILP solver failed ({status}): {result.message}")

    values = np.asarray(result.x, dtype=np.float64)
    objective_value = model.objective.constant + sum(
        coef * float(values[index]) for index, coef in model.objective.terms.items()
    )
    solution = Solution(
        status=status,
        message=str(result.message),
        objective_value=float(objective_value),
        values=values,
    )
    logger.info("Solver finished: %s, objective %.6g", status, solution.objective_value)
    return solution
