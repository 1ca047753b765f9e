"""Tests for the linear model and the HiGHS adapter."""
from __future__ import annotations

import numpy as np
import pytest

from decision_programming.core.errors import InfeasibilityError, SolverError
from decision_programming.core.optimization import (
    LinearExpression,
    MilpModel,
    OptimizationModel,
    Solution,
    quicksum,
    solve,
)


class TestLinearExpression:
    def test_arithmetic(self):
        model = MilpModel()
        x = model.add_variable()
        y = model.add_variable()
        expression = 2 * x + 3 - y / 2
        assert expression.terms == {x.index: 2.0, y.index: -0.5}
        assert expression.constant == 3.0

    def test_operators_do_not_mutate(self):
        model = MilpModel()
        x = model.add_variable()
        base = x + 1
        _ = base + x
        assert base.terms == {x.index: 1.0}

    def test_negation_and_rsub(self):
        model = MilpModel()
        x = model.add_variable()
        expression = 1 - (-x)
        assert expression.terms == {x.index: 1.0}
        assert expression.constant == 1.0

    def test_quicksum_merges_terms(self):
        model = MilpModel()
        x = model.add_variable()
        total = quicksum([x, x, 2.5, x * 3])
        assert total.terms == {x.index: 5.0}
        assert total.constant == 2.5

    def test_add_rejects_other_types(self):
        with pytest.raises(TypeError):
            LinearExpression().add("x")


class TestMilpModel:
    def test_implements_protocol(self):
        assert isinstance(MilpModel(), OptimizationModel)

    def test_binary_variables_have_unit_bounds(self):
        model = MilpModel()
        model.add_variable(lower=-5.0, upper=5.0, binary=True)
        bounds = model.bounds()
        assert bounds.lb[0] == 0.0 and bounds.ub[0] == 1.0
        assert model.num_binaries == 1

    def test_constraint_moves_constants_to_bounds(self):
        model = MilpModel()
        x = model.add_variable()
        model.add_constraint(x + 2, "<=", 5)
        constraint = model.constraint_matrix()
        assert constraint.ub[0] == 3.0
        assert constraint.lb[0] == -np.inf

    def test_no_constraints(self):
        model = MilpModel()
        model.add_variable()
        assert model.constraint_matrix() is None

    def test_unknown_sense(self):
        model = MilpModel()
        x = model.add_variable()
        with pytest.raises(ValueError):
            model.add_constraint(x, "<", 1)


class TestSolve:
    def test_mixed_integer_program(self):
        model = MilpModel()
        x = model.add_variable(binary=True)
        y = model.add_variable(upper=1.0)
        model.add_constraint(x + y, "<=", 1.5)
        model.set_objective(x + y, "max")
        solution = solve(model)
        assert solution.status == "optimal"
        assert solution.objective_value == pytest.approx(1.5)
        assert solution.value(x) == pytest.approx(1.0)

    def test_minimize_with_constant(self):
        model = MilpModel()
        x = model.add_variable(lower=2.0, upper=10.0)
        model.set_objective(3 * x + 1, "min")
        assert solve(model).objective_value == pytest.approx(7.0)

    def test_value_of_expression(self):
        model = MilpModel()
        x = model.add_variable(lower=1.0, upper=1.0)
        model.set_objective(x, "max")
        solution = solve(model)
        assert solution.value(2 * x + 1) == pytest.approx(3.0)

    def test_infeasible(self):
        model = MilpModel()
        x = model.add_variable(binary=True)
        model.add_constraint(x, ">=", 2)
        model.set_objective(x)
        with pytest.raises(InfeasibilityError):
            solve(model)

    def test_empty_model(self):
        with pytest.raises(SolverError, match="no variables"):
            solve(MilpModel())

    def test_solution_value_of_constant(self):
        solution = Solution(status="optimal", message="", objective_value=0.0, values=np.zeros(1))
        assert solution.value(4) == 4.0
