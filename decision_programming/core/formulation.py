"""Mixed-integer formulation of an influence diagram.

The builders add variables, constraints and objective expressions to an
externally supplied ``OptimizationModel``. They never call a solver and never
read a solution.

Decision variables ``z`` are binary indicators, one per (information-set
context, state) of each decision node, with exactly one indicator per context
switched on. Path-compatibility variables ``x`` live in ``[0, 1]``, one per
feasible path, and equal the product of the decision indicators along the
path whenever ``z`` is binary.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from itertools import product

from decision_programming.config import PathConfig
from decision_programming.core.errors import DomainError, InfeasibilityError
from decision_programming.core.optimization import (
    LinearExpression,
    OptimizationModel,
    Variable,
    quicksum,
)
from decision_programming.core.paths import (
    ForbiddenPath,
    Path,
    PathProbability,
    PathSpace,
    check_forbidden_paths,
    is_forbidden,
)
from decision_programming.models.diagram import InfluenceDiagram

logger = logging.getLogger(__name__)

IndicatorKey = tuple[int, tuple[int, ...]]


class DecisionVariables:
    """Binary decision indicators for every decision node."""

    def __init__(
        self, model: OptimizationModel, diagram: InfluenceDiagram, name: str = "z"
    ) -> None:
        self.diagram = diagram
        self._indicators: dict[int, dict[tuple[int, ...], Variable]] = {}

        for d in diagram.decision_nodes:
            block: dict[tuple[int, ...], Variable] = {}
            for context in product(*(range(s) for s in diagram.information_states(d))):
                choices = []
                for state in range(diagram.state_count(d)):
                    index = context + (state,)
                    variable = model.add_variable(binary=True, name=f"{name}{d}{index}")
                    block[index] = variable
                    choices.append(variable)
                # Exactly one decision per context
                model.add_constraint(quicksum(choices), "==", 1.0, name=f"{name}{d}{context}")
            self._indicators[d] = block

        logger.info(
            "Created decision variables for %d decision node(s): %d indicators",
            len(self._indicators),
            sum(len(block) for block in self._indicators.values()),
        )

    @property
    def nodes(self) -> tuple[int, ...]:
        return tuple(self._indicators)

    def __getitem__(self, node: int) -> Mapping[tuple[int, ...], Variable]:
        """Indicators of ``node`` keyed by ``context + (state,)``."""
        return self._indicators[node]

    def key(self, node: int, path: Path) -> tuple[int, ...]:
        """Index of the indicator of ``node`` that ``path`` passes through."""
        context = tuple(path[i - 1] for i in self.diagram.information_set(node))
        return context + (path[node - 1],)

    def indicator(self, node: int, path: Path) -> Variable:
        return self._indicators[node][self.key(node, path)]

    def indicators_on(self, path: Path) -> list[Variable]:
        """One indicator per decision node along ``path``."""
        return [self.indicator(d, path) for d in self._indicators]


class PathCompatibilityVariables(Mapping[Path, Variable]):
    """Continuous path-compatibility variables for all feasible paths.

    Forbidden paths get no variable, and a no-good cut keeps every feasible
    strategy away from them. With ``probability_cut`` the redundant
    constraint ``sum(x_s * p_s) == 1`` is added (``<= 1`` when states are
    fixed, since the fixed states' mass is then not known in advance).

    Only paths agreeing with ``fixed`` get variables. A fixed decision node
    additionally has its fixed state forced on in every context the other
    fixed states allow.

    Raises:
        DomainError: If a forbidden-path rule involves only chance nodes.
        InfeasibilityError: If no path survives ``fixed`` and the forbidden
            paths.
    """

    def __init__(
        self,
        model: OptimizationModel,
        decision_variables: DecisionVariables,
        path_probability: PathProbability,
        fixed: Mapping[int, int] | None = None,
        forbidden_paths: Iterable[ForbiddenPath] = (),
        probability_cut: bool = True,
        name: str = "x",
    ) -> None:
        diagram = path_probability.diagram
        self.diagram = diagram
        self.decision_variables = decision_variables
        self.path_probability = path_probability
        self.forbidden_paths = (
            check_forbidden_paths(diagram, forbidden_paths) + path_probability.forbidden_paths
        )
        self.probability_cut = probability_cut
        for rule in self.forbidden_paths:
            if not any(n in diagram.decision_nodes for n in rule.nodes):
                raise DomainError(
                    f"Forbidden path over nodes {rule.nodes} involves no decision node; "
                    "no strategy can avoid it"
                )

        space = PathSpace(diagram.states, fixed)
        self.fixed = space.fixed
        if len(space) > PathConfig.PATH_COUNT_WARNING_THRESHOLD:
            logger.warning("Path space has %d paths; the formulation may be very large", len(space))
        if self.forbidden_paths:
            logger.warning("Excluding %d forbidden path rule(s) from the model", len(self.forbidden_paths))

        num_decisions = len(decision_variables.nodes)
        self._variables: dict[Path, Variable] = {}
        self._probabilities: dict[Path, float] = {}
        forbidden_keys: set[tuple[IndicatorKey, ...]] = set()

        for path in space:
            if self.forbidden_paths and is_forbidden(path, self.forbidden_paths):
                forbidden_keys.add(
                    tuple((d, decision_variables.key(d, path)) for d in decision_variables.nodes)
                )
                continue

            x = model.add_variable(lower=0.0, upper=1.0, name=f"{name}{path}")
            indicators = decision_variables.indicators_on(path)
            for z in indicators:
                model.add_constraint(x, "<=", z)
            # With no decision nodes the empty product is 1 and this reads x >= 1
            model.add_constraint(x, ">=", quicksum(indicators) - (num_decisions - 1))
            self._variables[path] = x
            self._probabilities[path] = path_probability.chance_probability(path)

        if not self._variables:
            raise InfeasibilityError(
                f"No feasible path remains after fixing {self.fixed} and removing "
                f"{len(self.forbidden_paths)} forbidden path rule(s); the problem is infeasible"
            )

        # A fixed decision holds in every context the other fixed states allow
        for d, state in self.fixed.items():
            if d not in decision_variables.nodes:
                continue
            information_set = diagram.information_set(d)
            for index, z in decision_variables[d].items():
                context = index[:-1]
                if index[-1] == state and all(
                    self.fixed.get(i, s) == s for i, s in zip(information_set, context)
                ):
                    model.add_constraint(z, "==", 1.0)

        for keys in forbidden_keys:
            model.add_constraint(
                quicksum(decision_variables[d][index] for d, index in keys),
                "<=",
                num_decisions - 1,
            )

        if probability_cut:
            mass = quicksum(x * self._probabilities[path] for path, x in self._variables.items())
            # Total mass is only known when nothing is fixed
            sense = "<=" if self.fixed else "=="
            model.add_constraint(mass, sense, 1.0, name="probability_cut")

        logger.info(
            "Created %d path compatibility variables (%d forbidden paths, probability cut: %s)",
            len(self._variables),
            len(space) - len(self._variables),
            probability_cut,
        )

    def __getitem__(self, path: Path) -> Variable:
        return self._variables[path]

    def __iter__(self) -> Iterator[Path]:
        return iter(self._variables)

    def __len__(self) -> int:
        return len(self._variables)

    def probability(self, path: Path) -> float:
        """Chance-node probability of a path that has a variable."""
        return self._probabilities[path]


def _check_scale_factor(probability_scale_factor: float) -> None:
    if not probability_scale_factor > 0:
        raise DomainError(
            f"probability_scale_factor must be greater than 0, got {probability_scale_factor}"
        )


def expected_value(
    model: OptimizationModel,
    x_s: PathCompatibilityVariables,
    utility: Callable[[Path], float],
    probability_scale_factor: float = 1.0,
) -> LinearExpression:
    """Expected utility ``sum(x_s * p_s * scale * U(s))`` over feasible paths.

    ``model`` is not modified; it is accepted so that every objective builder
    has the same signature.

    Raises:
        DomainError: If ``probability_scale_factor`` is not positive.
    """
    _check_scale_factor(probability_scale_factor)
    expression = LinearExpression()
    for path, x in x_s.items():
        expression.add(x, x_s.probability(path) * probability_scale_factor * utility(path))
    return expression


def conditional_value_at_risk(
    model: OptimizationModel,
    x_s: PathCompatibilityVariables,
    utility: Callable[[Path], float],
    alpha: float,
    probability_scale_factor: float = 1.0,
) -> LinearExpression:
    """Conditional value-at-risk of the utility distribution at level ``alpha``.

    Adds a value-at-risk variable ``eta`` and, per path, indicators of
    whether the path's utility lies below or at ``eta`` together with the
    probability mass ``rho'`` the path contributes to the lower tail. The
    tail masses sum to ``alpha`` (scaled), and the returned expression is
    their utility-weighted mean.

    Raises:
        DomainError: If ``probability_scale_factor`` is not positive, if
            ``alpha`` is outside ``(0, 1]``, or if ``x_s`` was built with
            fixed states.
    """
    _check_scale_factor(probability_scale_factor)
    if not 0.0 < alpha <= 1.0:
        raise DomainError(f"CVaR level alpha must satisfy 0 < alpha <= 1, got {alpha}")
    if x_s.fixed:
        raise DomainError(
            f"CVaR is not supported together with fixed states {x_s.fixed}; "
            "the tail mass alpha refers to the whole distribution"
        )

    scale = probability_scale_factor
    utilities = {path: utility(path) for path in x_s}
    u_sorted = sorted(set(utilities.values()))
    u_min, u_max = u_sorted[0], u_sorted[-1]
    big_m = u_max - u_min
    gaps = [b - a for a, b in zip(u_sorted, u_sorted[1:])]
    epsilon = min(gaps) / 2 if gaps else 0.0

    eta = model.add_variable(lower=u_min, upper=u_max, name="eta")
    tail_mass: dict[Path, Variable] = {}
    for path, x in x_s.items():
        u_s = utilities[path]
        weighted_x = x * (x_s.probability(path) * scale)
        below = model.add_variable(binary=True, name=f"lambda{path}")
        at_or_below = model.add_variable(binary=True, name=f"lambda_bar{path}")
        rho = model.add_variable(lower=0.0, name=f"rho{path}")
        rho_bar = model.add_variable(lower=0.0, name=f"rho_bar{path}")

        model.add_constraint(eta - u_s, "<=", big_m * below)
        model.add_constraint(eta - u_s, ">=", (big_m + epsilon) * below - big_m)
        model.add_constraint(eta - u_s, "<=", (big_m + epsilon) * at_or_below - epsilon)
        model.add_constraint(eta - u_s, ">=", big_m * (at_or_below - 1.0))
        model.add_constraint(rho, "<=", below * scale)
        model.add_constraint(rho_bar, "<=", at_or_below * scale)
        model.add_constraint(rho, "<=", rho_bar)
        model.add_constraint(rho_bar, "<=", weighted_x)
        model.add_constraint(weighted_x - (1.0 - below) * scale, "<=", rho)
        tail_mass[path] = rho_bar

    model.add_constraint(quicksum(tail_mass.values()), "==", alpha * scale, name="cvar_mass")

    expression = LinearExpression()
    for path, rho_bar in tail_mass.items():
        expression.add(rho_bar, utilities[path] / (alpha * scale))
    logger.info("Added CVaR formulation at alpha=%s over %d paths", alpha, len(tail_mass))
    return expression
