"""Strategy decoding and analysis of a fixed decision strategy."""
from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterator, Mapping
from itertools import product

from decision_programming.config import SolverConfig
from decision_programming.core.errors import ConsistencyError, DomainError
from decision_programming.core.formulation import DecisionVariables
from decision_programming.core.optimization import Solution
from decision_programming.core.paths import Path, PathProbability, PathUtility, validate_fixed
from decision_programming.models.diagram import InfluenceDiagram
from decision_programming.models.results import StateProbabilities, UtilityDistribution
from decision_programming.models.strategy import DecisionStrategy, LocalDecisionRule

logger = logging.getLogger(__name__)


def decode_strategy(
    z: DecisionVariables,
    solution: Solution,
    tolerance: float = SolverConfig.INDICATOR_TOLERANCE,
) -> DecisionStrategy:
    """Read a deterministic strategy from solved decision indicators.

    Raises:
        ConsistencyError: If some context does not have exactly one indicator
            equal to one within ``tolerance``.
    """
    diagram = z.diagram
    rules = []
    for d in z.nodes:
        indicators = z[d]
        choices = []
        for context in product(*(range(s) for s in diagram.information_states(d))):
            chosen = [
                state
                for state in range(diagram.state_count(d))
                if abs(solution.value(indicators[context + (state,)]) - 1.0) <= tolerance
            ]
            if len(chosen) != 1:
                raise ConsistencyError(
                    f"Decision node {d}, information state {context}: expected exactly one "
                    f"indicator equal to 1, found {len(chosen)} (states {chosen})"
                )
            choices.append(chosen[0])
        rules.append(
            LocalDecisionRule(
                node=d,
                information_set=diagram.information_set(d),
                information_states=diagram.information_states(d),
                choices=tuple(choices),
            )
        )
    return DecisionStrategy(rules=tuple(rules))


class CompatiblePaths:
    """Paths that follow ``strategy`` and agree with ``fixed``.

    Chance states are enumerated lexicographically; every decision state is
    filled in from the strategy. Iteration is lazy and restartable.

    Raises:
        DomainError: If a decision node is fixed to a state the strategy never
            chooses in any context consistent with the other fixed states.
    """

    def __init__(
        self,
        diagram: InfluenceDiagram,
        strategy: DecisionStrategy,
        fixed: Mapping[int, int] | None = None,
    ) -> None:
        self.diagram = diagram
        self.strategy = strategy
        self.fixed = validate_fixed(diagram.states, fixed or {})
        if set(strategy.nodes) != set(diagram.decision_nodes):
            raise DomainError(
                f"Strategy covers decision nodes {list(strategy.nodes)}, "
                f"diagram has {list(diagram.decision_nodes)}"
            )

        for d in diagram.decision_nodes:
            if d not in self.fixed:
                continue
            rule = strategy.rule(d)
            reachable = any(
                choice == self.fixed[d]
                for context, choice in rule.items()
                if all(self.fixed.get(i, s) == s for i, s in zip(rule.information_set, context))
            )
            if not reachable:
                raise DomainError(
                    f"Decision node {d} is fixed to state {self.fixed[d]}, which the strategy "
                    "does not choose in any context consistent with the fixed states"
                )

    def __iter__(self) -> Iterator[Path]:
        diagram = self.diagram
        chance = diagram.chance_nodes
        ranges = [
            range(self.fixed[j], self.fixed[j] + 1)
            if j in self.fixed
            else range(diagram.state_count(j))
            for j in chance
        ]
        for chance_states in product(*ranges):
            path = [0] * diagram.num_nodes
            for j, s in zip(chance, chance_states):
                path[j - 1] = s
            compatible = True
            # Information sets only reach lower-numbered nodes, so node order fills them first
            for d in diagram.decision_nodes:
                rule = self.strategy.rule(d)
                state = rule(tuple(path[i - 1] for i in rule.information_set))
                if self.fixed.get(d, state) != state:
                    compatible = False
                    break
                path[d - 1] = state
            if compatible:
                yield tuple(path)


def _accumulate(
    diagram: InfluenceDiagram,
    path_probability: PathProbability,
    paths: CompatiblePaths,
) -> tuple[dict[int, list[float]], float]:
    sums = {j: [0.0] * diagram.state_count(j) for j in diagram.nodes}
    total = 0.0
    for path in paths:
        p = path_probability(path, paths.strategy)
        if p == 0.0:
            continue
        total += p
        for j, s in enumerate(path, start=1):
            sums[j][s] += p
    return sums, total


def state_probabilities(
    diagram: InfluenceDiagram,
    path_probability: PathProbability,
    strategy: DecisionStrategy,
) -> StateProbabilities:
    """Probability of every state of every chance and decision node."""
    sums, total = _accumulate(diagram, path_probability, CompatiblePaths(diagram, strategy))
    if abs(total - 1.0) > 1e-6:
        logger.warning("Compatible paths carry total probability %.6g instead of 1", total)
    return StateProbabilities(probabilities={j: tuple(p) for j, p in sums.items()})


def conditional_state_probabilities(
    diagram: InfluenceDiagram,
    path_probability: PathProbability,
    strategy: DecisionStrategy,
    node: int,
    state: int,
    previous: StateProbabilities,
) -> StateProbabilities:
    """State probabilities conditioned on ``node`` being in ``state``.

    Conditioning stacks on ``previous``: its fixed states stay fixed, and its
    normalizer ``mass`` times the probability of ``state`` in ``previous`` is
    the probability of the new condition.

    Raises:
        DomainError: If ``state`` contradicts a state fixed earlier or has zero
            probability under ``previous``.
    """
    validate_fixed(diagram.states, {node: state})
    fixed = dict(previous.fixed)
    if fixed.get(node, state) != state:
        raise DomainError(
            f"Node {node} is already fixed to state {fixed[node]}, cannot fix it to {state}"
        )
    fixed[node] = state

    mass = previous.mass * previous.probability(node, state)
    if not mass > 0.0:
        raise DomainError(
            f"Cannot condition on node {node} in state {state}: the state has probability 0 "
            f"given fixed states {previous.fixed}"
        )

    sums, _ = _accumulate(diagram, path_probability, CompatiblePaths(diagram, strategy, fixed))
    logger.debug("Conditioned on %s with probability %.6g", fixed, mass)
    return StateProbabilities(
        probabilities={j: tuple(p / mass for p in probs) for j, probs in sums.items()},
        fixed=fixed,
        mass=mass,
    )


def utility_distribution(
    diagram: InfluenceDiagram,
    path_probability: PathProbability,
    path_utility: PathUtility,
    strategy: DecisionStrategy,
) -> UtilityDistribution:
    """Distribution of path utility under ``strategy``.

    Only paths with positive probability count; paths with equal utility are
    merged.
    """
    merged: dict[float, float] = defaultdict(float)
    for path in CompatiblePaths(diagram, strategy):
        p = path_probability(path, strategy)
        if p > 0.0:
            merged[path_utility(path)] += p
    utilities = sorted(merged)
    return UtilityDistribution(
        utilities=tuple(utilities),
        probabilities=tuple(merged[u] for u in utilities),
    )
