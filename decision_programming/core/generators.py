"""Random influence diagrams, tensors and strategies.

Everything is driven by a ``numpy.random.Generator`` so a seed reproduces the
same diagram. Used by the property tests and for benchmarking formulations.
"""
from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np

from decision_programming.core.errors import DomainError
from decision_programming.models.diagram import InfluenceDiagram
from decision_programming.models.strategy import DecisionStrategy, LocalDecisionRule
from decision_programming.models.tensors import Consequences, Probabilities


def random_diagram(
    rng: np.random.Generator,
    n_chance: int,
    n_decision: int,
    n_value: int,
    max_chance_parents: int,
    max_decision_parents: int,
    states: Sequence[int] = (2,),
) -> InfluenceDiagram:
    """Random diagram with bounded in-degree.

    Chance and decision nodes are shuffled over ``1..n``. Each of them draws
    its information set from the nodes before it; each value node draws at
    least one parent among the chance and decision nodes. State counts are
    sampled from ``states``.
    """
    n = n_chance + n_decision
    if n_chance < 0 or n_decision < 0 or n_value < 0:
        raise DomainError("Node counts must be non-negative")
    if n_value > 0 and n == 0:
        raise DomainError("Value nodes need at least one chance or decision node")
    if not states or min(states) < 1:
        raise DomainError(f"State counts must be positive, got {list(states)}")

    decision = sorted(int(j) + 1 for j in rng.choice(n, size=n_decision, replace=False))
    chance = [j for j in range(1, n + 1) if j not in set(decision)]
    value = list(range(n + 1, n + n_value + 1))

    arcs: list[tuple[int, int]] = []
    for j in range(2, n + 1):
        limit = max_decision_parents if j in decision else max_chance_parents
        k = int(rng.integers(0, min(limit, j - 1) + 1))
        arcs.extend((int(i) + 1, j) for i in rng.choice(j - 1, size=k, replace=False))
    for v in value:
        k = int(rng.integers(1, max(1, min(max_chance_parents, n)) + 1))
        arcs.extend((int(i) + 1, v) for i in rng.choice(n, size=k, replace=False))

    state_counts = [int(s) for s in rng.choice(np.asarray(states), size=n)]
    return InfluenceDiagram(chance, decision, value, arcs, state_counts)


def random_probabilities(
    rng: np.random.Generator,
    diagram: InfluenceDiagram,
    node: int,
    n_inactive: int = 0,
) -> np.ndarray:
    """Random conditional probability tensor for a chance node.

    ``n_inactive`` states, picked once for the node, get probability zero in
    every context.
    """
    count = diagram.state_count(node)
    if not 0 <= n_inactive < count:
        raise DomainError(
            f"Node {node} has {count} states; n_inactive must be in 0..{count - 1}, got {n_inactive}"
        )
    shape = diagram.information_states(node) + (count,)
    values = rng.random(shape)
    inactive = rng.choice(count, size=n_inactive, replace=False)
    values[..., inactive] = 0.0
    return values / values.sum(axis=-1, keepdims=True)


def random_consequences(
    rng: np.random.Generator,
    diagram: InfluenceDiagram,
    node: int,
    low: float = -1.0,
    high: float = 1.0,
) -> np.ndarray:
    """Random consequence tensor for a value node, uniform in ``[low, high)``."""
    if not high > low:
        raise DomainError(f"Consequence range is empty: low={low}, high={high}")
    return rng.uniform(low, high, size=diagram.information_states(node))


def random_tensors(
    rng: np.random.Generator,
    diagram: InfluenceDiagram,
    n_inactive: int = 0,
    low: float = -1.0,
    high: float = 1.0,
) -> tuple[Probabilities, Consequences]:
    """Validated random tensors for every chance and value node.

    Nodes with fewer states than ``n_inactive + 1`` keep all states active.
    """
    probabilities = {
        j: random_probabilities(rng, diagram, j, min(n_inactive, diagram.state_count(j) - 1))
        for j in diagram.chance_nodes
    }
    consequences = {v: random_consequences(rng, diagram, v, low, high) for v in diagram.value_nodes}
    return Probabilities(diagram, probabilities), Consequences(diagram, consequences)


def random_strategy(rng: np.random.Generator, diagram: InfluenceDiagram) -> DecisionStrategy:
    """Uniformly random deterministic strategy."""
    rules = []
    for d in diagram.decision_nodes:
        info_states = diagram.information_states(d)
        choices = rng.integers(0, diagram.state_count(d), size=math.prod(info_states))
        rules.append(
            LocalDecisionRule(
                node=d,
                information_set=diagram.information_set(d),
                information_states=info_states,
                choices=tuple(int(c) for c in choices),
            )
        )
    return DecisionStrategy(rules=tuple(rules))
