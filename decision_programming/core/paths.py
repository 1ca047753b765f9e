"""Path enumeration, path probabilities and path utilities.

A path assigns one state to every chance and decision node, in node order:
``path[j - 1]`` is the state of node ``j``. The full path space is the
cartesian product of the state ranges and is exponential in the number of
nodes, so it is only ever iterated, never materialized.
"""
from __future__ import annotations

import math
from collections.abc import Iterable, Iterator, Mapping, Sequence
from itertools import product
from typing import TYPE_CHECKING, NamedTuple

from decision_programming.core.errors import DomainError
from decision_programming.models.diagram import InfluenceDiagram
from decision_programming.models.tensors import Consequences, Probabilities

if TYPE_CHECKING:
    from decision_programming.models.strategy import DecisionStrategy

Path = tuple[int, ...]


def validate_fixed(states: Sequence[int], fixed: Mapping[int, int]) -> dict[int, int]:
    """Check a node->state mapping against the state counts.

    Raises:
        DomainError: If a node is not a chance/decision node or a state is
            out of range.
    """
    checked: dict[int, int] = {}
    for node, state in fixed.items():
        node, state = int(node), int(state)
        if not 1 <= node <= len(states):
            raise DomainError(
                f"Cannot fix node {node}: only chance and decision nodes 1..{len(states)} have states"
            )
        if not 0 <= state < states[node - 1]:
            raise DomainError(
                f"Cannot fix node {node} to state {state}: valid states are 0..{states[node - 1] - 1}"
            )
        checked[node] = state
    return checked


class PathSpace:
    """Lazy, restartable sequence of all paths agreeing with ``fixed``.

    Iteration order is lexicographic in node order, which is the canonical
    order wherever path order matters.
    """

    __slots__ = ("_states", "_fixed")

    def __init__(self, states: Sequence[int], fixed: Mapping[int, int] | None = None) -> None:
        self._states = tuple(int(s) for s in states)
        self._fixed = validate_fixed(self._states, fixed or {})

    @property
    def states(self) -> tuple[int, ...]:
        return self._states

    @property
    def fixed(self) -> dict[int, int]:
        return dict(self._fixed)

    def _ranges(self) -> list[range]:
        ranges = []
        for node, count in enumerate(self._states, start=1):
            if node in self._fixed:
                state = self._fixed[node]
                ranges.append(range(state, state + 1))
            else:
                ranges.append(range(count))
        return ranges

    def __iter__(self) -> Iterator[Path]:
        return product(*self._ranges())

    def __len__(self) -> int:
        return math.prod(len(r) for r in self._ranges())

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, tuple) or len(path) != len(self._states):
            return False
        return all(state in r for state, r in zip(path, self._ranges(), strict=True))

    def restrict(self, fixed: Mapping[int, int]) -> PathSpace:
        """Return the sub-space that additionally agrees with ``fixed``.

        Raises:
            DomainError: If ``fixed`` contradicts a state fixed already.
        """
        merged = dict(self._fixed)
        for node, state in validate_fixed(self._states, fixed).items():
            if merged.get(node, state) != state:
                raise DomainError(
                    f"Node {node} is already fixed to state {merged[node]}, cannot fix it to {state}"
                )
            merged[node] = state
        return PathSpace(self._states, merged)

    def __repr__(self) -> str:
        return f"PathSpace(states={list(self._states)}, fixed={self._fixed})"


class ForbiddenPath(NamedTuple):
    """Combinations of states of ``nodes`` that no feasible path may take."""

    nodes: tuple[int, ...]
    states: frozenset[tuple[int, ...]]

    @classmethod
    def of(cls, nodes: Iterable[int], states: Iterable[Iterable[int]]) -> ForbiddenPath:
        """Build a forbidden-path rule, normalizing the containers."""
        node_tuple = tuple(int(n) for n in nodes)
        state_set = frozenset(tuple(int(s) for s in combo) for combo in states)
        for combo in state_set:
            if len(combo) != len(node_tuple):
                raise DomainError(
                    f"Forbidden state tuple {combo} does not match nodes {node_tuple}"
                )
        return cls(node_tuple, state_set)

    def matches(self, path: Path) -> bool:
        return tuple(path[n - 1] for n in self.nodes) in self.states


def is_forbidden(path: Path, forbidden_paths: Iterable[ForbiddenPath]) -> bool:
    """Return True if the path's projection matches any forbidden tuple."""
    return any(rule.matches(path) for rule in forbidden_paths)


def check_forbidden_paths(
    diagram: InfluenceDiagram, forbidden_paths: Iterable[ForbiddenPath]
) -> tuple[ForbiddenPath, ...]:
    """Normalize forbidden-path rules, rejecting unknown nodes."""
    rules = tuple(forbidden_paths)
    for rule in rules:
        for node in rule.nodes:
            if not 1 <= node <= diagram.num_nodes:
                raise DomainError(
                    f"Forbidden path refers to node {node}, which is not a chance or decision node"
                )
    return rules


class PathProbability:
    """Probability of a path: the product of the chance node tensors.

    Forbidden paths have probability zero, and so do paths that disagree with
    a decision strategy when one is supplied.
    """

    def __init__(
        self,
        diagram: InfluenceDiagram,
        probabilities: Probabilities,
        forbidden_paths: Iterable[ForbiddenPath] = (),
    ) -> None:
        self.diagram = diagram
        self.probabilities = probabilities
        self.forbidden_paths = check_forbidden_paths(diagram, forbidden_paths)
        # Positions within a path that index each chance node's tensor
        self._indices = tuple(
            (probabilities[j], tuple(i - 1 for i in diagram.information_set(j)) + (j - 1,))
            for j in diagram.chance_nodes
        )

    def chance_probability(self, path: Path) -> float:
        """Product of the chance node probabilities, without any masking."""
        p = 1.0
        for tensor, positions in self._indices:
            p *= tensor[tuple(path[k] for k in positions)]
            if p == 0.0:
                break
        return float(p)

    def __call__(self, path: Path, strategy: DecisionStrategy | None = None) -> float:
        if self.forbidden_paths and is_forbidden(path, self.forbidden_paths):
            return 0.0
        if strategy is not None and not strategy.is_compatible(path):
            return 0.0
        return self.chance_probability(path)


class PathUtility:
    """Utility of a path: the sum of the value node consequences."""

    def __init__(self, diagram: InfluenceDiagram, consequences: Consequences) -> None:
        self.diagram = diagram
        self.consequences = consequences
        self._indices = tuple(
            (consequences[v], tuple(i - 1 for i in diagram.information_set(v)))
            for v in diagram.value_nodes
        )

    def __call__(self, path: Path) -> float:
        return float(
            sum(tensor[tuple(path[k] for k in positions)] for tensor, positions in self._indices)
        )


class PositivePathUtility:
    """Path utility shifted so that every path has utility at least one.

    Useful with the expected-value objective when path-compatibility variables
    are only bounded from above: with strictly positive utilities the
    maximizer drives every compatible path to its bound.
    """

    def __init__(self, paths: Iterable[Path], utility: PathUtility) -> None:
        self.utility = utility
        self.min = min((utility(path) for path in paths), default=0.0)

    def __call__(self, path: Path) -> float:
        return self.utility(path) - self.min + 1.0
