"""Influence diagram graph model.

An influence diagram is a DAG over chance, decision and value nodes. Chance
and decision nodes are numbered ``1..n`` in a fixed order shared by every
tensor and path; value nodes follow as ``n+1..n+|V|`` and are sinks.
Arcs always point from a lower to a higher index, so cycles cannot occur.
"""
from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from enum import Enum
from typing import TYPE_CHECKING

from decision_programming.core.errors import StructuralError

if TYPE_CHECKING:
    from decision_programming.models.schemas import DiagramDefinition


class NodeKind(str, Enum):
    """Kind of a node in the diagram."""

    CHANCE = "chance"
    DECISION = "decision"
    VALUE = "value"


class InfluenceDiagram:
    """Validated influence diagram structure.

    Construction fails with ``StructuralError`` when the node partition, arcs
    or state counts are malformed. Instances are read-only afterwards.
    """

    __slots__ = ("_chance", "_decision", "_value", "_arcs", "_states", "_information_sets")

    def __init__(
        self,
        chance: Iterable[int],
        decision: Iterable[int],
        value: Iterable[int],
        arcs: Iterable[tuple[int, int]],
        states: Sequence[int],
    ) -> None:
        chance_list = [int(j) for j in chance]
        decision_list = [int(j) for j in decision]
        value_list = [int(j) for j in value]
        arc_list = [(int(i), int(j)) for i, j in arcs]
        state_list = [int(s) for s in states]

        _check_unique("chance", chance_list)
        _check_unique("decision", decision_list)
        _check_unique("value", value_list)

        overlap = set(chance_list) & set(decision_list)
        if overlap:
            raise StructuralError(
                f"Chance and decision nodes must be disjoint; shared nodes: {sorted(overlap)}"
            )

        n = len(chance_list) + len(decision_list)
        n_value = len(value_list)
        if set(chance_list) | set(decision_list) != set(range(1, n + 1)):
            raise StructuralError(
                f"Chance and decision nodes must be exactly 1..{n}, "
                f"got {sorted(set(chance_list) | set(decision_list))}"
            )
        if set(value_list) != set(range(n + 1, n + n_value + 1)):
            raise StructuralError(
                f"Value nodes must be exactly {n + 1}..{n + n_value}, got {sorted(value_list)}"
            )

        for i, j in arc_list:
            if not 1 <= i < j <= n + n_value:
                raise StructuralError(
                    f"Arc ({i}, {j}) violates node ordering: arcs must satisfy "
                    f"1 <= i < j <= {n + n_value}"
                )
            if i > n:
                raise StructuralError(
                    f"Arc ({i}, {j}) leaves value node {i}; value nodes must be sinks"
                )

        if len(state_list) != n:
            raise StructuralError(
                f"Expected a state count for each of the {n} chance and decision nodes, "
                f"got {len(state_list)}"
            )
        for j, count in enumerate(state_list, start=1):
            if count < 1:
                raise StructuralError(f"Node {j} has non-positive state count {count}")

        information_sets: dict[int, set[int]] = {j: set() for j in range(1, n + n_value + 1)}
        for i, j in arc_list:
            information_sets[j].add(i)

        self._chance = tuple(sorted(chance_list))
        self._decision = tuple(sorted(decision_list))
        self._value = tuple(sorted(value_list))
        self._arcs = tuple(sorted(set(arc_list)))
        self._states = tuple(state_list)
        self._information_sets = {
            j: tuple(sorted(parents)) for j, parents in information_sets.items()
        }

    @classmethod
    def from_definition(cls, definition: DiagramDefinition) -> InfluenceDiagram:
        """Build a diagram from its typed configuration struct."""
        return cls(
            chance=definition.chance,
            decision=definition.decision,
            value=definition.value,
            arcs=definition.arcs,
            states=definition.states,
        )

    @property
    def chance_nodes(self) -> tuple[int, ...]:
        return self._chance

    @property
    def decision_nodes(self) -> tuple[int, ...]:
        return self._decision

    @property
    def value_nodes(self) -> tuple[int, ...]:
        return self._value

    @property
    def arcs(self) -> tuple[tuple[int, int], ...]:
        return self._arcs

    @property
    def states(self) -> tuple[int, ...]:
        """State counts of nodes ``1..n`` in node order."""
        return self._states

    @property
    def num_nodes(self) -> int:
        """Number of chance and decision nodes (the path length)."""
        return len(self._states)

    @property
    def nodes(self) -> tuple[int, ...]:
        """Chance and decision nodes in the fixed path order."""
        return tuple(range(1, self.num_nodes + 1))

    @property
    def path_count(self) -> int:
        """Size of the full path space, without enumerating it."""
        return math.prod(self._states)

    def kind(self, node: int) -> NodeKind:
        """Return the kind of ``node``."""
        if node in self._chance:
            return NodeKind.CHANCE
        if node in self._decision:
            return NodeKind.DECISION
        if node in self._value:
            return NodeKind.VALUE
        raise StructuralError(f"Node {node} is not part of the diagram")

    def state_count(self, node: int) -> int:
        """Number of states of a chance or decision node."""
        if not 1 <= node <= self.num_nodes:
            raise StructuralError(f"Node {node} has no states (not a chance or decision node)")
        return self._states[node - 1]

    def information_set(self, node: int) -> tuple[int, ...]:
        """Nodes with an arc into ``node``, in ascending order."""
        try:
            return self._information_sets[node]
        except KeyError:
            raise StructuralError(f"Node {node} is not part of the diagram") from None

    def information_states(self, node: int) -> tuple[int, ...]:
        """State counts of the information set of ``node``, in order."""
        return tuple(self._states[i - 1] for i in self.information_set(node))

    def get_children(self, node: int) -> tuple[int, ...]:
        """Nodes that ``node`` has an arc into."""
        return tuple(j for i, j in self._arcs if i == node)

    def __repr__(self) -> str:
        return (
            f"InfluenceDiagram(chance={list(self._chance)}, decision={list(self._decision)}, "
            f"value={list(self._value)}, states={list(self._states)})"
        )


def _check_unique(label: str, nodes: list[int]) -> None:
    seen: set[int] = set()
    for node in nodes:
        if node in seen:
            raise StructuralError(f"Node {node} is listed twice among {label} nodes")
        seen.add(node)
