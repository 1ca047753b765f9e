"""Conditional probability and consequence tensors.

A chance node ``j`` carries a dense array of shape
``(states of I(j) in order) + (states of j,)``; each slice over the last axis
is a probability distribution. A value node carries an array of shape
``(states of I(j) in order)`` holding its utility contribution.
"""
from __future__ import annotations

from collections.abc import Iterator, Mapping

import numpy as np
from numpy.typing import ArrayLike

from decision_programming.config import ValidationConfig
from decision_programming.core.errors import ProbabilityError, ShapeError
from decision_programming.models.diagram import InfluenceDiagram


class _TensorTable(Mapping[int, np.ndarray]):
    """Read-only mapping from node to its validated tensor."""

    __slots__ = ("_tensors",)

    _tensors: dict[int, np.ndarray]

    def __getitem__(self, node: int) -> np.ndarray:
        return self._tensors[node]

    def __iter__(self) -> Iterator[int]:
        return iter(self._tensors)

    def __len__(self) -> int:
        return len(self._tensors)


def _as_tensor(node: int, values: ArrayLike) -> np.ndarray:
    try:
        array = np.array(values, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise ShapeError(f"Tensor of node {node} is not a dense numeric array: {exc}") from exc
    array.setflags(write=False)
    return array


def _check_nodes(kind: str, expected: tuple[int, ...], tensors: Mapping[int, ArrayLike]) -> None:
    missing = [j for j in expected if j not in tensors]
    if missing:
        raise ShapeError(f"Missing tensor for {kind} node(s) {missing}")
    extra = sorted(set(tensors) - set(expected))
    if extra:
        raise ShapeError(f"Tensors given for node(s) {extra} which are not {kind} nodes")


class Probabilities(_TensorTable):
    """Validated conditional probability tensors for every chance node.

    Raises:
        ShapeError: If a tensor is missing or its dimensions do not match
            ``(information-set state counts, node state count)``.
        ProbabilityError: If an entry is negative or a conditional
            distribution does not sum to one within tolerance.
    """

    __slots__ = ()

    def __init__(
        self,
        diagram: InfluenceDiagram,
        tensors: Mapping[int, ArrayLike],
        tolerance: float = ValidationConfig.PROBABILITY_TOLERANCE,
    ) -> None:
        _check_nodes("chance", diagram.chance_nodes, tensors)

        validated: dict[int, np.ndarray] = {}
        for j in diagram.chance_nodes:
            array = _as_tensor(j, tensors[j])
            expected = diagram.information_states(j) + (diagram.state_count(j),)
            if array.shape != expected:
                raise ShapeError(
                    f"Probability tensor of node {j} has shape {array.shape}, "
                    f"expected {expected} (information set {list(diagram.information_set(j))})"
                )

            # Written as a negated comparison so NaN entries are rejected too
            negative = np.argwhere(~(array >= 0.0))
            if negative.size:
                index = tuple(int(i) for i in negative[0])
                raise ProbabilityError(
                    f"Probability tensor of node {j} has invalid entry {array[index]} at {index}; "
                    "probabilities must be non-negative"
                )

            sums = array.sum(axis=-1)
            bad = np.argwhere(~(np.abs(sums - 1.0) <= tolerance))
            if bad.size:
                context = tuple(int(i) for i in bad[0])
                raise ProbabilityError(
                    f"Probabilities of node {j} for information state {context} "
                    f"sum to {float(sums[context])}, expected 1"
                )
            validated[j] = array

        self._tensors = validated

    def active_states(self, node: int) -> tuple[int, ...]:
        """States of ``node`` with positive probability in some context."""
        array = self._tensors[node]
        reachable = array.reshape(-1, array.shape[-1]).max(axis=0) > 0.0
        return tuple(int(s) for s in np.flatnonzero(reachable))


class Consequences(_TensorTable):
    """Validated consequence tensors for every value node.

    Raises:
        ShapeError: If a tensor is missing or its dimensions do not match the
            information-set state counts.
    """

    __slots__ = ()

    def __init__(self, diagram: InfluenceDiagram, tensors: Mapping[int, ArrayLike]) -> None:
        _check_nodes("value", diagram.value_nodes, tensors)

        validated: dict[int, np.ndarray] = {}
        for j in diagram.value_nodes:
            array = _as_tensor(j, tensors[j])
            expected = diagram.information_states(j)
            if array.shape != expected:
                raise ShapeError(
                    f"Consequence tensor of node {j} has shape {array.shape}, "
                    f"expected {expected} (information set {list(diagram.information_set(j))})"
                )
            validated[j] = array

        self._tensors = validated
