"""Deterministic decision strategies.

A local decision rule maps every information-set context of one decision node
to exactly one of its states. A decision strategy is one rule per decision
node. Both are produced once from solved decision variables and are read-only
afterwards.
"""
from __future__ import annotations

import math
from collections.abc import Iterator
from itertools import product

from pydantic import BaseModel, ConfigDict, model_validator


class LocalDecisionRule(BaseModel):
    """Decision rule of a single decision node.

    ``choices`` lists the chosen state for every context of the information
    set, contexts enumerated in lexicographic order.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    node: int
    information_set: tuple[int, ...] = ()
    information_states: tuple[int, ...] = ()
    choices: tuple[int, ...]

    @model_validator(mode="after")
    def _check_choices(self) -> LocalDecisionRule:
        if len(self.information_set) != len(self.information_states):
            raise ValueError(
                f"Decision node {self.node}: information set {self.information_set} "
                f"does not match state counts {self.information_states}"
            )
        expected = math.prod(self.information_states)
        if len(self.choices) != expected:
            raise ValueError(
                f"Decision node {self.node} needs {expected} choices, got {len(self.choices)}"
            )
        return self

    def contexts(self) -> Iterator[tuple[int, ...]]:
        """Information-set contexts in lexicographic order."""
        return product(*(range(s) for s in self.information_states))

    def items(self) -> Iterator[tuple[tuple[int, ...], int]]:
        """Pairs of (context, chosen state)."""
        return zip(self.contexts(), self.choices)

    def __call__(self, context: tuple[int, ...]) -> int:
        index = 0
        for state, count in zip(context, self.information_states, strict=True):
            if not 0 <= state < count:
                raise IndexError(f"State {state} out of range for context of node {self.node}")
            index = index * count + state
        return self.choices[index]


class DecisionStrategy(BaseModel):
    """One local decision rule per decision node, ordered by node."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    rules: tuple[LocalDecisionRule, ...]

    @model_validator(mode="after")
    def _check_rules(self) -> DecisionStrategy:
        nodes = [rule.node for rule in self.rules]
        if nodes != sorted(set(nodes)):
            raise ValueError(f"Decision rules must be unique and ordered by node, got {nodes}")
        return self

    @property
    def nodes(self) -> tuple[int, ...]:
        return tuple(rule.node for rule in self.rules)

    def rule(self, node: int) -> LocalDecisionRule:
        for rule in self.rules:
            if rule.node == node:
                return rule
        raise KeyError(f"No decision rule for node {node}")

    def decision(self, node: int, path: tuple[int, ...]) -> int:
        """State chosen at ``node`` given the information-set states on ``path``."""
        rule = self.rule(node)
        return rule(tuple(path[i - 1] for i in rule.information_set))

    def is_compatible(self, path: tuple[int, ...]) -> bool:
        """True if every decision state on ``path`` is the one the strategy picks."""
        for rule in self.rules:
            context = tuple(path[i - 1] for i in rule.information_set)
            if path[rule.node - 1] != rule(context):
                return False
        return True
