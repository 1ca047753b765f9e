"""Analysis artifacts computed for a fixed decision strategy.

These are plain, frozen data objects: a reporting layer can enumerate
per-node state probabilities (with the fixed-state annotation), the
utility/probability pairs of the utility distribution, and named statistics
and risk measures.
"""
from __future__ import annotations

from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field, model_validator

from decision_programming.core.risk import (
    conditional_value_at_risk,
    value_at_risk,
    weighted_moments,
)


class StateProbabilities(BaseModel):
    """Probability of every state of every chance and decision node.

    ``mass`` is the probability of the fixed states under the strategy; it is
    1 for the unconditioned distribution and is the normalizer reused when
    conditioning further.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    probabilities: dict[int, tuple[float, ...]]
    fixed: dict[int, int] = Field(default_factory=dict)
    mass: float = 1.0

    def probability(self, node: int, state: int) -> float:
        return self.probabilities[node][state]

    def fixed_state(self, node: int) -> int | None:
        """The state ``node`` was conditioned on, if any."""
        return self.fixed.get(node)

    def active_states(self, node: int) -> tuple[int, ...]:
        """States of ``node`` with strictly positive probability."""
        return tuple(s for s, p in enumerate(self.probabilities[node]) if p > 0.0)


class UtilityStatistics(BaseModel):
    """Probability-weighted summary statistics of a utility distribution."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    mean: float
    std: float
    skewness: float | None = None
    kurtosis: float | None = None


class RiskMeasure(BaseModel):
    """Value-at-risk and conditional value-at-risk at one level."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    alpha: float
    value_at_risk: float
    conditional_value_at_risk: float


class UtilityDistribution(BaseModel):
    """Discrete utility distribution, sorted by ascending utility.

    Utilities are unique; paths with equal utility have been merged.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    utilities: tuple[float, ...]
    probabilities: tuple[float, ...]

    @model_validator(mode="after")
    def _check_pairs(self) -> UtilityDistribution:
        if len(self.utilities) != len(self.probabilities):
            raise ValueError(
                f"Got {len(self.utilities)} utilities but {len(self.probabilities)} probabilities"
            )
        return self

    def pairs(self) -> list[tuple[float, float]]:
        return list(zip(self.utilities, self.probabilities))

    def statistics(self) -> UtilityStatistics:
        mean, std, skewness, kurtosis = weighted_moments(self.utilities, self.probabilities)
        return UtilityStatistics(mean=mean, std=std, skewness=skewness, kurtosis=kurtosis)

    def value_at_risk(self, alpha: float) -> float:
        return value_at_risk(self.utilities, self.probabilities, alpha)

    def conditional_value_at_risk(self, alpha: float) -> float:
        return conditional_value_at_risk(self.utilities, self.probabilities, alpha)

    def risk_measures(self, alphas: Iterable[float]) -> list[RiskMeasure]:
        return [
            RiskMeasure(
                alpha=alpha,
                value_at_risk=self.value_at_risk(alpha),
                conditional_value_at_risk=self.conditional_value_at_risk(alpha),
            )
            for alpha in alphas
        ]
