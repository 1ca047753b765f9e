"""Probability-weighted statistics and lower-tail risk measures.

All functions take a discrete distribution as parallel sequences of utilities
and probabilities. Risk measures look at the lower (worst) tail.
"""
from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from decision_programming.core.errors import DomainError

# Slack when comparing cumulative probabilities against a level
_CUMULATIVE_TOLERANCE = 1e-12


def _as_distribution(
    utilities: Sequence[float], probabilities: Sequence[float]
) -> tuple[np.ndarray, np.ndarray]:
    u = np.asarray(utilities, dtype=np.float64)
    p = np.asarray(probabilities, dtype=np.float64)
    if u.shape != p.shape or u.ndim != 1:
        raise DomainError(
            f"Utilities and probabilities must be 1-D and equally long, got {u.shape} and {p.shape}"
        )
    if u.size == 0:
        raise DomainError("Distribution is empty")
    order = np.argsort(u, kind="stable")
    return u[order], p[order]


def _check_level(alpha: float) -> None:
    if not 0.0 <= alpha <= 1.0:
        raise DomainError(f"Risk level alpha must satisfy 0 <= alpha <= 1, got {alpha}")


def value_at_risk(
    utilities: Sequence[float], probabilities: Sequence[float], alpha: float
) -> float:
    """Smallest utility ``u`` whose cumulative probability reaches ``alpha``."""
    _check_level(alpha)
    u, p = _as_distribution(utilities, probabilities)
    reached = np.flatnonzero(np.cumsum(p) >= alpha - _CUMULATIVE_TOLERANCE)
    if reached.size == 0:
        return float(u[-1])
    return float(u[reached[0]])


def conditional_value_at_risk(
    utilities: Sequence[float], probabilities: Sequence[float], alpha: float
) -> float:
    """Expected utility over the worst ``alpha`` probability mass.

    The atom at the value-at-risk is split so that exactly ``alpha`` mass is
    averaged; this is the quantity the CVaR objective optimizes.
    """
    var = value_at_risk(utilities, probabilities, alpha)
    if alpha == 0.0:
        return var
    u, p = _as_distribution(utilities, probabilities)
    tail = u <= var
    return float((np.sum(u[tail] * p[tail]) - (np.sum(p[tail]) - alpha) * var) / alpha)


def weighted_moments(
    utilities: Sequence[float], probabilities: Sequence[float]
) -> tuple[float, float, float | None, float | None]:
    """Mean, standard deviation, skewness and excess kurtosis.

    The standard deviation is the uncorrected (population) one. Skewness and
    kurtosis are undefined, and returned as None, for a degenerate
    distribution.
    """
    u, p = _as_distribution(utilities, probabilities)
    total = float(np.sum(p))
    if total <= 0.0:
        raise DomainError(f"Probabilities must have positive total mass, got {total}")
    w = p / total
    mean = float(np.sum(w * u))
    centered = u - mean
    variance = float(np.sum(w * centered**2))
    std = float(np.sqrt(variance))
    if variance <= (np.finfo(np.float64).eps * max(1.0, abs(mean))) ** 2:
        return mean, std, None, None
    skewness = float(np.sum(w * centered**3) / variance**1.5)
    kurtosis = float(np.sum(w * centered**4) / variance**2 - 3.0)
    return mean, std, skewness, kurtosis
