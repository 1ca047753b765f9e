"""Centralized configuration constants for the compiler and its HTTP service.

Values that callers may want to tune per deployment are read from environment
variables; everything else is a plain constant grouped by concern.
"""

from __future__ import annotations

import os

# Environment mode
ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")
IS_PRODUCTION = ENVIRONMENT == "production"

# CORS configuration
# In production, restrict to specific origins; in development, allow localhost
_cors_origins_env = os.environ.get("CORS_ORIGINS", "")
if _cors_origins_env:
    CORS_ORIGINS: list[str] = [origin.strip() for origin in _cors_origins_env.split(",")]
elif IS_PRODUCTION:
    CORS_ORIGINS = []
else:
    CORS_ORIGINS = ["http://localhost:5173", "http://127.0.0.1:5173"]


class ValidationConfig:
    """Tolerances used when validating tensors."""

    # Each conditional distribution must sum to one within this tolerance
    PROBABILITY_TOLERANCE = 1e-6


class PathConfig:
    """Limits on the size of the enumerated path space."""

    # Path spaces are exponential in the number of nodes
    PATH_COUNT_WARNING_THRESHOLD = 100_000
    # The HTTP service refuses to compile anything larger than this
    PATH_COUNT_BLOCKING_THRESHOLD = int(
        os.environ.get("DP_MAX_PATHS", 1_000_000)
    )


class SolverConfig:
    """Options passed to the MILP solver and used when reading its output."""

    TIME_LIMIT_SECONDS = float(os.environ.get("DP_SOLVER_TIME_LIMIT", 60.0))
    MIP_REL_GAP = float(os.environ.get("DP_SOLVER_MIP_GAP", 1e-6))

    # A binary indicator counts as "on" when it is within this distance of 1
    INDICATOR_TOLERANCE = 1e-5
