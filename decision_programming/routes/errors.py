"""HTTP error responses for the diagram routes.

Provides consistent error response formatting across all endpoints.
"""
from __future__ import annotations

from fastapi import HTTPException

from decision_programming.core.errors import safe_error_message


def bad_request(message: str) -> HTTPException:
    """Create a 400 Bad Request exception.

    Args:
        message: Description of what was wrong with the request

    Returns:
        HTTPException with status 400
    """
    return HTTPException(status_code=400, detail=message)


def invalid_diagram(error: Exception) -> HTTPException:
    """Create a 400 Bad Request exception for a diagram that fails validation.

    Args:
        error: The structural, shape, probability or domain error raised

    Returns:
        HTTPException with status 400
    """
    return bad_request(f"{type(error).__name__}: {safe_error_message(error)}")


def infeasible(error: Exception) -> HTTPException:
    """Create a 422 Unprocessable Entity exception for an infeasible problem."""
    return HTTPException(status_code=422, detail=safe_error_message(error))


def solver_failed(error: Exception) -> HTTPException:
    """Create a 502 Bad Gateway exception when the MILP solver fails."""
    return HTTPException(status_code=502, detail=f"Solver failed: {safe_error_message(error)}")
