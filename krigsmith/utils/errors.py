"""Standardized errors for KrigSmith.

Provides consistent error message formatting across the codebase
so every failure names the offending parameter values.
"""

from typing import Any, Optional

import numpy as np


class KrigSmithError(Exception):
    """Base exception for KrigSmith errors."""

    def __init__(
        self,
        message: str,
        suggestion: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        """Initialize KrigSmith error.

        Args:
            message: Primary error message.
            suggestion: Optional suggestion for fixing the error.
            details: Optional dictionary with the offending values.
        """
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        """Format error message with suggestion if available."""
        if self.suggestion:
            return f"{self.message}\n\nSuggestion: {self.suggestion}"
        return self.message


class InvalidParameterError(KrigSmithError, ValueError):
    """Error raised when parameters are invalid."""

    pass


class InsufficientDataError(KrigSmithError, ValueError):
    """Error raised when there are too few points or pairs for an operation."""

    pass


class SingularKrigingSystemError(KrigSmithError, np.linalg.LinAlgError):
    """Error raised when a kriging system cannot be solved to working precision."""

    pass


class FitDidNotConvergeWarning(UserWarning):
    """Variogram fit stopped at the iteration cap; best iterate was returned."""

    pass


def format_parameter_error(
    parameter_name: str,
    value: Any,
    valid_values: Optional[list[str]] = None,
    constraint: Optional[str] = None,
    suggestion: Optional[str] = None,
) -> str:
    """Format a standardized parameter error message.

    Args:
        parameter_name: Name of the invalid parameter.
        value: Invalid value that was provided.
        valid_values: List of valid values (optional).
        constraint: Constraint that was violated (optional).
        suggestion: How to fix the error (optional).

    Returns:
        Formatted error message string.
    """
    parts = [f"Invalid value for parameter '{parameter_name}': {value}"]
    if valid_values:
        parts.append(f"Valid values: {', '.join(map(str, valid_values))}")
    if constraint:
        parts.append(f"Constraint: {constraint}")
    if suggestion:
        parts.append(f"Suggestion: {suggestion}")
    return "\n".join(parts)


def format_insufficient_data_error(
    operation: str,
    required: Any,
    received: Any,
    suggestion: Optional[str] = None,
) -> str:
    """Format a standardized insufficient-data message.

    Args:
        operation: What was being attempted.
        required: Minimum amount of data the operation needs.
        received: Amount of data that was provided.
        suggestion: How to fix the error (optional).

    Returns:
        Formatted error message string.
    """
    parts = [f"Insufficient data for {operation}"]
    parts.append(f"Expected: {required}, Received: {received}")
    if suggestion:
        parts.append(f"Suggestion: {suggestion}")
    return "\n".join(parts)


def raise_parameter_error(
    parameter_name: str,
    value: Any,
    valid_values: Optional[list[str]] = None,
    constraint: Optional[str] = None,
    suggestion: Optional[str] = None,
) -> None:
    """Raise a standardized parameter error.

    Args:
        parameter_name: Name of the invalid parameter.
        value: Invalid value that was provided.
        valid_values: List of valid values (optional).
        constraint: Constraint that was violated (optional).
        suggestion: How to fix the error (optional).

    Raises:
        InvalidParameterError: Always raises this exception.
    """
    error_msg = format_parameter_error(
        parameter_name, value, valid_values, constraint, suggestion
    )
    raise InvalidParameterError(
        error_msg, details={"parameter": parameter_name, "value": value}
    )


def raise_insufficient_data(
    operation: str,
    required: Any,
    received: Any,
    suggestion: Optional[str] = None,
    **details: Any,
) -> None:
    """Raise a standardized insufficient-data error.

    Args:
        operation: What was being attempted.
        required: Minimum amount of data the operation needs.
        received: Amount of data that was provided.
        suggestion: How to fix the error (optional).
        **details: Extra offending values recorded on the exception.

    Raises:
        InsufficientDataError: Always raises this exception.
    """
    error_msg = format_insufficient_data_error(
        operation, required, received, suggestion
    )
    raise InsufficientDataError(
        error_msg,
        details={"operation": operation, "required": required, "received": received, **details},
    )
