"""Utility modules for KrigSmith."""

from krigsmith.utils.errors import (
    FitDidNotConvergeWarning,
    InsufficientDataError,
    InvalidParameterError,
    KrigSmithError,
    SingularKrigingSystemError,
    format_insufficient_data_error,
    format_parameter_error,
    raise_insufficient_data,
    raise_parameter_error,
)

__all__ = [
    "KrigSmithError",
    "InvalidParameterError",
    "InsufficientDataError",
    "SingularKrigingSystemError",
    "FitDidNotConvergeWarning",
    "format_parameter_error",
    "format_insufficient_data_error",
    "raise_parameter_error",
    "raise_insufficient_data",
]
