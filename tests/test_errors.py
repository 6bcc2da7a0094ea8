"""Tests for standardized errors."""

import numpy as np
import pytest

from krigsmith.utils.errors import (
    InsufficientDataError,
    InvalidParameterError,
    KrigSmithError,
    SingularKrigingSystemError,
    format_parameter_error,
    raise_insufficient_data,
    raise_parameter_error,
)


class TestErrorHierarchy:
    """Tests for exception types."""

    def test_value_error_compatibility(self):
        """Test fatal errors are ValueErrors."""
        assert issubclass(InvalidParameterError, ValueError)
        assert issubclass(InsufficientDataError, ValueError)
        assert issubclass(InvalidParameterError, KrigSmithError)

    def test_singular_is_linalg_error(self):
        """Test the singular-system error is a LinAlgError."""
        assert issubclass(SingularKrigingSystemError, np.linalg.LinAlgError)

    def test_suggestion_in_str(self):
        """Test the suggestion is appended to the message."""
        error = KrigSmithError("Bad thing", suggestion="Do the other thing")
        assert "Suggestion: Do the other thing" in str(error)
        assert error.details == {}


class TestErrorHelpers:
    """Tests for message helpers."""

    def test_format_parameter_error(self):
        """Test message layout."""
        message = format_parameter_error(
            "range_param", -1.0, constraint="range_param > 0", suggestion="Use meters."
        )
        assert "Invalid value for parameter 'range_param': -1.0" in message
        assert "Constraint: range_param > 0" in message
        assert "Suggestion: Use meters." in message

    def test_raise_parameter_error_details(self):
        """Test the offending value is attached."""
        with pytest.raises(InvalidParameterError) as excinfo:
            raise_parameter_error("cutoff", -2.0, constraint="cutoff > 0")
        assert excinfo.value.details == {"parameter": "cutoff", "value": -2.0}

    def test_raise_insufficient_data_details(self):
        """Test extra details are attached."""
        with pytest.raises(InsufficientDataError, match="Expected: 5, Received: 3") as excinfo:
            raise_insufficient_data("5-fold CV", required=5, received=3, n_folds=5)
        assert excinfo.value.details["n_folds"] == 5
