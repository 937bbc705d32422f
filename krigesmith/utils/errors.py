"""Error taxonomy for KrigeSmith.

Every failure the estimation engine can detect is raised as a subclass of
KrigeSmithError so callers can decide how to present it. None of these
terminate the hosting process.
"""

from typing import Any, Optional


class KrigeSmithError(Exception):
    """Base exception for KrigeSmith errors."""

    def __init__(
        self,
        message: str,
        suggestion: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        """Initialize KrigeSmith error.

        Args:
            message: Primary error message.
            suggestion: Optional suggestion for fixing the error.
            details: Optional dictionary with additional error details.
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

    def __reduce__(self):
        # Per-target errors cross process boundaries in parallel prediction
        return (self.__class__, (self.message,), self.__dict__)


class InputDataError(KrigeSmithError):
    """Observations are missing, malformed or too few."""

    pass


class ParameterError(KrigeSmithError):
    """Error raised when parameters are invalid."""

    pass


class SingularDesignError(KrigeSmithError):
    """Trend design matrix is not full column rank."""

    pass


class NonPositiveDefiniteError(KrigeSmithError):
    """Covariance matrix could not be Cholesky-factorized."""

    pass


class ConvergenceFailure(KrigeSmithError):
    """Optimizer stopped without meeting its tolerance.

    The best iterate found is kept on ``best_result`` so the caller can
    inspect it or decide to accept it explicitly.
    """

    def __init__(
        self,
        message: str,
        best_result: Any = None,
        suggestion: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, suggestion=suggestion, details=details)
        self.best_result = best_result


class SingularKrigingSystemError(KrigeSmithError):
    """Augmented kriging matrix is singular or numerically unusable."""

    pass


def format_parameter_error(
    parameter_name: str,
    value: Any,
    valid_values: Optional[list[str]] = None,
    constraint: Optional[str] = None,
) -> str:
    """Format a standardized parameter error message.

    Args:
        parameter_name: Name of the invalid parameter.
        value: Invalid value that was provided.
        valid_values: List of valid values (optional).
        constraint: Constraint that was violated (optional).

    Returns:
        Formatted error message string.
    """
    parts = [f"Invalid value for parameter '{parameter_name}': {value}"]
    if valid_values:
        parts.append(f"Valid values: {', '.join(map(str, valid_values))}")
    if constraint:
        parts.append(f"Constraint: {constraint}")
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
        ParameterError: Always raises this exception.
    """
    error_msg = format_parameter_error(
        parameter_name, value, valid_values, constraint
    )
    raise ParameterError(
        error_msg,
        suggestion=suggestion,
        details={"parameter": parameter_name, "value": value},
    )
