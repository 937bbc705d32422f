"""Utility modules for KrigeSmith."""

from krigesmith.utils.errors import (
    ConvergenceFailure,
    InputDataError,
    KrigeSmithError,
    NonPositiveDefiniteError,
    ParameterError,
    SingularDesignError,
    SingularKrigingSystemError,
    format_parameter_error,
    raise_parameter_error,
)

__all__ = [
    "KrigeSmithError",
    "InputDataError",
    "ParameterError",
    "SingularDesignError",
    "NonPositiveDefiniteError",
    "ConvergenceFailure",
    "SingularKrigingSystemError",
    "format_parameter_error",
    "raise_parameter_error",
]
