"""Shared linear algebra checks for covariance and kriging matrices."""

import numpy as np
from scipy import linalg

from krigesmith.utils.errors import NonPositiveDefiniteError


def is_symmetric(matrix: np.ndarray, rtol: float = 1e-10) -> bool:
    scale = max(float(np.max(np.abs(matrix))), 1.0) if matrix.size else 1.0
    return bool(np.allclose(matrix, matrix.T, rtol=0.0, atol=rtol * scale))


def cholesky_factor(sigma: np.ndarray) -> tuple[np.ndarray, bool]:
    """Cholesky factor of a covariance matrix, as returned by cho_factor.

    Raises:
        NonPositiveDefiniteError: If the matrix is not finite, not symmetric
            or not positive definite.
    """
    if not np.all(np.isfinite(sigma)):
        raise NonPositiveDefiniteError("Covariance matrix has non-finite entries")
    if not is_symmetric(sigma):
        raise NonPositiveDefiniteError("Covariance matrix is not symmetric")
    try:
        return linalg.cho_factor(sigma, lower=True, check_finite=False)
    except linalg.LinAlgError as e:
        raise NonPositiveDefiniteError(
            f"Covariance matrix is not positive definite: {e}",
            suggestion=(
                "Coincident observations need a positive nugget; "
                "otherwise check the partial sill and range."
            ),
        ) from e


def log_determinant(factor: tuple[np.ndarray, bool]) -> float:
    """log|Sigma| from its Cholesky factor."""
    return 2.0 * float(np.sum(np.log(np.diag(factor[0]))))
