"""Large-scale trend removal by ordinary least squares.

The trend is a linear model of the observations on named covariates plus an
implicit intercept. Its residuals feed the small-scale variogram analysis.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from krigesmith.objects.dataset import SpatialDataset
from krigesmith.utils.errors import InputDataError, SingularDesignError

logger = logging.getLogger(__name__)

INTERCEPT = "intercept"


@dataclass(frozen=True, eq=False)
class TrendCoefficients:
    """Linear trend coefficients.

    Attributes:
        names: Column names of the design matrix, ``"intercept"`` first.
        values: Coefficient per column.
    """

    names: tuple[str, ...]
    values: np.ndarray

    def __post_init__(self) -> None:
        values = np.array(self.values, dtype=float).ravel()
        values.setflags(write=False)
        object.__setattr__(self, "values", values)
        object.__setattr__(self, "names", tuple(self.names))
        if len(self.names) != len(values):
            raise ValueError(
                f"{len(self.names)} names for {len(values)} coefficients"
            )
        if not self.names or self.names[0] != INTERCEPT:
            raise ValueError(f"First coefficient must be '{INTERCEPT}'")

    def __repr__(self) -> str:
        """String representation."""
        terms = ", ".join(f"{n}={v:.4g}" for n, v in zip(self.names, self.values))
        return f"TrendCoefficients({terms})"

    @property
    def covariates(self) -> tuple[str, ...]:
        """Covariate names, without the intercept."""
        return self.names[1:]

    def as_dict(self) -> dict[str, float]:
        return dict(zip(self.names, (float(v) for v in self.values)))

    def predict(self, design: np.ndarray) -> np.ndarray:
        """Trend value for each row of a design matrix (intercept included)."""
        design = np.asarray(design, dtype=float)
        if design.ndim == 1:
            design = design.reshape(1, -1)
        return design @ self.values


@dataclass(frozen=True, eq=False)
class TrendFit:
    """Result of an OLS trend fit.

    Attributes:
        coefficients: Fitted TrendCoefficients.
        fitted: Trend value at each observation.
        residuals: Observation minus trend.
        r_squared: Coefficient of determination.
        rank: Column rank of the design matrix.
        condition_number: 2-norm condition number of the design matrix.
        dataset: Observations the trend was fitted to.
    """

    coefficients: TrendCoefficients
    fitted: np.ndarray
    residuals: np.ndarray
    r_squared: float
    rank: int
    condition_number: float
    dataset: SpatialDataset

    def residual_dataset(self) -> SpatialDataset:
        """The training locations carrying residuals instead of values."""
        return self.dataset.with_values(self.residuals)


def build_design_matrix(
    dataset: SpatialDataset,
    covariates: Optional[Sequence[str]] = None,
) -> np.ndarray:
    """Design matrix with a leading intercept column.

    Args:
        dataset: Observations carrying the named covariates.
        covariates: Covariate names; ``None`` or empty gives the
            intercept-only design (a constant unknown mean).

    Returns:
        Design matrix (n_samples, 1 + n_covariates).
    """
    ones = np.ones((dataset.n_samples, 1))
    return np.column_stack([ones, dataset.covariate_matrix(covariates)])


def design_column_names(covariates: Optional[Sequence[str]] = None) -> tuple[str, ...]:
    return (INTERCEPT,) + tuple(covariates or ())


def check_design(design: np.ndarray, condition_max: float = 1e12) -> tuple[int, float]:
    """Verify a design matrix has full column rank and is well conditioned.

    Returns:
        Tuple of (rank, condition_number).

    Raises:
        InputDataError: If there are not more rows than columns.
        SingularDesignError: If the design is rank deficient or its condition
            number exceeds ``condition_max``.
    """
    n, p = design.shape
    if n <= p:
        raise InputDataError(
            f"Need more observations ({n}) than design columns ({p}) to fit a trend"
        )

    rank = int(np.linalg.matrix_rank(design))
    if rank < p:
        raise SingularDesignError(
            f"Design matrix has rank {rank} < {p} columns",
            suggestion="Remove collinear or duplicated covariates.",
            details={"rank": rank, "n_columns": p},
        )

    condition_number = float(np.linalg.cond(design))
    if not np.isfinite(condition_number) or condition_number > condition_max:
        raise SingularDesignError(
            f"Design matrix is ill-conditioned (condition number {condition_number:.3g})",
            suggestion="Rescale covariates or drop nearly collinear ones.",
            details={"condition_number": condition_number},
        )
    return rank, condition_number


def fit_trend(
    dataset: SpatialDataset,
    covariates: Optional[Sequence[str]] = None,
    condition_max: float = 1e12,
) -> TrendFit:
    """Fit the observations on covariates by ordinary least squares.

    Args:
        dataset: Observations with covariates.
        covariates: Covariate names; ``None`` fits only the mean.
        condition_max: Largest acceptable design condition number.

    Returns:
        TrendFit with coefficients and per-observation residuals.

    Raises:
        SingularDesignError: If the design is not full column rank.
    """
    design = build_design_matrix(dataset, covariates)
    rank, condition_number = check_design(design, condition_max)

    values = dataset.values
    coef, *_ = np.linalg.lstsq(design, values, rcond=None)
    fitted = design @ coef
    residuals = values - fitted

    ss_res = float(np.sum(residuals**2))
    ss_tot = float(np.sum((values - values.mean()) ** 2))
    r_squared = 0.0 if ss_tot == 0 else 1.0 - ss_res / ss_tot

    coefficients = TrendCoefficients(names=design_column_names(covariates), values=coef)
    logger.info(f"Fitted OLS trend {coefficients} (R²={r_squared:.4f})")

    return TrendFit(
        coefficients=coefficients,
        fitted=fitted,
        residuals=residuals,
        r_squared=r_squared,
        rank=rank,
        condition_number=condition_number,
        dataset=dataset,
    )
