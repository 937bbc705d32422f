"""Variogram analysis primitives.

Model families, the VariogramModel container and the experimental
(empirical) semivariogram. All functions are pure.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Literal, Optional

import numpy as np
import pandas as pd
from numba import njit

from krigesmith.objects.dataset import SpatialDataset
from krigesmith.utils.errors import InputDataError, raise_parameter_error

logger = logging.getLogger(__name__)


def _exponential_correlation(h: np.ndarray, range_param: float) -> np.ndarray:
    """Exponential correlation, exp(-h / a). Reaches the sill asymptotically."""
    return np.exp(-h / range_param)


def _spherical_correlation(h: np.ndarray, range_param: float) -> np.ndarray:
    """Spherical correlation with compact support on [0, a]."""
    x = np.minimum(h / range_param, 1.0)
    return 1.0 - 1.5 * x + 0.5 * x**3


def _gaussian_correlation(h: np.ndarray, range_param: float) -> np.ndarray:
    """Gaussian correlation, exp(-(h / a)^2)."""
    return np.exp(-((h / range_param) ** 2))


def _cubic_correlation(h: np.ndarray, range_param: float) -> np.ndarray:
    """Cubic correlation with compact support on [0, a]."""
    x = np.minimum(h / range_param, 1.0)
    return 1.0 - (7.0 * x**2 - 8.75 * x**3 + 3.5 * x**5 - 0.75 * x**7)


def _circular_correlation(h: np.ndarray, range_param: float) -> np.ndarray:
    """Circular correlation with compact support on [0, a]."""
    x = np.minimum(h / range_param, 1.0)
    rho = 1.0 - (2.0 / np.pi) * (x * np.sqrt(1.0 - x**2) + np.arcsin(x))
    return np.where(x >= 1.0, 0.0, rho)


# Model registry: family name -> correlation function rho(h), rho(0) == 1
VARIOGRAM_MODELS: dict[str, Callable[[np.ndarray, float], np.ndarray]] = {
    "exponential": _exponential_correlation,
    "spherical": _spherical_correlation,
    "gaussian": _gaussian_correlation,
    "cubic": _cubic_correlation,
    "circular": _circular_correlation,
}

# Families whose correlation is exactly zero beyond range_param
COMPACT_SUPPORT_MODELS = ("spherical", "cubic", "circular")


@dataclass(frozen=True)
class VariogramModel:
    """Container for variogram model parameters.

    The semivariance is ``nugget + partial_sill * (1 - rho(h))`` for every
    h >= 0, so ``semivariance(0) == nugget`` and the total sill is
    ``nugget + partial_sill``.

    Attributes:
        model_type: Family name, one of VARIOGRAM_MODELS.
        nugget: Nugget effect (micro-scale variance), >= 0.
        partial_sill: Variance contributed by spatial correlation, >= 0.
        range_param: Range (scale) parameter, > 0. For exponential and
            gaussian families this is the scale ``a`` of the correlation;
            compact families reach the sill exactly at ``range_param``.
    """

    model_type: str
    nugget: float
    partial_sill: float
    range_param: float

    def __post_init__(self) -> None:
        """Validate VariogramModel parameters."""
        if self.model_type not in VARIOGRAM_MODELS:
            raise_parameter_error(
                "model_type", self.model_type, valid_values=list(VARIOGRAM_MODELS)
            )

        for name in ("nugget", "partial_sill", "range_param"):
            value = float(getattr(self, name))
            if not np.isfinite(value):
                raise_parameter_error(name, value, constraint="must be finite")
            object.__setattr__(self, name, value)

        if self.nugget < 0:
            raise_parameter_error("nugget", self.nugget, constraint="nugget >= 0")

        if self.partial_sill < 0:
            raise_parameter_error(
                "partial_sill", self.partial_sill, constraint="partial_sill >= 0"
            )

        if self.range_param <= 0:
            raise_parameter_error(
                "range_param", self.range_param, constraint="range_param > 0"
            )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"VariogramModel(type={self.model_type}, nugget={self.nugget:.4f}, "
            f"partial_sill={self.partial_sill:.4f}, range={self.range_param:.4f})"
        )

    @property
    def sill(self) -> float:
        """Total sill (nugget + partial sill)."""
        return self.nugget + self.partial_sill

    def correlation(self, h) -> np.ndarray:
        h = np.asarray(h, dtype=float)
        return VARIOGRAM_MODELS[self.model_type](h, self.range_param)

    def semivariance(self, h) -> np.ndarray:
        """Semivariance gamma(h) at separation distance(s) ``h``."""
        return self.nugget + self.partial_sill * (1.0 - self.correlation(h))

    def covariance(self, h) -> np.ndarray:
        """Covariance between two distinct locations ``h`` apart.

        This is sill minus semivariance; the nugget only enters the
        covariance of an observation with itself.
        """
        return self.partial_sill * self.correlation(h)


def predict_variogram(variogram_model: VariogramModel, distances: np.ndarray) -> np.ndarray:
    """Predict variogram values at given distances.

    Args:
        variogram_model: VariogramModel.
        distances: Distances to predict at.

    Returns:
        Predicted semi-variance values.
    """
    return variogram_model.semivariance(distances)


@dataclass(frozen=True)
class EmpiricalVariogramPoint:
    """One non-empty distance bin of the experimental variogram.

    Attributes:
        lag: Bin midpoint distance.
        semivariance: Estimated semivariance of the pairs in the bin.
        n_pairs: Number of pairs in the bin.
        lower: Lower bin edge (inclusive).
        upper: Upper bin edge (exclusive, except for the last bin).
    """

    lag: float
    semivariance: float
    n_pairs: int
    lower: float
    upper: float


@dataclass(frozen=True)
class EmpiricalVariogram:
    """Experimental variogram: non-empty bins in increasing distance order."""

    points: tuple[EmpiricalVariogramPoint, ...]
    max_lag: float
    n_lags: int
    estimator: str = "matheron"

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self):
        return iter(self.points)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"EmpiricalVariogram(n_bins={len(self.points)}/{self.n_lags}, "
            f"max_lag={self.max_lag:.4f}, total_pairs={int(self.n_pairs.sum())})"
        )

    @property
    def lags(self) -> np.ndarray:
        return np.array([p.lag for p in self.points], dtype=float)

    @property
    def semivariances(self) -> np.ndarray:
        return np.array([p.semivariance for p in self.points], dtype=float)

    @property
    def n_pairs(self) -> np.ndarray:
        return np.array([p.n_pairs for p in self.points], dtype=np.int64)

    def to_frame(self) -> pd.DataFrame:
        """Tabular view for external plotting or reporting."""
        return pd.DataFrame(
            {
                "lag": self.lags,
                "semivariance": self.semivariances,
                "n_pairs": self.n_pairs,
                "lower": [p.lower for p in self.points],
                "upper": [p.upper for p in self.points],
            }
        )


@njit(cache=True)
def _bin_pair_sums(
    coordinates: np.ndarray,
    values: np.ndarray,
    max_lag: float,
    n_lags: int,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Accumulate per-bin sums over all unordered pairs within max_lag."""
    n_points = coordinates.shape[0]
    lag_width = max_lag / n_lags
    # Absorbs rounding between this kernel and scipy's pdist
    cutoff = max_lag * (1.0 + 1e-12)

    squared_sum = np.zeros(n_lags)
    root_sum = np.zeros(n_lags)
    n_pairs = np.zeros(n_lags, dtype=np.int64)

    for i in range(n_points - 1):
        for j in range(i + 1, n_points):
            dx = coordinates[i, 0] - coordinates[j, 0]
            dy = coordinates[i, 1] - coordinates[j, 1]
            dist = np.sqrt(dx * dx + dy * dy)
            if dist > cutoff:
                continue

            k = int(dist / lag_width)
            if k >= n_lags:
                k = n_lags - 1

            value_diff = values[i] - values[j]
            squared_sum[k] += value_diff * value_diff
            root_sum[k] += np.sqrt(abs(value_diff))
            n_pairs[k] += 1

    return squared_sum, root_sum, n_pairs


def _matheron(squared_sum: float, root_sum: float, n: int) -> float:
    return 0.5 * squared_sum / n


def _cressie_hawkins(squared_sum: float, root_sum: float, n: int) -> float:
    correction = 0.457 + 0.494 / n + 0.045 / n**2
    return 0.5 * (root_sum / n) ** 4 / correction


SEMIVARIANCE_ESTIMATORS: dict[str, Callable[[float, float, int], float]] = {
    "matheron": _matheron,
    "cressie_hawkins": _cressie_hawkins,
}


def compute_experimental_variogram(
    dataset: SpatialDataset,
    n_lags: int = 15,
    max_lag: Optional[float] = None,
    estimator: Literal["matheron", "cressie_hawkins"] = "matheron",
) -> EmpiricalVariogram:
    """Compute the experimental semi-variogram of a dataset.

    Every unordered pair of observations no further apart than ``max_lag``
    is assigned to one of ``n_lags`` equal-width bins partitioning
    ``[0, max_lag)``. A pair exactly ``max_lag`` apart goes to the last bin.
    Bins without pairs are left out of the result.

    Args:
        dataset: Observations. Pass ``dataset.with_values(residuals)`` to
            analyse trend residuals.
        n_lags: Number of lag bins.
        max_lag: Maximum lag distance (default: half of max distance).
        estimator: 'matheron' (classical) or 'cressie_hawkins' (robust).

    Returns:
        EmpiricalVariogram with one point per non-empty bin.

    Raises:
        ParameterError: If n_lags, max_lag or estimator is invalid.
        InputDataError: If all observations share one location.
    """
    if estimator not in SEMIVARIANCE_ESTIMATORS:
        raise_parameter_error(
            "estimator", estimator, valid_values=list(SEMIVARIANCE_ESTIMATORS)
        )

    if int(n_lags) != n_lags or n_lags < 1:
        raise_parameter_error("n_lags", n_lags, constraint="positive integer")
    n_lags = int(n_lags)

    if max_lag is None:
        max_separation = dataset.max_separation()
        if max_separation <= 0:
            raise InputDataError("All observations share the same location")
        max_lag = max_separation / 2.0
    elif not np.isfinite(max_lag) or max_lag <= 0:
        raise_parameter_error("max_lag", max_lag, constraint="max_lag > 0")
    max_lag = float(max_lag)

    squared_sum, root_sum, n_pairs_array = _bin_pair_sums(
        np.ascontiguousarray(dataset.coordinates),
        np.ascontiguousarray(dataset.values),
        max_lag,
        n_lags,
    )

    edges = np.linspace(0.0, max_lag, n_lags + 1)
    estimate = SEMIVARIANCE_ESTIMATORS[estimator]

    points = []
    for k in range(n_lags):
        n = int(n_pairs_array[k])
        if n == 0:
            continue
        points.append(
            EmpiricalVariogramPoint(
                lag=float(0.5 * (edges[k] + edges[k + 1])),
                semivariance=float(estimate(squared_sum[k], root_sum[k], n)),
                n_pairs=n,
                lower=float(edges[k]),
                upper=float(edges[k + 1]),
            )
        )

    logger.debug(
        f"Experimental variogram: {len(points)}/{n_lags} non-empty bins, "
        f"{int(n_pairs_array.sum())} pairs within {max_lag:.4g}"
    )

    return EmpiricalVariogram(
        points=tuple(points), max_lag=max_lag, n_lags=n_lags, estimator=estimator
    )
