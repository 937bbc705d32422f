"""Kriging primitives for spatial prediction.

Supports:
- Ordinary Kriging (OK): Constant but unknown mean
- Universal Kriging (UK): Mean linear in covariates (trend)
- Simple Kriging (SK): Known trend coefficients

The predictor builds and factorizes the kriging system once and is read-only
afterwards, so one instance can be shared by parallel workers.
"""

import logging
import multiprocessing as mp
from dataclasses import dataclass
from functools import partial
from typing import Literal, Optional

import numpy as np
import pandas as pd
from scipy.linalg import lu_factor, lu_solve

from krigesmith.objects.dataset import SpatialDataset, as_coordinate_array
from krigesmith.primitives._linalg import is_symmetric
from krigesmith.primitives.trend import TrendCoefficients, build_design_matrix
from krigesmith.primitives.variogram import VariogramModel
from krigesmith.primitives.variogram_fit import covariance_matrix
from krigesmith.utils.errors import (
    InputDataError,
    KrigeSmithError,
    SingularKrigingSystemError,
    raise_parameter_error,
)

logger = logging.getLogger(__name__)

KRIGING_TYPES = ("ordinary", "universal", "simple")


@dataclass(frozen=True, eq=False)
class KrigingResult:
    """Prediction at one target location.

    Attributes:
        x: Target x coordinate.
        y: Target y coordinate.
        prediction: Predicted value (NaN when ``error`` is set).
        variance: Kriging variance (prediction uncertainty).
        weights: Kriging weights for each training observation.
        lagrange_multipliers: Lagrange multipliers of the unbiasedness
            constraints (empty for simple kriging).
        error: Failure for this target, if any.
    """

    x: float
    y: float
    prediction: float
    variance: float
    weights: Optional[np.ndarray] = None
    lagrange_multipliers: Optional[np.ndarray] = None
    error: Optional[KrigeSmithError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def __repr__(self) -> str:
        """String representation."""
        if self.error is not None:
            return (
                f"KrigingResult(x={self.x:.4f}, y={self.y:.4f}, "
                f"error={type(self.error).__name__})"
            )
        return (
            f"KrigingResult(x={self.x:.4f}, y={self.y:.4f}, "
            f"prediction={self.prediction:.4f}, variance={self.variance:.4f})"
        )


def _failed(x: float, y: float, error: KrigeSmithError) -> KrigingResult:
    return KrigingResult(
        x=float(x), y=float(y), prediction=np.nan, variance=np.nan, error=error
    )


def _clipped_variance(variance: float, sill: float, tolerance: float) -> Optional[float]:
    """Clip rounding-level negative variance to zero.

    Negative values down to ``-tolerance * sill`` become 0.0; anything
    more negative returns None.
    """
    if variance >= 0:
        return float(variance)
    if variance < -tolerance * max(sill, np.finfo(float).tiny):
        return None
    return 0.0


class KrigingPredictor:
    """Best linear unbiased prediction from a fitted variogram model.

    Attributes:
        variogram_model: Fitted variogram model.
        dataset: Training observations.
        trend: Trend coefficients; their names select the drift covariates.
        kriging_type: 'ordinary', 'universal' or 'simple'.
        condition_max: Largest acceptable condition number of the system.
    """

    def __init__(
        self,
        variogram_model: VariogramModel,
        dataset: SpatialDataset,
        trend: Optional[TrendCoefficients] = None,
        kriging_type: Optional[Literal["ordinary", "universal", "simple"]] = None,
        condition_max: float = 1e12,
        variance_tolerance: float = 1e-8,
    ):
        """Build and factorize the kriging system.

        Args:
            variogram_model: Fitted variogram model.
            dataset: Training observations.
            trend: Optional trend. For universal kriging only its covariate
                names are used; simple kriging uses its values as the known
                mean.
            kriging_type: Defaults to 'ordinary' without a trend and
                'universal' with one.
            condition_max: Largest acceptable condition number.
            variance_tolerance: Negative variances down to
                ``-variance_tolerance * sill`` are treated as rounding and
                clipped to zero.

        Raises:
            ParameterError: If kriging_type is unknown or inconsistent
                with ``trend``.
        """
        if kriging_type is None:
            kriging_type = "ordinary" if trend is None else "universal"
        if kriging_type not in KRIGING_TYPES:
            raise_parameter_error(
                "kriging_type", kriging_type, valid_values=list(KRIGING_TYPES)
            )
        if kriging_type == "simple" and trend is None:
            raise_parameter_error(
                "trend",
                None,
                constraint="simple kriging needs known trend coefficients",
            )
        if kriging_type == "ordinary" and trend is not None and trend.covariates:
            raise_parameter_error(
                "kriging_type",
                kriging_type,
                constraint="ordinary kriging has no covariates; use 'universal'",
            )

        self.variogram_model = variogram_model
        self.dataset = dataset
        self.trend = trend
        self.kriging_type = kriging_type
        self.condition_max = condition_max
        self.variance_tolerance = variance_tolerance
        self.covariates: tuple[str, ...] = trend.covariates if trend is not None else ()

        n = dataset.n_samples
        self._coordinates = dataset.coordinates
        self._values = dataset.values
        self._design = build_design_matrix(dataset, self.covariates)

        # Equilibrate: covariances in units of the sill, drift columns in
        # units of their largest magnitude. Weights are unchanged by this.
        sill = variogram_model.sill
        self._covariance_scale = sill if sill > 0 else 1.0
        drift_scale = np.max(np.abs(self._design), axis=0)
        self._drift_scale = np.where(drift_scale > 0, drift_scale, 1.0)

        # For a variogram γ(h), covariance C(h) = sill - γ(h)
        C = covariance_matrix(variogram_model, dataset.pairwise_distances())
        C = C / self._covariance_scale

        if kriging_type == "simple":
            system = C
            self._residual_values = self._values - trend.predict(self._design)
        else:
            # Build augmented system: [K  F] [w] = [k]
            #                          [F' 0] [μ]   [f]
            m = self._design.shape[1]
            F = self._design / self._drift_scale
            system = np.zeros((n + m, n + m))
            system[:n, :n] = C
            system[:n, n:] = F
            system[n:, :n] = F.T
            self._residual_values = None

        self.system_error: Optional[SingularKrigingSystemError] = None
        self._lu = None
        self.condition_number = float(np.linalg.cond(system))

        if not is_symmetric(system):
            self.system_error = SingularKrigingSystemError(
                "Kriging system matrix is not symmetric"
            )
        elif not np.isfinite(self.condition_number) or self.condition_number > condition_max:
            self.system_error = SingularKrigingSystemError(
                f"Kriging system is singular or ill-conditioned "
                f"(condition number {self.condition_number:.3g})",
                suggestion=(
                    "Remove duplicate training locations, add a nugget, "
                    "or drop collinear trend covariates."
                ),
                details={"condition_number": self.condition_number},
            )
        else:
            self._lu = lu_factor(system, check_finite=False)

        if self.system_error is not None:
            logger.warning(f"{kriging_type.capitalize()} kriging: {self.system_error.message}")

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"KrigingPredictor(type={self.kriging_type}, "
            f"n_samples={self.dataset.n_samples}, model={self.variogram_model!r})"
        )

    def _target_design(
        self, coordinates: np.ndarray, target_covariates
    ) -> np.ndarray:
        """Drift rows (intercept + covariates) for each target."""
        n_targets = coordinates.shape[0]
        ones = np.ones((n_targets, 1))
        if not self.covariates:
            return ones

        if target_covariates is None:
            raise InputDataError(
                f"Covariates {list(self.covariates)} are required at prediction targets"
            )
        if isinstance(target_covariates, pd.DataFrame):
            missing = [c for c in self.covariates if c not in target_covariates.columns]
            if missing:
                raise InputDataError(f"Target covariates missing columns {missing}")
            covs = target_covariates[list(self.covariates)].to_numpy(dtype=float)
        else:
            covs = np.asarray(target_covariates, dtype=float)
            if covs.ndim == 1:
                covs = covs.reshape(n_targets, -1)
        if covs.shape != (n_targets, len(self.covariates)):
            raise InputDataError(
                f"Target covariates have shape {covs.shape}, "
                f"expected {(n_targets, len(self.covariates))}"
            )
        return np.column_stack([ones, covs])

    def _predict_one(self, target: np.ndarray, drift: np.ndarray) -> KrigingResult:
        x, y = float(target[0]), float(target[1])
        if self.system_error is not None:
            return _failed(x, y, self.system_error)
        if not np.all(np.isfinite(drift)):
            return _failed(x, y, InputDataError("Target covariates must be finite"))

        model = self.variogram_model
        n = len(self._values)
        distances = np.sqrt(np.sum((self._coordinates - target) ** 2, axis=1))
        k = model.covariance(distances)

        if self.kriging_type == "simple":
            weights = lu_solve(self._lu, k / self._covariance_scale, check_finite=False)
            lagrange = np.empty(0)
            prediction = float(drift @ self.trend.values + weights @ self._residual_values)
            variance = model.sill - float(weights @ k)
        else:
            rhs = np.concatenate([k / self._covariance_scale, drift / self._drift_scale])
            solution = lu_solve(self._lu, rhs, check_finite=False)
            weights = solution[:n]
            # Back to data units
            lagrange = solution[n:] * self._covariance_scale / self._drift_scale
            prediction = float(weights @ self._values)
            # Kriging variance: C(0) - w'k - μ'f
            variance = model.sill - float(weights @ k) - float(lagrange @ drift)

        if not (np.isfinite(prediction) and np.isfinite(variance)):
            return _failed(
                x, y, SingularKrigingSystemError("Kriging solve produced non-finite values")
            )

        variance = _clipped_variance(variance, model.sill, self.variance_tolerance)
        if variance is None:
            return _failed(
                x,
                y,
                SingularKrigingSystemError(
                    "Negative kriging variance beyond rounding tolerance",
                    suggestion="Check the variogram model parameters.",
                    details={"sill": model.sill},
                ),
            )

        return KrigingResult(
            x=x,
            y=y,
            prediction=prediction,
            variance=variance,
            weights=weights,
            lagrange_multipliers=lagrange,
        )

    def _predict_block(self, coordinates: np.ndarray, drift: np.ndarray) -> list[KrigingResult]:
        return [self._predict_one(coordinates[i], drift[i]) for i in range(len(coordinates))]

    def predict(
        self,
        targets,
        target_covariates=None,
        n_jobs: Optional[int] = None,
    ) -> list[KrigingResult]:
        """Predict at target locations.

        Args:
            targets: Sequence of Coordinate, (m, 2) array or DataFrame with
                ``x``/``y`` columns.
            target_covariates: Covariate values at the targets, (m, p)
                array or DataFrame with the trend covariate columns.
                Required when the trend has covariates.
            n_jobs: Worker processes; ``None`` or 1 predicts in-process.

        Returns:
            One KrigingResult per target, in input order. Failures are
            reported on the individual results.
        """
        coordinates = as_coordinate_array(targets)
        drift = self._target_design(coordinates, target_covariates)
        n_targets = len(coordinates)

        if n_jobs is not None and n_jobs > 1 and n_targets > 1:
            chunks = np.array_split(np.arange(n_targets), min(n_jobs, n_targets))
            logger.info(f"Predicting {n_targets} targets with {len(chunks)} workers")
            with mp.Pool(len(chunks)) as pool:
                parts = pool.map(
                    partial(_predict_chunk, self),
                    [(coordinates[idx], drift[idx]) for idx in chunks],
                )
            results = [result for part in parts for result in part]
        else:
            results = self._predict_block(coordinates, drift)

        n_failed = sum(1 for r in results if not r.ok)
        if n_failed:
            logger.warning(f"{n_failed} of {n_targets} targets could not be predicted")
        logger.info(f"{self.kriging_type.capitalize()} kriging predicted {n_targets} targets")
        return results


def _predict_chunk(predictor: KrigingPredictor, chunk: tuple[np.ndarray, np.ndarray]) -> list[KrigingResult]:
    coordinates, drift = chunk
    return predictor._predict_block(coordinates, drift)


def results_to_frame(results: list[KrigingResult]) -> pd.DataFrame:
    """Tabulate kriging results, one row per target."""
    return pd.DataFrame(
        {
            "x": [r.x for r in results],
            "y": [r.y for r in results],
            "prediction": [r.prediction for r in results],
            "variance": [r.variance for r in results],
            "error": [None if r.ok else r.error.message for r in results],
        }
    )
