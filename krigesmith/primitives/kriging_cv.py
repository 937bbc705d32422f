"""Cross-validation for kriging models.

Provides leave-one-out and k-fold cross-validation to assess prediction
quality and validate the variogram model choice.
"""

import logging
from dataclasses import dataclass
from typing import Literal, Optional

import numpy as np
from sklearn.model_selection import KFold

from krigesmith.objects.dataset import SpatialDataset
from krigesmith.primitives.kriging import KrigingPredictor
from krigesmith.primitives.trend import TrendCoefficients
from krigesmith.primitives.variogram import VariogramModel
from krigesmith.utils.errors import InputDataError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class CrossValidationResult:
    """Results from cross-validation.

    Attributes:
        predictions: Cross-validated predictions (n_samples,).
        variances: Kriging variance of each prediction.
        errors: Prediction errors (observed - predicted).
        standardized_errors: Errors divided by the kriging standard deviation.
        mae: Mean Absolute Error.
        rmse: Root Mean Squared Error.
        r2: Coefficient of determination (R²).
        mean_error: Mean error (bias).
        std_error: Standard deviation of errors.
        n_failed: Held-out points that could not be predicted.
    """

    predictions: np.ndarray
    variances: np.ndarray
    errors: np.ndarray
    standardized_errors: np.ndarray
    mae: float
    rmse: float
    r2: float
    mean_error: float
    std_error: float
    n_failed: int = 0

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"CrossValidationResult(MAE={self.mae:.4f}, RMSE={self.rmse:.4f}, "
            f"R²={self.r2:.4f}, Bias={self.mean_error:.4f})"
        )


def _summarize(
    values: np.ndarray, predictions: np.ndarray, variances: np.ndarray
) -> CrossValidationResult:
    # Compute errors
    errors = values - predictions
    valid = np.isfinite(errors)
    if not np.any(valid):
        raise InputDataError("No held-out observation could be predicted")

    with np.errstate(divide="ignore", invalid="ignore"):
        standardized = np.where(variances > 0, errors / np.sqrt(variances), np.nan)

    # Compute metrics
    e = errors[valid]
    mae = float(np.mean(np.abs(e)))
    rmse = float(np.sqrt(np.mean(e**2)))
    mean_error = float(np.mean(e))
    std_error = float(np.std(e))

    # R²
    ss_res = np.sum(e**2)
    ss_tot = np.sum((values[valid] - np.mean(values[valid])) ** 2)
    r2 = float(1.0 - (ss_res / ss_tot)) if ss_tot > 0 else 0.0

    return CrossValidationResult(
        predictions=predictions,
        variances=variances,
        errors=errors,
        standardized_errors=standardized,
        mae=mae,
        rmse=rmse,
        r2=r2,
        mean_error=mean_error,
        std_error=std_error,
        n_failed=int(np.sum(~valid)),
    )


def _holdout_covariates(dataset: SpatialDataset, trend, idx) -> Optional[np.ndarray]:
    if trend is None or not trend.covariates:
        return None
    return dataset.covariate_matrix(trend.covariates)[idx]


def leave_one_out_cross_validation(
    dataset: SpatialDataset,
    variogram_model: VariogramModel,
    trend: Optional[TrendCoefficients] = None,
    kriging_type: Optional[Literal["ordinary", "universal", "simple"]] = None,
) -> CrossValidationResult:
    """Perform leave-one-out cross-validation for kriging.

    For each observation, krige from all other observations and predict at
    that location.

    Args:
        dataset: Observations.
        variogram_model: Fitted variogram model.
        trend: Optional trend, passed to KrigingPredictor.
        kriging_type: Passed to KrigingPredictor.

    Returns:
        CrossValidationResult with metrics and predictions.
    """
    n_samples = dataset.n_samples

    if n_samples < 4:
        raise InputDataError(
            f"Need at least 4 samples for cross-validation, got {n_samples}"
        )

    predictions = np.full(n_samples, np.nan)
    variances = np.full(n_samples, np.nan)

    # Leave-one-out: predict each point using all others
    for i in range(n_samples):
        train_mask = np.ones(n_samples, dtype=bool)
        train_mask[i] = False

        predictor = KrigingPredictor(
            variogram_model,
            dataset.subset(train_mask),
            trend=trend,
            kriging_type=kriging_type,
        )
        result = predictor.predict(
            dataset.coordinates[i : i + 1],
            target_covariates=_holdout_covariates(dataset, trend, [i]),
        )[0]
        predictions[i] = result.prediction
        variances[i] = result.variance

    cv = _summarize(dataset.values, predictions, variances)
    logger.info(f"Leave-one-out cross-validation: {cv}")
    return cv


def k_fold_cross_validation(
    dataset: SpatialDataset,
    variogram_model: VariogramModel,
    n_folds: int = 5,
    trend: Optional[TrendCoefficients] = None,
    kriging_type: Optional[Literal["ordinary", "universal", "simple"]] = None,
    random_state: Optional[int] = None,
) -> CrossValidationResult:
    """Perform k-fold cross-validation for kriging.

    Splits data into k folds, krige from k-1 folds, predict on the
    remaining fold.

    Args:
        dataset: Observations.
        variogram_model: Fitted variogram model.
        n_folds: Number of folds (default: 5).
        trend: Optional trend, passed to KrigingPredictor.
        kriging_type: Passed to KrigingPredictor.
        random_state: Random seed for fold splitting.

    Returns:
        CrossValidationResult with metrics and predictions.
    """
    n_samples = dataset.n_samples

    if n_folds < 2 or n_samples < n_folds:
        raise InputDataError(
            f"Need at least {n_folds} samples for {n_folds}-fold CV, got {n_samples}"
        )

    predictions = np.full(n_samples, np.nan)
    variances = np.full(n_samples, np.nan)

    kf = KFold(n_splits=n_folds, shuffle=True, random_state=random_state)

    for train_idx, test_idx in kf.split(dataset.coordinates):
        predictor = KrigingPredictor(
            variogram_model,
            dataset.subset(train_idx),
            trend=trend,
            kriging_type=kriging_type,
        )
        results = predictor.predict(
            dataset.coordinates[test_idx],
            target_covariates=_holdout_covariates(dataset, trend, test_idx),
        )
        predictions[test_idx] = [r.prediction for r in results]
        variances[test_idx] = [r.variance for r in results]

    cv = _summarize(dataset.values, predictions, variances)
    logger.info(f"{n_folds}-fold cross-validation: {cv}")
    return cv
