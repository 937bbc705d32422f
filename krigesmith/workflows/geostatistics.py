"""Unified geostatistical workflow interface.

Runs the complete estimation chain from a configuration:
- Trend removal by OLS (when covariates are configured)
- Experimental variogram of the residuals
- Variogram fitting by WLS or maximum likelihood
- Kriging prediction and cross-validation
"""

import logging
from dataclasses import dataclass
from typing import Any, Literal, Mapping, Optional, Union

from krigesmith.config import KrigingConfig
from krigesmith.objects.dataset import SpatialDataset
from krigesmith.primitives.kriging import KrigingPredictor, KrigingResult
from krigesmith.primitives.kriging_cv import (
    CrossValidationResult,
    k_fold_cross_validation,
    leave_one_out_cross_validation,
)
from krigesmith.primitives.trend import TrendCoefficients, TrendFit, fit_trend
from krigesmith.primitives.variogram import (
    EmpiricalVariogram,
    VariogramModel,
    compute_experimental_variogram,
)
from krigesmith.primitives.variogram_fit import (
    VariogramFitResult,
    fit_variogram_mle,
    fit_variogram_wls,
)
from krigesmith.utils.errors import raise_parameter_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class GeostatisticalFit:
    """Everything produced by one workflow fit.

    Attributes:
        config: Configuration the fit was run with.
        dataset: Training observations.
        trend_fit: OLS trend fit (when covariates are configured).
        empirical: Experimental variogram of the (residual) values.
        variogram_fit: Variogram fitting result.
        predictor: Kriging predictor built from the fitted model.
    """

    config: KrigingConfig
    dataset: SpatialDataset
    trend_fit: Optional[TrendFit]
    empirical: EmpiricalVariogram
    variogram_fit: VariogramFitResult
    predictor: KrigingPredictor

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"GeostatisticalFit(method={self.variogram_fit.method}, "
            f"model={self.variogram_model!r}, trend={self.trend!r})"
        )

    @property
    def variogram_model(self) -> VariogramModel:
        return self.variogram_fit.model

    @property
    def trend(self) -> Optional[TrendCoefficients]:
        return self.predictor.trend

    def predict(self, targets, target_covariates=None) -> list[KrigingResult]:
        return self.predictor.predict(
            targets, target_covariates=target_covariates, n_jobs=self.config.n_jobs
        )

    def cross_validate(
        self,
        method: Literal["loo", "kfold"] = "loo",
        n_folds: int = 5,
        random_state: Optional[int] = None,
    ) -> CrossValidationResult:
        """Cross-validate the fitted model on the training data."""
        if method == "loo":
            return leave_one_out_cross_validation(
                self.dataset, self.variogram_model, trend=self.trend
            )
        if method == "kfold":
            return k_fold_cross_validation(
                self.dataset,
                self.variogram_model,
                n_folds=n_folds,
                trend=self.trend,
                random_state=random_state,
            )
        raise_parameter_error("method", method, valid_values=["loo", "kfold"])


class GeostatisticalModel:
    """Unified interface for geostatistical modeling workflows.

    Example:
        >>> from krigesmith import SpatialDataset
        >>> from krigesmith.workflows.geostatistics import GeostatisticalModel
        >>>
        >>> model = GeostatisticalModel(
        ...     dataset,
        ...     {"fitting": {"initial": {"nugget": 0.1, "partial_sill": 1.0, "range": 50.0}}},
        ... )
        >>> fitted = model.fit()
        >>> results = fitted.predict(grid_points)
    """

    def __init__(
        self,
        dataset: SpatialDataset,
        config: Union[KrigingConfig, Mapping[str, Any]],
    ):
        """Initialize geostatistical model.

        Args:
            dataset: Observations.
            config: KrigingConfig or a config mapping (merged over defaults).
        """
        self.dataset = dataset
        self.config = config if isinstance(config, KrigingConfig) else KrigingConfig.from_dict(config)

    def fit(self) -> GeostatisticalFit:
        """Run trend removal, variogram analysis, fitting and kriging setup.

        Each call returns a fresh GeostatisticalFit; the model itself is not
        modified.
        """
        cfg = self.config
        covariates = list(cfg.covariates)

        trend_fit = None
        analysis_dataset = self.dataset
        if covariates:
            trend_fit = fit_trend(self.dataset, covariates)
            analysis_dataset = trend_fit.residual_dataset()

        empirical = compute_experimental_variogram(
            analysis_dataset,
            n_lags=cfg.n_lags,
            max_lag=cfg.max_lag,
            estimator=cfg.estimator,
        )

        if cfg.method == "wls":
            variogram_fit = fit_variogram_wls(
                empirical,
                cfg.model_type,
                cfg.initial,
                fix_nugget=cfg.fix_nugget,
                weighting=cfg.weighting,
            )
            trend = trend_fit.coefficients if trend_fit is not None else None
        else:
            variogram_fit = fit_variogram_mle(
                self.dataset,
                cfg.model_type,
                cfg.initial,
                fix_nugget=cfg.fix_nugget,
                covariates=covariates or None,
                likelihood=cfg.likelihood,
            )
            trend = variogram_fit.trend if covariates else None

        predictor = KrigingPredictor(
            variogram_fit.model,
            self.dataset,
            trend=trend,
            condition_max=cfg.condition_max,
        )

        logger.info(
            f"Geostatistical fit complete: {variogram_fit.model!r}, "
            f"{predictor.kriging_type} kriging on {self.dataset.n_samples} samples"
        )

        return GeostatisticalFit(
            config=cfg,
            dataset=self.dataset,
            trend_fit=trend_fit,
            empirical=empirical,
            variogram_fit=variogram_fit,
            predictor=predictor,
        )
