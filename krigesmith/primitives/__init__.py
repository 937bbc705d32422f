"""Layer 2: Primitives - Algorithm interfaces and pure operations.

Variogram analysis, trend fitting, variogram model fitting and kriging.
No file I/O or plotting.
"""

from krigesmith.primitives.kriging import (
    KrigingPredictor,
    KrigingResult,
    results_to_frame,
)
from krigesmith.primitives.kriging_cv import (
    CrossValidationResult,
    k_fold_cross_validation,
    leave_one_out_cross_validation,
)
from krigesmith.primitives.trend import (
    TrendCoefficients,
    TrendFit,
    build_design_matrix,
    fit_trend,
)
from krigesmith.primitives.variogram import (
    VARIOGRAM_MODELS,
    EmpiricalVariogram,
    EmpiricalVariogramPoint,
    VariogramModel,
    compute_experimental_variogram,
    predict_variogram,
)
from krigesmith.primitives.variogram_fit import (
    WLS_WEIGHTING,
    InitialGuess,
    VariogramFitResult,
    covariance_matrix,
    fit_variogram_mle,
    fit_variogram_wls,
    gaussian_log_likelihood,
)

__all__ = [
    "VARIOGRAM_MODELS",
    "WLS_WEIGHTING",
    "CrossValidationResult",
    "EmpiricalVariogram",
    "EmpiricalVariogramPoint",
    "InitialGuess",
    "KrigingPredictor",
    "KrigingResult",
    "TrendCoefficients",
    "TrendFit",
    "VariogramFitResult",
    "VariogramModel",
    "build_design_matrix",
    "compute_experimental_variogram",
    "covariance_matrix",
    "fit_trend",
    "fit_variogram_mle",
    "fit_variogram_wls",
    "gaussian_log_likelihood",
    "k_fold_cross_validation",
    "leave_one_out_cross_validation",
    "predict_variogram",
    "results_to_frame",
]
