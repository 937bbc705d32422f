"""KrigeSmith: geostatistical estimation from irregular point observations.

Empirical semivariograms, variogram model fitting (weighted least squares
and maximum likelihood with an optional linear trend) and kriging prediction
with prediction variance.
"""

__version__ = "0.1.0"

from krigesmith.objects import Coordinate, SpatialDataset
from krigesmith.primitives import (
    EmpiricalVariogram,
    InitialGuess,
    KrigingPredictor,
    KrigingResult,
    TrendCoefficients,
    VariogramModel,
    compute_experimental_variogram,
    fit_trend,
    fit_variogram_mle,
    fit_variogram_wls,
)
from krigesmith.utils.errors import (
    ConvergenceFailure,
    InputDataError,
    KrigeSmithError,
    NonPositiveDefiniteError,
    ParameterError,
    SingularDesignError,
    SingularKrigingSystemError,
)

__all__ = [
    "__version__",
    "Coordinate",
    "SpatialDataset",
    "EmpiricalVariogram",
    "InitialGuess",
    "KrigingPredictor",
    "KrigingResult",
    "TrendCoefficients",
    "VariogramModel",
    "compute_experimental_variogram",
    "fit_trend",
    "fit_variogram_mle",
    "fit_variogram_wls",
    "KrigeSmithError",
    "InputDataError",
    "ParameterError",
    "SingularDesignError",
    "NonPositiveDefiniteError",
    "ConvergenceFailure",
    "SingularKrigingSystemError",
]
