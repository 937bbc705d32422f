"""Parametric variogram fitting.

Two independent modes:

- Weighted least squares on an experimental variogram
  (``fit_variogram_wls``), solved with scipy's bounded trust region
  reflective least squares.
- Gaussian maximum likelihood on the raw observations
  (``fit_variogram_mle``), with trend coefficients profiled out by
  generalized least squares at every iterate.

Initial parameter guesses are required in both modes; they decide which local
optimum is found.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Literal, Optional, Sequence

import numpy as np
from scipy.linalg import cho_solve
from scipy.optimize import least_squares, minimize

from krigesmith.objects.dataset import SpatialDataset
from krigesmith.primitives._linalg import cholesky_factor, log_determinant
from krigesmith.primitives.trend import (
    TrendCoefficients,
    build_design_matrix,
    check_design,
    design_column_names,
)
from krigesmith.primitives.variogram import (
    VARIOGRAM_MODELS,
    EmpiricalVariogram,
    VariogramModel,
)
from krigesmith.utils.errors import (
    ConvergenceFailure,
    InputDataError,
    NonPositiveDefiniteError,
    raise_parameter_error,
)

logger = logging.getLogger(__name__)

LOG_2PI = float(np.log(2.0 * np.pi))

# Objective returned for rejected trial parameters before any valid one
REJECTED_OBJECTIVE = 1e100


@dataclass(frozen=True)
class InitialGuess:
    """Starting point for variogram fitting.

    When the nugget is fixed, ``nugget`` is the value it is held at.
    """

    nugget: float
    partial_sill: float
    range_param: float

    def __post_init__(self) -> None:
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

    def free_parameters(self, fix_nugget: bool) -> np.ndarray:
        if fix_nugget:
            return np.array([self.partial_sill, self.range_param])
        return np.array([self.nugget, self.partial_sill, self.range_param])


@dataclass(frozen=True, eq=False)
class VariogramFitResult:
    """Fitted variogram model and fit diagnostics.

    Attributes:
        model: Fitted VariogramModel.
        method: 'wls', 'ml' or 'reml'.
        trend: GLS trend coefficients (likelihood fits only).
        objective: Final weighted sum of squares (WLS) or negative
            log-likelihood (ML/REML).
        log_likelihood: Maximized log-likelihood (likelihood fits only).
        n_evaluations: Objective evaluations used by the optimizer.
        n_rejected: Trial parameters rejected because the covariance matrix
            was not positive definite.
        converged: Whether the optimizer met its tolerance.
        r_squared: Goodness of fit to the experimental variogram (WLS only).
        message: Optimizer termination message.
    """

    model: VariogramModel
    method: str
    trend: Optional[TrendCoefficients] = None
    objective: float = float("nan")
    log_likelihood: Optional[float] = None
    n_evaluations: int = 0
    n_rejected: int = 0
    converged: bool = True
    r_squared: Optional[float] = None
    message: str = ""

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"VariogramFitResult(method={self.method}, model={self.model!r}, "
            f"converged={self.converged})"
        )


def _unpack(
    x: np.ndarray, initial: InitialGuess, fix_nugget: bool
) -> tuple[float, float, float]:
    if fix_nugget:
        return initial.nugget, float(x[0]), float(x[1])
    return float(x[0]), float(x[1]), float(x[2])


def _validate_model_type(model_type: str) -> None:
    if model_type not in VARIOGRAM_MODELS:
        raise_parameter_error(
            "model_type", model_type, valid_values=list(VARIOGRAM_MODELS)
        )


# WLS weighting schemes: (n_pairs, lags, model semivariance) -> weights
def _uniform_weights(n_pairs, lags, gamma_model):
    return np.ones_like(lags, dtype=float)


def _npairs_weights(n_pairs, lags, gamma_model):
    return n_pairs.astype(float)


def _cressie_weights(n_pairs, lags, gamma_model):
    return n_pairs / gamma_model**2


def _npairs_over_lag_squared_weights(n_pairs, lags, gamma_model):
    return n_pairs / lags**2


WLS_WEIGHTING: dict[str, Callable[[np.ndarray, np.ndarray, np.ndarray], np.ndarray]] = {
    "uniform": _uniform_weights,
    "npairs": _npairs_weights,
    "cressie": _cressie_weights,
    "npairs_over_lag_squared": _npairs_over_lag_squared_weights,
}


def fit_variogram_wls(
    empirical: EmpiricalVariogram,
    model_type: str,
    initial: InitialGuess,
    *,
    fix_nugget: bool = False,
    weighting: str = "cressie",
    max_nfev: Optional[int] = None,
) -> VariogramFitResult:
    """Fit a variogram model to an experimental variogram by weighted least squares.

    Minimizes ``sum w_i (gamma_emp(h_i) - gamma_model(h_i))^2`` subject to
    ``nugget >= 0``, ``partial_sill >= 0`` and ``range_param > 0``. The
    Cressie weights ``n_i / gamma_model(h_i)^2`` are re-evaluated at every
    iterate.

    Args:
        empirical: Experimental variogram.
        model_type: Variogram family.
        initial: Starting parameters (required).
        fix_nugget: Hold the nugget at ``initial.nugget`` instead of fitting it.
        weighting: One of WLS_WEIGHTING.
        max_nfev: Evaluation budget (scipy default when None).

    Returns:
        VariogramFitResult with ``method='wls'``.

    Raises:
        InputDataError: If too few bins are available.
        ConvergenceFailure: If the evaluation budget is exhausted.
    """
    _validate_model_type(model_type)
    if weighting not in WLS_WEIGHTING:
        raise_parameter_error("weighting", weighting, valid_values=list(WLS_WEIGHTING))

    lags = empirical.lags
    gamma = empirical.semivariances
    n_pairs = empirical.n_pairs

    if len(lags) == 0 or not np.any(n_pairs >= 2):
        raise InputDataError(
            "Variogram fit is undefined: no bin contains at least 2 pairs",
            suggestion="Increase max_lag or reduce n_lags.",
        )

    x0 = initial.free_parameters(fix_nugget)
    if len(lags) < len(x0):
        raise InputDataError(
            f"Need at least {len(x0)} non-empty bins to fit {len(x0)} parameters, "
            f"got {len(lags)}"
        )

    if weighting == "npairs_over_lag_squared" and np.any(lags <= 0):
        raise InputDataError("Lag distances must be positive for inverse-lag weights")

    correlation = VARIOGRAM_MODELS[model_type]
    weight_fn = WLS_WEIGHTING[weighting]
    gamma_floor = np.finfo(float).eps * max(float(np.max(np.abs(gamma))), 1.0)

    range_floor = 1e-9 * float(np.max(lags))
    lower = np.array([0.0, range_floor]) if fix_nugget else np.array([0.0, 0.0, range_floor])
    upper = np.full_like(lower, np.inf)
    x0 = np.clip(x0, lower, upper)

    def model_gamma(x: np.ndarray) -> np.ndarray:
        nugget, partial_sill, range_param = _unpack(x, initial, fix_nugget)
        return nugget + partial_sill * (1.0 - correlation(lags, range_param))

    def residuals(x: np.ndarray) -> np.ndarray:
        gamma_model = model_gamma(x)
        weights = weight_fn(n_pairs, lags, np.maximum(gamma_model, gamma_floor))
        return np.sqrt(weights) * (gamma - gamma_model)

    result = least_squares(
        residuals,
        x0,
        bounds=(lower, upper),
        method="trf",
        x_scale="jac",
        max_nfev=max_nfev,
    )

    nugget, partial_sill, range_param = _unpack(result.x, initial, fix_nugget)
    model = VariogramModel(
        model_type=model_type,
        nugget=max(nugget, 0.0),
        partial_sill=max(partial_sill, 0.0),
        range_param=range_param,
    )

    # Compute R²
    predicted = model.semivariance(lags)
    ss_res = np.sum((gamma - predicted) ** 2)
    ss_tot = np.sum((gamma - np.mean(gamma)) ** 2)
    r_squared = float(1 - (ss_res / ss_tot)) if ss_tot > 0 else 0.0

    fit = VariogramFitResult(
        model=model,
        method="wls",
        objective=float(np.sum(result.fun**2)),
        n_evaluations=int(result.nfev),
        converged=bool(result.success and result.status > 0),
        r_squared=r_squared,
        message=str(result.message),
    )

    if not fit.converged:
        raise ConvergenceFailure(
            f"WLS variogram fit did not converge: {result.message}",
            best_result=fit,
            suggestion="Try a different initial guess or a larger max_nfev.",
        )

    logger.info(
        f"Fitted {model} by WLS ({weighting} weights, "
        f"{'fixed' if fix_nugget else 'free'} nugget, R²={r_squared:.4f})"
    )
    return fit


def covariance_matrix(model: VariogramModel, distances: np.ndarray) -> np.ndarray:
    """Covariance among observations from a variogram model.

    ``Sigma[i, j] = partial_sill * rho(d_ij) + nugget * [i == j]``, i.e. the
    sill on the diagonal and sill minus semivariance elsewhere.
    """
    sigma = model.covariance(distances)
    sigma[np.diag_indices_from(sigma)] += model.nugget
    return sigma


def _profile_log_likelihood(
    sigma: np.ndarray,
    design: np.ndarray,
    values: np.ndarray,
    likelihood: str,
) -> tuple[float, np.ndarray]:
    """Gaussian log-likelihood with the trend profiled out by GLS."""
    factor = cholesky_factor(sigma)

    sinv_x = cho_solve(factor, design, check_finite=False)
    sinv_y = cho_solve(factor, values, check_finite=False)
    normal_matrix = design.T @ sinv_x
    try:
        beta = np.linalg.solve(normal_matrix, design.T @ sinv_y)
    except np.linalg.LinAlgError as e:
        raise NonPositiveDefiniteError(f"GLS normal matrix is singular: {e}") from e

    residual = values - design @ beta
    quadratic = float(residual @ cho_solve(factor, residual, check_finite=False))
    n, p = design.shape

    if likelihood == "reml":
        sign, log_det_normal = np.linalg.slogdet(normal_matrix)
        if sign <= 0:
            raise NonPositiveDefiniteError("GLS normal matrix is not positive definite")
        log_lik = -0.5 * (
            log_determinant(factor) + log_det_normal + quadratic + (n - p) * LOG_2PI
        )
    else:
        log_lik = -0.5 * (log_determinant(factor) + quadratic + n * LOG_2PI)

    return float(log_lik), beta


def gaussian_log_likelihood(
    dataset: SpatialDataset,
    model: VariogramModel,
    covariates: Optional[Sequence[str]] = None,
    likelihood: Literal["ml", "reml"] = "ml",
) -> tuple[float, TrendCoefficients]:
    """Log-likelihood of a dataset under a variogram model.

    The trend (intercept plus ``covariates``) is profiled out by GLS.

    Returns:
        Tuple of (log_likelihood, GLS trend coefficients).

    Raises:
        NonPositiveDefiniteError: If the covariance matrix is not positive
            definite for this model.
    """
    if likelihood not in ("ml", "reml"):
        raise_parameter_error("likelihood", likelihood, valid_values=["ml", "reml"])
    design = build_design_matrix(dataset, covariates)
    sigma = covariance_matrix(model, dataset.pairwise_distances())
    log_lik, beta = _profile_log_likelihood(sigma, design, dataset.values, likelihood)
    return log_lik, TrendCoefficients(names=design_column_names(covariates), values=beta)


def fit_variogram_mle(
    dataset: SpatialDataset,
    model_type: str,
    initial: InitialGuess,
    *,
    fix_nugget: bool = False,
    covariates: Optional[Sequence[str]] = None,
    likelihood: Literal["ml", "reml"] = "ml",
    max_iter: int = 5000,
    xatol: float = 1e-6,
    fatol: float = 1e-8,
) -> VariogramFitResult:
    """Fit a variogram model to raw observations by maximum likelihood.

    The negative log-likelihood is minimized with bounded Nelder-Mead in
    coordinates scaled by the initial guess. Trial parameters whose
    covariance matrix fails the Cholesky factorization are rejected and the
    search continues.

    Args:
        dataset: Observations (raw values, not residuals: the trend is
            estimated jointly through ``covariates``).
        model_type: Variogram family.
        initial: Starting parameters (required).
        fix_nugget: Hold the nugget at ``initial.nugget`` instead of fitting it.
        covariates: Trend covariates; ``None`` estimates a constant mean.
        likelihood: 'ml' or restricted likelihood 'reml'.
        max_iter: Optimizer iteration budget.
        xatol: Absolute parameter tolerance in scaled coordinates.
        fatol: Absolute log-likelihood tolerance.

    Returns:
        VariogramFitResult with the GLS trend coefficients.

    Raises:
        SingularDesignError: If the trend design is rank deficient.
        NonPositiveDefiniteError: If every trial covariance was rejected.
        ConvergenceFailure: If the optimizer stops without converging.
    """
    _validate_model_type(model_type)
    if likelihood not in ("ml", "reml"):
        raise_parameter_error("likelihood", likelihood, valid_values=["ml", "reml"])

    design = build_design_matrix(dataset, covariates)
    check_design(design)
    names = design_column_names(covariates)
    values = dataset.values
    distances = dataset.pairwise_distances()

    x0 = initial.free_parameters(fix_nugget)
    variance_scale = max(
        initial.nugget + initial.partial_sill, float(np.var(values)), np.finfo(float).tiny
    )
    scale = np.where(x0 > 0, x0, 0.1 * variance_scale)

    range_floor = 1e-9 * max(dataset.max_separation(), 1.0)
    lower = np.array([0.0, range_floor]) if fix_nugget else np.array([0.0, 0.0, range_floor])
    z0 = np.maximum(x0, lower) / scale
    bounds = [(lo / s, None) for lo, s in zip(lower, scale)]
    initial_simplex = np.vstack([z0] + [z0 + 0.25 * e for e in np.eye(len(z0))])

    state = {"evaluations": 0, "rejected": 0, "best": None, "worst": None}

    def rejection_penalty() -> float:
        # Finite, and worse than any objective seen so far
        worst = state["worst"]
        if worst is None:
            return REJECTED_OBJECTIVE
        return worst + max(abs(worst), 1.0)

    def objective(z: np.ndarray) -> float:
        state["evaluations"] += 1
        nugget, partial_sill, range_param = _unpack(z * scale, initial, fix_nugget)
        try:
            model = VariogramModel(
                model_type=model_type,
                nugget=max(nugget, 0.0),
                partial_sill=max(partial_sill, 0.0),
                range_param=max(range_param, range_floor),
            )
            sigma = covariance_matrix(model, distances)
            log_lik, beta = _profile_log_likelihood(sigma, design, values, likelihood)
        except NonPositiveDefiniteError as e:
            state["rejected"] += 1
            logger.debug(f"Rejected trial parameters {z * scale}: {e.message}")
            return rejection_penalty()

        if not np.isfinite(log_lik):
            state["rejected"] += 1
            return rejection_penalty()

        best = state["best"]
        if best is None or log_lik > best[0]:
            state["best"] = (log_lik, model, beta)
        if state["worst"] is None or -log_lik > state["worst"]:
            state["worst"] = -log_lik
        return -log_lik

    result = minimize(
        objective,
        z0,
        method="Nelder-Mead",
        bounds=bounds,
        options={
            "maxiter": max_iter,
            "maxfev": 4 * max_iter,
            "xatol": xatol,
            "fatol": fatol,
            "initial_simplex": initial_simplex,
        },
    )

    if state["best"] is None:
        raise NonPositiveDefiniteError(
            f"Covariance matrix was not positive definite at any of "
            f"{state['evaluations']} trial parameter sets",
            suggestion="Use a positive nugget or a different initial guess.",
            details={"n_evaluations": state["evaluations"]},
        )

    log_lik, model, beta = state["best"]
    fit = VariogramFitResult(
        model=model,
        method=likelihood,
        trend=TrendCoefficients(names=names, values=beta),
        objective=-log_lik,
        log_likelihood=log_lik,
        n_evaluations=state["evaluations"],
        n_rejected=state["rejected"],
        converged=bool(result.success),
        message=str(result.message),
    )

    if not fit.converged:
        raise ConvergenceFailure(
            f"Likelihood variogram fit did not converge: {result.message}",
            best_result=fit,
            suggestion="Try a different initial guess or a larger max_iter.",
            details={"n_rejected": state["rejected"]},
        )

    logger.info(
        f"Fitted {model} by {likelihood.upper()} (log-likelihood={log_lik:.4f}, "
        f"{state['rejected']} rejected trial steps)"
    )
    return fit
