"""Tests for OLS trend removal."""

import numpy as np
import pytest

from krigesmith.objects.dataset import SpatialDataset
from krigesmith.primitives.trend import (
    INTERCEPT,
    TrendCoefficients,
    build_design_matrix,
    fit_trend,
)
from krigesmith.utils.errors import InputDataError, SingularDesignError


@pytest.fixture
def linear_dataset():
    rng = np.random.default_rng(3)
    coordinates = rng.uniform(0.0, 50.0, size=(25, 2))
    a = rng.normal(size=25)
    b = rng.normal(size=25)
    values = 3.0 + 2.0 * a - 1.0 * b
    return SpatialDataset(
        coordinates=coordinates,
        values=values,
        covariates=np.column_stack([a, b]),
        covariate_names=("a", "b"),
    )


class TestFitTrend:
    """Tests for fit_trend."""

    def test_recovers_exact_coefficients(self, linear_dataset):
        fit = fit_trend(linear_dataset, ["a", "b"])

        assert fit.coefficients.names == (INTERCEPT, "a", "b")
        np.testing.assert_allclose(fit.coefficients.values, [3.0, 2.0, -1.0], atol=1e-10)
        np.testing.assert_allclose(fit.residuals, 0.0, atol=1e-10)
        assert fit.r_squared == pytest.approx(1.0)
        assert fit.rank == 3

    def test_residuals_sum_to_zero(self, trend_dataset):
        fit = fit_trend(trend_dataset, ["elevation"])
        assert abs(fit.residuals.sum()) < 1e-8
        np.testing.assert_allclose(fit.fitted + fit.residuals, trend_dataset.values)

    def test_intercept_only_is_mean(self, field_dataset):
        fit = fit_trend(field_dataset)
        assert fit.coefficients.covariates == ()
        assert fit.coefficients.values[0] == pytest.approx(field_dataset.values.mean())

    def test_residual_dataset(self, trend_dataset):
        fit = fit_trend(trend_dataset, ["elevation"])
        residual = fit.residual_dataset()
        np.testing.assert_array_equal(residual.coordinates, trend_dataset.coordinates)
        np.testing.assert_allclose(residual.values, fit.residuals)

    def test_collinear_covariates(self, linear_dataset):
        a = linear_dataset.covariate_matrix(["a"]).ravel()
        ds = SpatialDataset(
            coordinates=linear_dataset.coordinates,
            values=linear_dataset.values,
            covariates=np.column_stack([a, 2.0 * a]),
            covariate_names=("a", "a_doubled"),
        )
        with pytest.raises(SingularDesignError, match="rank"):
            fit_trend(ds, ["a", "a_doubled"])

    def test_constant_covariate_collides_with_intercept(self, linear_dataset):
        ds = SpatialDataset(
            coordinates=linear_dataset.coordinates,
            values=linear_dataset.values,
            covariates=np.full(linear_dataset.n_samples, 4.0),
            covariate_names=("constant",),
        )
        with pytest.raises(SingularDesignError):
            fit_trend(ds, ["constant"])

    def test_too_few_observations(self):
        ds = SpatialDataset(
            coordinates=[[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]],
            values=[1.0, 2.0, 3.0],
            covariates=[[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]],
            covariate_names=("a", "b"),
        )
        with pytest.raises(InputDataError, match="more observations"):
            fit_trend(ds, ["a", "b"])

    def test_unknown_covariate(self, linear_dataset):
        with pytest.raises(InputDataError):
            fit_trend(linear_dataset, ["c"])


class TestTrendCoefficients:
    """Tests for TrendCoefficients."""

    def test_predict(self, linear_dataset):
        coefficients = TrendCoefficients(names=("intercept", "a", "b"), values=[3.0, 2.0, -1.0])
        design = build_design_matrix(linear_dataset, ["a", "b"])
        np.testing.assert_allclose(coefficients.predict(design), linear_dataset.values)
        assert coefficients.as_dict() == {"intercept": 3.0, "a": 2.0, "b": -1.0}

    def test_intercept_must_come_first(self):
        with pytest.raises(ValueError):
            TrendCoefficients(names=("a", "intercept"), values=[1.0, 2.0])

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            TrendCoefficients(names=("intercept",), values=[1.0, 2.0])
