"""Tests for variogram models and the experimental variogram."""

import numpy as np
import pytest

from krigesmith.objects.dataset import SpatialDataset
from krigesmith.primitives.variogram import (
    COMPACT_SUPPORT_MODELS,
    VARIOGRAM_MODELS,
    EmpiricalVariogram,
    VariogramModel,
    compute_experimental_variogram,
    predict_variogram,
)
from krigesmith.utils.errors import InputDataError, ParameterError


class TestVariogramModel:
    """Tests for VariogramModel."""

    @pytest.mark.parametrize("model_type", list(VARIOGRAM_MODELS))
    def test_semivariance_at_zero_is_nugget(self, model_type):
        model = VariogramModel(model_type, nugget=0.3, partial_sill=1.2, range_param=10.0)
        assert float(model.semivariance(0.0)) == 0.3

    @pytest.mark.parametrize("model_type", list(VARIOGRAM_MODELS))
    def test_semivariance_approaches_sill(self, model_type):
        model = VariogramModel(model_type, nugget=0.3, partial_sill=1.2, range_param=10.0)
        assert model.sill == pytest.approx(1.5)
        assert float(model.semivariance(1e4)) == pytest.approx(1.5)

    @pytest.mark.parametrize("model_type", COMPACT_SUPPORT_MODELS)
    def test_compact_models_reach_sill_at_range(self, model_type):
        model = VariogramModel(model_type, nugget=0.0, partial_sill=2.0, range_param=5.0)
        assert float(model.semivariance(5.0)) == pytest.approx(2.0, abs=1e-12)
        assert float(model.semivariance(7.5)) == 2.0

    @pytest.mark.parametrize("model_type", list(VARIOGRAM_MODELS))
    def test_semivariance_is_non_decreasing(self, model_type):
        model = VariogramModel(model_type, nugget=0.1, partial_sill=1.0, range_param=8.0)
        gamma = model.semivariance(np.linspace(0.0, 30.0, 200))
        assert np.all(np.diff(gamma) >= -1e-12)

    def test_covariance_is_sill_minus_semivariance(self):
        model = VariogramModel("spherical", nugget=0.2, partial_sill=1.0, range_param=10.0)
        h = np.array([0.5, 3.0, 9.0, 20.0])
        np.testing.assert_allclose(model.covariance(h), model.sill - model.semivariance(h))

    def test_predict_variogram(self):
        model = VariogramModel("exponential", nugget=0.0, partial_sill=1.0, range_param=1.0)
        np.testing.assert_allclose(
            predict_variogram(model, np.array([0.0, 1.0])), [0.0, 1.0 - np.exp(-1.0)]
        )

    def test_invalid_model_type(self):
        with pytest.raises(ParameterError, match="model_type"):
            VariogramModel("linear", nugget=0.0, partial_sill=1.0, range_param=1.0)

    @pytest.mark.parametrize(
        "nugget, partial_sill, range_param",
        [(-0.1, 1.0, 1.0), (0.0, -1.0, 1.0), (0.0, 1.0, 0.0), (0.0, 1.0, np.inf)],
    )
    def test_invalid_parameters(self, nugget, partial_sill, range_param):
        with pytest.raises(ParameterError):
            VariogramModel("gaussian", nugget, partial_sill, range_param)


class TestExperimentalVariogram:
    """Tests for compute_experimental_variogram."""

    @pytest.fixture
    def line_dataset(self):
        return SpatialDataset(
            coordinates=[[0.0, 0.0], [1.0, 0.0], [10.0, 0.0], [11.0, 0.0]],
            values=[0.0, 1.0, 3.0, 5.0],
        )

    def test_known_bins(self, line_dataset):
        empirical = compute_experimental_variogram(line_dataset, n_lags=12, max_lag=12.0)

        # Pair distances are 1, 1, 9, 10, 10, 11; every other bin is empty
        assert len(empirical) == 4
        np.testing.assert_allclose(empirical.lags, [1.5, 9.5, 10.5, 11.5])
        np.testing.assert_array_equal(empirical.n_pairs, [2, 1, 2, 1])
        np.testing.assert_allclose(empirical.semivariances, [1.25, 2.0, 6.25, 12.5])

    def test_pair_count_with_full_cutoff(self, field_dataset):
        n = field_dataset.n_samples
        empirical = compute_experimental_variogram(
            field_dataset, n_lags=10, max_lag=field_dataset.max_separation()
        )
        assert int(empirical.n_pairs.sum()) == n * (n - 1) // 2

    def test_pair_at_cutoff_goes_to_last_bin(self, line_dataset):
        empirical = compute_experimental_variogram(line_dataset, n_lags=4, max_lag=11.0)
        assert int(empirical.n_pairs.sum()) == 6
        last = empirical.points[-1]
        assert last.upper == pytest.approx(11.0)
        assert last.n_pairs >= 1

    def test_default_max_lag_is_half_max_separation(self, field_dataset):
        empirical = compute_experimental_variogram(field_dataset)
        assert empirical.max_lag == pytest.approx(field_dataset.max_separation() / 2.0)
        assert empirical.n_lags == 15
        assert len(empirical) <= 15

    def test_lags_are_increasing(self, field_dataset):
        empirical = compute_experimental_variogram(field_dataset, n_lags=20)
        assert np.all(np.diff(empirical.lags) > 0)
        assert np.all(empirical.n_pairs > 0)

    def test_cressie_hawkins_estimator(self, line_dataset):
        empirical = compute_experimental_variogram(
            line_dataset, n_lags=12, max_lag=12.0, estimator="cressie_hawkins"
        )
        # Single pair with |diff| = 2: 0.5 * 2^2 / (0.457 + 0.494 + 0.045)
        assert empirical.semivariances[1] == pytest.approx(2.0 / 0.996)
        assert empirical.estimator == "cressie_hawkins"

    def test_invalid_estimator(self, line_dataset):
        with pytest.raises(ParameterError, match="estimator"):
            compute_experimental_variogram(line_dataset, estimator="madogram")

    def test_invalid_lag_settings(self, line_dataset):
        with pytest.raises(ParameterError):
            compute_experimental_variogram(line_dataset, n_lags=0)
        with pytest.raises(ParameterError):
            compute_experimental_variogram(line_dataset, max_lag=-1.0)

    def test_all_points_coincident(self):
        ds = SpatialDataset(coordinates=np.zeros((3, 2)), values=[1.0, 2.0, 3.0])
        with pytest.raises(InputDataError):
            compute_experimental_variogram(ds)

    def test_to_frame(self, field_dataset):
        empirical = compute_experimental_variogram(field_dataset, n_lags=8)
        frame = empirical.to_frame()
        assert list(frame.columns) == ["lag", "semivariance", "n_pairs", "lower", "upper"]
        assert len(frame) == len(empirical)

    def test_empty_variogram(self):
        empirical = EmpiricalVariogram(points=(), max_lag=1.0, n_lags=5)
        assert len(empirical) == 0
        assert empirical.lags.shape == (0,)
