"""Tests for point observation containers."""

import numpy as np
import pandas as pd
import pytest

from krigesmith.objects.dataset import Coordinate, SpatialDataset, as_coordinate_array
from krigesmith.utils.errors import InputDataError


class TestCoordinate:
    """Tests for Coordinate."""

    def test_values_are_floats(self):
        c = Coordinate(1, 2)
        assert c.x == 1.0
        assert isinstance(c.y, float)

    def test_rejects_non_finite(self):
        with pytest.raises(InputDataError):
            Coordinate(np.nan, 0.0)


class TestSpatialDataset:
    """Tests for SpatialDataset."""

    def test_basic_construction(self):
        ds = SpatialDataset(
            coordinates=[[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]],
            values=[1.0, 2.0, 3.0],
        )
        assert len(ds) == 3
        assert ds.n_samples == 3
        assert ds.covariates is None
        assert ds.covariate_names == ()

    def test_arrays_are_read_only(self):
        coords = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
        ds = SpatialDataset(coordinates=coords, values=[1.0, 2.0, 3.0])
        with pytest.raises(ValueError):
            ds.values[0] = 10.0
        # Caller's array is copied, not aliased
        coords[0, 0] = 5.0
        assert ds.coordinates[0, 0] == 0.0

    def test_too_few_observations(self):
        with pytest.raises(InputDataError, match="at least 3"):
            SpatialDataset(coordinates=[[0.0, 0.0], [1.0, 1.0]], values=[1.0, 2.0])

    def test_length_mismatch(self):
        with pytest.raises(InputDataError, match="same length"):
            SpatialDataset(
                coordinates=[[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]], values=[1.0, 2.0]
            )

    def test_three_dimensional_coordinates_rejected(self):
        with pytest.raises(InputDataError):
            SpatialDataset(coordinates=np.zeros((4, 3)), values=np.zeros(4))

    def test_nan_value_rejected(self):
        with pytest.raises(InputDataError, match="finite"):
            SpatialDataset(
                coordinates=[[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]],
                values=[1.0, np.nan, 3.0],
            )

    def test_covariates_default_names(self):
        ds = SpatialDataset(
            coordinates=np.zeros((4, 2)) + np.arange(4)[:, None],
            values=np.arange(4.0),
            covariates=np.ones((4, 2)),
        )
        assert ds.covariate_names == ("x0", "x1")

    def test_reserved_intercept_name(self):
        with pytest.raises(InputDataError, match="reserved"):
            SpatialDataset(
                coordinates=np.arange(8.0).reshape(4, 2),
                values=np.arange(4.0),
                covariates=np.ones(4),
                covariate_names=("intercept",),
            )

    def test_duplicate_covariate_names(self):
        with pytest.raises(InputDataError, match="unique"):
            SpatialDataset(
                coordinates=np.arange(8.0).reshape(4, 2),
                values=np.arange(4.0),
                covariates=np.ones((4, 2)),
                covariate_names=("a", "a"),
            )

    def test_from_records(self):
        ds = SpatialDataset.from_records(
            [(0.0, 0.0, 1.0, [5.0]), (1.0, 0.0, 2.0, [6.0]), (0.0, 1.0, 3.0, [7.0])],
            covariate_names=("elevation",),
        )
        assert ds.covariate_names == ("elevation",)
        np.testing.assert_array_equal(ds.covariate_matrix(["elevation"]).ravel(), [5, 6, 7])

    def test_from_records_mixed_covariates(self):
        with pytest.raises(InputDataError):
            SpatialDataset.from_records(
                [(0.0, 0.0, 1.0, [5.0]), (1.0, 0.0, 2.0), (0.0, 1.0, 3.0)]
            )

    def test_from_dataframe(self):
        df = pd.DataFrame(
            {
                "easting": [0.0, 10.0, 20.0, 30.0],
                "northing": [0.0, 5.0, 0.0, 5.0],
                "porosity": [0.1, 0.2, 0.15, 0.25],
                "depth": [100.0, 110.0, 120.0, 130.0],
            }
        )
        ds = SpatialDataset.from_dataframe(
            df, "easting", "northing", "porosity", covariate_cols=["depth"]
        )
        assert ds.n_samples == 4
        assert ds.covariate_names == ("depth",)
        np.testing.assert_allclose(ds.values, df["porosity"].to_numpy())

    def test_from_dataframe_missing_column(self):
        df = pd.DataFrame({"x": [0.0, 1.0, 2.0], "y": [0.0, 1.0, 2.0]})
        with pytest.raises(InputDataError, match="Missing columns"):
            SpatialDataset.from_dataframe(df, "x", "y", "value")

    def test_covariate_matrix_unknown_name(self, trend_dataset):
        with pytest.raises(InputDataError, match="Unknown covariates"):
            trend_dataset.covariate_matrix(["slope"])

    def test_covariate_matrix_empty(self, trend_dataset):
        assert trend_dataset.covariate_matrix(None).shape == (trend_dataset.n_samples, 0)

    def test_subset_and_with_values(self, trend_dataset):
        sub = trend_dataset.subset(np.arange(10))
        assert sub.n_samples == 10
        assert sub.covariate_names == trend_dataset.covariate_names

        shifted = trend_dataset.with_values(trend_dataset.values + 1.0)
        np.testing.assert_array_equal(shifted.coordinates, trend_dataset.coordinates)
        np.testing.assert_allclose(shifted.values - trend_dataset.values, 1.0)

    def test_distances(self):
        ds = SpatialDataset(
            coordinates=[[0.0, 0.0], [3.0, 4.0], [0.0, 4.0]], values=[1.0, 2.0, 3.0]
        )
        d = ds.pairwise_distances()
        assert d.shape == (3, 3)
        assert d[0, 1] == pytest.approx(5.0)
        assert ds.max_separation() == pytest.approx(5.0)
        assert not ds.has_coincident_points()

    def test_coincident_points(self):
        ds = SpatialDataset(
            coordinates=[[0.0, 0.0], [0.0, 0.0], [1.0, 1.0]], values=[1.0, 2.0, 3.0]
        )
        assert ds.has_coincident_points()


class TestAsCoordinateArray:
    """Tests for target normalization."""

    def test_coordinate_list(self):
        array = as_coordinate_array([Coordinate(1.0, 2.0), Coordinate(3.0, 4.0)])
        np.testing.assert_array_equal(array, [[1.0, 2.0], [3.0, 4.0]])

    def test_dataframe(self):
        df = pd.DataFrame({"x": [1.0], "y": [2.0], "other": [0.0]})
        assert as_coordinate_array(df).shape == (1, 2)

    def test_single_pair(self):
        assert as_coordinate_array(np.array([1.0, 2.0])).shape == (1, 2)

    def test_empty(self):
        assert as_coordinate_array([]).shape == (0, 2)

    def test_wrong_shape(self):
        with pytest.raises(InputDataError):
            as_coordinate_array(np.zeros((2, 3)))
