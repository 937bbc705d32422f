"""Shared fixtures: seeded Gaussian random fields on scattered points."""

import numpy as np
import pytest

from krigesmith.objects.dataset import SpatialDataset
from krigesmith.primitives.variogram import VariogramModel
from krigesmith.primitives.variogram_fit import covariance_matrix

TRUE_MODEL = VariogramModel(
    model_type="exponential", nugget=0.1, partial_sill=1.0, range_param=15.0
)


def simulate_field(n_samples, model, seed, trend=None):
    """Draw one realization of a stationary Gaussian field at random points."""
    rng = np.random.default_rng(seed)
    coordinates = rng.uniform(0.0, 100.0, size=(n_samples, 2))
    elevation = rng.uniform(0.0, 10.0, size=n_samples)

    layout = SpatialDataset(coordinates=coordinates, values=np.zeros(n_samples))
    sigma = covariance_matrix(model, layout.pairwise_distances())
    chol = np.linalg.cholesky(sigma)
    field = chol @ rng.standard_normal(n_samples)

    if trend is not None:
        intercept, slope = trend
        field = field + intercept + slope * elevation

    return SpatialDataset(
        coordinates=coordinates,
        values=field,
        covariates=elevation.reshape(-1, 1),
        covariate_names=("elevation",),
    )


@pytest.fixture
def field_dataset():
    """Stationary field with mean 2.0, no trend."""
    dataset = simulate_field(60, TRUE_MODEL, seed=42)
    return dataset.with_values(dataset.values + 2.0)


@pytest.fixture
def trend_dataset():
    """Field with a linear trend in the 'elevation' covariate."""
    return simulate_field(60, TRUE_MODEL, seed=7, trend=(2.0, 0.5))


@pytest.fixture
def smooth_dataset():
    """Small noise-free dataset for exact interpolation checks."""
    rng = np.random.default_rng(0)
    coordinates = rng.uniform(0.0, 100.0, size=(30, 2))
    values = np.sin(coordinates[:, 0] / 20.0) + np.cos(coordinates[:, 1] / 30.0)
    return SpatialDataset(coordinates=coordinates, values=values)
