"""Point observation containers.

Only numpy, pandas and scipy distance helpers live here; no fitting logic.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

import numpy as np
import pandas as pd
from scipy.spatial.distance import pdist, squareform

from krigesmith.utils.errors import InputDataError

MIN_OBSERVATIONS = 3


@dataclass(frozen=True)
class Coordinate:
    """A point (x, y) in a planar reference frame."""

    x: float
    y: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "x", float(self.x))
        object.__setattr__(self, "y", float(self.y))
        if not (np.isfinite(self.x) and np.isfinite(self.y)):
            raise InputDataError(f"Coordinate must be finite, got ({self.x}, {self.y})")


def _frozen(array: np.ndarray) -> np.ndarray:
    array = np.array(array, dtype=float, copy=True)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class SpatialDataset:
    """Ordered set of point observations with optional covariates.

    Attributes:
        coordinates: Observation locations (n_samples, 2).
        values: Observed values (n_samples,).
        covariates: Optional covariate table (n_samples, n_covariates).
        covariate_names: Names of the covariate columns, in column order.
    """

    coordinates: np.ndarray
    values: np.ndarray
    covariates: Optional[np.ndarray] = None
    covariate_names: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        """Validate shapes and copy arrays into read-only storage."""
        coordinates = np.asarray(self.coordinates, dtype=float)
        values = np.asarray(self.values, dtype=float).ravel()

        if coordinates.ndim != 2 or coordinates.shape[1] != 2:
            raise InputDataError(
                f"coordinates must have shape (n_samples, 2), got {coordinates.shape}",
                suggestion="Anisotropic or 3D coordinates are not supported.",
            )

        if len(coordinates) != len(values):
            raise InputDataError(
                f"Coordinates ({len(coordinates)}) and values ({len(values)}) "
                f"must have same length"
            )

        if len(values) < MIN_OBSERVATIONS:
            raise InputDataError(
                f"Need at least {MIN_OBSERVATIONS} observations, got {len(values)}"
            )

        if not np.all(np.isfinite(coordinates)) or not np.all(np.isfinite(values)):
            raise InputDataError(
                "coordinates and values must be finite",
                suggestion="Drop rows with missing values before building the dataset.",
            )

        object.__setattr__(self, "coordinates", _frozen(coordinates))
        object.__setattr__(self, "values", _frozen(values))

        names = tuple(str(name) for name in self.covariate_names)
        if self.covariates is None:
            if names:
                raise InputDataError("covariate_names given without covariates")
            object.__setattr__(self, "covariate_names", ())
            return

        covariates = np.asarray(self.covariates, dtype=float)
        if covariates.ndim == 1:
            covariates = covariates.reshape(-1, 1)
        if covariates.shape[0] != len(values):
            raise InputDataError(
                f"covariates have {covariates.shape[0]} rows, expected {len(values)}"
            )
        if not names:
            names = tuple(f"x{k}" for k in range(covariates.shape[1]))
        if len(names) != covariates.shape[1]:
            raise InputDataError(
                f"{len(names)} covariate names for {covariates.shape[1]} columns"
            )
        if len(set(names)) != len(names):
            raise InputDataError(f"covariate names must be unique, got {names}")
        if "intercept" in names:
            raise InputDataError(
                "'intercept' is reserved for the implicit constant column"
            )
        if not np.all(np.isfinite(covariates)):
            raise InputDataError("covariates must be finite")

        object.__setattr__(self, "covariates", _frozen(covariates))
        object.__setattr__(self, "covariate_names", names)

    def __len__(self) -> int:
        return len(self.values)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"SpatialDataset(n_samples={self.n_samples}, "
            f"covariates={list(self.covariate_names)})"
        )

    @property
    def n_samples(self) -> int:
        return len(self.values)

    @classmethod
    def from_records(
        cls,
        records: Iterable[Sequence],
        covariate_names: Sequence[str] = (),
    ) -> "SpatialDataset":
        """Build a dataset from ``(x, y, value[, covariates])`` records.

        Args:
            records: Iterable of tuples. The optional fourth item is a
                sequence of covariate values for that observation.
            covariate_names: Names for the covariate vector entries.

        Returns:
            SpatialDataset in record order.
        """
        coords, values, covs = [], [], []
        for record in records:
            if len(record) not in (3, 4):
                raise InputDataError(
                    f"Records must be (x, y, value[, covariates]), got {record!r}"
                )
            coords.append((record[0], record[1]))
            values.append(record[2])
            if len(record) == 4 and record[3] is not None:
                covs.append(np.atleast_1d(np.asarray(record[3], dtype=float)))

        if covs and len(covs) != len(values):
            raise InputDataError("Either every record or none must carry covariates")

        return cls(
            coordinates=np.asarray(coords, dtype=float).reshape(-1, 2),
            values=np.asarray(values, dtype=float),
            covariates=np.vstack(covs) if covs else None,
            covariate_names=tuple(covariate_names) if covs else (),
        )

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        x_col: str,
        y_col: str,
        value_col: str,
        covariate_cols: Optional[Sequence[str]] = None,
    ) -> "SpatialDataset":
        """Build a dataset from named DataFrame columns.

        Raises:
            InputDataError: If a column is missing or not numeric.
        """
        columns = [x_col, y_col, value_col] + list(covariate_cols or [])
        missing = [col for col in columns if col not in df.columns]
        if missing:
            raise InputDataError(f"Missing columns: {missing}")

        try:
            numeric = df[columns].apply(pd.to_numeric, errors="raise")
        except (TypeError, ValueError) as e:
            raise InputDataError(f"Non-numeric data in columns {columns}: {e}") from e

        covariates = None
        if covariate_cols:
            covariates = numeric[list(covariate_cols)].to_numpy(dtype=float)

        return cls(
            coordinates=numeric[[x_col, y_col]].to_numpy(dtype=float),
            values=numeric[value_col].to_numpy(dtype=float),
            covariates=covariates,
            covariate_names=tuple(covariate_cols or ()),
        )

    def with_values(self, values: np.ndarray) -> "SpatialDataset":
        """Same locations and covariates, different observed values.

        Used to analyse the spatial structure of trend residuals.
        """
        return SpatialDataset(
            coordinates=self.coordinates,
            values=values,
            covariates=self.covariates,
            covariate_names=self.covariate_names,
        )

    def subset(self, indices: np.ndarray) -> "SpatialDataset":
        """Dataset restricted to ``indices`` (integer or boolean mask)."""
        return SpatialDataset(
            coordinates=self.coordinates[indices],
            values=self.values[indices],
            covariates=None if self.covariates is None else self.covariates[indices],
            covariate_names=self.covariate_names,
        )

    def covariate_matrix(self, names: Optional[Sequence[str]] = None) -> np.ndarray:
        """Covariate columns in the order given by ``names``.

        Returns an (n_samples, 0) array when no names are requested.
        """
        if not names:
            return np.empty((self.n_samples, 0))
        unknown = [name for name in names if name not in self.covariate_names]
        if unknown:
            raise InputDataError(
                f"Unknown covariates {unknown}",
                suggestion=f"Available covariates: {list(self.covariate_names)}",
            )
        idx = [self.covariate_names.index(name) for name in names]
        return np.asarray(self.covariates)[:, idx]

    def pairwise_distances(self) -> np.ndarray:
        """Full (n_samples, n_samples) Euclidean distance matrix."""
        return squareform(pdist(self.coordinates))

    def max_separation(self) -> float:
        return float(pdist(self.coordinates).max())

    def has_coincident_points(self) -> bool:
        """True when two distinct observations share a location."""
        return bool(np.any(pdist(self.coordinates) == 0.0))


def as_coordinate_array(targets) -> np.ndarray:
    """Normalize prediction targets to an (m, 2) float array.

    Accepts a sequence of Coordinate, an array-like of (x, y) pairs or a
    DataFrame with ``x`` and ``y`` columns.
    """
    if isinstance(targets, pd.DataFrame):
        if not {"x", "y"} <= set(targets.columns):
            raise InputDataError("Target DataFrame must have 'x' and 'y' columns")
        array = targets[["x", "y"]].to_numpy(dtype=float)
    else:
        items = list(targets)
        if items and all(isinstance(item, Coordinate) for item in items):
            array = np.array([(c.x, c.y) for c in items], dtype=float)
        else:
            array = np.asarray(items, dtype=float)
    if array.size == 0:
        return np.empty((0, 2))
    if array.ndim == 1 and array.shape[0] == 2:
        array = array.reshape(1, 2)
    if array.ndim != 2 or array.shape[1] != 2:
        raise InputDataError(
            f"Targets must be (x, y) pairs, got array of shape {array.shape}"
        )
    if not np.all(np.isfinite(array)):
        raise InputDataError("Target coordinates must be finite")
    return array
