"""Layer 1: Objects - Immutable data representations.

This layer contains only data structures. No fitting, no plotting.
"""

from krigesmith.objects.dataset import Coordinate, SpatialDataset, as_coordinate_array

__all__ = [
    "Coordinate",
    "SpatialDataset",
    "as_coordinate_array",
]
