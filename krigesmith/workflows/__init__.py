"""Layer 3: Workflows - End-to-end estimation driven by configuration."""

from krigesmith.workflows.geostatistics import GeostatisticalFit, GeostatisticalModel

__all__ = ["GeostatisticalFit", "GeostatisticalModel"]
