"""Infrastructure adapters for the terrain bounded context.

Elevation backends behind the ElevationProvider port (HTTP services, local
DEM), their composition (fallback chain, point cache) and DEM loading from
GeoTIFF files.
"""

from .cache import CachingElevationProvider
from .chain import FallbackElevationProvider
from .geotiff_adapter import GeoTiffTerrainAdapter
from .grid_provider import GridElevationProvider
from .http_providers import OpenElevationProvider, OpenTopoDataProvider

__all__ = [
    "CachingElevationProvider",
    "FallbackElevationProvider",
    "GeoTiffTerrainAdapter",
    "GridElevationProvider",
    "OpenElevationProvider",
    "OpenTopoDataProvider",
]
