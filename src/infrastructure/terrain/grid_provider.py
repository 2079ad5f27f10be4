"""Offline elevation backend sampling a local DEM (TerrainGrid)."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from pathlib import Path

from domain.terrain.repositories import TerrainRepository
from domain.terrain.services import bilinear_interpolate, is_within_bounds
from domain.terrain.value_objects import ElevationSample, GeoPoint, TerrainGrid
from infrastructure.terrain.geotiff_adapter import GeoTiffTerrainAdapter

logger = logging.getLogger(__name__)


class GridElevationProvider:
    """Bilinear lookups in an in-memory TerrainGrid.

    Points outside the grid or touching NoData pixels yield NaN.
    """

    name = "dem"

    def __init__(self, grid: TerrainGrid) -> None:
        self.grid = grid

    @classmethod
    def from_file(
        cls, path: Path | str, repository: TerrainRepository | None = None
    ) -> "GridElevationProvider":
        repository = repository or GeoTiffTerrainAdapter()
        return cls(repository.load_dem(path))

    async def lookup(self, points: Sequence[GeoPoint]) -> list[ElevationSample]:
        samples = []
        outside = 0
        for p in points:
            if is_within_bounds(p, self.grid.bounds):
                elevation, _ = bilinear_interpolate(self.grid, p)
            else:
                outside += 1
                elevation = math.nan
            samples.append(ElevationSample(point=p, elevation_m=elevation))
        if outside:
            logger.debug("DEM lookup: %d of %d points outside grid", outside, len(points))
        return samples
