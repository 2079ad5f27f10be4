"""Siting Bounded Context - High-Point Finder.

Coarse-to-fine scan of a map viewport for locally high terrain:
1) Coarse grid over the whole viewport; grid side grows slowly with zoom,
   so wide (low-zoom) viewports get fewer points per unit area
2) Refine a small grid around the highest coarse points, radius scaled by zoom
3) Merge and de-duplicate on rounded coordinates, keeping the higher value
4) One point per spatial cell (cell from viewport diagonal, 1.5-8 km), then
   fill any shortfall by greedy minimum-distance selection
"""

from __future__ import annotations

import logging
import math

from domain.siting.services import clamp, fetch_elevations, select_with_min_spacing
from domain.siting.value_objects import HighPoint, HighPointSearchConfig
from domain.terrain.repositories import ElevationProvider
from domain.terrain.services import (
    bounds_diagonal_m,
    grid_points,
    is_within_bounds,
    local_offset_m,
    offset_point,
)
from domain.terrain.value_objects import BoundingBox, ElevationSample, GeoPoint

logger = logging.getLogger(__name__)

MIN_ZOOM = 0
MAX_ZOOM = 22

MIN_COARSE_SIDE = 8
MAX_COARSE_SIDE = 20

REFINE_RADIUS_AT_ZOOM_10_M = 3000.0
MIN_REFINE_RADIUS_M = 100.0
MAX_REFINE_RADIUS_M = 10_000.0

# Viewport diagonal is split into about this many cells
CELLS_PER_DIAGONAL = 6.0

# Rounded-coordinate key for merging coarse and refined samples (~1 m)
DEDUP_PRECISION = 5


def coarse_grid_side(zoom: int) -> int:
    return int(clamp(zoom + 4, MIN_COARSE_SIDE, MAX_COARSE_SIDE))


def refine_radius_m(zoom: int) -> float:
    return clamp(
        REFINE_RADIUS_AT_ZOOM_10_M * 2.0 ** (10 - zoom),
        MIN_REFINE_RADIUS_M,
        MAX_REFINE_RADIUS_M,
    )


def cell_size_m(bounds: BoundingBox, config: HighPointSearchConfig) -> float:
    return clamp(
        bounds_diagonal_m(bounds) / CELLS_PER_DIAGONAL, config.min_cell_m, config.max_cell_m
    )


def _refine_points(
    seed: GeoPoint, radius_m: float, side: int, bounds: BoundingBox
) -> list[GeoPoint]:
    step = 2 * radius_m / (side - 1)
    points = []
    for r in range(side):
        for c in range(side):
            p = offset_point(seed, -radius_m + r * step, -radius_m + c * step)
            if is_within_bounds(p, bounds):
                points.append(p)
    return points


def _merge(samples: list[ElevationSample]) -> list[HighPoint]:
    best: dict[tuple[float, float], HighPoint] = {}
    for s in samples:
        if s.is_nodata:
            continue
        key = s.point.rounded_key(DEDUP_PRECISION)
        current = best.get(key)
        if current is None or s.elevation_m > current.elevation_m:
            best[key] = HighPoint(point=s.point, elevation_m=s.elevation_m)
    return sorted(best.values(), key=lambda h: h.elevation_m, reverse=True)


def select_by_cell(
    ranked: list[HighPoint],
    bounds: BoundingBox,
    cell_m: float,
    count: int,
) -> list[HighPoint]:
    """Keep the highest point of each cell; fill shortfall by spacing."""
    origin = bounds.south_west
    seen: set[tuple[int, int]] = set()
    picked: list[HighPoint] = []
    for h in ranked:
        north, east = local_offset_m(origin, h.point)
        cell = (math.floor(north / cell_m), math.floor(east / cell_m))
        if cell in seen:
            continue
        seen.add(cell)
        picked.append(h)
        if len(picked) >= count:
            return picked

    if len(picked) < count:
        picked = select_with_min_spacing(
            ranked, lambda h: h.point, cell_m / 2, count, selected=picked
        )
        picked.sort(key=lambda h: h.elevation_m, reverse=True)
    return picked


async def find_high_points(
    bounds: BoundingBox,
    zoom: int,
    provider: ElevationProvider,
    config: HighPointSearchConfig | None = None,
) -> list[HighPoint]:
    """Locate spatially spread high points within a viewport.

    Args:
        bounds: Viewport extent
        zoom: Web-map zoom level (0-22)
        provider: Elevation backend
        config: Search tuning; defaults to HighPointSearchConfig()

    Returns:
        Up to config.result_count points, elevation descending

    Raises:
        ValueError: zoom outside 0-22
        ElevationUnavailable: A batched lookup failed or timed out
    """
    if not (MIN_ZOOM <= zoom <= MAX_ZOOM):
        raise ValueError(f"zoom must be in [{MIN_ZOOM}, {MAX_ZOOM}], got {zoom}")
    config = config or HighPointSearchConfig()

    side = coarse_grid_side(zoom)
    coarse = await fetch_elevations(
        provider, grid_points(bounds, side, side), config.lookup_timeout_s
    )
    seeds = _merge(coarse)[: config.seed_count]

    radius = refine_radius_m(zoom)
    fine_points = [
        p for h in seeds for p in _refine_points(h.point, radius, config.refine_side, bounds)
    ]
    fine: list[ElevationSample] = []
    if fine_points:
        fine = await fetch_elevations(provider, fine_points, config.lookup_timeout_s)

    ranked = _merge(coarse + fine)
    result = select_by_cell(ranked, bounds, cell_size_m(bounds, config), config.result_count)
    logger.info(
        "High-point scan at zoom %d: %d coarse + %d refined samples, %d results",
        zoom,
        len(coarse),
        len(fine),
        len(result),
    )
    return result
