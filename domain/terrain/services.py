"""Terrain Bounded Context - Domain Services.

Pure domain logic for geodesy and terrain profiles.
NO I/O operations - elevation lookups are implemented by infrastructure
adapters behind the ElevationProvider port.

Geodesy here is spherical (haversine, mean radius) and sampling is linear in
(lat, lon). Linear interpolation is not a true great-circle path; for links
under ~200 km the deviation is negligible and all reference values assume it.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from domain.terrain.errors import InvalidProfileError
from domain.terrain.value_objects import (
    MIN_PROFILE_SAMPLES,
    BoundingBox,
    GeoPoint,
    ProfileSample,
    TerrainGrid,
    TerrainProfile,
)
from shared.constants import EARTH_RADIUS_M, METERS_PER_DEGREE_LAT

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
# Floor for cos(lat) so longitude deltas stay finite near the poles
_MIN_COS_LAT = 1e-6


# ---------------------------------------------------------------------------
# Helper: Bounds Check
# ---------------------------------------------------------------------------
def is_within_bounds(point: GeoPoint, bounds: BoundingBox) -> bool:
    """Check if point is within bounds (inclusive)."""
    return (
        bounds.min_x <= point.longitude <= bounds.max_x
        and bounds.min_y <= point.latitude <= bounds.max_y
    )


# ---------------------------------------------------------------------------
# Great-circle distance and bearing
# ---------------------------------------------------------------------------
def haversine_distance(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two points in meters.

    Args:
        a: First point
        b: Second point

    Returns:
        Distance in meters on a sphere of radius EARTH_RADIUS_M
    """
    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    dphi = math.radians(b.latitude - a.latitude)
    dlmb = math.radians(b.longitude - a.longitude)
    s = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(s)))


def bearing(a: GeoPoint, b: GeoPoint) -> float:
    """Forward azimuth from a to b in degrees, normalized to [0, 360)."""
    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    dlmb = math.radians(b.longitude - a.longitude)
    y = math.sin(dlmb) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(dlmb)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


# ---------------------------------------------------------------------------
# Linear path interpolation
# ---------------------------------------------------------------------------
def interpolate_linear(a: GeoPoint, b: GeoPoint, t: float) -> GeoPoint:
    """Point at fraction t along the straight (lat, lon) segment a -> b.

    This is a linear approximation of the great circle, not a geodesic.
    """
    if t <= 0:
        return a
    if t >= 1:
        return b
    return GeoPoint(
        latitude=a.latitude + (b.latitude - a.latitude) * t,
        longitude=a.longitude + (b.longitude - a.longitude) * t,
    )


def interpolate_path(a: GeoPoint, b: GeoPoint, sample_count: int) -> list[GeoPoint]:
    """Return sample_count + 1 evenly spaced points from a to b inclusive.

    Endpoints are returned as the exact input objects so profile invariants
    (first point == start, last point == end) hold without float drift.
    """
    if sample_count < 1:
        raise InvalidProfileError(f"sample_count must be >= 1, got {sample_count}")
    return [interpolate_linear(a, b, i / sample_count) for i in range(sample_count + 1)]


# ---------------------------------------------------------------------------
# Local flat-Earth offsets
# ---------------------------------------------------------------------------
def meters_to_degree_deltas(latitude: float, meters: float) -> tuple[float, float]:
    """Convert a metric offset to (dLat, dLon) degrees at the given latitude.

    Flat-Earth approximation, valid for offsets up to tens of kilometers.
    """
    d_lat = meters / METERS_PER_DEGREE_LAT
    cos_lat = max(_MIN_COS_LAT, abs(math.cos(math.radians(latitude))))
    d_lon = meters / (METERS_PER_DEGREE_LAT * cos_lat)
    return d_lat, d_lon


def offset_point(point: GeoPoint, north_m: float, east_m: float) -> GeoPoint:
    """Shift a point by a local north/east offset, clamped to valid WGS84."""
    d_lat, _ = meters_to_degree_deltas(point.latitude, north_m)
    _, d_lon = meters_to_degree_deltas(point.latitude, east_m)
    return GeoPoint(
        latitude=max(-90.0, min(90.0, point.latitude + d_lat)),
        longitude=max(-180.0, min(180.0, point.longitude + d_lon)),
    )


def local_offset_m(origin: GeoPoint, point: GeoPoint) -> tuple[float, float]:
    """Return (north_m, east_m) of point relative to origin, flat-Earth."""
    cos_lat = max(_MIN_COS_LAT, math.cos(math.radians(origin.latitude)))
    north = (point.latitude - origin.latitude) * METERS_PER_DEGREE_LAT
    east = (point.longitude - origin.longitude) * METERS_PER_DEGREE_LAT * cos_lat
    return north, east


# ---------------------------------------------------------------------------
# Sampling patterns
# ---------------------------------------------------------------------------
def corridor_points(
    a: GeoPoint,
    b: GeoPoint,
    half_width_m: float,
    along_steps: int,
    across_steps: int,
) -> list[GeoPoint]:
    """Rectangular grid of points along the a -> b axis.

    The axis is sampled at along_steps + 1 positions (endpoints included);
    at each position, across_steps + 1 points are placed on the perpendicular
    from -half_width_m to +half_width_m.
    """
    if along_steps < 1 or across_steps < 0:
        raise ValueError("along_steps must be >= 1 and across_steps >= 0")

    north, east = local_offset_m(a, b)
    length = math.hypot(north, east)
    if length == 0:
        # Degenerate axis: perpendicular is arbitrary, use east-west
        perp_north, perp_east = 0.0, 1.0
    else:
        perp_north, perp_east = -east / length, north / length

    points: list[GeoPoint] = []
    for i in range(along_steps + 1):
        base = interpolate_linear(a, b, i / along_steps)
        for j in range(across_steps + 1):
            if across_steps == 0:
                offset = 0.0
            else:
                offset = -half_width_m + 2 * half_width_m * j / across_steps
            points.append(
                offset_point(base, perp_north * offset, perp_east * offset)
            )
    return points


def grid_points(bounds: BoundingBox, rows: int, cols: int) -> list[GeoPoint]:
    """Regular rows x cols grid of cell-center points covering bounds."""
    if rows < 1 or cols < 1:
        raise ValueError("rows and cols must be >= 1")
    lat_step = (bounds.max_y - bounds.min_y) / rows
    lon_step = (bounds.max_x - bounds.min_x) / cols
    return [
        GeoPoint(
            latitude=bounds.min_y + (r + 0.5) * lat_step,
            longitude=bounds.min_x + (c + 0.5) * lon_step,
        )
        for r in range(rows)
        for c in range(cols)
    ]


def bounds_diagonal_m(bounds: BoundingBox) -> float:
    """Great-circle length of the viewport diagonal in meters."""
    return haversine_distance(bounds.south_west, bounds.north_east)


# ---------------------------------------------------------------------------
# Bilinear Interpolation
# ---------------------------------------------------------------------------
def bilinear_interpolate(grid: TerrainGrid, point: GeoPoint) -> tuple[float, bool]:
    """Interpolate elevation at arbitrary point using 4 nearest pixels.

    Returns (elevation, is_nodata). If any of the 4 neighbors is NaN,
    returns (NaN, True).

    Boundary behavior:
        Points exactly on grid boundaries use clamped indices, so bilinear
        degrades to linear (on edges) or nearest (on corners).
    """
    # Row 0 = north edge (max_y), so y is inverted
    px = (point.longitude - grid.bounds.min_x) / grid.resolution[0]
    py = (grid.bounds.max_y - point.latitude) / grid.resolution[1]

    height, width = grid.data.shape

    x0 = int(math.floor(px))
    y0 = int(math.floor(py))
    x1 = x0 + 1
    y1 = y0 + 1

    x0 = max(0, min(x0, width - 1))
    x1 = max(0, min(x1, width - 1))
    y0 = max(0, min(y0, height - 1))
    y1 = max(0, min(y1, height - 1))

    q11 = float(grid.data[y0, x0])  # top-left
    q21 = float(grid.data[y0, x1])  # top-right
    q12 = float(grid.data[y1, x0])  # bottom-left
    q22 = float(grid.data[y1, x1])  # bottom-right

    if math.isnan(q11) or math.isnan(q21) or math.isnan(q12) or math.isnan(q22):
        return (float("nan"), True)

    fx = px - math.floor(px)
    fy = py - math.floor(py)

    elevation = (
        q11 * (1 - fx) * (1 - fy)
        + q21 * fx * (1 - fy)
        + q12 * (1 - fx) * fy
        + q22 * fx * fy
    )

    return (float(elevation), False)


# ---------------------------------------------------------------------------
# Main Service: terrain_profile
# ---------------------------------------------------------------------------
def terrain_profile(
    start: GeoPoint,
    end: GeoPoint,
    elevations: Sequence[float],
    points: Sequence[GeoPoint] | None = None,
) -> TerrainProfile:
    """Assemble a TerrainProfile from heights sampled evenly along start -> end.

    Sample i sits at distance (i / N) * total, where N = len(elevations) - 1
    and total is the haversine distance. Missing or non-finite heights are
    defaulted to 0 and flagged as NoData instead of failing the profile.

    Args:
        start: Profile origin (Tx)
        end: Profile destination (Rx)
        elevations: Terrain heights, one per sample, origin first
        points: Sample locations; generated by interpolate_path when omitted

    Returns:
        TerrainProfile with all samples and metadata

    Raises:
        InvalidProfileError: Fewer than 3 heights, or points/heights mismatch

    Example:
        >>> start = GeoPoint(latitude=51.0, longitude=-1.0)
        >>> end = GeoPoint(latitude=51.0, longitude=-0.9)
        >>> profile = terrain_profile(start, end, [0.0] * 11)
        >>> profile.last_index
        10
    """
    if len(elevations) < MIN_PROFILE_SAMPLES:
        raise InvalidProfileError(
            f"Profile needs >= {MIN_PROFILE_SAMPLES} heights, got {len(elevations)}"
        )

    n = len(elevations) - 1
    if points is None:
        points = interpolate_path(start, end, n)
    elif len(points) != len(elevations):
        raise InvalidProfileError(
            f"{len(points)} points for {len(elevations)} heights"
        )

    total_distance = haversine_distance(start, end)

    samples: list[ProfileSample] = []
    for i, (point, raw) in enumerate(zip(points, elevations)):
        is_nodata = raw is None or not math.isfinite(raw)
        if i == 0:
            distance = 0.0
        elif i == n:
            distance = total_distance
        else:
            distance = total_distance * i / n
        samples.append(
            ProfileSample(
                distance_m=distance,
                elevation_m=0.0 if is_nodata else float(raw),
                point=point,
                is_nodata=is_nodata,
            )
        )

    return TerrainProfile(
        start=start,
        end=end,
        samples=tuple(samples),
        total_distance_m=total_distance,
        has_nodata=any(s.is_nodata for s in samples),
    )
