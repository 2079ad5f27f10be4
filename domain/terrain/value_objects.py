"""Terrain Bounded Context - Value Objects.

Immutable data structures representing geographic concepts.
All validation occurs at construction time via Pydantic.
"""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, Field, model_validator

# ---------------------------------------------------------------------------
# Numeric Constants
# ---------------------------------------------------------------------------
# Tolerances for floating-point comparisons
DISTANCE_TOLERANCE_M = 0.1  # 10 cm - for distance invariants

# A profile needs at least one interior point for diffraction/Fresnel search
MIN_PROFILE_SAMPLES = 3


class BoundingBox(BaseModel):
    """Geographic extent in EPSG:4326 (Value Object).

    Used both as a DEM extent and as a map viewport. Invariants are enforced
    at construction time - invalid BoundingBox cannot be instantiated.
    """

    min_x: float  # Western boundary (longitude)
    min_y: float  # Southern boundary (latitude)
    max_x: float  # Eastern boundary (longitude)
    max_y: float  # Northern boundary (latitude)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_bounds(self) -> "BoundingBox":
        # Longitude range
        if not (-180 <= self.min_x <= 180):
            raise ValueError(f"min_x longitude out of range: {self.min_x}")
        if not (-180 <= self.max_x <= 180):
            raise ValueError(f"max_x longitude out of range: {self.max_x}")
        # Latitude range
        if not (-90 <= self.min_y <= 90):
            raise ValueError(f"min_y latitude out of range: {self.min_y}")
        if not (-90 <= self.max_y <= 90):
            raise ValueError(f"max_y latitude out of range: {self.max_y}")
        # Ordering
        if not (self.min_x < self.max_x):
            raise ValueError(
                f"Invalid x ordering: min_x={self.min_x} >= max_x={self.max_x}"
            )
        if not (self.min_y < self.max_y):
            raise ValueError(
                f"Invalid y ordering: min_y={self.min_y} >= max_y={self.max_y}"
            )
        return self

    @property
    def south_west(self) -> "GeoPoint":
        return GeoPoint(latitude=self.min_y, longitude=self.min_x)

    @property
    def north_east(self) -> "GeoPoint":
        return GeoPoint(latitude=self.max_y, longitude=self.max_x)


class TerrainGrid(BaseModel):
    """Immutable elevation grid with geographic metadata (Value Object).

    Backs the local DEM elevation provider. The data array is made truly
    immutable (read-only) at construction time.
    """

    data: NDArray[np.float32]  # 2D float32 array (height x width), read-only
    bounds: BoundingBox  # Geographic extent in EPSG:4326
    crs: str  # Always "EPSG:4326" (system CRS)
    resolution: tuple[float, float]  # (x_res, y_res) absolute values in degrees
    source_crs: str | None = None  # Original CRS before normalization

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @model_validator(mode="after")
    def validate_grid(self) -> "TerrainGrid":
        if self.data.ndim != 2:
            raise ValueError(f"Data must be 2D, got {self.data.ndim}D")
        if self.data.shape[0] == 0 or self.data.shape[1] == 0:
            raise ValueError(f"Data cannot be empty: {self.data.shape}")
        if self.data.dtype != np.float32:
            raise ValueError(f"Data must be float32, got {self.data.dtype}")
        if self.crs != "EPSG:4326":
            raise ValueError(f"CRS must be EPSG:4326, got {self.crs}")
        if self.resolution[0] <= 0 or self.resolution[1] <= 0:
            raise ValueError(f"Resolution must be positive: {self.resolution}")
        if np.isnan(self.data).all():
            raise ValueError("Grid contains 100% NoData")

        # Owned, contiguous, read-only copy; caller arrays are never flipped
        immutable = np.array(self.data, dtype=np.float32, copy=True, order="C")
        immutable.flags.writeable = False
        object.__setattr__(self, "data", immutable)

        return self


# ---------------------------------------------------------------------------
# GeoPoint
# ---------------------------------------------------------------------------
class GeoPoint(BaseModel):
    """Geographic coordinate in WGS84 (Value Object).

    Invariants:
        GP-1: latitude in [-90, 90]
        GP-2: longitude in [-180, 180]

    Frozen pydantic models compare and hash by value, so GeoPoint can be used
    directly as a dict key.
    """

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)

    model_config = ConfigDict(frozen=True)

    def rounded_key(self, places: int = 6) -> tuple[float, float]:
        """Return (lat, lon) rounded for use as a cache key."""
        return (round(self.latitude, places), round(self.longitude, places))


# ---------------------------------------------------------------------------
# ElevationSample
# ---------------------------------------------------------------------------
class ElevationSample(BaseModel):
    """Elevation reported by an Elevation Provider for one point.

    elevation_m is NaN when the backend had no value for the point.
    """

    point: GeoPoint
    elevation_m: float

    model_config = ConfigDict(frozen=True)

    @property
    def is_nodata(self) -> bool:
        return not math.isfinite(self.elevation_m)


# ---------------------------------------------------------------------------
# ProfileSample
# ---------------------------------------------------------------------------
class ProfileSample(BaseModel):
    """Single sample point along a terrain profile (Value Object).

    Invariants:
        PS-1: distance_m >= 0
        PS-2: elevation_m is finite
        PS-3: If is_nodata == True, then elevation_m == 0 (defaulted)
    """

    distance_m: float = Field(ge=0)  # Cumulative distance from start in meters
    elevation_m: float  # Terrain height at this point
    point: GeoPoint  # Geographic location of sample
    is_nodata: bool = False  # Provider had no usable value; height defaulted

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_nodata_consistency(self) -> "ProfileSample":
        if not math.isfinite(self.elevation_m):
            raise ValueError("elevation_m must be finite")
        if self.is_nodata and self.elevation_m != 0.0:
            raise ValueError("is_nodata=True requires elevation_m=0")
        return self


# ---------------------------------------------------------------------------
# TerrainProfile
# ---------------------------------------------------------------------------
class TerrainProfile(BaseModel):
    """Elevation profile between two points (Value Object).

    Samples are indexed 0..N inclusive; index 0 is the origin and index N the
    destination.

    Invariants:
        TP-1: len(samples) >= 3
        TP-2: samples[0].distance_m == 0
        TP-3: Samples ordered by distance_m (non-decreasing)
        TP-4: samples[-1].distance_m == total_distance_m (within tolerance)
        TP-5: samples[0].point == start
        TP-6: samples[-1].point == end
        TP-7: has_nodata matches actual samples
    """

    start: GeoPoint  # Profile origin
    end: GeoPoint  # Profile destination
    samples: tuple[ProfileSample, ...]  # Ordered samples from start to end
    total_distance_m: float = Field(ge=0)  # Total path length in meters
    has_nodata: bool  # True if any sample was defaulted

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_profile(self) -> "TerrainProfile":
        """Validate all TerrainProfile invariants."""
        # TP-1: need an interior point
        if len(self.samples) < MIN_PROFILE_SAMPLES:
            raise ValueError(
                f"Profile must have >= {MIN_PROFILE_SAMPLES} samples, "
                f"got {len(self.samples)}"
            )

        # TP-2
        if self.samples[0].distance_m != 0:
            raise ValueError(
                f"First sample must be at distance 0, got {self.samples[0].distance_m}"
            )

        # TP-3
        for i in range(1, len(self.samples)):
            if self.samples[i].distance_m < self.samples[i - 1].distance_m:
                raise ValueError("Samples must be ordered by distance")

        # TP-4
        if (
            abs(self.samples[-1].distance_m - self.total_distance_m)
            > DISTANCE_TOLERANCE_M
        ):
            raise ValueError(
                f"Last sample distance ({self.samples[-1].distance_m:.3f}) must equal "
                f"total_distance_m ({self.total_distance_m:.3f}) within {DISTANCE_TOLERANCE_M}m"
            )

        # TP-5 / TP-6
        if self.samples[0].point != self.start:
            raise ValueError("First sample point must equal start")
        if self.samples[-1].point != self.end:
            raise ValueError("Last sample point must equal end")

        # TP-7
        actual_has_nodata = any(s.is_nodata for s in self.samples)
        if self.has_nodata != actual_has_nodata:
            raise ValueError(
                f"has_nodata={self.has_nodata} but samples say {actual_has_nodata}"
            )

        return self

    @property
    def last_index(self) -> int:
        """Index N of the destination sample."""
        return len(self.samples) - 1

    def elevations(self) -> tuple[float, ...]:
        """Return terrain heights in sample order."""
        return tuple(s.elevation_m for s in self.samples)

    def distances(self) -> tuple[float, ...]:
        """Return cumulative distance values."""
        return tuple(s.distance_m for s in self.samples)

    def nodata_count(self) -> int:
        """Return number of samples whose height was defaulted."""
        return sum(1 for s in self.samples if s.is_nodata)

    def nodata_ratio(self) -> float:
        """Return fraction of samples that are NoData (0.0 to 1.0)."""
        return self.nodata_count() / len(self.samples)
