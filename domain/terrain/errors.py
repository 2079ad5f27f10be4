"""Terrain Bounded Context - Error Hierarchy.

Custom exceptions for elevation lookups, profiles and DEM loading.
"""

from __future__ import annotations

from collections.abc import Sequence


class TerrainError(Exception):
    """Base error for terrain operations."""


# ---------------------------------------------------------------------------
# Elevation provider errors
# ---------------------------------------------------------------------------
class ElevationUnavailable(TerrainError):
    """Elevation could not be obtained after retries and fallbacks.

    Attributes:
        causes: Underlying exceptions, one per exhausted backend/attempt
    """

    def __init__(self, message: str, causes: Sequence[BaseException] = ()) -> None:
        self.causes = tuple(causes)
        super().__init__(message)


class ElevationShapeMismatch(TerrainError):
    """Provider returned a different number of samples than requested.

    Attributes:
        expected: Number of points requested
        actual: Number of samples returned
    """

    def __init__(self, expected: int, actual: int, source: str = "provider") -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"{source} returned {actual} elevations for {expected} points")


class InvalidProfileError(TerrainError):
    """Profile parameters are invalid."""

    pass


# ---------------------------------------------------------------------------
# DEM loading errors
# ---------------------------------------------------------------------------
class InvalidRasterError(TerrainError):
    """File is not a valid raster, wrong format, or corrupted."""


class MissingCRSError(TerrainError):
    """Raster has no CRS defined."""


class InvalidGeotransformError(TerrainError):
    """Raster has invalid or missing geotransform."""


class AllNoDataError(TerrainError):
    """Raster contains 100% NoData pixels - unusable."""


class InvalidBoundsError(TerrainError):
    """Raster bounds are outside valid WGS84 range after reprojection."""


class InsufficientMemoryError(TerrainError):
    """Operation requires more memory than allowed or available."""
