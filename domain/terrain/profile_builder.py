"""Terrain Bounded Context - Profile Builder.

Samples an ElevationProvider along a link and caches the resulting profiles.

The cache is owned by the builder instance (no module-level state). Entries
are append-only for the life of the builder; terrain does not change within
a session. Concurrent requests for the same key share one in-flight fetch.
"""

from __future__ import annotations

import asyncio
import logging

from domain.terrain.errors import (
    ElevationShapeMismatch,
    ElevationUnavailable,
    InvalidProfileError,
)
from domain.terrain.repositories import ElevationProvider
from domain.terrain.services import interpolate_path, terrain_profile
from domain.terrain.value_objects import MIN_PROFILE_SAMPLES, GeoPoint, TerrainProfile

logger = logging.getLogger(__name__)

# Cache keys round endpoints to 1e-6 degrees (~0.1 m)
KEY_PRECISION = 6

ProfileKey = tuple[tuple[float, float], tuple[float, float], int]


def profile_cache_key(start: GeoPoint, end: GeoPoint, sample_count: int) -> ProfileKey:
    return (
        start.rounded_key(KEY_PRECISION),
        end.rounded_key(KEY_PRECISION),
        sample_count,
    )


class ProfileBuilder:
    """Builds TerrainProfiles from an injected ElevationProvider.

    Parameters
    ----------
    provider: ElevationProvider
        Backend (or chain of backends) answering point lookups.
    """

    def __init__(self, provider: ElevationProvider) -> None:
        self.provider = provider
        self._cache: dict[ProfileKey, TerrainProfile] = {}
        self._in_flight: dict[ProfileKey, asyncio.Task[TerrainProfile]] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def cached(self, start: GeoPoint, end: GeoPoint, sample_count: int) -> TerrainProfile | None:
        """Return a cached profile without fetching, or None."""
        return self._cache.get(profile_cache_key(start, end, sample_count))

    async def build(
        self, start: GeoPoint, end: GeoPoint, sample_count: int
    ) -> TerrainProfile:
        """Return the profile start -> end with sample_count + 1 samples.

        Raises:
            InvalidProfileError: sample_count too small for an interior point
            ElevationUnavailable: Provider exhausted its retries/fallbacks
        """
        if sample_count + 1 < MIN_PROFILE_SAMPLES:
            raise InvalidProfileError(
                f"sample_count must be >= {MIN_PROFILE_SAMPLES - 1}, got {sample_count}"
            )

        key = profile_cache_key(start, end, sample_count)
        profile = self._cache.get(key)
        if profile is not None:
            logger.debug("Profile cache hit for %s", key)
            return profile

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch(key, start, end, sample_count))
            self._in_flight[key] = task
            task.add_done_callback(lambda _t: self._in_flight.pop(key, None))
        # shield: one caller's cancellation must not cancel the shared fetch
        return await asyncio.shield(task)

    async def _fetch(
        self, key: ProfileKey, start: GeoPoint, end: GeoPoint, sample_count: int
    ) -> TerrainProfile:
        points = interpolate_path(start, end, sample_count)
        try:
            samples = await self.provider.lookup(points)
        except ElevationShapeMismatch as e:
            raise ElevationUnavailable(str(e), causes=(e,)) from e

        if len(samples) != len(points):
            mismatch = ElevationShapeMismatch(len(points), len(samples))
            raise ElevationUnavailable(str(mismatch), causes=(mismatch,))

        profile = terrain_profile(
            start, end, [s.elevation_m for s in samples], points=points
        )
        if profile.has_nodata:
            logger.warning(
                "Profile %s: %d of %d heights missing, defaulted to 0",
                key,
                profile.nodata_count(),
                len(profile.samples),
            )
        self._cache[key] = profile
        return profile
