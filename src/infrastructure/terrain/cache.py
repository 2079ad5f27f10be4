"""Point-elevation cache with in-flight coalescing.

Wraps any ElevationProvider. Values are keyed by coordinates rounded to
`precision` decimal places and kept for the life of the instance. A key that
is already being fetched by another caller is awaited rather than
re-requested; only finite elevations are stored.

Each batch fetch runs as its own task. A caller that is cancelled stops
waiting, but the fetch still completes for every other caller coalesced onto
its keys.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Sequence

from domain.terrain.errors import ElevationShapeMismatch
from domain.terrain.repositories import ElevationProvider
from domain.terrain.value_objects import ElevationSample, GeoPoint

logger = logging.getLogger(__name__)

PointKey = tuple[float, float]


class CachingElevationProvider:
    """Caching decorator for an ElevationProvider."""

    name = "cache"

    def __init__(self, inner: ElevationProvider, precision: int = 6) -> None:
        self.inner = inner
        self.precision = precision
        self._values: dict[PointKey, float] = {}
        self._pending: dict[PointKey, asyncio.Future[float]] = {}

    def __len__(self) -> int:
        return len(self._values)

    async def lookup(self, points: Sequence[GeoPoint]) -> list[ElevationSample]:
        keys = [p.rounded_key(self.precision) for p in points]
        resolved: dict[PointKey, float] = {}
        waiting: dict[PointKey, asyncio.Future[float]] = {}
        missing: dict[PointKey, GeoPoint] = {}

        for key, point in zip(keys, points):
            if key in self._values:
                resolved[key] = self._values[key]
            elif key in self._pending:
                waiting[key] = self._pending[key]
            elif key not in missing:
                missing[key] = point

        if missing:
            loop = asyncio.get_running_loop()
            futures = {key: loop.create_future() for key in missing}
            self._pending.update(futures)
            fetch = asyncio.ensure_future(self._fetch(missing, futures))
            fetch.add_done_callback(_consume_exception)
            # shield: cancelling this caller must not abort a fetch others await
            resolved.update(await asyncio.shield(fetch))
        for key, future in waiting.items():
            resolved[key] = await asyncio.shield(future)

        logger.debug(
            "Elevation cache: %d points, %d fetched, %d coalesced",
            len(points),
            len(missing),
            len(waiting),
        )
        return [
            ElevationSample(point=p, elevation_m=resolved[k]) for k, p in zip(keys, points)
        ]

    async def _fetch(
        self,
        missing: dict[PointKey, GeoPoint],
        futures: dict[PointKey, asyncio.Future[float]],
    ) -> dict[PointKey, float]:
        try:
            samples = await self.inner.lookup(list(missing.values()))
            if len(samples) != len(missing):
                raise ElevationShapeMismatch(len(missing), len(samples))
        except asyncio.CancelledError:
            self._release(futures, None)
            raise
        except Exception as e:
            self._release(futures, e)
            raise

        values: dict[PointKey, float] = {}
        for key, sample in zip(missing, samples):
            value = sample.elevation_m
            if math.isfinite(value):
                self._values[key] = value
            values[key] = value
            self._pending.pop(key, None)
            futures[key].set_result(value)
        return values

    def _release(
        self, futures: dict[PointKey, asyncio.Future[float]], error: Exception | None
    ) -> None:
        for key, future in futures.items():
            self._pending.pop(key, None)
            if error is None:
                future.cancel()
            else:
                future.set_exception(error)
                future.exception()  # waiters re-raise it; silence "never retrieved"


def _consume_exception(task: asyncio.Task) -> None:
    # The owning caller may have stopped waiting; its waiters see the error
    if not task.cancelled():
        task.exception()
