"""Remote elevation backends over HTTP (httpx).

- OpenElevationProvider: bulk POST of every point in one request (primary)
- OpenTopoDataProvider: GET in chunks of up to 100 locations (fallback)

Both return samples in request order and map null elevations to NaN. A
non-numeric elevation raises ElevationUnavailable and a response with the
wrong number of results raises ElevationShapeMismatch, so the fallback chain
can move on to the next backend.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Sequence
from typing import Any

import httpx

from domain.terrain.errors import ElevationShapeMismatch, ElevationUnavailable
from domain.terrain.value_objects import ElevationSample, GeoPoint
from infrastructure.terrain.retry import call_with_retries

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 12.0
DEFAULT_RETRIES = 2
DEFAULT_BACKOFF_S = 0.75


def _as_elevation(result: Any, source: str) -> float:
    value = result.get("elevation") if isinstance(result, dict) else None
    if value is None:
        return math.nan
    try:
        elevation = float(value)
    except (TypeError, ValueError) as e:
        raise ElevationUnavailable(
            f"{source} returned a non-numeric elevation: {value!r}", causes=(e,)
        ) from e
    return elevation if math.isfinite(elevation) else math.nan


class _HttpElevationProvider:
    """Common request/retry plumbing for HTTP elevation services."""

    name = "http"

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        retries: int = DEFAULT_RETRIES,
        backoff_s: float = DEFAULT_BACKOFF_S,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.client = client
        self.timeout_s = timeout_s
        self.retries = retries
        self.backoff_s = backoff_s

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        async def once() -> Any:
            if self.client is not None:
                response = await self.client.request(method, url, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                    response = await client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()

        return await call_with_retries(
            once,
            retries=self.retries,
            backoff_s=self.backoff_s,
            timeout_s=self.timeout_s,
            label=f"{self.name} lookup",
        )

    def _check_count(self, expected: int, results: Sequence[Any]) -> None:
        if len(results) != expected:
            raise ElevationShapeMismatch(expected, len(results), source=self.name)


class OpenElevationProvider(_HttpElevationProvider):
    """Open-Elevation compatible bulk endpoint (POST /api/v1/lookup)."""

    name = "open-elevation"

    async def lookup(self, points: Sequence[GeoPoint]) -> list[ElevationSample]:
        if not points:
            return []
        body = {
            "locations": [
                {"latitude": p.latitude, "longitude": p.longitude} for p in points
            ]
        }
        payload = await self._request("POST", f"{self.base_url}/api/v1/lookup", json=body)
        if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
            raise ElevationShapeMismatch(len(points), 0, source=self.name)
        results = payload["results"]
        self._check_count(len(points), results)
        return [
            ElevationSample(point=p, elevation_m=_as_elevation(r, self.name))
            for p, r in zip(points, results)
        ]


class OpenTopoDataProvider(_HttpElevationProvider):
    """OpenTopoData endpoint (GET /v1/<dataset>?locations=lat,lon|...).

    The public service caps requests at 100 locations; larger batches are
    split and fetched sequentially, pausing chunk_delay_s between chunks.
    """

    name = "opentopodata"
    max_locations = 100

    def __init__(
        self,
        base_url: str,
        dataset: str = "srtm90m",
        *,
        chunk_delay_s: float = 0.0,
        **kwargs: Any,
    ) -> None:
        super().__init__(base_url, **kwargs)
        self.dataset = dataset
        self.chunk_delay_s = chunk_delay_s

    async def _lookup_chunk(self, chunk: Sequence[GeoPoint]) -> list[ElevationSample]:
        locations = "|".join(f"{p.latitude:.6f},{p.longitude:.6f}" for p in chunk)
        payload = await self._request(
            "GET",
            f"{self.base_url}/v1/{self.dataset}",
            params={"locations": locations},
        )
        if not isinstance(payload, dict) or payload.get("status", "OK") != "OK":
            raise ElevationShapeMismatch(len(chunk), 0, source=self.name)
        results = payload.get("results") or []
        self._check_count(len(chunk), results)
        return [
            ElevationSample(point=p, elevation_m=_as_elevation(r, self.name))
            for p, r in zip(chunk, results)
        ]

    async def lookup(self, points: Sequence[GeoPoint]) -> list[ElevationSample]:
        samples: list[ElevationSample] = []
        for start in range(0, len(points), self.max_locations):
            if start and self.chunk_delay_s:
                await asyncio.sleep(self.chunk_delay_s)
            samples.extend(await self._lookup_chunk(points[start : start + self.max_locations]))
        logger.debug(
            "%s: %d points in %d chunks",
            self.name,
            len(points),
            math.ceil(len(points) / self.max_locations),
        )
        return samples
