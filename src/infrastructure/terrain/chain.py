"""Ordered primary/fallback composition of elevation backends."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from domain.terrain.errors import ElevationShapeMismatch, ElevationUnavailable
from domain.terrain.repositories import ElevationProvider
from domain.terrain.value_objects import ElevationSample, GeoPoint

logger = logging.getLogger(__name__)


def provider_name(provider: ElevationProvider) -> str:
    return getattr(provider, "name", type(provider).__name__)


class FallbackElevationProvider:
    """Try each backend in order until one answers the whole batch.

    A backend that raises ElevationUnavailable, returns the wrong number of
    samples or runs out of the shared time budget is abandoned wholesale;
    there is no per-point mixing of backends.

    Parameters
    ----------
    providers: Sequence[ElevationProvider]
        Backends in priority order.
    timeout_s: float | None
        Shared budget across all backends; None disables it.
    """

    name = "fallback-chain"

    def __init__(
        self, providers: Sequence[ElevationProvider], timeout_s: float | None = None
    ) -> None:
        if not providers:
            raise ValueError("FallbackElevationProvider needs at least one provider")
        self.providers = tuple(providers)
        self.timeout_s = timeout_s

    async def lookup(self, points: Sequence[GeoPoint]) -> list[ElevationSample]:
        loop = asyncio.get_running_loop()
        deadline = None if self.timeout_s is None else loop.time() + self.timeout_s
        causes: list[BaseException] = []

        for provider in self.providers:
            name = provider_name(provider)
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                causes.append(asyncio.TimeoutError(f"budget exhausted before {name}"))
                break
            try:
                samples = await asyncio.wait_for(provider.lookup(points), remaining)
                if len(samples) != len(points):
                    raise ElevationShapeMismatch(len(points), len(samples), source=name)
            except (ElevationUnavailable, ElevationShapeMismatch, asyncio.TimeoutError) as e:
                causes.append(e)
                logger.info("Elevation backend %s failed (%s); falling back", name, e)
                continue
            return samples

        logger.error(
            "All %d elevation backends failed for %d points", len(self.providers), len(points)
        )
        raise ElevationUnavailable(
            f"All {len(self.providers)} elevation backends failed", causes=causes
        )
