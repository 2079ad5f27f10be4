"""Siting Bounded Context - shared search helpers."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Sequence
from typing import TypeVar

from domain.terrain.errors import ElevationShapeMismatch, ElevationUnavailable
from domain.terrain.repositories import ElevationProvider
from domain.terrain.services import haversine_distance
from domain.terrain.value_objects import ElevationSample, GeoPoint

T = TypeVar("T")


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


async def fetch_elevations(
    provider: ElevationProvider, points: Sequence[GeoPoint], timeout_s: float
) -> list[ElevationSample]:
    """One batched lookup with a hard timeout.

    Raises:
        ElevationUnavailable: timeout, provider failure or wrong sample count
    """
    try:
        samples = await asyncio.wait_for(provider.lookup(points), timeout_s)
    except asyncio.TimeoutError as e:
        raise ElevationUnavailable(
            f"Elevation lookup of {len(points)} points timed out after {timeout_s}s",
            causes=(e,),
        ) from e
    except ElevationShapeMismatch as e:
        raise ElevationUnavailable(str(e), causes=(e,)) from e

    if len(samples) != len(points):
        mismatch = ElevationShapeMismatch(len(points), len(samples))
        raise ElevationUnavailable(str(mismatch), causes=(mismatch,))
    return samples


def select_with_min_spacing(
    ranked: Iterable[T],
    point_of: Callable[[T], GeoPoint],
    min_spacing_m: float,
    limit: int,
    selected: Sequence[T] = (),
) -> list[T]:
    """Greedy pick in rank order, skipping items too close to an earlier pick.

    Items already in `selected` count as picks for the spacing check and are
    returned first.
    """
    picked = list(selected)
    for item in ranked:
        if len(picked) >= limit:
            break
        if item in picked:
            continue
        p = point_of(item)
        if all(haversine_distance(p, point_of(q)) >= min_spacing_m for q in picked):
            picked.append(item)
    return picked
