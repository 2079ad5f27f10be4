"""Siting Bounded Context - Relay Search.

Suggests intermediate relay sites when a direct link will not close.

Pipeline:
1) Sample a rectangular corridor around the tx -> rx axis
2) One batched elevation lookup for the whole corridor (hard timeout)
3) Drop points within min_endpoint_distance_m of either endpoint
4) Keep the top_k highest points (elevation is only a cheap proxy)
5) Score each candidate by the bottleneck margin of its two legs, with at
   most `concurrency` candidates in flight
6) Rank by bottleneck margin, ties by elevation
7) Greedy selection with a minimum pairwise spacing
"""

from __future__ import annotations

import asyncio
import logging

from domain.coverage.errors import CoverageError
from domain.coverage.services import evaluate_link
from domain.coverage.value_objects import LinkParameters
from domain.siting.errors import NoViableRelay
from domain.siting.services import clamp, fetch_elevations, select_with_min_spacing
from domain.siting.value_objects import RelayCandidate, RelaySearchConfig
from domain.terrain.errors import TerrainError
from domain.terrain.profile_builder import ProfileBuilder
from domain.terrain.services import corridor_points, haversine_distance
from domain.terrain.value_objects import ElevationSample, GeoPoint

logger = logging.getLogger(__name__)

# Bounds for the derived spacing between suggested relays
MIN_RELAY_SPACING_M = 500.0
MAX_RELAY_SPACING_M = 5000.0


def relay_leg_parameters(
    params: LinkParameters, relay_height_m: float | None = None
) -> tuple[LinkParameters, LinkParameters]:
    """Parameters for tx -> relay and relay -> rx.

    The relay mast defaults to the transmitter mast height.
    """
    relay_h = params.tx_height_m if relay_height_m is None else relay_height_m
    return (
        params.with_heights(params.tx_height_m, relay_h),
        params.with_heights(relay_h, params.rx_height_m),
    )


def derive_min_spacing_m(tx: GeoPoint, rx: GeoPoint, config: RelaySearchConfig) -> float:
    if config.min_spacing_m is not None:
        return config.min_spacing_m
    step = haversine_distance(tx, rx) / config.along_steps
    return clamp(step, MIN_RELAY_SPACING_M, MAX_RELAY_SPACING_M)


async def _score_candidate(
    sample: ElevationSample,
    tx: GeoPoint,
    rx: GeoPoint,
    legs: tuple[LinkParameters, LinkParameters],
    builder: ProfileBuilder,
    config: RelaySearchConfig,
    gate: asyncio.Semaphore,
) -> RelayCandidate | None:
    async with gate:
        try:
            profile1 = await builder.build(tx, sample.point, config.leg_sample_count)
            profile2 = await builder.build(sample.point, rx, config.leg_sample_count)
            leg1 = evaluate_link(profile1, legs[0])
            leg2 = evaluate_link(profile2, legs[1])
        except (TerrainError, CoverageError, ValueError) as e:
            logger.warning(
                "Dropping relay candidate (%.5f, %.5f): %s",
                sample.point.latitude,
                sample.point.longitude,
                e,
            )
            return None

    return RelayCandidate(
        point=sample.point,
        elevation_m=sample.elevation_m,
        bottleneck_margin_db=min(leg1.margin_db, leg2.margin_db),
        leg1=leg1,
        leg2=leg2,
    )


async def suggest_relays(
    tx: GeoPoint,
    rx: GeoPoint,
    params: LinkParameters,
    builder: ProfileBuilder,
    config: RelaySearchConfig | None = None,
) -> list[RelayCandidate]:
    """Rank relay sites along the tx -> rx corridor.

    Args:
        tx: Transmitter location
        rx: Receiver location
        params: Link parameters applied to both legs
        builder: ProfileBuilder whose provider also serves the corridor lookup
        config: Search tuning; defaults to RelaySearchConfig()

    Returns:
        Candidates, best bottleneck margin first (ties: higher elevation)

    Raises:
        ElevationUnavailable: Corridor lookup failed or timed out
        NoViableRelay: Nothing survived endpoint filtering and scoring
    """
    config = config or RelaySearchConfig()

    corridor = corridor_points(
        tx, rx, config.half_width_m, config.along_steps, config.across_steps
    )
    samples = await fetch_elevations(builder.provider, corridor, config.lookup_timeout_s)

    eligible = [
        s
        for s in samples
        if not s.is_nodata
        and haversine_distance(s.point, tx) >= config.min_endpoint_distance_m
        and haversine_distance(s.point, rx) >= config.min_endpoint_distance_m
    ]
    if not eligible:
        raise NoViableRelay(
            f"No corridor point is at least {config.min_endpoint_distance_m} m "
            "from both endpoints"
        )

    eligible.sort(key=lambda s: s.elevation_m, reverse=True)
    shortlist = eligible[: config.top_k]
    logger.debug(
        "Relay search: %d corridor points, %d eligible, scoring %d",
        len(samples),
        len(eligible),
        len(shortlist),
    )

    legs = relay_leg_parameters(params, config.relay_height_m)
    gate = asyncio.Semaphore(config.concurrency)
    scored = await asyncio.gather(
        *(
            _score_candidate(s, tx, rx, legs, builder, config, gate)
            for s in shortlist
        )
    )
    candidates = [c for c in scored if c is not None]
    if not candidates:
        raise NoViableRelay(f"All {len(shortlist)} relay candidates failed to score")

    candidates.sort(key=lambda c: (-c.bottleneck_margin_db, -c.elevation_m))
    result = select_with_min_spacing(
        candidates,
        lambda c: c.point,
        derive_min_spacing_m(tx, rx, config),
        config.max_results,
    )
    logger.info(
        "Relay search: %d suggestions, best bottleneck %.1f dB",
        len(result),
        result[0].bottleneck_margin_db,
    )
    return result
