"""Coverage Bounded Context - Minimum mast height solver.

Bisects a single "extra height" added to one or both masts until the worst
Fresnel clearance reaches zero. Clearance is assumed non-decreasing in the
extra height, which holds because raising either end only lifts the line of
sight.

The search runs a fixed 30 iterations over [0, 11.4] m, so the returned
height is within 11.4 / 2**30 (about 1.1e-8 m) above the true minimum.
"""

from __future__ import annotations

from domain.coverage.propagation import fresnel_clearance
from domain.coverage.value_objects import (
    HeightSolution,
    HeightSolveMode,
    LinkParameters,
)
from domain.terrain.value_objects import TerrainProfile

MAX_EXTRA_HEIGHT_M = 11.4  # practical mast ceiling
BISECTION_ITERATIONS = 30


def mast_heights(
    params: LinkParameters, mode: HeightSolveMode, extra_m: float
) -> tuple[float, float]:
    """Return (tx, rx) mast heights with extra_m applied per mode.

    TALLER adds to whichever mast is already taller (tx on a tie).
    """
    tx, rx = params.tx_height_m, params.rx_height_m
    if mode is HeightSolveMode.BOTH:
        return tx + extra_m, rx + extra_m
    if mode is HeightSolveMode.TX:
        return tx + extra_m, rx
    if mode is HeightSolveMode.RX:
        return tx, rx + extra_m
    if tx >= rx:
        return tx + extra_m, rx
    return tx, rx + extra_m


def solve_min_extra_height(
    profile: TerrainProfile,
    params: LinkParameters,
    mode: HeightSolveMode | str | None = None,
) -> HeightSolution:
    """Smallest extra mast height giving worst Fresnel clearance >= 0.

    Args:
        profile: Terrain profile of the leg
        params: Link parameters (base mast heights, frequency, k, zone factor)
        mode: Which mast(s) to raise; defaults to params.height_solve_mode

    Returns:
        HeightSolution. extra_m is 0 when the base heights already clear,
        and None when MAX_EXTRA_HEIGHT_M is not enough (the capped attempt
        is still reported).
    """
    mode = params.height_solve_mode if mode is None else HeightSolveMode(mode)

    def clearance(extra_m: float) -> float:
        tx, rx = mast_heights(params, mode, extra_m)
        return fresnel_clearance(
            profile, params.freq_mhz, tx, rx, params.k_factor, params.fresnel_factor
        ).worst_clearance_m

    def solution(extra_m: float | None, at_m: float, achieved: float) -> HeightSolution:
        tx, rx = mast_heights(params, mode, at_m)
        return HeightSolution(
            extra_m=extra_m,
            achieved_clearance_m=achieved,
            final_tx_height_m=tx,
            final_rx_height_m=rx,
            mode=mode,
        )

    base = clearance(0.0)
    if base >= 0:
        return solution(0.0, 0.0, base)

    capped = clearance(MAX_EXTRA_HEIGHT_M)
    if capped < 0:
        return solution(None, MAX_EXTRA_HEIGHT_M, capped)

    lo, hi = 0.0, MAX_EXTRA_HEIGHT_M
    hi_clearance = capped
    for _ in range(BISECTION_ITERATIONS):
        mid = (lo + hi) / 2
        c = clearance(mid)
        if c >= 0:
            hi, hi_clearance = mid, c
        else:
            lo = mid

    return solution(hi, hi, hi_clearance)
