"""Coverage Bounded Context - Domain Services.

Link budget and evaluation of one leg over a terrain profile.
NO I/O operations - profiles are built by the terrain ProfileBuilder.
"""

from __future__ import annotations

import math

from domain.coverage.height_solver import solve_min_extra_height
from domain.coverage.propagation import (
    clutter_loss_db,
    fresnel_clearance,
    free_space_loss_db,
    max_knife_edge_diffraction,
)
from domain.coverage.value_objects import (
    LinkClass,
    LinkEvaluation,
    LinkParameters,
    PowerSolution,
    SuccessRule,
)
from domain.terrain.value_objects import TerrainProfile

GOOD_MARGIN_DB = 20.0
MARGINAL_MARGIN_DB = 10.0


def watts_to_dbm(watts: float) -> float:
    return 10 * math.log10(watts * 1000.0)


def dbm_to_watts(dbm: float) -> float:
    return 10 ** ((dbm - 30.0) / 10.0)


def classify_link(margin_db: float, success: bool) -> LinkClass:
    """Severity bucket; a failed link is always POOR."""
    if not success:
        return LinkClass.POOR
    if margin_db >= GOOD_MARGIN_DB:
        return LinkClass.GOOD
    if margin_db >= MARGINAL_MARGIN_DB:
        return LinkClass.MARGINAL
    return LinkClass.POOR


def min_tx_power(
    threshold_dbm: float, total_loss_db: float, tx_gain_db: float, rx_gain_db: float
) -> PowerSolution:
    """Transmit power that makes the margin exactly zero (closed form)."""
    required_dbm = threshold_dbm + total_loss_db - (tx_gain_db + rx_gain_db)
    return PowerSolution(
        required_tx_dbm=required_dbm, required_tx_w=dbm_to_watts(required_dbm)
    )


def evaluate_link(profile: TerrainProfile, params: LinkParameters) -> LinkEvaluation:
    """Evaluate one leg: losses, budget, margin, verdict and solver outputs.

    The single antenna gain figure is applied at both ends.

    Args:
        profile: Terrain profile from the transmitting end to the receiving end
        params: Validated link parameters

    Returns:
        LinkEvaluation (all-or-nothing; no partial results)
    """
    fspl = free_space_loss_db(profile.total_distance_m, params.freq_mhz)
    clutter = clutter_loss_db(params.terrain)
    diffraction = max_knife_edge_diffraction(
        profile, params.freq_mhz, params.tx_height_m, params.rx_height_m, params.k_factor
    )
    fresnel = fresnel_clearance(
        profile,
        params.freq_mhz,
        params.tx_height_m,
        params.rx_height_m,
        params.k_factor,
        params.fresnel_factor,
    )
    total_loss = fspl + clutter + diffraction.loss_db + params.sys_loss_db

    tx_gain = rx_gain = params.ant_gain_db
    tx_dbm = watts_to_dbm(params.tx_power_w)
    rx_dbm = tx_dbm + tx_gain + rx_gain - total_loss
    threshold = params.rx_sens_dbm + params.fade_margin_db
    margin = rx_dbm - threshold

    success = margin >= 0
    if params.success_rule is SuccessRule.MARGIN_FRESNEL:
        success = success and fresnel.passes

    return LinkEvaluation(
        distance_km=profile.total_distance_m / 1000.0,
        fspl_db=fspl,
        clutter_db=clutter,
        diffraction=diffraction,
        fresnel=fresnel,
        total_loss_db=total_loss,
        tx_dbm=tx_dbm,
        rx_dbm=rx_dbm,
        threshold_dbm=threshold,
        margin_db=margin,
        success=success,
        link_class=classify_link(margin, success),
        min_power=min_tx_power(threshold, total_loss, tx_gain, rx_gain),
        min_height=solve_min_extra_height(profile, params),
    )
