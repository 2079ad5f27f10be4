"""Coverage Bounded Context - Propagation Models.

Pure functions over a TerrainProfile: free-space loss, clutter loss, Earth
bulge, knife-edge diffraction and Fresnel-zone clearance.

Heights along the line of sight are absolute: terrain height at the endpoint
plus mast height. Only interior samples (1..N-1) are searched for the worst
obstruction; endpoints are never reported.
"""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray

from domain.coverage.value_objects import DiffractionResult, FresnelResult, TerrainType
from domain.terrain.value_objects import TerrainProfile
from shared.constants import EARTH_RADIUS_M, SPEED_OF_LIGHT_MHZ_M

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
FSPL_CONSTANT_DB = 32.44  # distance in km, frequency in MHz
MIN_DISTANCE_M = 1.0  # floor for log(0) and zero-length links
MIN_FREQ_MHZ = 1e-6
KNIFE_EDGE_THRESHOLD_V = -0.78

# Flat clutter allowance per terrain class (dB), not distance-scaled
CLUTTER_LOSS_DB: dict[TerrainType, float] = {
    TerrainType.OPEN: 0.0,
    TerrainType.HILLY: 10.0,
    TerrainType.URBAN: 20.0,
    TerrainType.FOREST: 25.0,
}

# Keeps d1, d2 away from zero at interior samples of degenerate profiles
_MIN_SPLIT_M = 1e-3


def wavelength_m(freq_mhz: float) -> float:
    return SPEED_OF_LIGHT_MHZ_M / max(freq_mhz, MIN_FREQ_MHZ)


def free_space_loss_db(distance_m: float, freq_mhz: float) -> float:
    """FSPL in dB; distance is floored at 1 m."""
    distance_km = max(distance_m, MIN_DISTANCE_M) / 1000.0
    return (
        FSPL_CONSTANT_DB
        + 20 * math.log10(distance_km)
        + 20 * math.log10(max(freq_mhz, MIN_FREQ_MHZ))
    )


def clutter_loss_db(terrain: TerrainType | str) -> float:
    return CLUTTER_LOSS_DB[TerrainType(terrain)]


def earth_bulge_m(d1_m: float, d2_m: float, k_factor: float) -> float:
    """Height of the effective Earth surface above the chord at split d1/d2.

    Works element-wise on numpy arrays of split distances.
    """
    return d1_m * d2_m / (2 * EARTH_RADIUS_M * k_factor)


def los_height_m(
    start_height_m: float, end_height_m: float, d1_m: float, total_m: float
) -> float:
    """Absolute line-of-sight height at distance d1 from the origin.

    start_height_m and end_height_m are terrain + mast at each end. d1_m may
    be a numpy array of distances.
    """
    total = max(total_m, MIN_DISTANCE_M)
    return start_height_m + (end_height_m - start_height_m) * (d1_m / total)


def knife_edge_loss_db(v: float) -> float:
    """Single knife-edge diffraction loss (ITU-R P.526 approximation).

    Exactly 0 for v <= -0.78 and strictly increasing above it.
    """
    if v <= KNIFE_EDGE_THRESHOLD_V:
        return 0.0
    return 6.9 + 20 * math.log10(math.sqrt((v - 0.1) ** 2 + 1) + v - 0.1)


# ---------------------------------------------------------------------------
# Profile geometry (vectorized over interior samples)
# ---------------------------------------------------------------------------
class _PathGeometry:
    """Split distances, LOS heights and bulge for every interior sample."""

    def __init__(
        self,
        profile: TerrainProfile,
        tx_height_m: float,
        rx_height_m: float,
        k_factor: float,
    ) -> None:
        distances = np.asarray(profile.distances(), dtype=np.float64)
        heights = np.asarray(profile.elevations(), dtype=np.float64)

        self.total_m = max(profile.total_distance_m, MIN_DISTANCE_M)
        interior = distances[1:-1]
        self.terrain_m: NDArray[np.float64] = heights[1:-1]
        self.d1: NDArray[np.float64] = np.clip(interior, _MIN_SPLIT_M, None)
        self.d2: NDArray[np.float64] = np.clip(self.total_m - interior, _MIN_SPLIT_M, None)

        start = heights[0] + tx_height_m
        end = heights[-1] + rx_height_m
        self.los_m: NDArray[np.float64] = los_height_m(start, end, self.d1, self.total_m)
        self.bulge_m: NDArray[np.float64] = earth_bulge_m(self.d1, self.d2, k_factor)


def max_knife_edge_diffraction(
    profile: TerrainProfile,
    freq_mhz: float,
    tx_height_m: float,
    rx_height_m: float,
    k_factor: float,
) -> DiffractionResult:
    """Find the interior sample with the largest diffraction parameter v.

    The single worst obstruction sets the loss; obstructions are not summed
    or averaged.
    """
    geo = _PathGeometry(profile, tx_height_m, rx_height_m, k_factor)
    lam = wavelength_m(freq_mhz)

    obstruction = geo.terrain_m + geo.bulge_m - geo.los_m
    v = obstruction * np.sqrt(2 * (geo.d1 + geo.d2) / (lam * geo.d1 * geo.d2))

    i = int(np.argmax(v))
    v_max = float(v[i])
    return DiffractionResult(
        loss_db=knife_edge_loss_db(v_max),
        v=v_max,
        worst_index=i + 1,
        worst_distance_km=float(profile.samples[i + 1].distance_m) / 1000.0,
        earth_bulge_m=float(geo.bulge_m[i]),
        obstruction_height_m=float(obstruction[i]),
    )


def fresnel_clearance(
    profile: TerrainProfile,
    freq_mhz: float,
    tx_height_m: float,
    rx_height_m: float,
    k_factor: float,
    fresnel_factor: float,
) -> FresnelResult:
    """Find the tightest Fresnel-zone pinch point along the profile.

    clearance = LOS - (terrain + bulge) - fresnel_factor * r1 at each interior
    sample; the minimum decides pass/fail.
    """
    geo = _PathGeometry(profile, tx_height_m, rx_height_m, k_factor)
    lam = wavelength_m(freq_mhz)

    r1 = np.sqrt(lam * geo.d1 * geo.d2 / geo.total_m)
    clearance = geo.los_m - (geo.terrain_m + geo.bulge_m) - fresnel_factor * r1

    i = int(np.argmin(clearance))
    return FresnelResult(
        worst_clearance_m=float(clearance[i]),
        worst_distance_km=float(profile.samples[i + 1].distance_m) / 1000.0,
        worst_index=i + 1,
        max_bulge_m=float(geo.bulge_m.max()),
    )
