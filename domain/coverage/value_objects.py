"""Coverage Bounded Context - Value Objects.

Link configuration and propagation results. LinkParameters is validated and
clamped at construction; result objects are derived per analysis and never
persisted.

Field aliases on LinkParameters match the keys of the saved project record
(freqMHz, txHeight_m, ...), so a record's "inputs" block validates directly.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, model_validator

from domain.coverage.errors import InvalidParameter
from shared.constants import STANDARD_K_FACTOR

# ---------------------------------------------------------------------------
# Parameter limits
# ---------------------------------------------------------------------------
MIN_K_FACTOR = 0.5

# Antenna presets offered by the planner (dBi)
ANTENNA_PRESETS: dict[str, float] = {
    "hcdr_elev_3_5": 3.5,
    "vhf_mono_2_5": 2.5,
    "vhf_dipole_3_0": 3.0,
}
DEFAULT_ANTENNA_GAIN_DB = 3.0


def antenna_gain_db(preset: str, custom_gain_db: float | None = None) -> float:
    """Resolve an antenna preset name to its gain in dBi.

    "custom" returns custom_gain_db; unknown presets fall back to 3.0 dBi.
    """
    if preset == "custom":
        if custom_gain_db is None or not math.isfinite(custom_gain_db):
            raise InvalidParameter("custom antenna preset requires a finite gain")
        return float(custom_gain_db)
    return ANTENNA_PRESETS.get(preset, DEFAULT_ANTENNA_GAIN_DB)


class TerrainType(str, Enum):
    OPEN = "open"
    HILLY = "hilly"
    URBAN = "urban"
    FOREST = "forest"


class SuccessRule(str, Enum):
    MARGIN = "margin"
    MARGIN_FRESNEL = "margin_fresnel"


class HeightSolveMode(str, Enum):
    BOTH = "both"
    TX = "tx"
    RX = "rx"
    TALLER = "taller"


class LinkClass(str, Enum):
    """Display severity bucket, independent of the success rule."""

    GOOD = "GOOD"
    MARGINAL = "MARGINAL"
    POOR = "POOR"


# ---------------------------------------------------------------------------
# LinkParameters
# ---------------------------------------------------------------------------
class LinkParameters(BaseModel):
    """Link configuration snapshot (Value Object).

    Invariants:
        LP-1: freq_mhz > 0
        LP-2: tx_height_m, rx_height_m >= 0
        LP-3: tx_power_w > 0
        LP-4: every numeric field is finite
        LP-5: fresnel_factor clamped into [0, 1]
        LP-6: k_factor clamped up to >= 0.5
    """

    freq_mhz: float = Field(default=145.5, alias="freqMHz")
    tx_height_m: float = Field(default=10.0, alias="txHeight_m")
    rx_height_m: float = Field(default=2.0, alias="rxHeight_m")
    tx_power_w: float = Field(default=50.0, alias="txPowerW")
    sys_loss_db: float = Field(default=2.0, alias="sysLossDb")
    rx_sens_dbm: float = Field(default=-100.0, alias="rxSensDbm")
    fade_margin_db: float = Field(default=15.0, alias="fadeMarginDb")
    terrain: TerrainType = TerrainType.OPEN
    fresnel_factor: float = Field(default=0.6, alias="fresnelFactor")
    k_factor: float = Field(default=STANDARD_K_FACTOR, alias="kFactor")
    success_rule: SuccessRule = Field(default=SuccessRule.MARGIN, alias="successRule")
    height_solve_mode: HeightSolveMode = Field(
        default=HeightSolveMode.BOTH,
        alias="heightSolve",
        validation_alias=AliasChoices("heightSolve", "heightSolveMode", "height_solve_mode"),
    )
    ant_gain_db: float = Field(default=DEFAULT_ANTENNA_GAIN_DB, alias="antGainDb")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @model_validator(mode="after")
    def validate_and_clamp(self) -> "LinkParameters":
        numeric = {
            "freqMHz": self.freq_mhz,
            "txHeight_m": self.tx_height_m,
            "rxHeight_m": self.rx_height_m,
            "txPowerW": self.tx_power_w,
            "sysLossDb": self.sys_loss_db,
            "rxSensDbm": self.rx_sens_dbm,
            "fadeMarginDb": self.fade_margin_db,
            "fresnelFactor": self.fresnel_factor,
            "kFactor": self.k_factor,
            "antGainDb": self.ant_gain_db,
        }
        for name, value in numeric.items():
            if not math.isfinite(value):
                raise ValueError(f"{name} must be finite, got {value}")
        if self.freq_mhz <= 0:
            raise ValueError(f"freqMHz must be positive, got {self.freq_mhz}")
        if self.tx_height_m < 0 or self.rx_height_m < 0:
            raise ValueError(
                f"Antenna heights must be >= 0, got tx={self.tx_height_m} rx={self.rx_height_m}"
            )
        if self.tx_power_w <= 0:
            raise ValueError(f"txPowerW must be positive, got {self.tx_power_w}")

        object.__setattr__(self, "fresnel_factor", min(1.0, max(0.0, self.fresnel_factor)))
        object.__setattr__(self, "k_factor", max(MIN_K_FACTOR, self.k_factor))
        return self

    @classmethod
    def parse(cls, data: Mapping[str, Any]) -> "LinkParameters":
        """Boundary constructor: validation failures become InvalidParameter."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise InvalidParameter(str(e)) from e

    def with_heights(self, tx_height_m: float, rx_height_m: float) -> "LinkParameters":
        """Copy with different mast heights (used for relay legs and mast solving)."""
        return self.model_copy(
            update={"tx_height_m": tx_height_m, "rx_height_m": rx_height_m}
        )

    def to_record(self) -> dict[str, Any]:
        """Serialize with record keys (aliases) and plain enum values."""
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Propagation results
# ---------------------------------------------------------------------------
class DiffractionResult(BaseModel):
    """Worst knife-edge obstruction on a profile."""

    loss_db: float
    v: float  # Normalized Fresnel-Kirchhoff obstruction parameter
    worst_index: int
    worst_distance_km: float
    earth_bulge_m: float
    obstruction_height_m: float  # Terrain + bulge above LOS (negative = below)

    model_config = ConfigDict(frozen=True)


class FresnelResult(BaseModel):
    """Tightest Fresnel-zone pinch point on a profile."""

    worst_clearance_m: float  # Negative = violation
    worst_distance_km: float
    worst_index: int
    max_bulge_m: float

    model_config = ConfigDict(frozen=True)

    @property
    def passes(self) -> bool:
        return self.worst_clearance_m >= 0


class PowerSolution(BaseModel):
    """Transmit power that brings the margin to exactly 0 dB."""

    required_tx_dbm: float
    required_tx_w: float

    model_config = ConfigDict(frozen=True)


class HeightSolution(BaseModel):
    """Minimum extra mast height for Fresnel clearance.

    extra_m is None when even the mast ceiling cannot clear the zone; the
    remaining fields then describe the capped attempt.
    """

    extra_m: float | None
    achieved_clearance_m: float
    final_tx_height_m: float
    final_rx_height_m: float
    mode: HeightSolveMode

    model_config = ConfigDict(frozen=True)

    @property
    def achievable(self) -> bool:
        return self.extra_m is not None


class LinkEvaluation(BaseModel):
    """Complete evaluation of one link leg."""

    distance_km: float
    fspl_db: float
    clutter_db: float
    diffraction: DiffractionResult
    fresnel: FresnelResult
    total_loss_db: float
    tx_dbm: float
    rx_dbm: float
    threshold_dbm: float
    margin_db: float
    success: bool
    link_class: LinkClass
    min_power: PowerSolution
    min_height: HeightSolution

    model_config = ConfigDict(frozen=True)
