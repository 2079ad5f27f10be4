"""Siting Bounded Context - Value Objects."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from domain.coverage.value_objects import LinkEvaluation
from domain.terrain.value_objects import GeoPoint


class RelaySearchConfig(BaseModel):
    """Tuning for the corridor relay search.

    min_spacing_m is derived from the corridor scale when left as None.
    relay_height_m defaults to the transmitter mast height when None.
    """

    half_width_m: float = Field(default=3000.0, gt=0)
    along_steps: int = Field(default=12, ge=2)
    across_steps: int = Field(default=6, ge=0)
    min_endpoint_distance_m: float = Field(default=300.0, ge=0)
    top_k: int = Field(default=24, ge=1)
    leg_sample_count: int = Field(default=64, ge=2)
    concurrency: int = Field(default=3, ge=1)
    lookup_timeout_s: float = Field(default=15.0, gt=0)
    min_spacing_m: float | None = Field(default=None, gt=0)
    max_results: int = Field(default=5, ge=1)
    relay_height_m: float | None = Field(default=None, ge=0)

    model_config = ConfigDict(frozen=True)


class RelayCandidate(BaseModel):
    """Scored relay site; legs are tx -> relay and relay -> rx."""

    point: GeoPoint
    elevation_m: float
    bottleneck_margin_db: float
    leg1: LinkEvaluation
    leg2: LinkEvaluation

    model_config = ConfigDict(frozen=True)


class HighPointSearchConfig(BaseModel):
    """Tuning for the coarse-to-fine viewport high-point scan."""

    result_count: int = Field(default=10, ge=1)
    seed_count: int = Field(default=8, ge=1)
    refine_side: int = Field(default=5, ge=2)
    min_cell_m: float = Field(default=1500.0, gt=0)
    max_cell_m: float = Field(default=8000.0, gt=0)
    lookup_timeout_s: float = Field(default=15.0, gt=0)

    model_config = ConfigDict(frozen=True)


class HighPoint(BaseModel):
    point: GeoPoint
    elevation_m: float

    model_config = ConfigDict(frozen=True)
