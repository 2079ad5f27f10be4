"""Link analysis service for hosts (web UI, CLI, services).

The host passes immutable snapshots (endpoints, optional relay, parameters)
and receives evaluations plus the raw profiles for charting. Caches live on
the analyzer instance; there is no module-level state.
"""

from __future__ import annotations

import asyncio
import logging

from pydantic import BaseModel, ConfigDict, Field

from application.project import ProjectRecord
from application.settings import EngineSettings
from domain.coverage.services import evaluate_link
from domain.coverage.value_objects import LinkEvaluation, LinkParameters
from domain.siting.high_points import find_high_points
from domain.siting.relay_search import relay_leg_parameters, suggest_relays
from domain.siting.value_objects import (
    HighPoint,
    HighPointSearchConfig,
    RelayCandidate,
    RelaySearchConfig,
)
from domain.terrain.profile_builder import ProfileBuilder
from domain.terrain.repositories import ElevationProvider
from domain.terrain.services import bearing, haversine_distance
from domain.terrain.value_objects import BoundingBox, GeoPoint, TerrainProfile

logger = logging.getLogger(__name__)


class LinkSummary(BaseModel):
    distance_km: float
    bearing_deg: float

    model_config = ConfigDict(frozen=True)


def link_summary(tx: GeoPoint, rx: GeoPoint) -> LinkSummary:
    """Great-circle distance and forward bearing of the direct path."""
    return LinkSummary(
        distance_km=haversine_distance(tx, rx) / 1000.0, bearing_deg=bearing(tx, rx)
    )


class AnalysisRequest(BaseModel):
    """Snapshot of one analysis; sample_count None means the engine default."""

    tx: GeoPoint
    rx: GeoPoint
    relay: GeoPoint | None = None
    params: LinkParameters = Field(default_factory=LinkParameters)
    sample_count: int | None = Field(default=None, ge=2)
    relay_height_m: float | None = Field(default=None, ge=0)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_record(cls, record: ProjectRecord) -> "AnalysisRequest":
        return cls(
            tx=record.tx,
            rx=record.rx,
            relay=record.relay,
            params=record.link_parameters(),
            sample_count=record.sample_count,
        )


class AnalysisResult(BaseModel):
    """One leg for a direct link, two (tx->relay, relay->rx) with a relay."""

    request: AnalysisRequest
    summary: LinkSummary
    profiles: tuple[TerrainProfile, ...]
    legs: tuple[LinkEvaluation, ...]

    model_config = ConfigDict(frozen=True)

    @property
    def is_relay(self) -> bool:
        return len(self.legs) == 2

    @property
    def success(self) -> bool:
        return all(leg.success for leg in self.legs)

    @property
    def bottleneck_margin_db(self) -> float:
        return min(leg.margin_db for leg in self.legs)


class LinkAnalyzer:
    """Entry point bundling a provider, a ProfileBuilder and settings.

    Parameters
    ----------
    provider: ElevationProvider
        Elevation backend stack (see application.providers).
    settings: EngineSettings | None
        Sample counts and relay concurrency; defaults when None.
    """

    def __init__(
        self, provider: ElevationProvider, settings: EngineSettings | None = None
    ) -> None:
        self.settings = settings or EngineSettings()
        self.builder = ProfileBuilder(provider)

    async def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        """Evaluate the direct link, or both relay legs when a relay is set.

        Raises:
            ElevationUnavailable: A profile could not be built
        """
        summary = link_summary(request.tx, request.rx)
        sample_count = request.sample_count
        if sample_count is None:
            sample_count = self.settings.profile_sample_count

        if request.relay is None:
            profile = await self.builder.build(request.tx, request.rx, sample_count)
            profiles: tuple[TerrainProfile, ...] = (profile,)
            legs: tuple[LinkEvaluation, ...] = (evaluate_link(profile, request.params),)
        else:
            leg1_params, leg2_params = relay_leg_parameters(
                request.params, request.relay_height_m
            )
            profile1, profile2 = await asyncio.gather(
                self.builder.build(request.tx, request.relay, sample_count),
                self.builder.build(request.relay, request.rx, sample_count),
            )
            profiles = (profile1, profile2)
            legs = (evaluate_link(profile1, leg1_params), evaluate_link(profile2, leg2_params))

        logger.debug(
            "Analyzed %.2f km link (%d leg(s)), worst margin %.1f dB",
            summary.distance_km,
            len(legs),
            min(leg.margin_db for leg in legs),
        )
        return AnalysisResult(request=request, summary=summary, profiles=profiles, legs=legs)

    async def analyze_project(self, record: ProjectRecord) -> AnalysisResult:
        """Reproduce the analysis described by a saved project record."""
        return await self.analyze(AnalysisRequest.from_record(record))

    async def suggest_relays(
        self,
        tx: GeoPoint,
        rx: GeoPoint,
        params: LinkParameters,
        config: RelaySearchConfig | None = None,
    ) -> list[RelayCandidate]:
        config = config or RelaySearchConfig(
            concurrency=self.settings.relay_concurrency,
            leg_sample_count=self.settings.relay_leg_sample_count,
        )
        return await suggest_relays(tx, rx, params, self.builder, config)

    async def find_high_points(
        self, bounds: BoundingBox, zoom: int, config: HighPointSearchConfig | None = None
    ) -> list[HighPoint]:
        return await find_high_points(bounds, zoom, self.builder.provider, config)
