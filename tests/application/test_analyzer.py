"""Tests for LinkAnalyzer and the default provider wiring."""

import asyncio

import httpx
import pytest

from application.analysis import AnalysisRequest, LinkAnalyzer, link_summary
from application.project import ProjectRecord
from application.providers import build_elevation_provider
from application.settings import EngineSettings
from domain.coverage.value_objects import LinkParameters
from domain.siting.value_objects import HighPointSearchConfig
from domain.terrain.services import interpolate_linear
from domain.terrain.value_objects import BoundingBox
from infrastructure.terrain import (
    CachingElevationProvider,
    FallbackElevationProvider,
    OpenElevationProvider,
    OpenTopoDataProvider,
)
from tests.conftest_utils import RX, TX, FakeElevationProvider

RELAY = interpolate_linear(TX, RX, 0.5)


def test_link_summary_east_west():
    summary = link_summary(TX, RX)

    assert summary.distance_km == pytest.approx(7.0, abs=0.05)
    assert summary.bearing_deg == pytest.approx(90.0, abs=0.1)


def test_direct_analysis(flat_provider):
    analyzer = LinkAnalyzer(flat_provider)
    request = AnalysisRequest(tx=TX, rx=RX, sample_count=50)

    result = asyncio.run(analyzer.analyze(request))

    assert not result.is_relay
    assert len(result.profiles) == 1
    assert len(result.profiles[0].samples) == 51
    assert result.bottleneck_margin_db == result.legs[0].margin_db
    assert result.success == result.legs[0].success
    assert flat_provider.call_count == 1


def test_relay_analysis_evaluates_both_legs(flat_provider):
    analyzer = LinkAnalyzer(flat_provider)
    params = LinkParameters(txHeight_m=12.0, rxHeight_m=3.0)
    request = AnalysisRequest(tx=TX, rx=RX, relay=RELAY, params=params, sample_count=40)

    result = asyncio.run(analyzer.analyze(request))

    assert result.is_relay
    first, second = result.profiles
    assert (first.start, first.end) == (TX, RELAY)
    assert (second.start, second.end) == (RELAY, RX)
    assert result.bottleneck_margin_db == min(leg.margin_db for leg in result.legs)
    # Shorter legs lose less than the direct path over the same flat ground
    direct = asyncio.run(analyzer.analyze(AnalysisRequest(tx=TX, rx=RX, params=params)))
    assert result.legs[0].fspl_db < direct.legs[0].fspl_db


def test_relay_height_override(flat_provider):
    analyzer = LinkAnalyzer(flat_provider)
    low = AnalysisRequest(tx=TX, rx=RX, relay=RELAY, relay_height_m=2.0, sample_count=40)
    high = AnalysisRequest(tx=TX, rx=RX, relay=RELAY, relay_height_m=80.0, sample_count=40)

    low_result = asyncio.run(analyzer.analyze(low))
    high_result = asyncio.run(analyzer.analyze(high))

    assert high_result.bottleneck_margin_db >= low_result.bottleneck_margin_db


def test_profiles_reused_across_requests(flat_provider):
    analyzer = LinkAnalyzer(flat_provider)
    request = AnalysisRequest(tx=TX, rx=RX, sample_count=30)

    asyncio.run(analyzer.analyze(request))
    asyncio.run(analyzer.analyze(request.model_copy(update={"params": LinkParameters(freqMHz=433.0)})))

    assert flat_provider.call_count == 1


def test_sample_count_defaults_to_settings(flat_provider):
    analyzer = LinkAnalyzer(flat_provider, EngineSettings(profile_sample_count=20))

    result = asyncio.run(analyzer.analyze(AnalysisRequest(tx=TX, rx=RX)))

    assert result.request.sample_count is None
    assert len(result.profiles[0].samples) == 21
    assert len(flat_provider.calls[0]) == 21


def test_analyze_project_resolves_antenna_preset(flat_provider):
    record = ProjectRecord(
        tx=TX, rx=RX, inputs=LinkParameters(antGainDb=0.0), antenna_preset="vhf_mono_2_5"
    )

    result = asyncio.run(LinkAnalyzer(flat_provider).analyze_project(record))

    assert result.request.params.ant_gain_db == 2.5


def test_analyze_project_uses_record(flat_provider):
    record = ProjectRecord(tx=TX, rx=RX, inputs=LinkParameters(freqMHz=433.0), sample_count=25)

    result = asyncio.run(LinkAnalyzer(flat_provider).analyze_project(record))

    assert result.request.params.freq_mhz == 433.0
    assert len(result.profiles[0].samples) == 26


def test_suggest_relays_uses_settings(flat_provider):
    settings = EngineSettings(relay_leg_sample_count=32, relay_concurrency=1)
    analyzer = LinkAnalyzer(flat_provider, settings)

    result = asyncio.run(analyzer.suggest_relays(TX, RX, LinkParameters()))

    assert result
    assert any(len(call) == 33 for call in flat_provider.calls)
    assert flat_provider.max_active == 1


def test_find_high_points_via_analyzer():
    provider = FakeElevationProvider(lambda p: (p.latitude - 51.0) * 1000.0)
    bounds = BoundingBox(min_x=-1.0, min_y=51.0, max_x=-0.9, max_y=51.05)

    result = asyncio.run(
        LinkAnalyzer(provider).find_high_points(bounds, 12, HighPointSearchConfig(result_count=3))
    )

    assert len(result) == 3
    assert result[0].point.latitude > 51.04


# ===========================================================================
# Provider wiring
# ===========================================================================
def test_default_stack_structure():
    settings = EngineSettings(opentopodata_dataset="eudem25m", chain_timeout_s=20.0)

    provider = build_elevation_provider(settings)

    assert isinstance(provider, CachingElevationProvider)
    chain = provider.inner
    assert isinstance(chain, FallbackElevationProvider)
    assert chain.timeout_s == 20.0
    primary, fallback = chain.providers
    assert isinstance(primary, OpenElevationProvider)
    assert isinstance(fallback, OpenTopoDataProvider)
    assert fallback.dataset == "eudem25m"
    assert primary.retries == settings.retries


def test_local_dem_appended_last(monkeypatch, tmp_path):
    sentinel = FakeElevationProvider()
    monkeypatch.setattr(
        "application.providers.GridElevationProvider.from_file", lambda path: sentinel
    )

    provider = build_elevation_provider(EngineSettings(dem_path=tmp_path / "dem.tif"))

    assert provider.inner.providers[-1] is sentinel


def test_default_stack_answers_from_primary():
    def handler(request):
        return httpx.Response(200, json={"results": [{"elevation": 5.0}, {"elevation": 6.0}]})

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            provider = build_elevation_provider(EngineSettings(backoff_s=0.0), client=client)
            return await provider.lookup([TX, RX])

    samples = asyncio.run(run())

    assert [s.elevation_m for s in samples] == [5.0, 6.0]
