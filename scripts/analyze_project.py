#!/usr/bin/env python3
"""Analyze a saved project record from the command line.

Usage:
    python scripts/analyze_project.py project.json
    python scripts/analyze_project.py project.json --dem tests/fixtures/dem.tif
    python scripts/analyze_project.py project.json --relays

Settings come from RFPATH_* environment variables (or a .env file); --dem
overrides RFPATH_DEM_PATH and --antenna overrides the record's antennaPreset.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from application import EngineSettings, LinkAnalyzer, ProjectRecord
from application.analysis import AnalysisResult
from application.providers import build_elevation_provider
from domain.coverage.errors import CoverageError
from domain.siting.errors import NoViableRelay
from domain.terrain.errors import TerrainError

logger = logging.getLogger("analyze_project")


def _print_result(result: AnalysisResult) -> None:
    print(
        f"Link: {result.summary.distance_km:.2f} km, "
        f"bearing {result.summary.bearing_deg:.1f} deg"
    )
    names = ("tx -> relay", "relay -> rx") if result.is_relay else ("tx -> rx",)
    for name, leg in zip(names, result.legs):
        height = leg.min_height
        extra = "unreachable" if height.extra_m is None else f"+{height.extra_m:.2f} m"
        print(
            f"  {name}: margin {leg.margin_db:+.1f} dB ({leg.link_class.value}), "
            f"diffraction {leg.diffraction.loss_db:.1f} dB, "
            f"Fresnel {leg.fresnel.worst_clearance_m:+.1f} m, "
            f"min power {leg.min_power.required_tx_w:.2f} W, mast {extra}"
        )


async def _run(args: argparse.Namespace) -> int:
    settings = EngineSettings.from_env()
    if args.dem is not None:
        settings = settings.model_copy(update={"dem_path": args.dem})

    record = ProjectRecord.from_json(args.project.read_text(encoding="utf-8"))
    if args.antenna is not None:
        record = record.model_copy(update={"antenna_preset": args.antenna})
    analyzer = LinkAnalyzer(build_elevation_provider(settings), settings)

    result = await analyzer.analyze_project(record)
    _print_result(result)

    if args.relays:
        try:
            candidates = await analyzer.suggest_relays(
                record.tx, record.rx, record.link_parameters()
            )
        except NoViableRelay as e:
            print(f"No relay suggestions: {e}")
            return 0
        for c in candidates:
            print(
                f"  relay ({c.point.latitude:.5f}, {c.point.longitude:.5f}) "
                f"{c.elevation_m:.0f} m, bottleneck {c.bottleneck_margin_db:+.1f} dB"
            )
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("project", type=Path, help="Project record (JSON)")
    parser.add_argument("--dem", type=Path, default=None, help="Local GeoTIFF fallback")
    parser.add_argument(
        "--antenna",
        default=None,
        help="Antenna preset overriding the record (e.g. vhf_dipole_3_0, custom)",
    )
    parser.add_argument("--relays", action="store_true", help="Also suggest relay sites")
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except (TerrainError, CoverageError, OSError) as e:
        logger.error("Analysis failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
