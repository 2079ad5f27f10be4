"""Wiring of the default elevation provider stack from EngineSettings."""

from __future__ import annotations

import logging

import httpx

from application.settings import EngineSettings
from domain.terrain.repositories import ElevationProvider
from infrastructure.terrain import (
    CachingElevationProvider,
    FallbackElevationProvider,
    GridElevationProvider,
    OpenElevationProvider,
    OpenTopoDataProvider,
)

logger = logging.getLogger(__name__)


def build_elevation_provider(
    settings: EngineSettings, client: httpx.AsyncClient | None = None
) -> CachingElevationProvider:
    """Cache -> [Open-Elevation, OpenTopoData, local DEM if configured].

    The bulk service is primary; OpenTopoData is the wholesale fallback and a
    local DEM, when dem_path is set, is the last resort.
    """
    http_options = {
        "client": client,
        "timeout_s": settings.request_timeout_s,
        "retries": settings.retries,
        "backoff_s": settings.backoff_s,
    }
    backends: list[ElevationProvider] = [
        OpenElevationProvider(settings.open_elevation_url, **http_options),
        OpenTopoDataProvider(
            settings.opentopodata_url, settings.opentopodata_dataset, **http_options
        ),
    ]
    if settings.dem_path is not None:
        backends.append(GridElevationProvider.from_file(settings.dem_path))
        logger.info("Local DEM %s added as last elevation fallback", settings.dem_path.name)

    return CachingElevationProvider(
        FallbackElevationProvider(backends, timeout_s=settings.chain_timeout_s)
    )
