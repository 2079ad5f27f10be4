"""Runtime settings for the analysis engine.

Defaults suit the public elevation services. Every field can be overridden
with an RFPATH_<FIELD_NAME> environment variable, optionally loaded from a
.env file.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

ENV_PREFIX = "RFPATH_"


class EngineSettings(BaseModel):
    open_elevation_url: str = "https://api.open-elevation.com"
    opentopodata_url: str = "https://api.opentopodata.org"
    opentopodata_dataset: str = "srtm90m"
    request_timeout_s: float = Field(default=12.0, ge=10.0, le=15.0)
    retries: int = Field(default=2, ge=2, le=3)
    backoff_s: float = Field(default=0.75, ge=0)
    chain_timeout_s: float = Field(default=30.0, gt=0)
    relay_concurrency: int = Field(default=3, ge=1)
    profile_sample_count: int = Field(default=200, ge=2)
    relay_leg_sample_count: int = Field(default=64, ge=2)
    dem_path: Path | None = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_env(
        cls,
        env_file: Path | str | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "EngineSettings":
        """Build settings from RFPATH_* variables.

        When environ is None, an optional .env file is loaded into os.environ
        first (existing variables win) and os.environ is read.
        """
        if environ is None:
            load_dotenv(env_file)
            environ = os.environ
        values = {
            name: environ[ENV_PREFIX + name.upper()]
            for name in cls.model_fields
            if ENV_PREFIX + name.upper() in environ
        }
        return cls.model_validate(values)
