"""Versioned project record (save/load boundary format).

A record holds everything needed to reproduce an analysis: endpoints, an
optional relay, every LinkParameters field (by record key), the profile
sample count and, optionally, the antenna preset that sets antGainDb.

    {
      "version": 1,
      "tx": {"latitude": 51.0, "longitude": -1.0},
      "rx": {"latitude": 51.0, "longitude": -0.9},
      "relay": null,
      "inputs": {"freqMHz": 145.5, "txHeight_m": 10, ...},
      "sampleCount": 200,
      "antennaPreset": "vhf_dipole_3_0"
    }

Files saved by the earlier planner (no version, Leaflet-style {"lat", "lng"}
points) load as version 1.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from domain.coverage.errors import InvalidParameter
from domain.coverage.value_objects import LinkParameters, antenna_gain_db
from domain.terrain.value_objects import GeoPoint

RECORD_VERSION = 1
SUPPORTED_VERSIONS = frozenset({1})


def _upgrade_point(value: Any) -> Any:
    if isinstance(value, dict) and "lat" in value and "lng" in value:
        return {"latitude": value["lat"], "longitude": value["lng"]}
    return value


class ProjectRecord(BaseModel):
    version: int = RECORD_VERSION
    tx: GeoPoint
    rx: GeoPoint
    relay: GeoPoint | None = None
    inputs: LinkParameters = Field(default_factory=LinkParameters)
    sample_count: int = Field(default=200, ge=2, alias="sampleCount")
    antenna_preset: str | None = Field(default=None, alias="antennaPreset")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def upgrade_legacy(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        data.setdefault("version", RECORD_VERSION)
        if data["version"] not in SUPPORTED_VERSIONS:
            raise ValueError(f"Unsupported project record version: {data['version']}")
        for key in ("tx", "rx", "relay"):
            if key in data:
                data[key] = _upgrade_point(data[key])
        return data

    @classmethod
    def from_json(cls, text: str | bytes) -> "ProjectRecord":
        try:
            return cls.model_validate_json(text)
        except ValidationError as e:
            raise InvalidParameter(f"Invalid project record: {e}") from e

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)

    def link_parameters(self) -> LinkParameters:
        """Inputs with antGainDb resolved from antennaPreset when one is set.

        The "custom" preset keeps the gain stored in the inputs.
        """
        if self.antenna_preset is None:
            return self.inputs
        gain = antenna_gain_db(self.antenna_preset, self.inputs.ant_gain_db)
        return self.inputs.model_copy(update={"ant_gain_db": gain})

    def reversed(self) -> "ProjectRecord":
        """Same project with transmitter and receiver swapped."""
        return self.model_copy(update={"tx": self.rx, "rx": self.tx})
