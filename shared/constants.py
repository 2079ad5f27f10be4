"""Single source of truth for physical constants.

Imported by domain/terrain (geodesy), domain/coverage (propagation) and
domain/siting (corridor and grid generation). Keep this module free of
third-party imports.
"""

from __future__ import annotations

# Mean Earth radius. Every distance in this project is in meters.
EARTH_RADIUS_M: float = 6_371_000.0

# Local flat-Earth scale used for small offsets (corridors, grids)
METERS_PER_DEGREE_LAT: float = 111_320.0

# Wavelength in meters is SPEED_OF_LIGHT_MHZ_M / freq_MHz
SPEED_OF_LIGHT_MHZ_M: float = 300.0

# Standard atmosphere effective-radius multiplier
STANDARD_K_FACTOR: float = 4.0 / 3.0
