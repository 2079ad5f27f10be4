"""RF Path Planner Domain Layer.

This package contains the core engineering logic organized by bounded contexts:
- terrain: Geodesy, elevation lookups, terrain profiles
- coverage: RF propagation, link budget, Fresnel clearance, mast height
- siting: Relay suggestion and high-point search
"""

# Imports alphabetized per project style (isort)
from domain import coverage, siting, terrain

__all__ = ["coverage", "siting", "terrain"]
