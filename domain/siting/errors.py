"""Siting Bounded Context - Error Hierarchy."""

from __future__ import annotations


class SitingError(Exception):
    """Base error for relay and high-point searches."""


class NoViableRelay(SitingError):
    """Relay search completed but no candidate survived filtering and scoring.

    Distinct from ElevationUnavailable: the elevation service answered, there
    is just nothing worth suggesting.
    """
