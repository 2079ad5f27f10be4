"""Coverage Bounded Context - Error Hierarchy."""

from __future__ import annotations


class CoverageError(Exception):
    """Base error for propagation and link-budget operations."""


class InvalidParameter(CoverageError, ValueError):
    """Link parameter outside its physically sane range."""
