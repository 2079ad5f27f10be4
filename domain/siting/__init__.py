"""Siting Bounded Context.

Responsible for site selection along and around a link:
- Value Objects: RelayCandidate, HighPoint, search configurations
- Services: suggest_relays (corridor relay search), find_high_points
"""
