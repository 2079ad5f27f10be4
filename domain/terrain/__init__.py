"""Terrain Bounded Context.

Responsible for physical geography and spatial calculations:
- Value Objects: GeoPoint, BoundingBox, ElevationSample, TerrainProfile
- Ports: ElevationProvider, TerrainRepository
- Services: geodesy (haversine, bearing, corridors), terrain_profile
- ProfileBuilder: cached, coalesced profile sampling over a provider
"""
