"""Infrastructure Layer.

Adapters implementing domain ports (elevation backends, DEM loading).
"""
