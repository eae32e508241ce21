"""Shared building blocks of the GeoTIFF Terrain Tiler."""
