"""Command implementations of the GeoTIFF Terrain Tiler."""
