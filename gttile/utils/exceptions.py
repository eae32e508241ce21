#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# ******************************************************************************
# Project: GeoTIFF Terrain Tiler (GTTile)
# Author: Eric Robeck <robeckgeo@gmail.com>
#
# Copyright (c) 2025, Eric Robeck
# Licensed under the MIT License
# ******************************************************************************

"""
Custom Exceptions Module.

A centralized module for custom exceptions used throughout the GeoTIFF
Terrain Tiler. Every fatal condition raised by the tiler derives from
`GTTileError` so the CLI can report it and exit with a non-zero status.
"""

class GTTileError(Exception):
    """Base exception for all tiler errors."""
    pass

class ConfigurationError(GTTileError):
    """Inputs or options cannot be tiled together (formats, units, pixel shape)."""
    pass

class RasterBoundsError(GTTileError, ValueError):
    """A rectangle or row range lies outside the raster buffer."""
    pass

# --- Parse errors ---

class ParseError(GTTileError):
    """Base exception for malformed binary input."""
    pass

class GeoKeyParseError(ParseError):
    """Base exception for GeoKey directory decoding errors."""
    pass

class VersionError(GeoKeyParseError):
    """GeoKey directory version is not 1."""
    pass

class TruncatedDirectoryError(GeoKeyParseError):
    """A GeoKey directory header or key record runs past the end of the array."""
    pass

class ArityError(GeoKeyParseError):
    """A GeoKey declares a value count its storage location does not support."""
    pass

class CorruptReferenceError(GeoKeyParseError):
    """A GeoKey points outside, or inconsistently into, its auxiliary params array."""
    pass

class InvalidLocationError(GeoKeyParseError):
    """A GeoKey names a storage tag other than 0, 34736 or 34737."""
    pass

class CorruptRasterError(ParseError):
    """Pixel strips read from a GeoTIFF do not match the declared layout."""
    pass

class TileFormatError(ParseError):
    """Base exception for height tile container errors."""
    pass

class BadMagicError(TileFormatError):
    """Height tile header does not start with the expected magic number."""
    pass

class BadTileSizeError(TileFormatError):
    """Height tile size is not of the form 2^N + 1."""
    pass

class BadSampleEncodingError(TileFormatError):
    """Height tile sample kind and byte size disagree."""
    pass

class BadScaleError(TileFormatError):
    """Height tile pixel to meters scale is not positive."""
    pass

class BadRangeError(TileFormatError):
    """Height tile min/max terrain height range is invalid."""
    pass

class HeaderMismatchError(TileFormatError):
    """Two height tile headers that must agree differ in a field."""
    pass

class TruncatedTileError(TileFormatError):
    """Height tile body is shorter than its header declares."""
    pass

# --- Consistency errors ---

class ConsistencyError(GTTileError):
    """Height and color processing fell out of step."""
    pass

class DuplicateRegionIdError(ConsistencyError):
    """A tiling region was registered twice during the first pass."""
    pass

class UnpairedRegionIdError(ConsistencyError):
    """A tiling region visited in the second pass was never registered."""
    pass

class TiePointMismatchError(ConsistencyError):
    """Height and color tie points do not describe the same location."""
    pass
