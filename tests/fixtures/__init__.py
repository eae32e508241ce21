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
Test fixtures and mock data factories for GTTile tests.

This package contains:
- MockGeoTIFF: Factory for writing real GeoTIFF test files with GDAL
- terrain_pair: Writes a matching height/color GeoTIFF pair
"""

from tests.fixtures.mock_geotiff_factory import MockGeoTIFF, terrain_pair

__all__ = ['MockGeoTIFF', 'terrain_pair']
