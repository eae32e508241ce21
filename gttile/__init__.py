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
GeoTIFF Terrain Tiler.

Converts a float height GeoTIFF and a matching RGB GeoTIFF into 2^N + 1
sized height tiles and size-capped color tiles for real-time terrain engines.
"""

__version__ = "1.0.0"
