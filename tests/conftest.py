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
Pytest configuration and shared fixtures for GTTile test suite.

This module provides:
- Shared fixtures for rasters, GeoKey directories and tiling options
- GeoTIFF input pairs written with GDAL
- Test utility functions

Fixtures are organized by scope:
- session: Created once per test session (expensive setup)
- function: Created for each test function (default)

Example:
    >>> def test_using_fixture(terrain_files):
    ...     height_path, color_path = terrain_files
    ...     assert height_path.exists()
"""

import logging
from typing import List, Tuple

import numpy as np
import pytest

from gttile.utils.data_models import TileCell, TilingOptions
from gttile.utils.raster import FLOAT32, RGB8, RasterBuffer
from tests.fixtures.mock_geotiff_factory import terrain_pair


# =============================================================================
# Session-scope Fixtures (Created once per test session)
# =============================================================================

@pytest.fixture(scope="session")
def temp_dir(tmp_path_factory):
    """
    Create a temporary directory for the entire test session.

    Returns:
        Path: Path to temporary directory
    """
    return tmp_path_factory.mktemp("gttile_tests")


# =============================================================================
# Function-scope Fixtures (Created for each test)
# =============================================================================

@pytest.fixture
def ramp_raster():
    """
    A 6x4 float raster where each pixel holds x + 10 * y.

    Returns:
        RasterBuffer: FLOAT32 raster
    """
    ys, xs = np.mgrid[0:4, 0:6]
    return RasterBuffer.from_array((xs + 10 * ys).astype(np.float32), FLOAT32)


@pytest.fixture
def rgb_raster():
    """
    A 5x3 RGB raster with distinct channel values per pixel.

    Returns:
        RasterBuffer: RGB8 raster
    """
    ys, xs = np.mgrid[0:3, 0:5]
    data = np.stack([xs * 10, ys * 20, xs + ys], axis=-1).astype(np.uint8)
    return RasterBuffer.from_array(data, RGB8)


@pytest.fixture
def default_options():
    """Tiling options with the built-in defaults."""
    return TilingOptions()


@pytest.fixture
def small_options():
    """
    Tiling options small enough for fast file-based tests.

    Returns:
        TilingOptions: 65..129 height tiles, no overwrite
    """
    return TilingOptions(min_height_tile_size=65, max_height_tile_size=129, max_color_tile_size=512)


@pytest.fixture
def terrain_files(tmp_path):
    """
    A 300x200 height GeoTIFF and a 600x400 color GeoTIFF over the same ground.

    Returns:
        Tuple[Path, Path]: (height_path, color_path)
    """
    return terrain_pair(tmp_path, width=300, height=200, color_ratio=2.0)


@pytest.fixture
def output_dir(tmp_path):
    """An empty directory for tile output."""
    out = tmp_path / "tiles"
    out.mkdir()
    return out


@pytest.fixture
def caplog_warnings(caplog):
    """caplog capturing WARNING and above."""
    caplog.set_level(logging.WARNING)
    return caplog


# =============================================================================
# Utility Functions
# =============================================================================

def rects_overlap(a: Tuple[int, int, int, int], b: Tuple[int, int, int, int]) -> bool:
    """True if two (x, y, w, h) rectangles share at least one pixel."""
    ax, ay, aw, ah = a
    bx, by, bw, bh = b
    return ax < bx + bw and bx < ax + aw and ay < by + bh and by < ay + ah


def assert_disjoint_and_contained(cells: List[TileCell], size: Tuple[int, int]):
    """Assert tile rectangles are pairwise disjoint and inside a (w, h) region."""
    rects = [c.rect() for c in cells]
    for x, y, w, h in rects:
        assert x >= 0 and y >= 0
        assert x + w <= size[0] and y + h <= size[1]
    for i, a in enumerate(rects):
        for b in rects[i + 1:]:
            assert not rects_overlap(a, b), f"{a} overlaps {b}"
