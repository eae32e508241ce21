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
Unit tests for height/color alignment checks.

Headers are built directly so each rule can be exercised without files.
"""

import pytest

from gttile.utils.alignment import (check_square_pixels, check_tie_points, check_units, color_rect,
                                    color_tile_size, compute_alignment, effective_max_tile_size,
                                    linear_unit_meters)
from gttile.utils.data_models import (Alignment, GeoKeyDirectory, GeoTiffHeader, ModelType, SampleKind,
                                      TiePoint, TileCell, TilingOptions)
from gttile.utils.exceptions import ConfigurationError, TiePointMismatchError


def make_header(channels=1, bits=32, kind=SampleKind.FLOAT, scale=10.0, origin=(500000.0, 4100000.0),
                width=300, height=200, geokeys=None, scale_y=None):
    return GeoTiffHeader(
        path='test.tif', width=width, height=height, channel_count=channels,
        bits_per_channel=bits, sample_kind=kind,
        pix_to_proj_scale=(scale, scale if scale_y is None else scale_y, 0.0),
        tie_points=[TiePoint((0.0, 0.0, 0.0), (origin[0], origin[1], 0.0))],
        geokeys=geokeys)


def height_header(**kwargs):
    return make_header(**kwargs)


def color_header(**kwargs):
    kwargs.setdefault('scale', 5.0)
    kwargs.setdefault('width', 600)
    kwargs.setdefault('height', 400)
    return make_header(channels=3, bits=8, kind=SampleKind.UINT, **kwargs)


@pytest.mark.unit
class TestComputeAlignment:
    """Test the full pair check and the derived scales."""

    def test_half_size_color_pixels(self, default_options):
        alignment = compute_alignment(height_header(), color_header(), default_options)
        assert alignment.hm_to_color_scale == 2.0
        assert alignment.color_to_hm_scale == 0.5
        assert alignment.tie_point_delta == (0.0, 0.0)
        # 4097 * 2 exceeds the 8192 cap, so the next legal size down is used
        assert alignment.max_height_tile_size == 2049

    def test_height_must_be_float(self, default_options):
        with pytest.raises(ConfigurationError, match="32-bit float"):
            compute_alignment(height_header(bits=16, kind=SampleKind.UINT), color_header(), default_options)

    def test_color_must_be_rgb8(self, default_options):
        bad = make_header(channels=4, bits=8, kind=SampleKind.UINT, scale=5.0)
        with pytest.raises(ConfigurationError, match="3 channel 8-bit"):
            compute_alignment(height_header(), bad, default_options)

    def test_no_height_tile_fits_color_cap(self):
        options = TilingOptions(min_height_tile_size=65, max_color_tile_size=100)
        with pytest.raises(ConfigurationError):
            compute_alignment(height_header(), color_header(), options)


@pytest.mark.unit
class TestPixelChecks:
    """Test pixel shape and unit checks."""

    def test_square_pixels(self):
        check_square_pixels(height_header())

    def test_non_square_pixels(self):
        with pytest.raises(ConfigurationError, match="non-square"):
            check_square_pixels(height_header(scale_y=11.0))

    def test_missing_scale(self):
        with pytest.raises(ConfigurationError):
            check_square_pixels(height_header(scale=0.0))

    def test_units_only_compared_when_declared(self):
        check_units(height_header(), color_header())
        metres = GeoKeyDirectory(proj_linear_units=9001)
        check_units(height_header(geokeys=metres), color_header(geokeys=GeoKeyDirectory()))

    def test_linear_units_mismatch(self):
        with pytest.raises(ConfigurationError, match="linear units"):
            check_units(height_header(geokeys=GeoKeyDirectory(proj_linear_units=9001)),
                        color_header(geokeys=GeoKeyDirectory(proj_linear_units=9002)))

    def test_vertical_units_mismatch(self):
        keys = GeoKeyDirectory(proj_linear_units=9001, vertical_units=9002)
        with pytest.raises(ConfigurationError, match="vertical units"):
            check_units(height_header(geokeys=keys), color_header(geokeys=GeoKeyDirectory()))


@pytest.mark.unit
class TestLinearUnits:
    """Test the metre size of height pixels."""

    def test_no_crs_keys_means_metres(self, default_options):
        assert linear_unit_meters(height_header()) == 1.0
        assert compute_alignment(height_header(), color_header(), default_options).pix_to_meters == 10.0

    def test_declared_feet(self, default_options):
        feet = GeoKeyDirectory(model_type=ModelType.PROJECTED, proj_linear_units=9002)
        alignment = compute_alignment(height_header(geokeys=feet), color_header(geokeys=feet), default_options)
        assert alignment.pix_to_meters == pytest.approx(3.048)

    def test_user_defined_unit_size(self):
        keys = GeoKeyDirectory(proj_linear_units=32767, proj_linear_unit_size=0.5)
        assert linear_unit_meters(height_header(geokeys=keys)) == 0.5

    def test_user_defined_without_size(self):
        with pytest.raises(ConfigurationError, match="unit size"):
            linear_unit_meters(height_header(geokeys=GeoKeyDirectory(proj_linear_units=32767)))

    def test_unknown_units_rejected(self):
        with pytest.raises(ConfigurationError, match="unsupported linear units"):
            linear_unit_meters(height_header(geokeys=GeoKeyDirectory(proj_linear_units=1234)))

    def test_geographic_rejected(self, default_options):
        keys = GeoKeyDirectory(model_type=ModelType.GEOGRAPHIC, geographic_type=4326)
        with pytest.raises(ConfigurationError, match="geographic"):
            compute_alignment(height_header(geokeys=keys), color_header(geokeys=keys), default_options)

    def test_units_from_epsg_code(self):
        utm = GeoKeyDirectory(model_type=ModelType.PROJECTED, projected_cs_type=32610)
        assert linear_unit_meters(height_header(geokeys=utm)) == pytest.approx(1.0)
        # NAD83 / California zone 3 (ftUS)
        state_plane = GeoKeyDirectory(model_type=ModelType.PROJECTED, projected_cs_type=2227)
        assert linear_unit_meters(height_header(geokeys=state_plane)) == pytest.approx(1200.0 / 3937.0)

@pytest.mark.unit
class TestTiePoints:
    """Test tie point comparison."""

    def test_offset_within_tolerance_warns(self, caplog_warnings):
        dx, dy = check_tie_points(height_header(), color_header(origin=(500005.0, 4100000.0)), 1.0)
        assert (dx, dy) == (5.0, 0.0)
        assert "misaligned by 0.500" in caplog_warnings.text

    def test_offset_beyond_tolerance(self):
        with pytest.raises(TiePointMismatchError):
            check_tie_points(height_header(), color_header(origin=(500000.0, 4099970.0)), 1.0)

    def test_raster_points_must_match(self):
        color = color_header()
        color.tie_points = [TiePoint((1.0, 0.0, 0.0), color.tie_points[0].model_pt)]
        with pytest.raises(TiePointMismatchError):
            check_tie_points(height_header(), color, 1.0)

    def test_no_tie_points(self):
        height = height_header()
        height.tie_points = []
        with pytest.raises(ConfigurationError):
            check_tie_points(height, color_header(), 1.0)


@pytest.mark.unit
class TestColorTiles:
    """Test color tile geometry."""

    def test_effective_max_tile_size(self):
        assert effective_max_tile_size(4097, 8192, 1.0) == 4097
        assert effective_max_tile_size(4097, 8192, 2.0) == 2049
        assert effective_max_tile_size(4097, 8192, 0.5) == 4097
        assert effective_max_tile_size(129, 10, 1.0) == 9

    def test_color_rect(self):
        alignment = Alignment(2.0, 0.5, (0.0, 0.0), 2049)
        cell = TileCell("0", 1, 0, (65, 0), 65)
        assert color_rect(cell, alignment, (600, 400)) == (130, 0, 130, 130)

    def test_color_rect_clamped(self):
        alignment = Alignment(2.0, 0.5, (0.0, 0.0), 2049)
        cell = TileCell("0", 0, 0, (250, 150), 65)
        assert color_rect(cell, alignment, (600, 400)) == (500, 300, 100, 100)

    def test_color_tile_size_block_aligned(self):
        alignment = Alignment(1.5, 1 / 1.5, (0.0, 0.0), 2049)
        cell = TileCell("0", 0, 0, (0, 0), 65)
        # 65 * 1.5 = 97.5 rounds to 98, then grows to a multiple of 4
        assert color_tile_size(cell, alignment, TilingOptions()) == 100
        assert color_tile_size(cell, alignment, TilingOptions(block_align_color_tiles=False)) == 98
