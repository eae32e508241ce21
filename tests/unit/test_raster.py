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
Unit tests for the raster buffer.

Organization:
- Pixel layouts
- Construction, sizing and bounds checks
- Row, rectangle and raw byte access
- In-place geometry (flips and rotations)
- Module level conversions
"""

import numpy as np
import pytest

from gttile.utils.exceptions import RasterBoundsError
from gttile.utils.raster import (FLOAT32, RGB8, UINT8, UINT16, RasterBuffer, convert, extrema,
                                 layout_for, replace_values, same_pixels)


@pytest.mark.unit
@pytest.mark.raster
class TestPixelLayout:
    """Test layout descriptions."""

    def test_sizes(self):
        assert FLOAT32.bytes_per_pixel == 4
        assert RGB8.bytes_per_pixel == 3
        assert UINT16.bits_per_channel == 16
        assert FLOAT32.is_float and not UINT8.is_float

    def test_value_range(self):
        assert UINT8.value_range() == (0.0, 255.0)
        assert UINT16.value_range() == (0.0, 65535.0)

    def test_layout_for(self):
        assert layout_for(np.uint8, 3) is RGB8
        assert layout_for(np.dtype('>f4'), 1) is FLOAT32
        assert layout_for(np.int16, 1).name == "int16x1"


@pytest.mark.unit
@pytest.mark.raster
class TestRasterBuffer:
    """Test construction, access and bounds."""

    def test_new_raster_is_zeroed(self):
        r = RasterBuffer(FLOAT32, 4, 3)
        assert r.size == (4, 3)
        assert r.shape == (3, 4)
        assert r.pitch == 16
        assert not r.array.any()

    def test_get_set(self):
        r = RasterBuffer(RGB8, 2, 2)
        r.set(1, 0, (1, 2, 3))
        assert r.get(1, 0) == (1, 2, 3)
        assert r.get(0, 1) == (0, 0, 0)

    def test_out_of_bounds_pixel(self):
        r = RasterBuffer(FLOAT32, 2, 2)
        with pytest.raises(RasterBoundsError):
            r.get(2, 0)
        with pytest.raises(RasterBoundsError):
            r.set(0, -1, 1.0)

    def test_bounds_error_is_value_error(self):
        with pytest.raises(ValueError):
            RasterBuffer(FLOAT32, 2, 2).get_rect(1, 1, 2, 2)

    def test_init_reuses_capacity(self):
        """Shrinking keeps the allocation; growing beyond it reallocates."""
        r = RasterBuffer(FLOAT32, 10, 10)
        r.init(5, 5)
        assert r.capacity == 100
        assert r.size == (5, 5)
        r.init(20, 10)
        assert r.capacity == 200

    def test_from_array_copies(self):
        data = np.arange(6, dtype=np.float32).reshape(2, 3)
        r = RasterBuffer.from_array(data)
        data[0, 0] = 99
        assert r.get(0, 0) == 0.0
        assert r.layout is FLOAT32

    def test_from_array_channel_mismatch(self):
        with pytest.raises(ValueError):
            RasterBuffer.from_array(np.zeros((2, 2), dtype=np.uint8), RGB8)

    def test_get_rect(self, ramp_raster):
        rect = ramp_raster.get_rect(2, 1, 3, 2)
        assert rect.size == (3, 2)
        assert rect.get(0, 0) == 12.0
        assert rect.get(2, 1) == 24.0

    def test_set_rect(self, ramp_raster):
        patch = RasterBuffer.from_array(np.full((2, 2), -1.0, dtype=np.float32))
        ramp_raster.set_rect(4, 2, patch)
        assert ramp_raster.get(5, 3) == -1.0
        assert ramp_raster.get(3, 3) == 33.0
        with pytest.raises(RasterBoundsError):
            ramp_raster.set_rect(5, 3, patch)

    def test_set_rect_channel_mismatch(self, ramp_raster, rgb_raster):
        with pytest.raises(ValueError):
            ramp_raster.set_rect(0, 0, rgb_raster.get_rect(0, 0, 1, 1))

    def test_rows(self, ramp_raster):
        rows = ramp_raster.get_rows(1, 2)
        assert rows.size == (6, 2)
        target = RasterBuffer(FLOAT32, 6, 4)
        target.set_rows(2, rows)
        assert target.get(0, 2) == 10.0
        with pytest.raises(RasterBoundsError):
            target.set_rows(0, RasterBuffer(FLOAT32, 5, 1))

    def test_clear_rect(self, rgb_raster):
        rgb_raster.clear_rect((9, 9, 9), 1, 1, 2, 2)
        assert rgb_raster.get(2, 2) == (9, 9, 9)
        assert rgb_raster.get(0, 0) == (0, 0, 0)

    def test_clone_is_independent(self, ramp_raster):
        copy = ramp_raster.clone()
        copy.clear()
        assert ramp_raster.get(5, 3) == 35.0
        assert same_pixels(ramp_raster, ramp_raster.clone_rect(0, 0, 6, 4))


@pytest.mark.unit
@pytest.mark.raster
class TestRawAccess:
    """Test raw byte rows and rectangles."""

    def test_raw_rows_round_trip(self, ramp_raster):
        raw = ramp_raster.get_raw_rows(1, 2)
        assert len(raw) == 2 * ramp_raster.pitch
        target = RasterBuffer(FLOAT32, 6, 4)
        assert target.set_raw_rows(0, raw) == 2
        assert target.get(3, 1) == 23.0
        assert target.to_bytes()[:len(raw)] == raw

    def test_raw_rows_swapped(self):
        r = RasterBuffer(UINT16, 2, 1)
        r.set_raw_rows(0, b'\x01\x02\x03\x04', swap_bytes=True)
        native = np.frombuffer(b'\x01\x02\x03\x04', dtype=np.dtype(np.uint16).newbyteorder('S'))
        assert r.get(0, 0) == int(native[0])
        assert r.get(1, 0) == int(native[1])

    def test_raw_rows_partial_row(self):
        r = RasterBuffer(UINT8, 4, 2)
        with pytest.raises(RasterBoundsError):
            r.set_raw_rows(0, b'\x00\x01\x02')

    def test_raw_rows_past_end(self):
        r = RasterBuffer(UINT8, 2, 2)
        with pytest.raises(RasterBoundsError):
            r.set_raw_rows(1, b'\x00' * 4)

    def test_raw_rect(self, rgb_raster):
        raw = rgb_raster.get_raw_rect(1, 1, 2, 2)
        assert len(raw) == 12
        target = RasterBuffer(RGB8, 5, 3)
        target.set_raw_rect(3, 0, 2, 2, raw)
        assert target.get(3, 0) == rgb_raster.get(1, 1)
        with pytest.raises(RasterBoundsError):
            target.set_raw_rect(0, 0, 2, 2, raw[:-1])


@pytest.mark.unit
@pytest.mark.raster
class TestGeometry:
    """Test flips and rotations."""

    def test_flip_vertical(self, ramp_raster):
        ramp_raster.flip_vertical()
        assert ramp_raster.get(0, 0) == 30.0
        assert ramp_raster.get(0, 3) == 0.0

    def test_flip_horizontal(self, ramp_raster):
        ramp_raster.flip_horizontal()
        assert ramp_raster.get(0, 0) == 5.0

    def test_rotate_90_counter_clockwise(self, ramp_raster):
        """The top-right pixel moves to the top-left."""
        ramp_raster.rotate(90)
        assert ramp_raster.size == (4, 6)
        assert ramp_raster.get(0, 0) == 5.0
        assert ramp_raster.get(0, 5) == 0.0
        assert ramp_raster.get(3, 0) == 35.0

    def test_rotate_180(self, ramp_raster):
        ramp_raster.rotate(180)
        assert ramp_raster.size == (6, 4)
        assert ramp_raster.get(0, 0) == 35.0

    def test_rotate_270(self, ramp_raster):
        ramp_raster.rotate(270)
        assert ramp_raster.size == (4, 6)
        assert ramp_raster.get(0, 0) == 30.0

    def test_full_turn_is_identity(self, ramp_raster):
        original = ramp_raster.clone()
        for _ in range(4):
            ramp_raster.rotate(90)
        assert same_pixels(original, ramp_raster)

    def test_rotate_rejects_other_angles(self, ramp_raster):
        with pytest.raises(ValueError):
            ramp_raster.rotate(45)


@pytest.mark.unit
@pytest.mark.raster
class TestConversions:
    """Test convert, extrema and replace_values."""

    def test_convert_to_u16_rounds_to_nearest(self):
        src = RasterBuffer.from_array(np.array([[0.0, 0.5, 1.0]], dtype=np.float32))
        out = convert(src, UINT16, 0.0, 1000.0, 0.5)
        assert out.layout is UINT16
        assert out.array.tolist() == [[0, 500, 1000]]

    def test_convert_clips(self):
        src = RasterBuffer.from_array(np.array([[-5.0, 300.0]], dtype=np.float32))
        assert convert(src, UINT8).array.tolist() == [[0, 255]]

    def test_convert_translation_then_scale(self):
        src = RasterBuffer.from_array(np.array([[110.0]], dtype=np.float32))
        assert convert(src, FLOAT32, -100.0, 2.0).get(0, 0) == 20.0

    def test_convert_channel_mismatch(self, rgb_raster):
        with pytest.raises(ValueError):
            convert(rgb_raster, FLOAT32)

    def test_extrema_ignores_nodata_and_nan(self):
        src = RasterBuffer.from_array(np.array([[np.nan, -9999.0, 3.0, 7.0]], dtype=np.float32))
        assert extrema(src, -9999.0) == (3.0, 7.0)

    def test_extrema_no_valid_data(self):
        src = RasterBuffer.from_array(np.array([[-9999.0]], dtype=np.float32))
        assert extrema(src, -9999.0) == (0.0, 0.0)

    def test_replace_values(self):
        src = RasterBuffer.from_array(np.array([[np.nan, -9999.0, 3.0]], dtype=np.float32))
        assert replace_values(src, -9999.0, 1.0) == 2
        assert src.array.tolist() == [[1.0, 1.0, 3.0]]
