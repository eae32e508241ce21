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
Unit tests for the TIFF codec.

These tests write small GeoTIFFs with GDAL (via MockGeoTIFF) and read them
back through TiffCodec, so they exercise the real tag layout GDAL produces.
"""

import sys

import numpy as np
import pytest
import tifffile
from osgeo import gdal

from gttile.utils.data_models import ModelType, Orientation, SampleKind
from gttile.utils.exceptions import ConfigurationError
from gttile.utils.raster import FLOAT32, RGB8, RasterBuffer
from gttile.utils.tiff_codec import TiffCodec, load_header, load_pixels, write_rgb
from tests.fixtures.mock_geotiff_factory import MockGeoTIFF, write_utm_geotiff


@pytest.fixture
def height_file(tmp_path):
    """A 40x30 float GeoTIFF with a -9999 no-data value."""
    data = np.arange(40 * 30, dtype=np.float32).reshape(30, 40)
    mock = MockGeoTIFF(width=40, height=30, pixel_data=data, nodata_value=-9999.0, rows_per_strip=7)
    return mock.save_to_file(tmp_path / "height.tif")


@pytest.mark.unit
class TestTiffCodec:
    """Test layout and tag access."""

    def test_layout(self, height_file):
        with TiffCodec(height_file) as codec:
            assert (codec.width, codec.height) == (40, 30)
            assert codec.samples_per_pixel == 1
            assert codec.bits_per_sample == 32
            assert codec.sample_format == SampleKind.FLOAT
            assert codec.orientation == Orientation.TOPLEFT
            assert not codec.is_tiled
            assert codec.rows_per_strip == 7
            assert codec.strip_count == 5

    def test_read_strip(self, height_file):
        with TiffCodec(height_file) as codec:
            first = codec.read_strip(0)
            last = codec.read_strip(codec.strip_count - 1)
            assert len(first) == 7 * 40 * 4
            # 30 rows in strips of 7 leave 2 rows for the last strip
            assert len(last) == 2 * 40 * 4
            with pytest.raises(IndexError):
                codec.read_strip(codec.strip_count)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            TiffCodec(tmp_path / "missing.tif")

    def test_not_a_tiff(self, tmp_path):
        path = tmp_path / "text.tif"
        path.write_text("not a tiff")
        with pytest.raises(ConfigurationError):
            TiffCodec(path)


@pytest.mark.unit
class TestLoadHeader:
    """Test GeoTIFF header loading."""

    def test_projected_float_header(self, height_file):
        with TiffCodec(height_file) as codec:
            header = load_header(codec)
        assert header.size == (40, 30)
        assert header.channel_count == 1
        assert header.bits_per_channel == 32
        assert header.sample_kind is SampleKind.FLOAT
        assert header.pix_to_proj_scale[:2] == (10.0, 10.0)
        assert header.tie_points[0].model_pt[:2] == (500000.0, 4100000.0)
        assert header.nodata_value == -9999.0
        assert header.geokeys.model_type is ModelType.PROJECTED
        assert header.geokeys.projected_cs_type == 32610

    def test_rgb_header(self, tmp_path):
        path = MockGeoTIFF(width=20, height=10, bands=3, data_type=gdal.GDT_Byte).save_to_file(tmp_path / "c.tif")
        with TiffCodec(path) as codec:
            header = load_header(codec)
        assert (header.channel_count, header.bits_per_channel) == (3, 8)
        assert header.sample_kind is SampleKind.UINT

    def test_tiled_rejected(self, tmp_path):
        path = MockGeoTIFF(width=64, height=64, tiled=True, tile_size=16).save_to_file(tmp_path / "t.tif")
        with TiffCodec(path) as codec:
            with pytest.raises(ConfigurationError, match="tiled"):
                load_header(codec)

    def test_plain_tiff_rejected(self, tmp_path):
        path = tmp_path / "plain.tif"
        tifffile.imwrite(str(path), np.zeros((16, 16), dtype=np.float32))
        with TiffCodec(path) as codec:
            with pytest.raises(ConfigurationError, match="GeoKeyDirectoryTag"):
                load_header(codec)


@pytest.mark.unit
class TestPixels:
    """Test pixel loading and RGB writing."""

    def test_load_pixels(self, height_file):
        with TiffCodec(height_file) as codec:
            raster = load_pixels(codec, FLOAT32)
        assert raster.size == (40, 30)
        assert raster.get(0, 0) == 0.0
        assert raster.get(39, 29) == float(40 * 30 - 1)

    def test_load_pixels_wrong_layout(self, height_file):
        with TiffCodec(height_file) as codec:
            with pytest.raises(ConfigurationError):
                load_pixels(codec, RGB8)

    @pytest.mark.parametrize("compression", ["lzw", "deflate", "none"])
    def test_write_rgb(self, tmp_path, rgb_raster, compression):
        path = tmp_path / "tile.tif"
        write_rgb(path, rgb_raster, Orientation.TOPLEFT, compression, rows_per_strip=2)
        with tifffile.TiffFile(str(path)) as tif:
            page = tif.pages[0]
            assert page.tags.get(274).value == 1
            assert page.rowsperstrip == 2
            assert np.array_equal(page.asarray(), rgb_raster.array)

    def test_write_rgb_reads_back_through_codec(self, tmp_path, rgb_raster):
        path = tmp_path / "tile.tif"
        write_rgb(path, rgb_raster)
        with TiffCodec(path) as codec:
            raster = load_pixels(codec, RGB8)
        assert isinstance(raster, RasterBuffer)
        assert np.array_equal(raster.array, rgb_raster.array)

    def test_write_rgb_needs_three_channels(self, tmp_path, ramp_raster):
        with pytest.raises(ValueError):
            write_rgb(tmp_path / "tile.tif", ramp_raster)


@pytest.mark.unit
class TestByteOrderAndOrientation:
    """Test non-native byte order and bottom-left files."""

    @pytest.fixture
    def big_endian_file(self, tmp_path):
        data = (np.arange(40 * 30, dtype=np.float32) * 0.25 - 100.0).reshape(30, 40)
        return write_utm_geotiff(tmp_path / "be.tif", data, byteorder='>', rows_per_strip=7), data

    def test_strips_in_file_byte_order(self, big_endian_file):
        path, data = big_endian_file
        with TiffCodec(path) as codec:
            assert codec.is_byte_swapped() == (sys.byteorder == 'little')
            assert codec.strip_count == 5
            assert codec.read_strip(0) == data[:7].astype('>f4').tobytes()
            assert codec.read_strip(4) == data[28:].astype('>f4').tobytes()

    def test_load_pixels_swaps_bytes(self, big_endian_file):
        path, data = big_endian_file
        with TiffCodec(path) as codec:
            raster = load_pixels(codec, FLOAT32)
        assert raster.array.dtype.isnative
        assert np.array_equal(raster.array, data)

    def test_strips_decoded_one_at_a_time(self, big_endian_file, monkeypatch):
        """Loading never decodes the whole page at once."""
        def whole_page(*args, **kwargs):
            raise AssertionError("whole page decoded")

        monkeypatch.setattr(tifffile.TiffPage, 'asarray', whole_page)
        path, data = big_endian_file
        with TiffCodec(path) as codec:
            raster = load_pixels(codec, FLOAT32)
        assert np.array_equal(raster.array, data)

    def test_compressed_strips(self, tmp_path, rgb_raster):
        path = tmp_path / "tile.tif"
        write_rgb(path, rgb_raster, compression='deflate', rows_per_strip=2)
        with TiffCodec(path) as codec:
            assert codec.strip_count == 2
            assert len(codec.read_strip(1)) == 5 * 3
            raster = load_pixels(codec, RGB8)
        assert np.array_equal(raster.array, rgb_raster.array)

    def test_bottom_left_header(self, tmp_path):
        data = np.zeros((8, 8), dtype=np.float32)
        path = write_utm_geotiff(tmp_path / "bl.tif", data, orientation=4)
        with TiffCodec(path) as codec:
            header = load_header(codec)
        assert header.orientation is Orientation.BOTLEFT
        assert header.geokeys.projected_cs_type == 32610
        assert header.pix_to_proj_scale[:2] == (10.0, 10.0)
