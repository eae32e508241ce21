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
TIFF Codec Module.

The tiler's only contact with the TIFF container, built on `tifffile`:
- `TiffCodec` reports image layout and byte order, exposes raw tag arrays,
  and serves pixel strips as bytes in file byte order;
- `load_header` turns a GeoTIFF into a `GeoTiffHeader`;
- `load_pixels` fills a `RasterBuffer` strip by strip, swapping bytes when
  the file order is not native;
- `write_rgb` writes a color tile as a stripped RGB TIFF.
"""

import logging
import math
import sys
from pathlib import Path
from typing import Any, Optional, Sequence, Union

import numpy as np
import tifffile

from gttile.utils.data_models import GeoTiffHeader, Orientation, SampleKind
from gttile.utils.exceptions import ConfigurationError, CorruptRasterError
from gttile.utils.geokey_parser import (GDAL_NODATA_TAG, GEO_ASCII_TAG, GEO_DOUBLE_TAG,
                                        GEO_KEY_DIRECTORY_TAG, MODEL_PIXEL_SCALE_TAG,
                                        MODEL_TIEPOINT_TAG, log_geokey_directory,
                                        parse_geokey_directory, read_gdal_nodata,
                                        read_model_pixel_scale, read_model_tie_points)
from gttile.utils.raster import PixelLayout, RasterBuffer

logger = logging.getLogger(__name__)

ORIENTATION_TAG = 274
SMIN_SAMPLE_VALUE_TAG = 340
SMAX_SAMPLE_VALUE_TAG = 341
PLANARCONFIG_CONTIG = 1
NATIVE_BYTEORDER = '<' if sys.byteorder == 'little' else '>'

# color_compression option -> tifffile compression
COMPRESSION_MAP = {
    'lzw': 'lzw',
    'deflate': 'zlib',
    'none': None,
}


def _as_sequence(value: Any) -> Sequence:
    if isinstance(value, (tuple, list, np.ndarray)):
        return value
    return (value,)


class TiffCodec:
    """Read access to the first image of a TIFF file."""

    def __init__(self, filename: Union[str, Path]):
        """
        Opens a TIFF file.

        Args:
            filename: Path to the TIFF file.

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigurationError: If the file has no image or is not a TIFF.
        """
        self.filename = Path(filename)
        if not self.filename.exists():
            raise FileNotFoundError(f"GeoTIFF file not found: {self.filename}")
        try:
            self.tif = tifffile.TiffFile(str(self.filename))
        except (tifffile.TiffFileError, ValueError) as e:
            raise ConfigurationError(f"Cannot read TIFF structure from '{self.filename}': {e}") from e
        if not self.tif.pages:
            self.tif.close()
            raise ConfigurationError(f"No TIFF pages found in '{self.filename}'")
        self.page = self.tif.pages[0]

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        self.tif.close()

    # --- layout ---

    @property
    def width(self) -> int:
        return int(self.page.imagewidth)

    @property
    def height(self) -> int:
        return int(self.page.imagelength)

    @property
    def samples_per_pixel(self) -> int:
        return int(self.page.samplesperpixel)

    @property
    def bits_per_sample(self) -> int:
        return int(_as_sequence(self.page.bitspersample)[0])

    @property
    def sample_format(self) -> int:
        return int(_as_sequence(self.page.sampleformat)[0])

    @property
    def planar_config(self) -> int:
        return int(self.page.planarconfig)

    @property
    def orientation(self) -> int:
        tag = self.page.tags.get(ORIENTATION_TAG)
        return int(tag.value) if tag is not None else int(Orientation.TOPLEFT)

    @property
    def is_tiled(self) -> bool:
        return bool(self.page.is_tiled)

    @property
    def rows_per_strip(self) -> int:
        rows = int(self.page.rowsperstrip or 0)
        if rows <= 0 or rows > self.height:
            return self.height
        return rows

    @property
    def strip_count(self) -> int:
        return int(math.ceil(self.height / self.rows_per_strip))

    def is_byte_swapped(self) -> bool:
        """True if the file byte order differs from this machine's."""
        return self.tif.byteorder != NATIVE_BYTEORDER

    # --- tags ---

    def _tag_value(self, code: int) -> Any:
        tag = self.page.tags.get(code)
        return None if tag is None else tag.value

    def get_shorts(self, code: int) -> Optional[list]:
        value = self._tag_value(code)
        return None if value is None else [int(v) for v in _as_sequence(value)]

    def get_doubles(self, code: int) -> Optional[list]:
        value = self._tag_value(code)
        return None if value is None else [float(v) for v in _as_sequence(value)]

    def get_string(self, code: int) -> Optional[str]:
        value = self._tag_value(code)
        if value is None:
            return None
        if isinstance(value, bytes):
            return value.decode('ascii', 'replace')
        return str(value)

    # --- pixels ---

    def read_strip(self, index: int) -> bytes:
        """
        Pixel bytes of one strip, in file byte order.

        Only the requested strip is read from the file and decompressed.

        Raises:
            IndexError: No such strip.
            CorruptRasterError: The strip is missing from the file or cannot be decoded.
        """
        if index < 0 or index >= self.strip_count:
            raise IndexError(f"Strip {index} out of range 0..{self.strip_count - 1}")
        offsets, counts = self.page.dataoffsets, self.page.databytecounts
        if index >= len(offsets) or index >= len(counts) or not counts[index]:
            raise CorruptRasterError(f"{self.filename}: strip {index} is missing")

        fh = self.tif.filehandle
        fh.seek(offsets[index])
        data = fh.read(counts[index])
        segment = self.page.decode(data, index)[0]
        if segment is None:
            raise CorruptRasterError(f"{self.filename}: strip {index} could not be decoded")

        rows = min(self.rows_per_strip, self.height - index * self.rows_per_strip)
        values = segment.reshape(-1)[:rows * self.width * self.samples_per_pixel]
        return values.astype(values.dtype.newbyteorder(self.tif.byteorder), copy=False).tobytes()


def load_header(codec: TiffCodec) -> GeoTiffHeader:
    """
    Read everything but the pixels of a GeoTIFF.

    Raises:
        ConfigurationError: Tiled or planar images, unsupported orientations,
            or a missing GeoKey directory.
        GeoKeyParseError: A malformed GeoKey directory.
    """
    path = str(codec.filename)
    if codec.is_tiled:
        raise ConfigurationError(f"{path} is tiled; only stripped GeoTIFFs are supported")
    if codec.samples_per_pixel > 1 and codec.planar_config != PLANARCONFIG_CONTIG:
        raise ConfigurationError(f"{path} uses planar configuration {codec.planar_config}; "
                                 f"only contiguous samples are supported")
    if codec.orientation not in Orientation._value2member_map_:
        raise ConfigurationError(f"{path} has unsupported orientation {codec.orientation}")
    if codec.sample_format not in SampleKind._value2member_map_:
        raise ConfigurationError(f"{path} has unsupported sample format {codec.sample_format}")

    directory = codec.get_shorts(GEO_KEY_DIRECTORY_TAG)
    if directory is None:
        raise ConfigurationError(f"{path} has no GeoKeyDirectoryTag")
    geokeys = parse_geokey_directory(directory, codec.get_doubles(GEO_DOUBLE_TAG),
                                     codec.get_string(GEO_ASCII_TAG))
    log_geokey_directory(geokeys, Path(path).name)

    smin = codec.get_doubles(SMIN_SAMPLE_VALUE_TAG)
    smax = codec.get_doubles(SMAX_SAMPLE_VALUE_TAG)

    header = GeoTiffHeader(
        path=path,
        width=codec.width,
        height=codec.height,
        channel_count=codec.samples_per_pixel,
        bits_per_channel=codec.bits_per_sample,
        sample_kind=SampleKind(codec.sample_format),
        orientation=Orientation(codec.orientation),
        rows_per_strip=codec.rows_per_strip,
        pix_to_proj_scale=read_model_pixel_scale(codec.get_doubles(MODEL_PIXEL_SCALE_TAG)),
        tie_points=read_model_tie_points(codec.get_doubles(MODEL_TIEPOINT_TAG)),
        geokeys=geokeys,
        min_sample_value=smin[0] if smin else 0.0,
        max_sample_value=smax[0] if smax else 0.0,
        nodata_value=read_gdal_nodata(codec.get_string(GDAL_NODATA_TAG)),
    )
    if header.width <= 0 or header.height <= 0:
        raise ConfigurationError(f"{path} has invalid size {header.width}x{header.height}")
    logger.debug(f"{Path(path).name}: {header.width}x{header.height}, {header.channel_count} x "
                 f"{header.bits_per_channel}-bit {header.sample_kind.name.lower()}, "
                 f"{header.orientation.name.lower()}")
    return header


def load_pixels(codec: TiffCodec, layout: PixelLayout) -> RasterBuffer:
    """
    Read all strips of an image into a new raster.

    Raises:
        ConfigurationError: The layout does not match the image samples.
        CorruptRasterError: A strip is not a whole number of rows, or the
            strips do not cover the image.
    """
    if layout.channels != codec.samples_per_pixel or layout.bits_per_channel != codec.bits_per_sample:
        raise ConfigurationError(f"{codec.filename} does not hold {layout} pixels")

    raster = RasterBuffer(layout, codec.width, codec.height)
    swap = codec.is_byte_swapped() and layout.bytes_per_channel > 1
    row = 0
    for index in range(codec.strip_count):
        raw = codec.read_strip(index)
        if raster.pitch == 0 or len(raw) % raster.pitch != 0:
            raise CorruptRasterError(
                f"{codec.filename}: strip {index} holds {len(raw)} bytes, "
                f"not a whole number of {raster.pitch} byte rows")
        if row + len(raw) // raster.pitch > raster.height:
            raise CorruptRasterError(f"{codec.filename}: strip {index} runs past the last row")
        row += raster.set_raw_rows(row, raw, swap_bytes=swap)
    if row != raster.height:
        raise CorruptRasterError(f"{codec.filename}: strips cover {row} of {raster.height} rows")
    return raster


def write_rgb(path: Union[str, Path], raster: RasterBuffer, orientation: Orientation = Orientation.TOPLEFT,
              compression: str = 'lzw', rows_per_strip: int = 32):
    """
    Write a 3 channel raster as a stripped RGB TIFF.

    LZW and deflate output use the horizontal differencing predictor.
    """
    if raster.layout.channels != 3:
        raise ValueError(f"Expected an RGB raster, got {raster.layout}")
    codec_name = COMPRESSION_MAP[compression]
    tifffile.imwrite(
        str(path),
        raster.array,
        photometric='rgb',
        planarconfig='contig',
        compression=codec_name,
        predictor=codec_name is not None,
        rowsperstrip=rows_per_strip,
        extratags=[(ORIENTATION_TAG, 'H', 1, int(orientation), False)],
    )
