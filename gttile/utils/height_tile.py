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
Height Tile Container Module.

Reads, writes and validates the binary height tile format: a fixed 36 byte
little-endian header followed by tile_size_pix^2 row-major samples.

    offset  type  field
    0       u32   magic ('GTTH')
    4       u32   tile_size_pix (2^N + 1)
    8       u32   bytes_per_sample (1, 2 or 4)
    12      u32   is_float (0 or 1)
    16      u32   pos_x
    20      u32   pos_y
    24      f32   pix_to_meters (> 0)
    28      f32   min_total_height
    32      f32   max_total_height

Headers are always validated before any sample byte is read.
"""

import logging
import math
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np

from gttile.utils.exceptions import (BadMagicError, BadRangeError, BadSampleEncodingError,
                                     BadScaleError, BadTileSizeError, HeaderMismatchError,
                                     TruncatedTileError)

logger = logging.getLogger(__name__)

HEADER_FORMAT = '<6I3f'
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)
MAGIC = int.from_bytes(b'GTTH', 'big')
WRITE_CHUNK_ROWS = 32

# height_sample_format -> (bytes_per_sample, is_float)
SAMPLE_FORMATS = {
    'u8': (1, False),
    'u16': (2, False),
    'f32': (4, True),
}


def _f32(value: float) -> float:
    return float(np.float32(value))


def is_legal_tile_size(size: int) -> bool:
    """True for sizes of the form 2^N + 1 (N >= 0)."""
    n = size - 1
    return n >= 1 and (n & (n - 1)) == 0


@dataclass
class HeightTileHeader:
    """
    Header of one height tile.

    The float fields are stored at 32-bit precision on construction, so a
    header survives a write/read cycle unchanged.
    """
    tile_size_pix: int
    bytes_per_sample: int
    is_float: bool
    pos_x: int
    pos_y: int
    pix_to_meters: float
    min_total_height: float
    max_total_height: float
    magic: int = MAGIC

    def __post_init__(self):
        self.is_float = bool(self.is_float)
        self.pix_to_meters = _f32(self.pix_to_meters)
        self.min_total_height = _f32(self.min_total_height)
        self.max_total_height = _f32(self.max_total_height)

    @classmethod
    def for_format(cls, sample_format: str, tile_size_pix: int, pos_x: int, pos_y: int,
                   pix_to_meters: float, min_total_height: float, max_total_height: float) -> 'HeightTileHeader':
        """Build a header for one of the SAMPLE_FORMATS names ('u8', 'u16', 'f32')."""
        bytes_per_sample, is_float = SAMPLE_FORMATS[sample_format]
        return cls(tile_size_pix, bytes_per_sample, is_float, pos_x, pos_y,
                   pix_to_meters, min_total_height, max_total_height)

    @property
    def sample_dtype(self) -> np.dtype:
        if self.is_float:
            return np.dtype('<f4')
        return np.dtype('<u2') if self.bytes_per_sample == 2 else np.dtype('u1')

    @property
    def body_size(self) -> int:
        return self.tile_size_pix * self.tile_size_pix * self.bytes_per_sample

    def pack(self) -> bytes:
        return struct.pack(HEADER_FORMAT, self.magic, self.tile_size_pix, self.bytes_per_sample,
                           int(self.is_float), self.pos_x, self.pos_y, self.pix_to_meters,
                           self.min_total_height, self.max_total_height)

    @classmethod
    def unpack(cls, data: bytes) -> 'HeightTileHeader':
        if len(data) < HEADER_SIZE:
            raise TruncatedTileError(f"Height tile header needs {HEADER_SIZE} bytes, got {len(data)}")
        (magic, tile_size, bytes_per_sample, is_float, pos_x, pos_y,
         pix_to_meters, min_height, max_height) = struct.unpack(HEADER_FORMAT, data[:HEADER_SIZE])
        return cls(tile_size, bytes_per_sample, bool(is_float), pos_x, pos_y,
                   pix_to_meters, min_height, max_height, magic=magic)

    def validate(self):
        """
        Check every header invariant.

        Raises:
            BadMagicError: Magic number is not 'GTTH'.
            BadTileSizeError: Tile size is not 2^N + 1.
            BadSampleEncodingError: Float tiles need 4 byte samples, integer tiles 1 or 2.
            BadScaleError: pix_to_meters is not positive.
            BadRangeError: Heights are negative, not finite, or min > max.
        """
        if self.magic != MAGIC:
            raise BadMagicError(f"Bad height tile magic 0x{self.magic:08X}, expected 0x{MAGIC:08X}")
        if not is_legal_tile_size(self.tile_size_pix):
            raise BadTileSizeError(f"Height tile size {self.tile_size_pix} is not 2^N + 1")
        if self.is_float:
            if self.bytes_per_sample != 4:
                raise BadSampleEncodingError(
                    f"Float height tiles need 4 bytes per sample, got {self.bytes_per_sample}")
        elif self.bytes_per_sample not in (1, 2):
            raise BadSampleEncodingError(
                f"Integer height tiles need 1 or 2 bytes per sample, got {self.bytes_per_sample}")
        if not self.pix_to_meters > 0:
            raise BadScaleError(f"Height tile pix_to_meters must be positive, got {self.pix_to_meters}")
        lo, hi = self.min_total_height, self.max_total_height
        if not (math.isfinite(lo) and math.isfinite(hi)) or lo < 0 or hi < 0 or lo > hi:
            raise BadRangeError(f"Invalid height tile range [{lo}, {hi}]")


# Compared by validate_compatible, in order
_COMPATIBLE_FIELDS = ('magic', 'bytes_per_sample', 'is_float', 'pix_to_meters',
                      'min_total_height', 'max_total_height')


def validate_compatible(a: HeightTileHeader, b: HeightTileHeader):
    """Raise HeaderMismatchError naming the first field sibling tiles disagree on."""
    for name in _COMPATIBLE_FIELDS:
        _compare_field(a, b, name)


def validate_exact_match(a: HeightTileHeader, b: HeightTileHeader):
    """Like validate_compatible, and the tile sizes must also match."""
    _compare_field(a, b, 'tile_size_pix')
    validate_compatible(a, b)


def _compare_field(a: HeightTileHeader, b: HeightTileHeader, name: str):
    va, vb = getattr(a, name), getattr(b, name)
    if va != vb:
        raise HeaderMismatchError(f"Height tile headers differ in {name}: {va} != {vb}")


@dataclass
class HeightTile:
    """A validated header and its (tile_size_pix, tile_size_pix) sample grid."""
    header: HeightTileHeader
    samples: np.ndarray

    def normalized_heights(self) -> np.ndarray:
        """
        Heights scaled to 0..1.

        Integer samples are divided by the largest value of their type;
        float samples are divided by max_total_height (0 when it is 0).
        """
        if self.header.is_float:
            top = self.header.max_total_height
            if top <= 0:
                return np.zeros(self.samples.shape, dtype=np.float32)
            return (self.samples.astype(np.float32) / np.float32(top)).astype(np.float32)
        top = float(np.iinfo(self.samples.dtype).max)
        return (self.samples.astype(np.float32) / np.float32(top)).astype(np.float32)


def write_height_tile(path: Union[str, Path], header: HeightTileHeader, samples: np.ndarray):
    """
    Validate a header and write it followed by its samples.

    Samples are written in chunks of WRITE_CHUNK_ROWS rows. Their type must
    match the header encoding; only the byte order is converted.

    Raises:
        TileFormatError: Invalid header, or samples of another type than the header declares.
        ValueError: Samples that are not tile_size_pix x tile_size_pix.
    """
    header.validate()
    size = header.tile_size_pix
    if samples.shape != (size, size):
        raise ValueError(f"Expected {size}x{size} samples, got shape {samples.shape}")
    expected = header.sample_dtype
    if samples.dtype.kind != expected.kind or samples.dtype.itemsize != expected.itemsize:
        raise BadSampleEncodingError(
            f"Invalid sample type {samples.dtype} for a header of {header.bytes_per_sample} byte "
            f"{'float' if header.is_float else 'integer'} samples")
    data = np.ascontiguousarray(samples, dtype=expected)

    with open(path, 'wb') as f:
        f.write(header.pack())
        for row in range(0, size, WRITE_CHUNK_ROWS):
            f.write(data[row:row + WRITE_CHUNK_ROWS].tobytes())


def read_height_tile_header(path: Union[str, Path]) -> HeightTileHeader:
    with open(path, 'rb') as f:
        header = HeightTileHeader.unpack(f.read(HEADER_SIZE))
    header.validate()
    return header


def read_height_tile(path: Union[str, Path]) -> HeightTile:
    """
    Read a height tile, validating the header before the body.

    Raises:
        TileFormatError: Any header violation, or a body shorter than declared.
    """
    with open(path, 'rb') as f:
        header = HeightTileHeader.unpack(f.read(HEADER_SIZE))
        header.validate()
        body = f.read(header.body_size)
    if len(body) < header.body_size:
        raise TruncatedTileError(
            f"{Path(path).name}: body holds {len(body)} bytes, header declares {header.body_size}")
    size = header.tile_size_pix
    samples = np.frombuffer(body, dtype=header.sample_dtype).reshape(size, size)
    return HeightTile(header, samples.astype(header.sample_dtype.newbyteorder('=')))

