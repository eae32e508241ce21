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
Raster Buffer Module.

An owned, numpy-backed 2D pixel grid used at every stage of the tiling
pipeline (load, crop, resample, convert). The pixel type is described by an
explicit `PixelLayout` rather than inferred, so one buffer class serves the
float height rasters, the 8-bit color rasters, and the converted outputs.

Pixel coordinates are (x, y) with y = 0 at the first stored row. Rectangles
are given as origin and size, and every rectangle or row range is
bounds-checked; out-of-bounds requests raise `RasterBoundsError`.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np

from gttile.utils.exceptions import RasterBoundsError

logger = logging.getLogger(__name__)

PixelValue = Union[int, float, Tuple]


@dataclass(frozen=True)
class PixelLayout:
    """
    Describes one pixel: channel count and the numpy type of each channel.

    Attributes:
        name: Short label used in file names and log output
        dtype: numpy channel type (native byte order)
        channels: Number of homogeneous channels per pixel
    """
    name: str
    dtype: np.dtype
    channels: int

    @property
    def is_float(self) -> bool:
        return np.dtype(self.dtype).kind == 'f'

    @property
    def bytes_per_channel(self) -> int:
        return np.dtype(self.dtype).itemsize

    @property
    def bytes_per_pixel(self) -> int:
        return self.bytes_per_channel * self.channels

    @property
    def bits_per_channel(self) -> int:
        return self.bytes_per_channel * 8

    def value_range(self) -> Tuple[float, float]:
        """Representable channel range (integer layouts only)."""
        if self.is_float:
            info = np.finfo(self.dtype)
        else:
            info = np.iinfo(self.dtype)
        return (float(info.min), float(info.max))

    def __str__(self) -> str:
        return self.name


FLOAT32 = PixelLayout('f32', np.dtype(np.float32), 1)
UINT8 = PixelLayout('u8', np.dtype(np.uint8), 1)
UINT16 = PixelLayout('u16', np.dtype(np.uint16), 1)
RGB8 = PixelLayout('rgb8', np.dtype(np.uint8), 3)
RGB16 = PixelLayout('rgb16', np.dtype(np.uint16), 3)
RGBF32 = PixelLayout('rgbf32', np.dtype(np.float32), 3)

LAYOUTS = (FLOAT32, UINT8, UINT16, RGB8, RGB16, RGBF32)


def layout_for(dtype, channels: int) -> PixelLayout:
    """Find the predefined layout for a channel type and count."""
    dtype = np.dtype(dtype).newbyteorder('=')
    for layout in LAYOUTS:
        if layout.dtype == dtype and layout.channels == channels:
            return layout
    return PixelLayout(f"{dtype.name}x{channels}", dtype, channels)


class RasterBuffer:
    """
    A 2D pixel grid with row, rectangle and raw byte access.

    The backing store is a flat numpy array sized to the largest
    allocation so far; `init` only reallocates when it must grow.

    Example:
        >>> r = RasterBuffer(FLOAT32, 4, 3)
        >>> r.set(1, 2, 5.0)
        >>> r.get(1, 2)
        5.0
    """

    def __init__(self, layout: PixelLayout, width: int = 0, height: int = 0):
        self.layout = layout
        self._store = np.zeros(0, dtype=layout.dtype)
        self.width = 0
        self.height = 0
        self.init(width, height)

    # --- construction ---

    @classmethod
    def from_array(cls, array: np.ndarray, layout: Optional[PixelLayout] = None) -> 'RasterBuffer':
        """Build a raster holding a copy of a (h, w) or (h, w, c) array."""
        array = np.asarray(array)
        if array.ndim not in (2, 3):
            raise ValueError(f"Expected a 2D or 3D array, got shape {array.shape}")
        channels = 1 if array.ndim == 2 else array.shape[2]
        if layout is None:
            layout = layout_for(array.dtype, channels)
        elif layout.channels != channels:
            raise ValueError(f"Layout {layout} expects {layout.channels} channels, array has {channels}")
        raster = cls(layout, array.shape[1], array.shape[0])
        raster.array[...] = array.reshape(raster.array.shape)
        return raster

    def init(self, width: int, height: int):
        """(Re)size the raster, reallocating only if capacity is insufficient."""
        if width < 0 or height < 0:
            raise ValueError(f"Invalid raster size {width}x{height}")
        needed = width * height * self.layout.channels
        if needed > self._store.size:
            self._store = np.zeros(needed, dtype=self.layout.dtype)
        self.width = width
        self.height = height

    @property
    def array(self) -> np.ndarray:
        """View of the pixels shaped (h, w) or (h, w, c)."""
        count = self.width * self.height * self.layout.channels
        return self._store[:count].reshape(self.shape)

    @property
    def shape(self) -> Tuple[int, ...]:
        if self.layout.channels == 1:
            return (self.height, self.width)
        return (self.height, self.width, self.layout.channels)

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    @property
    def pitch(self) -> int:
        """Bytes per row."""
        return self.width * self.layout.bytes_per_pixel

    @property
    def capacity(self) -> int:
        """Allocated pixel count."""
        return self._store.size // self.layout.channels

    def __repr__(self) -> str:
        return f"RasterBuffer({self.layout}, {self.width}x{self.height})"

    # --- bounds ---

    def _check_rect(self, x: int, y: int, width: int, height: int):
        if (x < 0 or y < 0 or width < 0 or height < 0
                or x + width > self.width or y + height > self.height):
            raise RasterBoundsError(
                f"Rectangle ({x}, {y}) {width}x{height} exceeds raster bounds "
                f"{self.width}x{self.height}")

    def _check_rows(self, y: int, count: int):
        if y < 0 or count < 0 or y + count > self.height:
            raise RasterBoundsError(
                f"Rows {y}..{y + count} exceed raster height {self.height}")

    def _check_source(self, src: 'RasterBuffer'):
        if src.layout.channels != self.layout.channels:
            raise ValueError(f"Cannot copy {src.layout} pixels into a {self.layout} raster")

    # --- pixel access ---

    def get(self, x: int, y: int) -> PixelValue:
        self._check_rect(x, y, 1, 1)
        value = self.array[y, x]
        if self.layout.channels == 1:
            return value.item()
        return tuple(v.item() for v in value)

    def set(self, x: int, y: int, value: PixelValue):
        self._check_rect(x, y, 1, 1)
        self.array[y, x] = value

    # --- rectangles and rows ---

    def get_rect(self, x: int, y: int, width: int, height: int) -> 'RasterBuffer':
        """Copy a rectangle out into a new raster."""
        self._check_rect(x, y, width, height)
        out = RasterBuffer(self.layout, width, height)
        out.array[...] = self.array[y:y + height, x:x + width]
        return out

    def set_rect(self, x: int, y: int, src: 'RasterBuffer'):
        """Copy all of `src` into this raster with its origin at (x, y)."""
        self._check_source(src)
        self._check_rect(x, y, src.width, src.height)
        self.array[y:y + src.height, x:x + src.width] = src.array

    def get_rows(self, y: int, count: int) -> 'RasterBuffer':
        return self.get_rect(0, y, self.width, count)

    def set_rows(self, y: int, src: 'RasterBuffer'):
        if src.width != self.width:
            raise RasterBoundsError(f"Row width {src.width} does not match raster width {self.width}")
        self.set_rect(0, y, src)

    # --- raw bytes ---

    def get_raw_rows(self, y: int, count: int) -> bytes:
        self._check_rows(y, count)
        return self.array[y:y + count].tobytes()

    def set_raw_rows(self, y: int, raw: Union[bytes, bytearray, memoryview], swap_bytes: bool = False) -> int:
        """
        Fill whole rows starting at `y` from raw pixel bytes.

        Args:
            y: First row to fill.
            raw: Pixel bytes, a whole number of rows long.
            swap_bytes: Treat the bytes as non-native order and swap them.

        Returns:
            int: The number of rows filled.
        """
        pitch = self.pitch
        if pitch == 0 or len(raw) % pitch != 0:
            raise RasterBoundsError(f"{len(raw)} bytes is not a whole number of {pitch} byte rows")
        count = len(raw) // pitch
        self._check_rows(y, count)
        self.array[y:y + count] = self._decode(raw, swap_bytes).reshape((count,) + self.shape[1:])
        return count

    def get_raw_rect(self, x: int, y: int, width: int, height: int) -> bytes:
        self._check_rect(x, y, width, height)
        return self.array[y:y + height, x:x + width].tobytes()

    def set_raw_rect(self, x: int, y: int, width: int, height: int,
                     raw: Union[bytes, bytearray, memoryview], swap_bytes: bool = False):
        self._check_rect(x, y, width, height)
        expected = width * height * self.layout.bytes_per_pixel
        if len(raw) != expected:
            raise RasterBoundsError(f"Expected {expected} bytes for a {width}x{height} rectangle, got {len(raw)}")
        block = self._decode(raw, swap_bytes)
        self.array[y:y + height, x:x + width] = block.reshape((height, width) + self.shape[2:])

    def to_bytes(self) -> bytes:
        return self.array.tobytes()

    def _decode(self, raw, swap_bytes: bool) -> np.ndarray:
        dtype = self.layout.dtype
        if swap_bytes and dtype.itemsize > 1:
            return np.frombuffer(raw, dtype=dtype.newbyteorder('S')).astype(dtype)
        return np.frombuffer(raw, dtype=dtype)

    # --- copies and fills ---

    def clone(self) -> 'RasterBuffer':
        out = RasterBuffer(self.layout, self.width, self.height)
        out.array[...] = self.array
        return out

    def clone_rect(self, x: int, y: int, width: int, height: int) -> 'RasterBuffer':
        return self.get_rect(x, y, width, height)

    def clear(self, value: PixelValue = 0):
        self.array[...] = value

    def clear_rect(self, value: PixelValue, x: int, y: int, width: int, height: int):
        self._check_rect(x, y, width, height)
        self.array[y:y + height, x:x + width] = value

    # --- geometry ---

    def flip_vertical(self):
        """Reverse the row order in place."""
        self.array[...] = self.array[::-1].copy()

    def flip_horizontal(self):
        """Reverse the column order in place."""
        self.array[...] = self.array[:, ::-1].copy()

    def rotate(self, degrees: int):
        """
        Rotate counter-clockwise by 90, 180 or 270 degrees.

        Quarter turns reallocate the store and swap width and height.
        """
        if degrees % 360 == 0:
            return
        if degrees not in (90, 180, 270):
            raise ValueError(f"Rotation must be 90, 180 or 270 degrees, got {degrees}")
        rotated = np.rot90(self.array, k=degrees // 90).copy()
        if degrees == 180:
            self.array[...] = rotated
            return
        self._store = rotated.reshape(-1)
        self.width, self.height = rotated.shape[1], rotated.shape[0]


def convert(src: RasterBuffer, layout: PixelLayout, translation: float = 0.0,
            scale: float = 1.0, rounding: float = 0.0) -> RasterBuffer:
    """
    Convert a raster to another channel type: out = (in + translation) * scale + rounding.

    Integer targets take the floor of the result and are clipped to the
    representable range, so a rounding of 0.5 rounds to nearest.

    Args:
        src: Source raster.
        layout: Target layout; must have the same channel count.
        translation: Added to every sample before scaling.
        scale: Multiplier applied after translation.
        rounding: Added after scaling (integer targets only make use of it).

    Returns:
        RasterBuffer: A new raster in the target layout.
    """
    if layout.channels != src.layout.channels:
        raise ValueError(f"Cannot convert {src.layout} to {layout}: channel counts differ")
    values = src.array.astype(np.float64)
    if translation:
        values += translation
    if scale != 1.0:
        values *= scale
    if layout.is_float:
        data = values.astype(layout.dtype)
    else:
        values += rounding
        lo, hi = layout.value_range()
        data = np.clip(np.floor(values), lo, hi).astype(layout.dtype)
    out = RasterBuffer(layout, src.width, src.height)
    out.array[...] = data
    return out


def extrema(raster: RasterBuffer, nodata: Optional[float] = None) -> Tuple[float, float]:
    """Min and max of all samples, ignoring NaN and the no-data value."""
    values = raster.array
    mask = ~np.isnan(values) if raster.layout.is_float else np.ones(values.shape, dtype=bool)
    if nodata is not None and not np.isnan(nodata):
        mask &= values != nodata
    if not mask.any():
        return (0.0, 0.0)
    valid = values[mask]
    return (float(valid.min()), float(valid.max()))


def replace_values(raster: RasterBuffer, target: Optional[float], replacement: float) -> int:
    """Replace NaN samples and samples equal to `target`; returns the count replaced."""
    values = raster.array
    mask = np.zeros(values.shape, dtype=bool)
    if raster.layout.is_float:
        mask |= np.isnan(values)
    if target is not None and not np.isnan(target):
        mask |= values == target
    count = int(mask.sum())
    if count:
        values[mask] = replacement
    return count


def same_pixels(a: RasterBuffer, b: RasterBuffer) -> bool:
    """True if both rasters have the same size, layout and pixel values."""
    return a.layout == b.layout and a.size == b.size and np.array_equal(a.array, b.array)

