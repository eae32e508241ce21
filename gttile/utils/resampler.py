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
Resampling Module.

Bilinear scaling and 2:1 box-filter reduction of `RasterBuffer` objects.

The two bilinear directions map destination pixels to the source
differently and both conventions are kept:
- upscale is corner-aligned, i -> i * (src - 1) / (dst - 1), so the four
  corner pixels are reproduced exactly;
- downscale is center-aligned, i -> (i + 0.5) * src / dst - 0.5, so each
  destination pixel samples the middle of the area it covers.

Large scale factors are handled in steps: upscaling pre-doubles and
downscaling pre-halves until the remaining factor is within 2x, then a
single bilinear pass reaches the exact target size. Integer rasters are
resampled in floating point and rounded back to their own channel type.
"""

import logging
from typing import Callable, Tuple, Union

import numpy as np

from gttile.utils.raster import RasterBuffer

logger = logging.getLogger(__name__)


def get_subpixel(raster: RasterBuffer, x: float, y: float) -> Union[float, Tuple[float, ...]]:
    """
    Bilinear interpolation at a fractional pixel position.

    Coordinates outside the raster are clamped to its edge pixels.

    Args:
        raster: Source raster.
        x: Column position in pixels.
        y: Row position in pixels.

    Returns:
        The interpolated value, or a tuple of channel values.

    Example:
        >>> r = RasterBuffer.from_array(np.array([[0.0, 2.0], [4.0, 6.0]], dtype=np.float32))
        >>> get_subpixel(r, 0.5, 0.5)
        3.0
    """
    values = _bilinear(raster.array.astype(np.float64),
                       np.array([float(x)]), np.array([float(y)]))
    pixel = values[0, 0]
    if raster.layout.channels == 1:
        return float(pixel)
    return tuple(float(v) for v in pixel)


def upscale(raster: RasterBuffer, width: int, height: int) -> RasterBuffer:
    """
    Grow a raster to (width, height) with corner-aligned bilinear sampling.

    Raises:
        ValueError: If a target dimension is smaller than the source or less than 2.
    """
    if width < raster.width or height < raster.height:
        raise ValueError(f"Upscale target {width}x{height} is smaller than source {raster.width}x{raster.height}")
    if width < 2 or height < 2:
        raise ValueError(f"Upscale target dimensions must be greater than 1, got {width}x{height}")
    return _resample_in_float(raster, lambda v: _upscale_values(v, width, height))


def downscale(raster: RasterBuffer, width: int, height: int) -> RasterBuffer:
    """
    Shrink a raster to (width, height) with center-aligned bilinear sampling.

    Integer rasters are reduced 2:1 in their own type while the target is at
    most half the current size, before any floating point work.

    Raises:
        ValueError: If a target dimension is larger than the source or less than 1.
    """
    if width > raster.width or height > raster.height:
        raise ValueError(f"Downscale target {width}x{height} is larger than source {raster.width}x{raster.height}")
    if width < 1 or height < 1:
        raise ValueError(f"Downscale target dimensions must be positive, got {width}x{height}")

    if not raster.layout.is_float:
        while width * 2 <= raster.width and height * 2 <= raster.height:
            raster = reduce_2to1(raster)

    return _resample_in_float(raster, lambda v: _downscale_values(v, width, height))


def scaled(raster: RasterBuffer, width: int, height: int) -> RasterBuffer:
    """
    Resize a raster to (width, height) in whichever direction each axis needs.

    The source object itself is returned when the size already matches.
    When one axis grows and the other shrinks, the growing axis is
    upscaled first and the shrinking axis downscaled second.
    """
    if (width, height) == raster.size:
        return raster
    if width >= raster.width and height >= raster.height:
        return upscale(raster, width, height)
    if width <= raster.width and height <= raster.height:
        return downscale(raster, width, height)

    if width > raster.width:
        grown = upscale(raster, width, raster.height)
    else:
        grown = upscale(raster, raster.width, height)
    return downscale(grown, width, height)


def reduce_2to1(raster: RasterBuffer) -> RasterBuffer:
    """
    Halve both dimensions by averaging each 2x2 block.

    Integer samples are summed in a wider integer type and divided by 4
    with a right shift; float samples are averaged exactly. An odd last
    row or column is dropped.

    Raises:
        ValueError: If the raster is narrower or shorter than 2 pixels.
    """
    if raster.width < 2 or raster.height < 2:
        raise ValueError(f"Cannot reduce a {raster.width}x{raster.height} raster 2:1")

    w, h = raster.width // 2, raster.height // 2
    src = raster.array[:h * 2, :w * 2]
    if raster.layout.is_float:
        wide = src.astype(np.float64)
        block = (wide[0::2, 0::2] + wide[0::2, 1::2] + wide[1::2, 0::2] + wide[1::2, 1::2]) * 0.25
    else:
        wide = src.astype(np.int64)
        block = (wide[0::2, 0::2] + wide[0::2, 1::2] + wide[1::2, 0::2] + wide[1::2, 1::2]) >> 2

    out = RasterBuffer(raster.layout, w, h)
    out.array[...] = block.astype(raster.layout.dtype)
    return out


# --- float pipelines ---

def _resample_in_float(raster: RasterBuffer, resample: Callable[[np.ndarray], np.ndarray]) -> RasterBuffer:
    values = resample(raster.array.astype(np.float64))
    if not raster.layout.is_float:
        lo, hi = raster.layout.value_range()
        values = np.clip(np.floor(values + 0.5), lo, hi)
    return RasterBuffer.from_array(values.astype(raster.layout.dtype), raster.layout)


def _upscale_values(values: np.ndarray, width: int, height: int) -> np.ndarray:
    h, w = values.shape[:2]
    while w * 2 < width and h * 2 < height:
        values = _corner_pass(values, w * 2, h * 2)
        h, w = values.shape[:2]
    while w * 2 < width:
        values = _corner_pass(values, w * 2, h)
        w = values.shape[1]
    while h * 2 < height:
        values = _corner_pass(values, w, h * 2)
        h = values.shape[0]
    return _corner_pass(values, width, height)


def _downscale_values(values: np.ndarray, width: int, height: int) -> np.ndarray:
    h, w = values.shape[:2]
    while width * 2 <= w and height * 2 <= h:
        values = _halve(_halve(values, 0), 1)
        h, w = values.shape[:2]
    while width * 2 <= w:
        values = _halve(values, 1)
        w = values.shape[1]
    while height * 2 <= h:
        values = _halve(values, 0)
        h = values.shape[0]
    return _center_pass(values, width, height)


def _halve(values: np.ndarray, axis: int) -> np.ndarray:
    """Average neighbouring pairs along one axis, dropping an odd last element."""
    n = values.shape[axis] // 2
    if axis == 0:
        return (values[0:2 * n:2] + values[1:2 * n:2]) * 0.5
    return (values[:, 0:2 * n:2] + values[:, 1:2 * n:2]) * 0.5


def _corner_pass(values: np.ndarray, width: int, height: int) -> np.ndarray:
    h, w = values.shape[:2]
    return _bilinear(values, _corner_coords(w, width), _corner_coords(h, height))


def _center_pass(values: np.ndarray, width: int, height: int) -> np.ndarray:
    h, w = values.shape[:2]
    return _bilinear(values, _center_coords(w, width), _center_coords(h, height))


def _corner_coords(src: int, dst: int) -> np.ndarray:
    if dst == src:
        return np.arange(dst, dtype=np.float64)
    if dst < 2:
        raise ValueError(f"Corner-aligned sampling needs a destination size above 1, got {dst}")
    return np.arange(dst, dtype=np.float64) * (src - 1) / (dst - 1)


def _center_coords(src: int, dst: int) -> np.ndarray:
    if dst == src:
        return np.arange(dst, dtype=np.float64)
    coords = (np.arange(dst, dtype=np.float64) + 0.5) * (src / dst) - 0.5
    return np.clip(coords, 0.0, src - 1)


def _bilinear(values: np.ndarray, src_x: np.ndarray, src_y: np.ndarray) -> np.ndarray:
    """Sample `values` at every (src_x[i], src_y[j]) pair, giving a (len(src_y), len(src_x)) grid."""
    h, w = values.shape[:2]
    src_x = np.clip(src_x, 0.0, w - 1)
    src_y = np.clip(src_y, 0.0, h - 1)

    x0 = np.floor(src_x).astype(np.intp)
    y0 = np.floor(src_y).astype(np.intp)
    x1 = np.minimum(x0 + 1, w - 1)
    y1 = np.minimum(y0 + 1, h - 1)
    fx = src_x - x0
    fy = src_y - y0

    extra = (1,) * (values.ndim - 2)
    fx = fx.reshape((1, -1) + extra)
    fy = fy.reshape((-1, 1) + extra)

    top = values[y0]
    bottom = values[y1]
    upper = top[:, x0] * (1.0 - fx) + top[:, x1] * fx
    lower = bottom[:, x0] * (1.0 - fx) + bottom[:, x1] * fx
    return upper * (1.0 - fy) + lower * fy
