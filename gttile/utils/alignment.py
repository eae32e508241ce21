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
Alignment Module.

Checks that a height raster and a color raster describe the same ground and
derives the pixel scale relationship the tiler needs to cut matching color
tiles out of the color raster.
"""

import logging
import math
from typing import Tuple

from gttile.utils.data_models import Alignment, GeoTiffHeader, SampleKind, TileCell, TilingOptions
from gttile.utils.exceptions import ConfigurationError, TiePointMismatchError
from gttile.utils.geokey_parser import (LINEAR_UNIT_METERS, KvUserDefined, describe_geokey_value,
                                        epsg_linear_unit_meters)
from gttile.utils.tiling import largest_legal_lte

logger = logging.getLogger(__name__)

SQUARE_PIXEL_TOLERANCE = 1e-9
RASTER_TIE_POINT_TOLERANCE = 1e-6


def check_height_format(header: GeoTiffHeader):
    if (header.channel_count, header.bits_per_channel, header.sample_kind) != (1, 32, SampleKind.FLOAT):
        raise ConfigurationError(
            f"Height raster {header.path} must be 1 channel 32-bit float, found "
            f"{header.channel_count} channel {header.bits_per_channel}-bit {header.sample_kind.name.lower()}")


def check_color_format(header: GeoTiffHeader):
    if (header.channel_count, header.bits_per_channel, header.sample_kind) != (3, 8, SampleKind.UINT):
        raise ConfigurationError(
            f"Color raster {header.path} must be 3 channel 8-bit unsigned, found "
            f"{header.channel_count} channel {header.bits_per_channel}-bit {header.sample_kind.name.lower()}")


def check_square_pixels(header: GeoTiffHeader):
    sx, sy, _ = header.pix_to_proj_scale
    if sx <= 0 or sy <= 0:
        raise ConfigurationError(f"{header.path} has no usable pixel scale ({sx}, {sy})")
    if abs(sx - sy) > SQUARE_PIXEL_TOLERANCE * max(sx, sy):
        raise ConfigurationError(f"{header.path} has non-square pixels ({sx} x {sy})")


def check_units(height: GeoTiffHeader, color: GeoTiffHeader):
    """
    Compare declared linear units.

    Only units declared on both sides are compared.
    """
    hm_keys, color_keys = height.geokeys, color.geokeys
    if hm_keys is None or color_keys is None:
        return

    hm_units, color_units = hm_keys.horizontal_units(), color_keys.horizontal_units()
    if hm_units is not None and color_units is not None and hm_units != color_units:
        raise ConfigurationError(
            f"Height linear units {describe_geokey_value(3076, hm_units)} do not match color "
            f"linear units {describe_geokey_value(3076, color_units)}")

    vertical = hm_keys.vertical_units
    if hm_keys.proj_linear_units is not None and vertical is not None and vertical != hm_keys.proj_linear_units:
        raise ConfigurationError(
            f"Height vertical units {describe_geokey_value(4099, vertical)} do not match its "
            f"linear units {describe_geokey_value(3076, hm_keys.proj_linear_units)}")


def linear_unit_meters(header: GeoTiffHeader) -> float:
    """
    Metres per model unit of a raster's horizontal CRS.

    Declared projected linear units win; otherwise the units of the EPSG
    projected CRS are looked up. Rasters without any CRS keys are taken to
    be in metres.

    Raises:
        ConfigurationError: A geographic CRS, or linear units with no known size.
    """
    keys = header.geokeys
    if keys is None:
        return 1.0
    if keys.is_geographic():
        raise ConfigurationError(f"{header.path} uses a geographic CRS; a projected CRS is required "
                                 f"to size height pixels in metres")

    units = keys.proj_linear_units
    if units == KvUserDefined:
        if keys.proj_linear_unit_size and keys.proj_linear_unit_size > 0:
            return keys.proj_linear_unit_size
        raise ConfigurationError(f"{header.path} declares user-defined linear units without a unit size")
    if units is not None:
        if units not in LINEAR_UNIT_METERS:
            raise ConfigurationError(f"{header.path} has unsupported linear units "
                                     f"{describe_geokey_value(3076, units)}")
        return LINEAR_UNIT_METERS[units]

    code = keys.projected_cs_type
    if code is not None and code != KvUserDefined:
        meters = epsg_linear_unit_meters(code)
        if meters is not None:
            return meters
    return 1.0


def check_tie_points(height: GeoTiffHeader, color: GeoTiffHeader, tolerance: float) -> Tuple[float, float]:
    """
    Compare the first tie point of each raster.

    Returns:
        The model-space offset (dx, dy) of the color tie point from the height tie point.

    Raises:
        ConfigurationError: A raster has no tie points.
        TiePointMismatchError: Raster-space tie points differ, or the model-space
            offset exceeds `tolerance` height pixels.
    """
    for header in (height, color):
        if not header.tie_points:
            raise ConfigurationError(f"{header.path} has no tie points")
        if len(header.tie_points) > 1:
            logger.warning(f"Warning: {header.path} has {len(header.tie_points)} tie points, "
                           f"only the first is used")
    if len(height.tie_points) != len(color.tie_points):
        logger.warning(f"Warning: Height raster has {len(height.tie_points)} tie points, "
                       f"color raster has {len(color.tie_points)}")

    hm_tp, color_tp = height.tie_points[0], color.tie_points[0]
    for axis in (0, 1):
        if abs(hm_tp.raster_pt[axis] - color_tp.raster_pt[axis]) > RASTER_TIE_POINT_TOLERANCE:
            raise TiePointMismatchError(
                f"Raster-space tie points differ: height {hm_tp.raster_pt[:2]}, color {color_tp.raster_pt[:2]}")

    dx = color_tp.model_pt[0] - hm_tp.model_pt[0]
    dy = color_tp.model_pt[1] - hm_tp.model_pt[1]
    sx, sy, _ = height.pix_to_proj_scale
    offset_pixels = max(abs(dx) / sx, abs(dy) / sy)
    if offset_pixels > tolerance:
        raise TiePointMismatchError(
            f"Tie points are {offset_pixels:.3f} height pixels apart (tolerance {tolerance}): "
            f"height {hm_tp}, color {color_tp}")
    if offset_pixels > 0:
        logger.warning(f"Warning: Tie points are misaligned by {offset_pixels:.3f} height pixels "
                       f"(model offset {dx:.6g}, {dy:.6g})")
    return (dx, dy)


def effective_max_tile_size(max_height_tile_size: int, max_color_tile_size: int, hm_to_color: float) -> int:
    """Largest legal height tile size whose color counterpart fits the color cap (0 if none)."""
    size = largest_legal_lte(max_height_tile_size)
    while size >= 2 and int(round(size * hm_to_color)) > max_color_tile_size:
        size = largest_legal_lte(size - 1)
    return size


def compute_alignment(height: GeoTiffHeader, color: GeoTiffHeader, options: TilingOptions) -> Alignment:
    """
    Validate a height/color raster pair and derive their scale relationship.

    Args:
        height: Header of the 1 channel float height raster.
        color: Header of the 3 channel 8-bit color raster.
        options: Tiling options supplying the size caps and tie point tolerance.

    Returns:
        Alignment: Scale ratios, tie point offset, height pixel size in metres and the
            effective max height tile size.

    Raises:
        ConfigurationError: Format, pixel shape, unit or size cap problems. Geographic
            CRSs and unknown linear units are rejected.
        TiePointMismatchError: The rasters are not anchored at the same place.
    """
    check_height_format(height)
    check_color_format(color)
    check_square_pixels(height)
    check_square_pixels(color)
    check_units(height, color)
    delta = check_tie_points(height, color, options.tie_point_tolerance)

    hm_to_color = height.pix_to_proj_scale[0] / color.pix_to_proj_scale[0]
    color_to_hm = color.pix_to_proj_scale[0] / height.pix_to_proj_scale[0]

    max_tile = effective_max_tile_size(options.max_height_tile_size, options.max_color_tile_size, hm_to_color)
    if max_tile < options.min_height_tile_size:
        raise ConfigurationError(
            f"No height tile of at least {options.min_height_tile_size} pixels keeps color tiles within "
            f"{options.max_color_tile_size} pixels at a scale of {hm_to_color:.4f}")
    if max_tile < options.max_height_tile_size:
        logger.info(f"Max height tile size reduced to {max_tile} to keep color tiles within "
                    f"{options.max_color_tile_size} pixels")

    pix_to_meters = height.pix_to_proj_scale[0] * linear_unit_meters(height)
    alignment = Alignment(hm_to_color, color_to_hm, delta, max_tile, pix_to_meters)
    logger.info(f"Height to color scale: {hm_to_color:.6g} color pixels per height pixel")
    return alignment


def color_rect(cell: TileCell, alignment: Alignment, color_size: Tuple[int, int]) -> Tuple[int, int, int, int]:
    """
    The color raster rectangle covering a height tile, clamped to the color raster.

    Returns:
        (x, y, width, height) in color pixels.
    """
    ratio = alignment.hm_to_color_scale
    x = int(round(cell.origin[0] * ratio))
    y = int(round(cell.origin[1] * ratio))
    size = alignment.color_length(cell.tile_size)
    cw, ch = color_size
    x = min(max(x, 0), max(cw - 1, 0))
    y = min(max(y, 0), max(ch - 1, 0))
    return (x, y, max(min(size, cw - x), 1), max(min(size, ch - y), 1))


def color_tile_size(cell: TileCell, alignment: Alignment, options: TilingOptions) -> int:
    """Edge length of the written color tile, block aligned when enabled."""
    size = max(alignment.color_length(cell.tile_size), 1)
    if options.block_align_color_tiles:
        block = options.color_block_size
        size = int(math.ceil(size / block)) * block
    return size
