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
Tiling Engine Module.

Covers a raster with the largest grid of legal-sized tiles that fits, then
recursively tiles the uncovered L-shaped remainder along the right and
bottom edges. A legal tile size S is one where S - 1 is a power of two.

The partition depends on geometry alone, so it is computed once as a
`TilePlan` and replayed against the height raster and then the color
raster. A `RegionRegistry` records each region id during the height pass
and checks it off during the color pass; after both passes it must be empty.

Region ids are hierarchical: the full raster is "0", its right remainder
"0.1" and its bottom remainder "0.2", and so on down the recursion.
"""

import logging
from typing import Callable, List, Optional, Set, Tuple

from gttile.utils.data_models import RasterPass, TileCell, TilePlan, TileRegion, TilingOptions, region_tiles
from gttile.utils.exceptions import (ConfigurationError, ConsistencyError, DuplicateRegionIdError,
                                     UnpairedRegionIdError)
from gttile.utils.height_tile import SAMPLE_FORMATS, is_legal_tile_size

logger = logging.getLogger(__name__)

ROOT_REGION_ID = '0'
RIGHT_SUFFIX = '1'
BOTTOM_SUFFIX = '2'

Rect = Tuple[int, int, int, int]


def largest_legal_lte(n: int) -> int:
    """
    Largest legal tile size not exceeding n, or 0 if n < 2.

    Example:
        >>> largest_legal_lte(1000)
        513
        >>> largest_legal_lte(513)
        513
    """
    if n < 2:
        return 0
    return (1 << ((n - 1).bit_length() - 1)) + 1


def region_tile_size(width: int, height: int, max_tile_size: int) -> int:
    """Largest legal size fitting in both region dimensions, capped at max_tile_size."""
    return min(largest_legal_lte(min(width, height)), largest_legal_lte(max_tile_size))


def validate_options(options: TilingOptions):
    """
    Reject option sets the engine cannot honour.

    Raises:
        ConfigurationError: Naming the first invalid option.
    """
    if not is_legal_tile_size(options.min_height_tile_size):
        raise ConfigurationError(f"min_height_tile_size {options.min_height_tile_size} is not 2^N + 1")
    if not is_legal_tile_size(options.max_height_tile_size):
        raise ConfigurationError(f"max_height_tile_size {options.max_height_tile_size} is not 2^N + 1")
    if options.min_height_tile_size > options.max_height_tile_size:
        raise ConfigurationError(
            f"min_height_tile_size {options.min_height_tile_size} exceeds "
            f"max_height_tile_size {options.max_height_tile_size}")
    if options.max_color_tile_size < 1:
        raise ConfigurationError(f"max_color_tile_size must be positive, got {options.max_color_tile_size}")
    if options.color_block_size < 1:
        raise ConfigurationError(f"color_block_size must be positive, got {options.color_block_size}")
    if options.pre_rotation not in (0, 90, 180, 270):
        raise ConfigurationError(f"pre_rotation must be 0, 90, 180 or 270, got {options.pre_rotation}")
    if options.grid_axis_order not in ('yx', 'xy'):
        raise ConfigurationError(f"grid_axis_order must be 'yx' or 'xy', got '{options.grid_axis_order}'")
    if options.height_sample_format not in SAMPLE_FORMATS:
        raise ConfigurationError(
            f"height_sample_format must be one of {sorted(SAMPLE_FORMATS)}, got '{options.height_sample_format}'")
    if options.color_compression not in ('lzw', 'deflate', 'none'):
        raise ConfigurationError(f"Unsupported color_compression '{options.color_compression}'")
    if options.rows_per_strip < 1:
        raise ConfigurationError(f"rows_per_strip must be positive, got {options.rows_per_strip}")
    if options.tie_point_tolerance < 0:
        raise ConfigurationError(f"tie_point_tolerance must not be negative, got {options.tie_point_tolerance}")


def split_leftover(region: TileRegion) -> Tuple[Optional[Rect], Optional[Rect]]:
    """
    Split a region's uncovered L-shaped remainder into right and bottom rectangles.

    The edge with the larger leftover extent takes the corner cell; on a tie
    the right edge takes it. Empty rectangles are returned as None.

    Returns:
        (right, bottom) as (x, y, width, height) tuples or None.
    """
    ox, oy = region.origin
    w, h = region.size
    cx, cy = region.covered
    lx, ly = region.leftover

    if lx >= ly:
        right = (ox + cx, oy, lx, h)
        bottom = (ox, oy + cy, cx, ly)
    else:
        right = (ox + cx, oy, lx, cy)
        bottom = (ox, oy + cy, w, ly)

    def non_empty(rect: Rect) -> Optional[Rect]:
        return rect if rect[2] > 0 and rect[3] > 0 else None

    return non_empty(right), non_empty(bottom)


def build_tile_plan(raster_size: Tuple[int, int], min_tile_size: int, max_tile_size: int) -> TilePlan:
    """
    Partition a raster into tiling regions.

    Args:
        raster_size: (width, height) of the raster in height pixels.
        min_tile_size: Smallest legal tile size to emit.
        max_tile_size: Largest legal tile size to emit.

    Returns:
        TilePlan: Regions in replay order (each region, then its right
        remainder subtree, then its bottom remainder subtree).

    Raises:
        ConfigurationError: If the size limits are not legal or out of order.

    Example:
        >>> plan = build_tile_plan((1000, 1000), 65, 513)
        >>> plan.regions[0].tile_size, plan.regions[0].grid
        (513, (1, 1))
    """
    for name, size in (('min_tile_size', min_tile_size), ('max_tile_size', max_tile_size)):
        if not is_legal_tile_size(size):
            raise ConfigurationError(f"{name} {size} is not 2^N + 1")
    if min_tile_size > max_tile_size:
        raise ConfigurationError(f"min_tile_size {min_tile_size} exceeds max_tile_size {max_tile_size}")

    width, height = raster_size
    regions: List[TileRegion] = []
    if width > 0 and height > 0:
        _partition((0, 0, width, height), 0, ROOT_REGION_ID, min_tile_size, max_tile_size, regions)

    plan = TilePlan((width, height), min_tile_size, max_tile_size, tuple(regions))
    logger.debug(f"Tile plan for {width}x{height}: {len(plan.regions)} regions, {plan.tile_count()} tiles")
    return plan


def _partition(rect: Rect, depth: int, region_id: str, min_tile_size: int,
               max_tile_size: int, regions: List[TileRegion]):
    x, y, w, h = rect
    tile_size = region_tile_size(w, h, max_tile_size)
    region = TileRegion(region_id, (x, y), (w, h), tile_size, depth)
    regions.append(region)

    if tile_size < min_tile_size:
        logger.warning(f"Warning: Region {region_id} at ({x}, {y}) size {w}x{h} is below the "
                       f"minimum tile size {min_tile_size} and is left uncovered")
        return

    lx, ly = region.leftover
    if lx == 0 and ly == 0:
        return

    right, bottom = split_leftover(region)
    if right is not None:
        _partition(right, depth + 1, f"{region_id}.{RIGHT_SUFFIX}", min_tile_size, max_tile_size, regions)
    if bottom is not None:
        _partition(bottom, depth + 1, f"{region_id}.{BOTTOM_SUFFIX}", min_tile_size, max_tile_size, regions)


class RegionRegistry:
    """
    Pairs the regions visited by the height pass with those of the color pass.

    The height pass adds each region id, the color pass removes it; the set
    must be empty once both passes are done.
    """

    def __init__(self):
        self._ids: Set[str] = set()

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, region_id: str) -> bool:
        return region_id in self._ids

    def register(self, region_id: str, raster_pass: RasterPass):
        if raster_pass is RasterPass.HEIGHT:
            if region_id in self._ids:
                raise DuplicateRegionIdError(f"Region {region_id} was already tiled in the height pass")
            self._ids.add(region_id)
        else:
            if region_id not in self._ids:
                raise UnpairedRegionIdError(f"Region {region_id} has no matching height pass region")
            self._ids.remove(region_id)

    def assert_empty(self):
        if self._ids:
            pending = ', '.join(sorted(self._ids))
            raise ConsistencyError(f"Height regions without a color pass: {pending}")


class TilingEngine:
    """
    Replays a TilePlan against one raster pass, handing each tile to an emitter.

    Example:
        >>> engine = TilingEngine()
        >>> plan = build_tile_plan((129, 129), 65, 129)
        >>> engine.replay(plan, RasterPass.HEIGHT, lambda cell: None)
        1
    """

    def __init__(self, registry: Optional[RegionRegistry] = None):
        self.registry = registry if registry is not None else RegionRegistry()

    def replay(self, plan: TilePlan, raster_pass: RasterPass, emit: Callable[[TileCell], None]) -> int:
        """
        Visit every region of the plan in order and emit its tiles.

        Returns:
            int: The number of tiles emitted.
        """
        count = 0
        for region in plan.regions:
            self.registry.register(region.region_id, raster_pass)
            for cell in region_tiles(region, plan.min_tile_size):
                emit(cell)
                count += 1
        logger.debug(f"{raster_pass.value} pass emitted {count} tiles")
        return count

    def finish(self):
        """Check that every height region was paired with a color region."""
        self.registry.assert_empty()
