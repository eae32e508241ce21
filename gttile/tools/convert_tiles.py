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
Terrain Tile Conversion Tool for GTTile.

This module powers the 'convert' command. It reads a float height GeoTIFF
and a matching RGB color GeoTIFF and writes:
- one height tile per grid cell, `<base>_HM_<region>_<a>-<b>_<S>x<S>x<fmt>.raw`,
  in the binary height tile format with rows stored bottom to top;
- one color tile per grid cell, `<base>_RGB_<region>_<a>-<b>.tif`, covering
  the same ground and resampled to the color tile size.

Both passes replay the same tile plan, height first. The height raster is
released before the color pass starts.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

from gttile.utils.alignment import color_rect, color_tile_size, compute_alignment
from gttile.utils.data_models import (Alignment, GeoTiffHeader, Orientation, RasterPass, TileCell,
                                      TilePlan, TilingOptions)
from gttile.utils.exceptions import ConfigurationError
from gttile.utils.height_tile import HeightTileHeader, write_height_tile
from gttile.utils.raster import FLOAT32, RGB8, UINT8, UINT16, RasterBuffer, convert, extrema, replace_values
from gttile.utils.resampler import scaled
from gttile.utils.script_arguments import ConvertArguments
from gttile.utils.tiff_codec import TiffCodec, load_header, load_pixels, write_rgb
from gttile.utils.tiling import TilingEngine, build_tile_plan, validate_options

logger = logging.getLogger('convert_tiles')

HEIGHT_LAYOUTS = {'u8': UINT8, 'u16': UINT16, 'f32': FLOAT32}


@dataclass
class HeightStats:
    """Height range of the source raster and the conversion applied to it."""
    min_height: float
    max_height: float
    vertical_scale: float
    nodata_replaced: int = 0

    @property
    def max_total_height(self) -> float:
        return (self.max_height - self.min_height) * self.vertical_scale


@dataclass
class ConversionSummary:
    """What a conversion run produced."""
    plan: TilePlan
    alignment: Alignment
    height_stats: HeightStats
    height_tiles: List[Path] = field(default_factory=list)
    color_tiles: List[Path] = field(default_factory=list)

    @property
    def gap_count(self) -> int:
        return len(self.plan.gaps())


def height_tile_name(base: str, cell: TileCell, options: TilingOptions) -> str:
    size = cell.tile_size
    return (f"{base}_HM_{cell.region_id}_{cell.grid_label(options.grid_axis_order)}_"
            f"{size}x{size}x{options.height_sample_format}.raw")


def color_tile_name(base: str, cell: TileCell, options: TilingOptions) -> str:
    return f"{base}_RGB_{cell.region_id}_{cell.grid_label(options.grid_axis_order)}.tif"


def existing_outputs(output_dir: Path, base: str) -> List[Path]:
    return sorted(list(output_dir.glob(f"{base}_HM_*.raw")) + list(output_dir.glob(f"{base}_RGB_*.tif")))


def normalize_orientation(raster: RasterBuffer, header: GeoTiffHeader):
    """Store rows top to bottom whatever the source orientation."""
    if header.orientation == Orientation.BOTLEFT:
        raster.flip_vertical()


def apply_pre_rotation(rasters: Tuple[RasterBuffer, ...], headers: Tuple[GeoTiffHeader, ...], degrees: int):
    """Rotate every raster counter-clockwise and keep the headers in step."""
    if degrees == 0:
        return
    for raster in rasters:
        raster.rotate(degrees)
    if degrees in (90, 270):
        for header in headers:
            header.swap_axes()
    logger.info(f"Rotated rasters {degrees} degrees counter-clockwise")


def condition_heights(height: RasterBuffer, header: GeoTiffHeader) -> HeightStats:
    """
    Establish the height range and replace no-data samples with the minimum.

    The declared min/max sample values are used when present; otherwise
    they are computed from the data, ignoring no-data samples.
    """
    if header.has_extrema():
        lo, hi = header.min_sample_value, header.max_sample_value
    else:
        lo, hi = extrema(height, header.nodata_value)
    logger.info(f"Height range: {lo:.6g} to {hi:.6g}")

    replaced = replace_values(height, header.nodata_value, lo)
    if replaced:
        logger.warning(f"Warning: Replaced {replaced} no-data height samples with the minimum height {lo:.6g}")

    vertical_scale = header.pix_to_proj_scale[2]
    if vertical_scale <= 0:
        vertical_scale = 1.0
    return HeightStats(lo, hi, vertical_scale, replaced)


def height_samples(height: RasterBuffer, stats: HeightStats, sample_format: str) -> RasterBuffer:
    """Convert heights to the output sample format, relative to the minimum height."""
    layout = HEIGHT_LAYOUTS[sample_format]
    span = stats.max_height - stats.min_height
    if layout.is_float:
        return convert(height, layout, -stats.min_height, stats.vertical_scale)
    top = layout.value_range()[1]
    scale = top / span if span > 0 else 0.0
    return convert(height, layout, -stats.min_height, scale, 0.5)


class TileWriter:
    """Emits the height and color tiles of one conversion run."""

    def __init__(self, output_dir: Path, base_name: str, options: TilingOptions, alignment: Alignment,
                 stats: HeightStats, pix_to_meters: float):
        self.output_dir = output_dir
        self.base_name = base_name
        self.options = options
        self.alignment = alignment
        self.stats = stats
        self.pix_to_meters = pix_to_meters
        self.height_tiles: List[Path] = []
        self.color_tiles: List[Path] = []

    def write_height(self, samples: RasterBuffer, cell: TileCell):
        tile = samples.get_rect(*cell.rect())
        tile.flip_vertical()
        header = HeightTileHeader.for_format(
            self.options.height_sample_format, cell.tile_size, cell.origin[0], cell.origin[1],
            self.pix_to_meters, 0.0, self.stats.max_total_height)
        path = self.output_dir / height_tile_name(self.base_name, cell, self.options)
        write_height_tile(path, header, tile.array)
        self.height_tiles.append(path)
        logger.debug(f"Wrote {path.name}")

    def write_color(self, color: RasterBuffer, cell: TileCell):
        crop = color.get_rect(*color_rect(cell, self.alignment, color.size))
        size = color_tile_size(cell, self.alignment, self.options)
        tile = scaled(crop, size, size)
        path = self.output_dir / color_tile_name(self.base_name, cell, self.options)
        write_rgb(path, tile, Orientation.TOPLEFT, self.options.color_compression, self.options.rows_per_strip)
        self.color_tiles.append(path)
        logger.debug(f"Wrote {path.name} ({size}x{size})")


def convert(height_path: Union[str, Path], color_path: Union[str, Path], output_dir: Union[str, Path],
            options: TilingOptions, base_name: Optional[str] = None) -> ConversionSummary:
    """
    Convert a height/color GeoTIFF pair into terrain tiles.

    Args:
        height_path: 1 channel float32 height GeoTIFF.
        color_path: 3 channel uint8 color GeoTIFF covering the same ground.
        output_dir: Existing directory for the tiles.
        options: Tiling options.
        base_name: Tile file name prefix; defaults to the height file stem.

    Returns:
        ConversionSummary: The plan, alignment and written tile paths.

    Raises:
        GTTileError: Any configuration, parse or consistency failure.
    """
    validate_options(options)
    output_dir = Path(output_dir)
    base = base_name or Path(height_path).stem

    existing = existing_outputs(output_dir, base)
    if existing and not options.overwrite:
        raise ConfigurationError(f"{len(existing)} tiles named '{base}_*' already exist in {output_dir}; "
                                 f"use --overwrite to replace them")

    with TiffCodec(height_path) as height_codec, TiffCodec(color_path) as color_codec:
        hm_header = load_header(height_codec)
        color_header = load_header(color_codec)
        alignment = compute_alignment(hm_header, color_header, options)
        height = load_pixels(height_codec, FLOAT32)
        color = load_pixels(color_codec, RGB8)
    logger.info(f"Loaded height {height.width}x{height.height} and color {color.width}x{color.height}")

    normalize_orientation(height, hm_header)
    normalize_orientation(color, color_header)
    apply_pre_rotation((height, color), (hm_header, color_header), options.pre_rotation)

    stats = condition_heights(height, hm_header)
    samples = height_samples(height, stats, options.height_sample_format)
    del height

    plan = build_tile_plan(samples.size, options.min_height_tile_size, alignment.max_height_tile_size)
    logger.info(f"Tile plan: {len(plan.regions)} regions, {plan.tile_count()} tiles, "
                f"{len(plan.gaps())} uncovered regions")

    writer = TileWriter(output_dir, base, options, alignment, stats, alignment.pix_to_meters)
    engine = TilingEngine()

    count = engine.replay(plan, RasterPass.HEIGHT, lambda cell: writer.write_height(samples, cell))
    logger.info(f"Wrote {count} height tiles")
    del samples

    count = engine.replay(plan, RasterPass.COLOR, lambda cell: writer.write_color(color, cell))
    logger.info(f"Wrote {count} color tiles")
    del color

    engine.finish()
    return ConversionSummary(plan, alignment, stats, writer.height_tiles, writer.color_tiles)


def convert_tiles(args: ConvertArguments) -> ConversionSummary:
    """Entry point for the 'convert' command."""
    logger.info("=== convert_tiles started ===")
    logger.info(f"Arguments: {args}")
    options = args.tiling_options()
    summary = convert(args.input_path, args.color_path, args.output_path, options, args.base_name)
    covered = summary.plan.covered_area()
    total = summary.plan.raster_size[0] * summary.plan.raster_size[1]
    logger.info(f"Covered {covered} of {total} height pixels ({100.0 * covered / max(total, 1):.1f}%)")
    logger.info(f"Tiles written to {args.output_path}")
    logger.info("Conversion completed successfully")
    return summary
