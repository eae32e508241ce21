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
Height Tile Verification Tool for GTTile.

This module powers the 'verify' command. Every height tile in a directory is
read back in full, its header validated, and the set cross-checked: all
tiles must be compatible with the first one, and tiles of the same size must
match exactly. The first failure aborts the run.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Union

from gttile.utils.exceptions import ConfigurationError
from gttile.utils.height_tile import HeightTileHeader, read_height_tile, validate_compatible, validate_exact_match
from gttile.utils.script_arguments import VerifyArguments

logger = logging.getLogger('verify_tiles')


@dataclass
class VerifySummary:
    """Tiles checked, grouped by tile size."""
    tiles: List[Path] = field(default_factory=list)
    sizes: Counter = field(default_factory=Counter)


def verify_directory(tile_dir: Union[str, Path], pattern: str = '*.raw') -> VerifySummary:
    """
    Validate every height tile matching `pattern` in `tile_dir`.

    Raises:
        ConfigurationError: If no tiles match.
        TileFormatError: On the first invalid or mismatched tile.
    """
    paths = sorted(Path(tile_dir).glob(pattern))
    if not paths:
        raise ConfigurationError(f"No height tiles matching '{pattern}' in {tile_dir}")

    summary = VerifySummary()
    reference = None
    by_size: Dict[int, HeightTileHeader] = {}
    for path in paths:
        header = read_height_tile(path).header
        if reference is None:
            reference = header
        else:
            validate_compatible(reference, header)
        size = header.tile_size_pix
        if size in by_size:
            validate_exact_match(by_size[size], header)
        else:
            by_size[size] = header
        summary.tiles.append(path)
        summary.sizes[size] += 1
        logger.debug(f"{path.name}: {size}x{size} at ({header.pos_x}, {header.pos_y}) OK")
    return summary


def verify_tiles(args: VerifyArguments) -> VerifySummary:
    """Entry point for the 'verify' command."""
    logger.info("=== verify_tiles started ===")
    summary = verify_directory(args.input_path, args.pattern)
    for size, count in sorted(summary.sizes.items(), reverse=True):
        logger.info(f"  {size}x{size}: {count} tiles")
    logger.info(f"Verified {len(summary.tiles)} height tiles in {args.input_path}")
    return summary
