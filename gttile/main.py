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
Command-line interface for the GeoTIFF Terrain Tiler (GTTile).

This script provides the main entry point for the `gttile` command,
parsing user arguments and dispatching them to the appropriate tool.
"""
import argparse
import logging
import sys
from pathlib import Path
from gttile.utils.config_loader import config
from gttile.utils.log_helpers import setup_logger, shutdown_logger
from gttile.utils.script_arguments import ConvertArguments, VerifyArguments

def str2bool(v):
    if isinstance(v, bool):
        return v
    if v.lower() in ('yes', 'true', 't', 'y', '1'):
        return True
    elif v.lower() in ('no', 'false', 'f', 'n', '0'):
        return False
    else:
        raise argparse.ArgumentTypeError('Boolean value expected.')

def legal_tile_size(value: str) -> int:
    """Validate that a tile size is of the form 2^N + 1."""
    try:
        ivalue = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Tile size must be an integer, got '{value}'")
    n = ivalue - 1
    if n < 1 or n & (n - 1):
        raise argparse.ArgumentTypeError(f"Tile size must be 2^N + 1 (65, 129, 257, ...), got {ivalue}")
    return ivalue

def positive_int(value: str) -> int:
    try:
        ivalue = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected a positive integer, got '{value}'")
    if ivalue < 1:
        raise argparse.ArgumentTypeError(f"Expected a positive integer, got {ivalue}")
    return ivalue

def non_negative_float(value: str) -> float:
    try:
        fvalue = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected a number, got '{value}'")
    if fvalue < 0:
        raise argparse.ArgumentTypeError(f"Expected a non-negative number, got {fvalue}")
    return fvalue

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='gttile',
        description='GTTile: GeoTIFF height/color pairs to terrain tiles',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    subparsers = parser.add_subparsers(dest='tool', help='Available tools')
    subparsers.required = True

    # --- Convert Tool ---
    convert_parser = subparsers.add_parser(
        'convert',
        help='Cut a height GeoTIFF and its color GeoTIFF into matching terrain tiles.',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    convert_parser.add_argument('-i', '--input', '--height', required=True, type=Path, dest='input_path', help='Height GeoTIFF (1 band, Float32).')
    convert_parser.add_argument('-c', '--color', required=True, type=Path, dest='color_path', help='Color GeoTIFF (3 bands, Byte) covering the same area.')
    convert_parser.add_argument('-o', '--output', type=Path, dest='output_path', help='Output directory for tiles. Defaults to the height file directory.')
    convert_parser.add_argument('-n', '--name', type=str, dest='base_name', help='Base name for tile files. Defaults to the height file name.')
    convert_parser.add_argument('--min-tile-size', type=legal_tile_size, dest='min_tile_size', help=f"Minimum height tile size (config: {config.get('tiling.min_height_tile_size')}).")
    convert_parser.add_argument('--max-tile-size', type=legal_tile_size, dest='max_tile_size', help=f"Maximum height tile size (config: {config.get('tiling.max_height_tile_size')}).")
    convert_parser.add_argument('--max-color-tile-size', type=positive_int, dest='max_color_tile_size', help=f"Maximum color tile size (config: {config.get('tiling.max_color_tile_size')}).")
    convert_parser.add_argument('--block-align', type=str2bool, dest='block_align', help='Grow color tiles to a multiple of the block size.')
    convert_parser.add_argument('--block-size', type=positive_int, dest='block_size', help='Color tile block size.')
    convert_parser.add_argument('-r', '--rotate', type=int, choices=[0, 90, 180, 270], dest='rotation', help='Rotate both rasters counter-clockwise before tiling.')
    convert_parser.add_argument('--axis-order', type=str.lower, choices=['yx', 'xy'], dest='axis_order', help="Tile grid naming: 'yx' is row-col, 'xy' is col-row.")
    convert_parser.add_argument('-f', '--height-format', type=str.lower, choices=['u16', 'u8', 'f32'], dest='height_format', help='Height tile sample format.')
    convert_parser.add_argument('--compression', type=str.lower, choices=['lzw', 'deflate', 'none'], dest='compression', help='Color tile compression.')
    convert_parser.add_argument('--tie-point-tolerance', type=non_negative_float, dest='tie_point_tolerance', help='Allowed tie point offset in height pixels.')
    convert_parser.add_argument('--overwrite', type=str2bool, nargs='?', const=True, dest='overwrite', help='Replace existing tiles with the same base name.')
    convert_parser.add_argument('--log-file', type=Path, dest='log_file', help='Path to a log file.')
    convert_parser.add_argument('-v', '--verbose', action='store_true', dest='verbose', help='Enable verbose logging.')

    # --- Verify Tool ---
    verify_parser = subparsers.add_parser(
        'verify',
        help='Validate the height tiles in a directory and check they are mutually consistent.',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    verify_parser.add_argument('-i', '--input', required=True, type=Path, dest='input_path', help='Directory holding height tiles.')
    verify_parser.add_argument('-p', '--pattern', type=str, default='*.raw', dest='pattern', help='Glob pattern selecting height tiles.')
    verify_parser.add_argument('--log-file', type=Path, dest='log_file', help='Path to a log file.')
    verify_parser.add_argument('-v', '--verbose', action='store_true', dest='verbose', help='Enable verbose logging.')

    return parser

def main(argv=None):
    """
    Main function to parse arguments and call the appropriate tool.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    tool = args.tool
    args_dict = vars(args)
    args_dict.pop('tool', None)

    # --- Logger Setup ---
    log_level = logging.DEBUG if args.verbose else config.get('logging.level', 'INFO')
    log_file = args.log_file or config.get('logging.file') or None
    logger = setup_logger(log_file=str(log_file) if log_file else None, level=log_level)

    try:
        if tool == 'convert':
            from gttile.tools.convert_tiles import convert_tiles
            script_args = ConvertArguments(**args_dict)
            convert_tiles(script_args)
        elif tool == 'verify':
            from gttile.tools.verify_tiles import verify_tiles
            script_args = VerifyArguments(**args_dict)
            verify_tiles(script_args)
    except Exception as e:
        logger.error(f"Error: {e}", exc_info=args.verbose)
        shutdown_logger(logger)
        sys.exit(1)
    shutdown_logger(logger)

if __name__ == "__main__":
    main()
