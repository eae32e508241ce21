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
Dataclass-based Argument Models for GTTile Tools.

This module defines strongly-typed dataclasses for parsing and validating the
command-line arguments for each tool (`convert`, `verify`). It uses
`__post_init__` for validation so that the tools receive clean inputs.

Classes:
    BaseArguments: A base dataclass for common script arguments.
    ConvertArguments: Arguments for the convert_tiles tool.
    VerifyArguments: Arguments for the verify_tiles tool.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from gttile.utils.data_models import TilingOptions
from gttile.utils.geokey_parser import is_geotiff

logger = logging.getLogger(__name__)

@dataclass
class BaseArguments:
    """A base dataclass for common script arguments."""
    input_path: Optional[Path] = None
    output_path: Optional[Path] = None
    log_file: Optional[Path] = None
    verbose: bool = False

    def __post_init__(self):
        """Coerce path-like arguments to Path objects."""
        if self.input_path and isinstance(self.input_path, str):
            self.input_path = Path(self.input_path)
        if self.output_path and isinstance(self.output_path, str):
            self.output_path = Path(self.output_path)
        if self.log_file and isinstance(self.log_file, str):
            self.log_file = Path(self.log_file)

    def handle_error(self, message: str):
        """Logs an error and raises ValueError."""
        logger.error(message)
        raise ValueError(message)

@dataclass
class ConvertArguments(BaseArguments):
    """
    Arguments for the convert_tiles tool.

    `input_path` is the height GeoTIFF and `output_path` the tile directory.
    Tiling values left as None fall back to config.toml.
    """
    color_path: Optional[Path] = None
    base_name: Optional[str] = None
    min_tile_size: Optional[int] = None
    max_tile_size: Optional[int] = None
    max_color_tile_size: Optional[int] = None
    block_align: Optional[bool] = None
    block_size: Optional[int] = None
    rotation: Optional[int] = None
    axis_order: Optional[str] = None
    height_format: Optional[str] = None
    compression: Optional[str] = None
    tie_point_tolerance: Optional[float] = None
    overwrite: Optional[bool] = None

    def __post_init__(self):
        """Validation for convert_tiles arguments."""
        super().__post_init__()
        if self.color_path and isinstance(self.color_path, str):
            self.color_path = Path(self.color_path)
        try:
            self._validate_convert()
        except ValueError as e:
            self.handle_error(str(e))

    def _validate_convert(self):
        """Perform validation checks for convert_tiles arguments."""
        if self.input_path is None:
            raise ValueError("The height GeoTIFF ('input_path') is required.")
        if self.color_path is None:
            raise ValueError("The color GeoTIFF ('color_path') is required.")
        for label, path in (('Height', self.input_path), ('Color', self.color_path)):
            if not path.exists():
                raise ValueError(f"{label} file not found: {path}")
            if not is_geotiff(path):
                raise ValueError(f"{label} file is not a georeferenced GeoTIFF: {path}")
        if self.output_path is None:
            self.output_path = self.input_path.parent
        if not self.output_path.is_dir():
            raise ValueError(f"Output directory not found: {self.output_path}")
        if self.base_name is None:
            self.base_name = self.input_path.stem
        if not self.base_name:
            raise ValueError("The output base name must not be empty.")

    def tiling_options(self, config=None) -> TilingOptions:
        """Options from config.toml with any given CLI values applied on top."""
        return TilingOptions.from_config(
            config,
            min_height_tile_size=self.min_tile_size,
            max_height_tile_size=self.max_tile_size,
            max_color_tile_size=self.max_color_tile_size,
            block_align_color_tiles=self.block_align,
            color_block_size=self.block_size,
            pre_rotation=self.rotation,
            grid_axis_order=self.axis_order,
            height_sample_format=self.height_format,
            color_compression=self.compression,
            tie_point_tolerance=self.tie_point_tolerance,
            overwrite=self.overwrite,
        )

@dataclass
class VerifyArguments(BaseArguments):
    """Arguments for the verify_tiles tool. `input_path` is the tile directory."""
    pattern: str = '*.raw'

    def __post_init__(self):
        """Validation for verify_tiles arguments."""
        super().__post_init__()
        try:
            self._validate_verify()
        except ValueError as e:
            self.handle_error(str(e))

    def _validate_verify(self):
        if self.input_path is None:
            raise ValueError("The tile directory ('input_path') is required.")
        if not self.input_path.is_dir():
            raise ValueError(f"Tile directory not found: {self.input_path}")
