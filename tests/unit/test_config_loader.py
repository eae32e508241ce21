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
Unit tests for configuration loading, logging setup and argument models.
"""

import argparse
import logging
from pathlib import Path

import pytest

from gttile.main import build_parser, legal_tile_size, str2bool
from gttile.utils.config_loader import Config, config
from gttile.utils.data_models import TilingOptions
from gttile.utils.log_helpers import resolve_level, setup_logger, shutdown_logger
from gttile.utils.script_arguments import ConvertArguments, VerifyArguments


@pytest.mark.unit
class TestConfig:
    """Test the Config singleton."""

    def test_singleton(self):
        assert Config() is config

    def test_packaged_defaults(self):
        assert config.get("tiling.min_height_tile_size") == 65
        assert config.get("tiling.max_height_tile_size") == 4097
        assert config.get("output.height_sample_format") == "u16"
        assert config.get("logging.level") == "INFO"

    def test_missing_key_default(self):
        assert config.get("tiling.nope", 7) == 7
        assert config.get("nope.nope") is None
        assert config.get_section("nope") == {}

    def test_set_is_in_memory(self):
        try:
            config.set("tiling.max_height_tile_size", 1025)
            assert TilingOptions.from_config().max_height_tile_size == 1025
        finally:
            config.reload()
        assert config.get("tiling.max_height_tile_size") == 4097


@pytest.mark.unit
class TestLogHelpers:
    """Test logger setup."""

    def test_resolve_level(self):
        assert resolve_level("debug") == logging.DEBUG
        assert resolve_level(logging.WARNING) == logging.WARNING
        assert resolve_level(None) == logging.INFO
        assert resolve_level("bogus") == logging.INFO

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "run.log"
        logger = setup_logger(str(log_file), "INFO")
        try:
            logging.getLogger("convert_tiles").info("hello")
            assert len(logger.handlers) == 2
        finally:
            shutdown_logger(logger)
        assert logger.handlers == []
        assert "hello" in log_file.read_text()


@pytest.mark.unit
class TestArguments:
    """Test CLI parsing helpers and argument dataclasses."""

    def test_str2bool(self):
        assert str2bool("yes") is True
        assert str2bool("0") is False
        assert str2bool(True) is True

    def test_legal_tile_size(self):
        assert legal_tile_size("129") == 129
        with pytest.raises(argparse.ArgumentTypeError):
            legal_tile_size("128")

    def test_parser_convert(self):
        args = build_parser().parse_args(
            ["convert", "-i", "h.tif", "-c", "c.tif", "--max-tile-size", "1025", "-f", "F32", "--overwrite"])
        assert args.tool == "convert"
        assert args.input_path == Path("h.tif")
        assert args.max_tile_size == 1025
        assert args.height_format == "f32"
        assert args.overwrite is True
        assert args.min_tile_size is None

    def test_parser_rejects_illegal_size(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["convert", "-i", "h.tif", "-c", "c.tif", "--min-tile-size", "100"])

    def test_convert_arguments(self, terrain_files):
        height, color = terrain_files
        args = ConvertArguments(input_path=str(height), color_path=str(color), max_tile_size=129)
        assert args.output_path == height.parent
        assert args.base_name == "height"
        options = args.tiling_options()
        assert options.max_height_tile_size == 129
        assert options.min_height_tile_size == 65

    def test_convert_arguments_missing_color(self, terrain_files, tmp_path):
        height, _ = terrain_files
        with pytest.raises(ValueError, match="Color file not found"):
            ConvertArguments(input_path=height, color_path=tmp_path / "missing.tif")

    def test_verify_arguments_missing_dir(self, tmp_path):
        with pytest.raises(ValueError, match="not found"):
            VerifyArguments(input_path=tmp_path / "nope")
