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
Configuration Management for the GeoTIFF Terrain Tiler.

This module provides a singleton configuration manager (`Config`) that loads
the tiling defaults from the packaged `config.toml` file. Values are loaded
once and shared by the CLI, the conversion pipeline and the verify tool.

Classes:
    Config: A singleton class for managing application-wide configuration.
"""
import copy
import logging
import sys
from pathlib import Path
from typing import Any, Dict

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

logger = logging.getLogger(__name__)

_DEFAULTS: Dict[str, Any] = {
    "tiling": {
        "min_height_tile_size": 65,
        "max_height_tile_size": 4097,
        "max_color_tile_size": 8192,
        "block_align_color_tiles": True,
        "color_block_size": 4,
        "pre_rotation": 0,
        "grid_axis_order": "yx",
        "tie_point_tolerance": 1.0,
    },
    "output": {
        "height_sample_format": "u16",
        "color_compression": "lzw",
        "rows_per_strip": 32,
        "overwrite": False,
    },
    "logging": {
        "level": "INFO",
        "file": "",
    },
}

class Config:
    """Singleton configuration manager"""
    _instance = None
    _config: Dict[str, Any] = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._load_config()
        return cls._instance

    def _load_config(self):
        """Load configuration from config.toml, layered over the defaults"""
        self._config = self._default_config()
        config_path = Path(__file__).parent.parent / "config.toml"
        if not config_path.exists():
            return
        try:
            with open(config_path, "rb") as f:
                loaded = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning(f"Could not load {config_path.name}, using defaults: {e}")
            return
        for section, values in loaded.items():
            if isinstance(values, dict):
                self._config.setdefault(section, {}).update(values)
            else:
                self._config[section] = values

    def _default_config(self) -> Dict[str, Any]:
        """Default configuration if config.toml doesn't exist"""
        return copy.deepcopy(_DEFAULTS)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation

        Args:
            key: Configuration key in dot notation (e.g., "tiling.max_height_tile_size")
            default: Default value if key is not found

        Returns:
            Configuration value or default

        Example:
            >>> config.get("tiling.min_height_tile_size")
            65
        """
        keys = key.split(".")
        value = self._config
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def get_section(self, section: str) -> Dict[str, Any]:
        """Get entire configuration section

        Args:
            section: Section name (e.g., "tiling", "output", "logging")

        Returns:
            Dictionary containing the section configuration
        """
        return self._config.get(section, {})

    def set(self, key: str, value: Any):
        """Set configuration value using dot notation

        Note:
            This only modifies the in-memory configuration.
            Changes are not persisted to config.toml.
        """
        keys = key.split(".")
        config = self._config
        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]
        config[keys[-1]] = value

    def reload(self):
        """Reload configuration from config.toml"""
        self._load_config()

# Singleton instance
config = Config()
