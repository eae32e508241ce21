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
GeoTIFF Terrain Tiler Test Suite.

This package contains tests for GTTile components including:
- Unit tests for individual modules
- Integration tests for the conversion and verification workflows
- End-to-end tests for CLI commands
"""
