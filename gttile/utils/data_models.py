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
Data Models for the GeoTIFF Terrain Tiler.

This module defines strongly-typed data classes for the georeferencing
metadata read from the input rasters and for the tiling plan produced from
them. These classes provide type safety, self-documentation, and clear
contracts between modules.

Enumerations:
    Orientation: TIFF Orientation tag values supported by the tiler
    SampleKind: TIFF SampleFormat values
    ModelType: GTModelTypeGeoKey values
    RasterType: GTRasterTypeGeoKey values
    RasterPass: Which raster a tiling pass is replayed against

Domain model classes (no suffix):
    GeoKey: A single decoded GeoKey record
    GeoKeyDirectory: The decoded GeoKey directory with named fields
    TiePoint: A raster-space to model-space correspondence
    GeoTiffHeader: Everything known about an input raster before its pixels load
    Alignment: Height to color scale relationship used by the tiler
    TileRegion: One region of a tiling plan
    TileCell: One emitted tile inside a region
    TilePlan: The ordered, replayable result of the recursive tiling
    TilingOptions: The tunable parameter set for a conversion
"""

from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union


# ============================================================================
# Enumerations
# ============================================================================

class Orientation(IntEnum):
    """TIFF Orientation (tag 274) values the tiler can process."""
    TOPLEFT = 1
    BOTLEFT = 4


class SampleKind(IntEnum):
    """TIFF SampleFormat (tag 339) values."""
    UINT = 1
    INT = 2
    FLOAT = 3


class ModelType(IntEnum):
    """GTModelTypeGeoKey (1024) values."""
    PROJECTED = 1
    GEOGRAPHIC = 2
    GEOCENTRIC = 3


class RasterType(IntEnum):
    """GTRasterTypeGeoKey (1025) values."""
    PIXEL_IS_AREA = 1
    PIXEL_IS_POINT = 2


class RasterPass(Enum):
    """The two replays of a tiling plan, in the order they must run."""
    HEIGHT = 'height'
    COLOR = 'color'


# ============================================================================
# GeoKey directory
# ============================================================================

@dataclass
class GeoKey:
    """
    Represents a single GeoKey record with its resolved value.

    Attributes:
        id: The numeric GeoKey ID (e.g., 1024 for GTModelTypeGeoKey)
        name: The human-readable GeoKey name
        location: The TIFF tag where the value is stored (0, 34736, or 34737)
        count: The number of values declared for this key
        value_offset: The raw value/offset field of the record
        value: The resolved value (int, float or str)

    Example:
        >>> key = GeoKey(id=1024, name='GTModelTypeGeoKey', location=0,
        ...              count=1, value_offset=2, value=2)
        >>> key.is_inline()
        True
    """
    id: int
    name: str
    location: int
    count: int
    value_offset: int
    value: Any = None

    def is_inline(self) -> bool:
        """True if the value is stored directly in the key record."""
        return self.location == 0

    def is_stored_in_doubles(self) -> bool:
        """True if the value is stored in the GeoDoubleParams tag (34736)."""
        return self.location == 34736

    def is_stored_in_ascii(self) -> bool:
        """True if the value is stored in the GeoAsciiParams tag (34737)."""
        return self.location == 34737


@dataclass
class GeoKeyDirectory:
    """
    The decoded GeoKeyDirectoryTag (34735) and its auxiliary parameters.

    Every resolved value is kept in one of the three category maps keyed by
    GeoKey id. Keys the tiler knows about are additionally projected onto the
    named fields below; unset fields stay None. Enum fields hold the enum
    member when the value is known and the raw integer otherwise.

    Attributes:
        version: Directory version (always 1 once decoded)
        major_revision: Key revision (1 for GeoTIFF 1.0 and 1.1)
        minor_revision: Minor revision (0 for GeoTIFF 1.0, 1 for 1.1)
        key_count: Number of key records declared by the header
        keys: Decoded key records in directory order
        code_values: Inline (short) values by key id
        double_values: GeoDoubleParams values by key id
        ascii_values: GeoAsciiParams values by key id
        warnings: Non-fatal problems found while decoding
    """
    version: int = 1
    major_revision: int = 1
    minor_revision: int = 0
    key_count: int = 0
    keys: List[GeoKey] = field(default_factory=list)
    code_values: Dict[int, int] = field(default_factory=dict)
    double_values: Dict[int, float] = field(default_factory=dict)
    ascii_values: Dict[int, str] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    # Configuration keys
    model_type: Optional[Union[ModelType, int]] = None
    raster_type: Optional[Union[RasterType, int]] = None
    gt_citation: Optional[str] = None

    # Geodetic CRS keys
    geographic_type: Optional[int] = None
    geog_citation: Optional[str] = None
    geodetic_datum: Optional[int] = None
    prime_meridian: Optional[int] = None
    geog_linear_units: Optional[int] = None
    geog_linear_unit_size: Optional[float] = None
    geog_angular_units: Optional[int] = None
    geog_angular_unit_size: Optional[float] = None
    ellipsoid: Optional[int] = None
    semi_major_axis: Optional[float] = None
    semi_minor_axis: Optional[float] = None
    inv_flattening: Optional[float] = None
    geog_azimuth_units: Optional[int] = None
    prime_meridian_long: Optional[float] = None

    # Projected CRS keys
    projected_cs_type: Optional[int] = None
    pcs_citation: Optional[str] = None
    projection: Optional[int] = None
    proj_method: Optional[int] = None
    proj_linear_units: Optional[int] = None
    proj_linear_unit_size: Optional[float] = None
    proj_std_parallel1: Optional[float] = None
    proj_std_parallel2: Optional[float] = None
    proj_nat_origin_long: Optional[float] = None
    proj_nat_origin_lat: Optional[float] = None
    proj_false_easting: Optional[float] = None
    proj_false_northing: Optional[float] = None
    proj_false_origin_long: Optional[float] = None
    proj_false_origin_lat: Optional[float] = None
    proj_false_origin_easting: Optional[float] = None
    proj_false_origin_northing: Optional[float] = None
    proj_center_long: Optional[float] = None
    proj_center_lat: Optional[float] = None
    proj_center_easting: Optional[float] = None
    proj_center_northing: Optional[float] = None
    proj_scale_at_nat_origin: Optional[float] = None
    proj_scale_at_center: Optional[float] = None
    proj_azimuth_angle: Optional[float] = None
    proj_straight_vert_pole_long: Optional[float] = None

    # Vertical CRS keys
    vertical_cs_type: Optional[int] = None
    vertical_citation: Optional[str] = None
    vertical_datum: Optional[int] = None
    vertical_units: Optional[int] = None

    @property
    def version_text(self) -> str:
        """GeoTIFF specification version as 'major.minor' (e.g., '1.1')."""
        return f"{self.major_revision}.{self.minor_revision}"

    def is_projected(self) -> bool:
        return self.model_type == ModelType.PROJECTED

    def is_geographic(self) -> bool:
        return self.model_type == ModelType.GEOGRAPHIC

    def horizontal_units(self) -> Optional[int]:
        """Linear units of the horizontal CRS, preferring the projected units."""
        if self.proj_linear_units is not None:
            return self.proj_linear_units
        return self.geog_linear_units


# ============================================================================
# Raster headers
# ============================================================================

@dataclass(frozen=True)
class TiePoint:
    """
    A raster-space (i, j, k) to model-space (x, y, z) correspondence.

    Example:
        >>> tp = TiePoint((0.0, 0.0, 0.0), (500000.0, 4100000.0, 0.0))
        >>> tp.model_pt[0]
        500000.0
    """
    raster_pt: Tuple[float, float, float]
    model_pt: Tuple[float, float, float]

    def __str__(self) -> str:
        return f"raster {self.raster_pt[:2]} -> model {self.model_pt[:2]}"


@dataclass
class GeoTiffHeader:
    """
    Everything known about an input GeoTIFF before its pixel data loads.

    Created once per input at header-load time. The only mutation afterwards
    is `swap_axes`, applied when a 90 or 270 degree pre-rotation is performed.

    Attributes:
        path: Source file path
        width: Raster width in pixels (> 0)
        height: Raster height in pixels (> 0)
        channel_count: Samples per pixel
        bits_per_channel: Bits per sample
        sample_kind: Unsigned, signed or floating point samples
        orientation: Row order of the stored pixels
        rows_per_strip: Rows per encoded strip (0 for tiled images)
        pix_to_proj_scale: Model units per pixel along x, y and z
        tie_points: Raster to model correspondences (at least one)
        geokeys: The decoded GeoKey directory
        min_sample_value: Smallest sample value (0/0 together mean unknown)
        max_sample_value: Largest sample value
        nodata_value: GDAL no-data sentinel, if any
    """
    path: str
    width: int
    height: int
    channel_count: int
    bits_per_channel: int
    sample_kind: SampleKind
    orientation: Orientation = Orientation.TOPLEFT
    rows_per_strip: int = 0
    pix_to_proj_scale: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    tie_points: List[TiePoint] = field(default_factory=list)
    geokeys: Optional[GeoKeyDirectory] = None
    min_sample_value: float = 0.0
    max_sample_value: float = 0.0
    nodata_value: Optional[float] = None

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    def has_extrema(self) -> bool:
        """True when the file declared a usable min/max sample range."""
        return not (self.min_sample_value == 0 and self.max_sample_value == 0)

    def swap_axes(self):
        """Swap x/y sizes and scales after a quarter-turn pre-rotation."""
        self.width, self.height = self.height, self.width
        sx, sy, sz = self.pix_to_proj_scale
        self.pix_to_proj_scale = (sy, sx, sz)


@dataclass(frozen=True)
class Alignment:
    """
    Scale relationship between the height raster and the color raster.

    Attributes:
        hm_to_color_scale: Color pixels per height pixel
        color_to_hm_scale: Height pixels per color pixel
        tie_point_delta: Model-space offset of the color tie point from the height tie point
        max_height_tile_size: Largest legal height tile whose color tile fits the color size cap
        pix_to_meters: Ground size of one height pixel in metres (0 when unknown)
    """
    hm_to_color_scale: float
    color_to_hm_scale: float
    tie_point_delta: Tuple[float, float]
    max_height_tile_size: int
    pix_to_meters: float = 0.0

    def color_length(self, hm_length: int) -> int:
        """Length in color pixels matching a length in height pixels."""
        return int(round(hm_length * self.hm_to_color_scale))


# ============================================================================
# Tiling plan
# ============================================================================

@dataclass(frozen=True)
class TileRegion:
    """
    One region of a recursive tiling plan.

    Attributes:
        region_id: Identifier unique to this geometric region ('0', '0.1', ...)
        origin: Top-left pixel of the region (x, y)
        size: Region size in pixels (w, h)
        tile_size: Legal tile size used for this region (0 if none fits)
        depth: Recursion depth (0 for the full raster)
    """
    region_id: str
    origin: Tuple[int, int]
    size: Tuple[int, int]
    tile_size: int
    depth: int

    @property
    def grid(self) -> Tuple[int, int]:
        """Whole tiles that fit along x and y."""
        if self.tile_size <= 0:
            return (0, 0)
        return (self.size[0] // self.tile_size, self.size[1] // self.tile_size)

    @property
    def covered(self) -> Tuple[int, int]:
        gx, gy = self.grid
        return (gx * self.tile_size, gy * self.tile_size)

    @property
    def leftover(self) -> Tuple[int, int]:
        cx, cy = self.covered
        return (self.size[0] - cx, self.size[1] - cy)


@dataclass(frozen=True)
class TileCell:
    """
    One tile emitted from a region grid.

    Attributes:
        region_id: Owning region
        col: Grid column inside the region
        row: Grid row inside the region
        origin: Top-left pixel of the tile in raster coordinates
        tile_size: Tile edge length in pixels
    """
    region_id: str
    col: int
    row: int
    origin: Tuple[int, int]
    tile_size: int

    def rect(self) -> Tuple[int, int, int, int]:
        return (self.origin[0], self.origin[1], self.tile_size, self.tile_size)

    def grid_label(self, axis_order: str = 'yx') -> str:
        """Grid coordinates as 'row-col' ('yx') or 'col-row' ('xy')."""
        if axis_order == 'xy':
            return f"{self.col:02d}-{self.row:02d}"
        return f"{self.row:02d}-{self.col:02d}"


@dataclass(frozen=True)
class TilePlan:
    """
    The ordered, replayable result of the recursive tiling of a raster.

    Built once from geometry alone and replayed identically against the
    height raster and the color raster.
    """
    raster_size: Tuple[int, int]
    min_tile_size: int
    max_tile_size: int
    regions: Tuple[TileRegion, ...]

    def tiles(self) -> Iterator[TileCell]:
        """Every tile of every emitting region, in replay order."""
        for region in self.regions:
            yield from region_tiles(region, self.min_tile_size)

    def tile_count(self) -> int:
        return sum(1 for _ in self.tiles())

    def gaps(self) -> List[TileRegion]:
        """Regions too small to hold a tile of the minimum size."""
        return [r for r in self.regions if r.tile_size < self.min_tile_size]

    def covered_area(self) -> int:
        return sum(c.tile_size * c.tile_size for c in self.tiles())


def region_tiles(region: TileRegion, min_tile_size: int) -> Iterator[TileCell]:
    """Grid cells of a region in row-major order; none for gap regions."""
    if region.tile_size < min_tile_size or region.tile_size <= 0:
        return
    gx, gy = region.grid
    ox, oy = region.origin
    size = region.tile_size
    for row in range(gy):
        for col in range(gx):
            yield TileCell(region.region_id, col, row, (ox + col * size, oy + row * size), size)


# ============================================================================
# Options
# ============================================================================

@dataclass(frozen=True)
class TilingOptions:
    """
    Tunable parameters for one conversion run.

    Attributes:
        min_height_tile_size: Smallest legal height tile to emit
        max_height_tile_size: Largest legal height tile to emit
        max_color_tile_size: Cap on color tile edge length
        block_align_color_tiles: Upscale color tiles to a multiple of color_block_size
        color_block_size: Block size for block-compression friendly textures
        pre_rotation: Counter-clockwise rotation applied to both rasters (0, 90, 180, 270)
        grid_axis_order: 'yx' names tiles row-col, 'xy' names them col-row
        height_sample_format: Height tile samples ('u16', 'u8' or 'f32')
        color_compression: Compression for color tiles ('lzw', 'deflate', 'none')
        rows_per_strip: Rows per strip for written tiles
        tie_point_tolerance: Allowed tie point misalignment in height pixels
        overwrite: Replace existing output files
    """
    min_height_tile_size: int = 65
    max_height_tile_size: int = 4097
    max_color_tile_size: int = 8192
    block_align_color_tiles: bool = True
    color_block_size: int = 4
    pre_rotation: int = 0
    grid_axis_order: str = 'yx'
    height_sample_format: str = 'u16'
    color_compression: str = 'lzw'
    rows_per_strip: int = 32
    tie_point_tolerance: float = 1.0
    overwrite: bool = False

    @classmethod
    def from_config(cls, config=None, **overrides) -> 'TilingOptions':
        """
        Build options from the [tiling] and [output] config sections.

        Keyword overrides whose value is None are ignored, so CLI arguments
        that were not given fall through to the configured value.
        """
        if config is None:
            from gttile.utils.config_loader import config as default_config
            config = default_config
        values: Dict[str, Any] = {}
        for section in ('tiling', 'output'):
            for key, value in config.get_section(section).items():
                if key in cls.__dataclass_fields__:
                    values[key] = value
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def with_overrides(self, **overrides) -> 'TilingOptions':
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
