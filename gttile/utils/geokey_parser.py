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
GeoKey Parser.

Decodes the raw GeoTIFF georeferencing tags into typed structures:
- GeoKeyDirectoryTag (34735) with GeoDoubleParamsTag (34736) and
  GeoAsciiParamsTag (34737) into a GeoKeyDirectory
- ModelPixelScaleTag (33550) into a pixel to projection scale
- ModelTiepointTag (33922) into tie points
- GDAL_NODATA (42113) into a no-data sentinel

Decoding is strict: a malformed directory raises a GeoKeyParseError subclass.
Values outside the known domain of an enumerated key are only warned about.
CRS catalog codes are stored as-is; GDAL/OSR is consulted only to describe
them in log output.
"""

import logging
import math
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from osgeo import gdal, osr

from gttile.utils.data_models import GeoKey, GeoKeyDirectory, ModelType, RasterType, TiePoint
from gttile.utils.exceptions import (ArityError, CorruptReferenceError, InvalidLocationError,
                                     ParseError, TruncatedDirectoryError, VersionError)

logger = logging.getLogger(__name__)

os.environ['PROJ_NETWORK'] = 'OFF'  # Disable PROJ network access

# --- TIFF tags ---
GEO_KEY_DIRECTORY_TAG = 34735
GEO_DOUBLE_TAG = 34736
GEO_ASCII_TAG = 34737
MODEL_PIXEL_SCALE_TAG = 33550
MODEL_TIEPOINT_TAG = 33922
GDAL_NODATA_TAG = 42113

# GeoTIFF "User-Defined" value
KvUserDefined = 32767

ASCII_DELIMITER = '|'

# --- Lookup Tables ---
# GeoTIFF Standard v1.1: https://docs.ogc.org/is/19-008r4/19-008r4.html#_summary_of_geokey_ids_and_names

GEOKEY_NAMES = {
    # GeoTIFF Configuration Keys
    1024: 'GTModelTypeGeoKey',
    1025: 'GTRasterTypeGeoKey',
    1026: 'GTCitationGeoKey',
    # Geographic CRS Parameter Keys
    2048: 'GeodeticCRSGeoKey',
    2049: 'GeodeticCitationGeoKey',
    2050: 'GeodeticDatumGeoKey',
    2051: 'PrimeMeridianGeoKey',
    2052: 'GeogLinearUnitsGeoKey',
    2053: 'GeogLinearUnitSizeGeoKey',
    2054: 'GeogAngularUnitsGeoKey',
    2055: 'GeogAngularUnitSizeGeoKey',
    2056: 'EllipsoidGeoKey',
    2057: 'EllipsoidSemiMajorAxisGeoKey',
    2058: 'EllipsoidSemiMinorAxisGeoKey',
    2059: 'EllipsoidInvFlatteningGeoKey',
    2060: 'GeogAzimuthUnitsGeoKey',
    2061: 'PrimeMeridianLongGeoKey',
    # Projected CRS Parameter Keys
    3072: 'ProjectedCRSGeoKey',
    3073: 'ProjectedCitationGeoKey',
    3074: 'ProjectionGeoKey',
    3075: 'ProjMethodGeoKey',
    3076: 'ProjLinearUnitsGeoKey',
    3077: 'ProjLinearUnitSizeGeoKey',
    3078: 'ProjStdParallel1GeoKey',
    3079: 'ProjStdParallel2GeoKey',
    3080: 'ProjNatOriginLongGeoKey',
    3081: 'ProjNatOriginLatGeoKey',
    3082: 'ProjFalseEastingGeoKey',
    3083: 'ProjFalseNorthingGeoKey',
    3084: 'ProjFalseOriginLongGeoKey',
    3085: 'ProjFalseOriginLatGeoKey',
    3086: 'ProjFalseOriginEastingGeoKey',
    3087: 'ProjFalseOriginNorthingGeoKey',
    3088: 'ProjCenterLongGeoKey',
    3089: 'ProjCenterLatGeoKey',
    3090: 'ProjCenterEastingGeoKey',
    3091: 'ProjCenterNorthingGeoKey',
    3092: 'ProjScaleAtNatOriginGeoKey',
    3093: 'ProjScaleAtCenterGeoKey',
    3094: 'ProjAzimuthAngleGeoKey',
    3095: 'ProjStraightVertPoleLongGeoKey',
    # Vertical CRS Parameter Keys
    4096: 'VerticalGeoKey',
    4097: 'VerticalCitationGeoKey',
    4098: 'VerticalDatumGeoKey',
    4099: 'VerticalUnitsGeoKey',
    5120: 'CoordinateEpochGeoKey',
    # Non-standardized GeoKeys that pop up in older files
    2062: 'TOWGS84GeoKey',
    3059: 'ProjLinearUnitsInterpCorrectGeoKey'
}

# Mapping of GeoTIFF key names to their v1.0 equivalents
GEOKEY_v1_0_MAP = {
    'GeodeticCRSGeoKey': 'GeographicTypeGeoKey',
    'GeodeticCitationGeoKey': 'GeogCitationGeoKey',
    'GeodeticDatumGeoKey': 'GeogGeodeticDatumGeoKey',
    'PrimeMeridianGeoKey': 'GeogPrimeMeridianGeoKey',
    'EllipsoidGeoKey': 'GeogEllipsoidGeoKey',
    'EllipsoidSemiMajorAxisGeoKey': 'GeogSemiMajorAxisGeoKey',
    'EllipsoidSemiMinorAxisGeoKey': 'GeogSemiMinorAxisGeoKey',
    'EllipsoidInvFlatteningGeoKey': 'GeogInvFlatteningGeoKey',
    'PrimeMeridianLongGeoKey': 'GeogPrimeMeridianLongGeoKey',
    'ProjectedCRSGeoKey': 'ProjectedCSTypeGeoKey',
    'ProjectedCitationGeoKey': 'PCSCitationGeoKey',
    'ProjMethodGeoKey': 'ProjCoordTransGeoKey',
    'VerticalGeoKey': 'VerticalCSTypeGeoKey'
}

# GeoKey id -> GeoKeyDirectory named field
GEOKEY_FIELDS = {
    1024: 'model_type',
    1025: 'raster_type',
    1026: 'gt_citation',
    2048: 'geographic_type',
    2049: 'geog_citation',
    2050: 'geodetic_datum',
    2051: 'prime_meridian',
    2052: 'geog_linear_units',
    2053: 'geog_linear_unit_size',
    2054: 'geog_angular_units',
    2055: 'geog_angular_unit_size',
    2056: 'ellipsoid',
    2057: 'semi_major_axis',
    2058: 'semi_minor_axis',
    2059: 'inv_flattening',
    2060: 'geog_azimuth_units',
    2061: 'prime_meridian_long',
    3072: 'projected_cs_type',
    3073: 'pcs_citation',
    3074: 'projection',
    3075: 'proj_method',
    3076: 'proj_linear_units',
    3077: 'proj_linear_unit_size',
    3078: 'proj_std_parallel1',
    3079: 'proj_std_parallel2',
    3080: 'proj_nat_origin_long',
    3081: 'proj_nat_origin_lat',
    3082: 'proj_false_easting',
    3083: 'proj_false_northing',
    3084: 'proj_false_origin_long',
    3085: 'proj_false_origin_lat',
    3086: 'proj_false_origin_easting',
    3087: 'proj_false_origin_northing',
    3088: 'proj_center_long',
    3089: 'proj_center_lat',
    3090: 'proj_center_easting',
    3091: 'proj_center_northing',
    3092: 'proj_scale_at_nat_origin',
    3093: 'proj_scale_at_center',
    3094: 'proj_azimuth_angle',
    3095: 'proj_straight_vert_pole_long',
    4096: 'vertical_cs_type',
    4097: 'vertical_citation',
    4098: 'vertical_datum',
    4099: 'vertical_units',
}

GEOKEY_LOOKUP = {
    1024: {  # GTModelTypeGeoKey
        1: 'ModelTypeProjected',
        2: 'ModelTypeGeographic',
        3: 'ModelTypeGeocentric'
    },
    1025: {  # GTRasterTypeGeoKey
        1: 'RasterPixelIsArea',
        2: 'RasterPixelIsPoint'
    }
}

LINEAR_UNITS = {
    9001: 'Linear_Meter',
    9002: 'Linear_Foot',
    9003: 'Linear_Foot_US_Survey',
    9004: 'Linear_Foot_Modified_American',
    9005: 'Linear_Foot_Clarke',
    9006: 'Linear_Foot_Indian',
    9007: 'Linear_Link',
    9008: 'Linear_Link_Benoit',
    9009: 'Linear_Link_Sears',
    9010: 'Linear_Chain_Benoit',
    9011: 'Linear_Chain_Sears',
    9012: 'Linear_Yard_Sears',
    9013: 'Linear_Yard_Indian',
    9014: 'Linear_Fathom',
    9015: 'Linear_Mile_International_Nautical'
}

# Metres per unit for LINEAR_UNITS codes
LINEAR_UNIT_METERS = {
    9001: 1.0,
    9002: 0.3048,
    9003: 1200.0 / 3937.0,
    9004: 0.3048008333333334,
    9005: 0.3047972654,
    9006: 0.3047995102481,
    9007: 0.201168,
    9008: 0.201166195164,
    9009: 0.20116765,
    9010: 20.1166195164,
    9011: 20.1167651215526,
    9012: 0.914398414616029,
    9013: 0.914398530744441,
    9014: 1.8288,
    9015: 1852.0,
}

ANGULAR_UNITS = {
    9101: 'Angular_Radian',
    9102: 'Angular_Degree',
    9103: 'Angular_Arc_Minute',
    9104: 'Angular_Arc_Second',
    9105: 'Angular_Grad',
    9106: 'Angular_Gon',
    9107: 'Angular_DMS',
    9108: 'Angular_DMS_Hemisphere'
}

# ProjMethodGeoKey (ProjCoordTransGeoKey in v1.0)
PROJECTION_METHOD_MAP = {
    1: 'CT_TransverseMercator',
    2: 'CT_TransvMercator_Modified_Alaska',
    3: 'CT_ObliqueMercator',
    4: 'CT_ObliqueMercator_Laborde',
    5: 'CT_ObliqueMercator_Rosenmund',
    6: 'CT_ObliqueMercator_Spherical',
    7: 'CT_Mercator',
    8: 'CT_LambertConfConic_2SP',
    9: 'CT_LambertConfConic_Helmert',
    10: 'CT_LambertAzimEqualArea',
    11: 'CT_AlbersEqualArea',
    12: 'CT_AzimuthalEquidistant',
    13: 'CT_EquidistantConic',
    14: 'CT_Stereographic',
    15: 'CT_PolarStereographic',
    16: 'CT_ObliqueStereographic',
    17: 'CT_Equirectangular',
    18: 'CT_CassiniSoldner',
    19: 'CT_Gnomonic',
    20: 'CT_MillerCylindrical',
    21: 'CT_Orthographic',
    22: 'CT_Polyconic',
    23: 'CT_Robinson',
    24: 'CT_Sinusoidal',
    25: 'CT_VanDerGrinten',
    26: 'CT_NewZealandMapGrid',
    27: 'CT_TransvMercator_SouthOriented'
}

# Enumerated keys checked against a known value domain
ENUM_DOMAINS: Dict[int, Dict[int, str]] = {
    1024: GEOKEY_LOOKUP[1024],
    1025: GEOKEY_LOOKUP[1025],
    2052: LINEAR_UNITS,
    2054: ANGULAR_UNITS,
    2060: ANGULAR_UNITS,
    3075: PROJECTION_METHOD_MAP,
    3076: LINEAR_UNITS,
    4099: LINEAR_UNITS,
}

# Keys defining the Coordinate Reference Systems (CRS)
CRS_KEYS = {
    2048,  # GeodeticCRSGeoKey
    3072,  # ProjectedCRSGeoKey
    4096   # VerticalGeoKey
}

# Keys that should be displayed as plain text
CITATION_KEYS = {1026, 2049, 3073, 4097}


def geokey_name(key_id: int, v1_0_names: bool = False) -> str:
    """Return the GeoKey name for an id, using v1.0 names on request."""
    name = GEOKEY_NAMES.get(key_id, f"UnknownGeoKey ({key_id})")
    if v1_0_names:
        name = GEOKEY_v1_0_MAP.get(name, name)
    return name


def parse_geokey_directory(directory: Sequence[int],
                           doubles: Optional[Sequence[float]] = None,
                           ascii_params: Union[str, bytes, None] = None) -> GeoKeyDirectory:
    """
    Decode a GeoKeyDirectoryTag array with its auxiliary parameter tags.

    Args:
        directory: The unsigned 16-bit GeoKeyDirectoryTag (34735) values.
        doubles: The GeoDoubleParamsTag (34736) values, if present.
        ascii_params: The GeoAsciiParamsTag (34737) blob, '|' terminated values.

    Returns:
        GeoKeyDirectory: The decoded directory with named fields populated.

    Raises:
        TruncatedDirectoryError: Header or a key record runs past the array end.
        VersionError: The directory version is not 1.
        ArityError: A key declares an unsupported value count.
        CorruptReferenceError: A key points outside or inconsistently into its params.
        InvalidLocationError: A key names an unknown storage location.

    Example:
        >>> d = parse_geokey_directory([1, 1, 0, 1, 1024, 0, 1, 2])
        >>> d.model_type
        <ModelType.GEOGRAPHIC: 2>
    """
    values = [int(v) for v in directory]
    double_values = [float(v) for v in (doubles if doubles is not None else [])]
    ascii_text = _ascii_text(ascii_params)

    if len(values) < 4:
        raise TruncatedDirectoryError(
            f"GeoKey directory header needs 4 values, found {len(values)}")

    version, major_revision, minor_revision, key_count = values[:4]
    if version != 1:
        raise VersionError(f"Unsupported GeoKey directory version {version}, expected 1")

    result = GeoKeyDirectory(version=version, major_revision=major_revision,
                             minor_revision=minor_revision, key_count=key_count)
    v1_0_names = (major_revision, minor_revision) == (1, 0)

    for index in range(key_count):
        start = 4 + index * 4
        if start + 4 > len(values):
            raise TruncatedDirectoryError(
                f"GeoKey record {index} of {key_count} runs past the end of the "
                f"directory ({len(values)} values)")
        key_id, location, count, value_offset = values[start:start + 4]

        value = _resolve_value(key_id, location, count, value_offset, double_values, ascii_text)

        key = GeoKey(id=key_id, name=geokey_name(key_id, v1_0_names), location=location,
                     count=count, value_offset=value_offset, value=value)
        result.keys.append(key)
        _store_value(result, key)

    return result


def _ascii_text(ascii_params: Union[str, bytes, None]) -> str:
    if ascii_params is None:
        return ''
    if isinstance(ascii_params, bytes):
        return ascii_params.decode('ascii', 'replace')
    return str(ascii_params)


def _resolve_value(key_id: int, location: int, count: int, value_offset: int,
                   doubles: List[float], ascii_text: str) -> Any:
    """Resolve one key record's value from its storage location."""
    if location == 0:
        if count != 1:
            raise ArityError(f"Inline GeoKey {key_id} declares count {count}, expected 1")
        return value_offset

    if location == GEO_DOUBLE_TAG:
        if count != 1:
            raise ArityError(f"Double GeoKey {key_id} declares count {count}, expected 1")
        if value_offset >= len(doubles):
            raise CorruptReferenceError(
                f"GeoKey {key_id} references double {value_offset}, "
                f"but only {len(doubles)} are present")
        return doubles[value_offset]

    if location == GEO_ASCII_TAG:
        if count < 1:
            raise ArityError(f"ASCII GeoKey {key_id} declares count {count}, expected at least 1")
        if value_offset >= len(ascii_text):
            raise CorruptReferenceError(
                f"GeoKey {key_id} references character {value_offset}, "
                f"but the ASCII params hold {len(ascii_text)}")
        end = ascii_text.find(ASCII_DELIMITER, value_offset)
        if end < 0:
            raise CorruptReferenceError(
                f"GeoKey {key_id} string at offset {value_offset} has no '|' terminator")
        if end - value_offset != count - 1:
            raise CorruptReferenceError(
                f"GeoKey {key_id} declares {count - 1} characters but its string "
                f"at offset {value_offset} holds {end - value_offset}")
        return ascii_text[value_offset:end]

    raise InvalidLocationError(f"GeoKey {key_id} has invalid storage location {location}")


def _store_value(directory: GeoKeyDirectory, key: GeoKey):
    """Store a resolved value in its category map and named field."""
    if key.is_inline():
        directory.code_values[key.id] = key.value
    elif key.is_stored_in_doubles():
        directory.double_values[key.id] = key.value
    else:
        directory.ascii_values[key.id] = key.value

    if key.id not in GEOKEY_NAMES:
        _warn(directory, f"Unknown GeoKey {key.id} with value {key.value!r} ignored")
        return

    value = key.value
    domain = ENUM_DOMAINS.get(key.id)
    if domain is not None and isinstance(value, int) and value != KvUserDefined and value not in domain:
        _warn(directory, f"{key.name} has unrecognized value {value}")

    if key.id == 1024 and value in ModelType._value2member_map_:
        value = ModelType(value)
    elif key.id == 1025 and value in RasterType._value2member_map_:
        value = RasterType(value)

    field_name = GEOKEY_FIELDS.get(key.id)
    if field_name is not None:
        setattr(directory, field_name, value)


def _warn(directory: GeoKeyDirectory, message: str):
    logger.warning(f"Warning: {message}")
    directory.warnings.append(message)


# --- Model transformation tags ---

def read_model_pixel_scale(doubles: Optional[Sequence[float]]) -> Tuple[float, float, float]:
    """
    Interpret ModelPixelScaleTag (33550) values.

    Missing components default to 0, so a file without the tag reports (0, 0, 0).
    """
    values = [float(v) for v in (doubles if doubles is not None else [])][:3]
    values += [0.0] * (3 - len(values))
    return (values[0], values[1], values[2])


def read_model_tie_points(doubles: Optional[Sequence[float]]) -> List[TiePoint]:
    """
    Interpret ModelTiepointTag (33922) values as (I, J, K, X, Y, Z) sextuplets.

    Raises:
        ParseError: If the value count is not a multiple of 6.
    """
    values = [float(v) for v in (doubles if doubles is not None else [])]
    if len(values) % 6 != 0:
        raise ParseError(f"ModelTiepointTag holds {len(values)} values, not a multiple of 6")
    return [TiePoint(tuple(values[i:i + 3]), tuple(values[i + 3:i + 6]))
            for i in range(0, len(values), 6)]


def read_gdal_nodata(text: Union[str, bytes, None]) -> Optional[float]:
    """Interpret the GDAL_NODATA tag (42113) string, e.g. '-9999' or 'nan'."""
    if text is None:
        return None
    if isinstance(text, bytes):
        text = text.decode('ascii', 'replace')
    text = text.strip().rstrip('\x00').strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        logger.warning(f"Warning: Ignoring unparseable GDAL_NODATA value '{text}'")
        return None


# --- Descriptions for logging ---

def describe_geokey_value(key_id: int, value: Any) -> str:
    """
    Human-readable text for a GeoKey value, e.g. '2 (ModelTypeGeographic)'.

    CRS codes are described through GDAL/OSR when the EPSG catalog knows
    them. The description is informational only and never validated.
    """
    if key_id in CITATION_KEYS or not isinstance(value, int):
        if isinstance(value, float) and math.isfinite(value):
            return f"{value:.10g}"
        return str(value)

    if value == KvUserDefined:
        return f"{value} (User-Defined)"

    desc = ENUM_DOMAINS.get(key_id, {}).get(value)
    if desc is None and key_id in CRS_KEYS:
        desc = _lookup_crs_name(value)
    return f"{value} ({desc})" if desc else str(value)


def _lookup_crs_name(code: int) -> Optional[str]:
    srs = osr.SpatialReference()
    try:
        if srs.ImportFromEPSG(code) == 0:
            name = srs.GetName()
            if name and name != str(code):
                return name
    except (RuntimeError, TypeError):
        logger.debug(f"EPSG lookup failed for code {code}")
    return None


def epsg_linear_unit_meters(code: int) -> Optional[float]:
    """Metres per linear unit of an EPSG projected CRS, or None if GDAL cannot tell."""
    srs = osr.SpatialReference()
    try:
        if srs.ImportFromEPSG(code) == 0 and srs.IsProjected():
            meters = srs.GetLinearUnits()
            if meters and meters > 0:
                return float(meters)
    except (RuntimeError, TypeError):
        logger.debug(f"EPSG unit lookup failed for code {code}")
    return None


def log_geokey_directory(directory: GeoKeyDirectory, label: str):
    """Log every decoded key of a directory at DEBUG level."""
    logger.debug(f"{label}: GeoTIFF v{directory.version_text}, {len(directory.keys)} keys")
    for key in directory.keys:
        logger.debug(f"  {key.name}: {describe_geokey_value(key.id, key.value)}")


def is_geotiff(filepath: Union[str, Path]) -> bool:
    """
    Check if a file is a valid GeoTIFF with georeferencing information.

    A file is considered a GeoTIFF if:
        1. It can be opened by GDAL's GTiff or COG driver
        2. It contains a valid spatial reference system (SRS)

    Args:
        filepath: Path to the file to check

    Returns:
        True if the file is a valid GeoTIFF with SRS, False otherwise
    """
    if not os.path.exists(filepath):
        return False

    gdal.PushErrorHandler('CPLQuietErrorHandler')
    try:
        ds = gdal.Open(str(filepath))
    except RuntimeError:
        ds = None
    finally:
        gdal.PopErrorHandler()

    if ds is None:
        return False

    if ds.GetDriver().ShortName not in ['GTiff', 'COG']:
        return False

    srs = ds.GetSpatialRef()
    return srs is not None and srs.ExportToWkt() != ''
