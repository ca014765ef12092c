"""
Configuration constants for the PRISMA Level-2 converter.
"""

from typing import Dict

import numpy as np

# ============================================================================
# PRISMA SENSOR SPECIFICATIONS
# ============================================================================

SUPPORTED_LEVELS = ("2B", "2C", "2D")

# Ground sampling distance of the hyperspectral and panchromatic swaths
HCO_PIXEL_SIZE_M = 30.0
PCO_PIXEL_SIZE_M = 5.0

# L2 cubes are stored as 16-bit DN scaled between L2Scale*Min and L2Scale*Max
L2_DN_MAX = 65535.0

SPECTROMETERS = ("VNIR", "SWIR")

# ============================================================================
# HDF5 PATH CONSTANTS
# ============================================================================

# Note: actual files use spaces in group names
HDF5_SWATH_BASE = "HDFEOS/SWATHS"
HCO_SWATH = "PRS_L{level}_HCO"
PCO_SWATH = "PRS_L{level}_PCO"

DATA_FIELDS = "Data Fields"
GEO_FIELDS = "Geolocation Fields"
GEOMETRIC_FIELDS = "Geometric Fields"

CUBE_DATASETS = {
    "VNIR": "VNIR_Cube",
    "SWIR": "SWIR_Cube",
}
PAN_DATASET = "Cube"
LATITUDE_DATASET = "Latitude"
LONGITUDE_DATASET = "Longitude"

# Angle datasets in the order they are written to the ANG raster
ANGLE_DATASETS = [
    "Observing_Angle",
    "Rel_Azimuth_Angle",
    "Solar_Zenith_Angle",
]
ANGLE_BAND_NAMES = ["view_zenith", "relative_azimuth", "solar_zenith"]
LATLON_BAND_NAMES = ["latitude", "longitude"]

MASK_DATASETS = {
    "CLD": "Cloud_Mask",
    "GLINT": "SunGlint_Mask",
    "LC": "LandCover_Mask",
}

# Masks use 255 as fill value outside the GLT footprint
MASK_FILL_VALUE = 255

# ============================================================================
# HDF5 ATTRIBUTE NAMES
# ============================================================================

WAVELENGTH_ATTRS = {
    "VNIR": "List_Cw_Vnir",
    "SWIR": "List_Cw_Swir",
}
FWHM_ATTRS = {
    "VNIR": "List_Fwhm_Vnir",
    "SWIR": "List_Fwhm_Swir",
}
SCALE_ATTRS = {
    "VNIR": ("L2ScaleVnirMin", "L2ScaleVnirMax"),
    "SWIR": ("L2ScaleSwirMin", "L2ScaleSwirMax"),
    "PAN": ("L2ScalePanMin", "L2ScalePanMax"),
}

LEVEL_ATTR = "Processing_Level"
START_TIME_ATTR = "Product_StartTime"
SUN_ZENITH_ATTR = "Sun_zenith_angle"
SUN_AZIMUTH_ATTR = "Sun_azimuth_angle"
EPSG_ATTR = "Epsg_Code"
UL_EASTING_ATTR = "Product_ULcorner_easting"
UL_NORTHING_ATTR = "Product_ULcorner_northing"

# ============================================================================
# OUTPUT CONFIGURATION
# ============================================================================

SOURCE_TAG = "HCO"

WAVELENGTH_TABLE_SUFFIX = ".wvl"
GEOMETRY_TABLE_SUFFIX = "_ANG.txt"

WGS84_EPSG = 4326

# ENVI data type codes
ENVI_DTYPE_FLOAT32 = 4

ENVI_DTYPE_CODES: Dict[type, int] = {
    np.uint8: 1,
    np.int16: 2,
    np.int32: 3,
    np.float32: 4,
    np.float64: 5,
    np.uint16: 12,
    np.uint32: 13,
    np.int64: 14,
    np.uint64: 15,
}
