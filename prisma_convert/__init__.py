"""
PRISMA L2 converter - Convert PRISMA Level-2 HDF5 products to GeoTIFF or ENVI.

This package provides tools for:
- Reading PRISMA L2B/L2C/L2D hyperspectral cubes and ancillary datasets
- Selecting bands and joining the VNIR and SWIR spectrometers
- Georeferencing (GLT Lat/Lon for L2B/L2C, UTM for L2D)
- Writing GeoTIFF/ENVI rasters with wavelength and geometry tables
"""

__version__ = "0.1.0"

from prisma_convert.convert import convert_prisma_l2
from prisma_convert.request import ConversionRequest
from prisma_convert.writers import OutputFormat, read_converted

__all__ = [
    "convert_prisma_l2",
    "ConversionRequest",
    "OutputFormat",
    "read_converted",
]
