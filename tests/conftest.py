"""Shared fixtures: synthetic PRISMA L2 products written with h5py."""

from pathlib import Path

import h5py
import numpy as np
import pytest

# Stored orientation of the synthetic swath (rows x cols)
RAW_ROWS, RAW_COLS = 8, 6
PAN_FACTOR = 2

# Native band centers in ascending order; PRISMA stores them descending
# with unused channels flagged by a zero wavelength
VNIR_WAVELENGTHS = [402.0, 447.0, 500.0, 551.0, 600.0, 649.0, 700.0, 800.0, 900.0, 980.0]
SWIR_WAVELENGTHS = [940.0, 960.0, 1000.0, 1200.0, 1600.0, 2000.0, 2200.0, 2450.0]

LAT0, LON0, STEP = 45.0, 10.0, 0.001


def stored_wavelengths(ascending, leading_zero=True):
    """Descending wavelength list with one zero-flagged channel."""
    values = list(reversed(ascending))
    return [0.0] + values if leading_zero else values + [0.0]


def raw_latlon(rows, cols, step):
    """
    Geolocation in stored orientation for a north-up regular grid.

    North-up pixel (i, j) = stored (rows - 1 - j, i) has
    latitude LAT0 - i * step and longitude LON0 + j * step.
    """
    r, c = np.meshgrid(np.arange(rows), np.arange(cols), indexing="ij")
    lat = LAT0 - c * step
    lon = LON0 + (rows - 1 - r) * step
    return lat.astype(np.float64), lon.astype(np.float64)


def cube_dn(n_stored, rows=RAW_ROWS, cols=RAW_COLS, offset=0):
    """Deterministic (rows, bands, cols) uint16 cube; band b holds values around 1000 * b."""
    r, b, c = np.meshgrid(np.arange(rows), np.arange(n_stored), np.arange(cols), indexing="ij")
    return (offset + 1000 * b + 10 * r + c).astype(np.uint16)


def write_prisma_product(
    path,
    level="2C",
    with_level_attr=True,
    with_scale=True,
    with_masks=True,
    with_pan=True,
    swir_cols=RAW_COLS,
):
    """Write a small PRISMA L2 product with the HDF-EOS5 layout."""
    path = Path(path)
    vnir_stored = stored_wavelengths(VNIR_WAVELENGTHS, leading_zero=True)
    swir_stored = stored_wavelengths(SWIR_WAVELENGTHS, leading_zero=False)

    with h5py.File(path, "w") as f:
        if with_level_attr:
            f.attrs["Processing_Level"] = level
        f.attrs["List_Cw_Vnir"] = np.array(vnir_stored, dtype=np.float32)
        f.attrs["List_Fwhm_Vnir"] = np.array([0.0 if w == 0 else 10.0 for w in vnir_stored],
                                              dtype=np.float32)
        f.attrs["List_Cw_Swir"] = np.array(swir_stored, dtype=np.float32)
        f.attrs["List_Fwhm_Swir"] = np.array([0.0 if w == 0 else 12.5 for w in swir_stored],
                                              dtype=np.float32)
        if with_scale:
            for key in ("Vnir", "Swir", "Pan"):
                f.attrs[f"L2Scale{key}Min"] = 0.0
                f.attrs[f"L2Scale{key}Max"] = 65535.0
        f.attrs["Product_StartTime"] = "2020-05-24T10:37:04.500000"
        f.attrs["Sun_zenith_angle"] = 35.5
        f.attrs["Sun_azimuth_angle"] = 150.25
        if level == "2D":
            f.attrs["Epsg_Code"] = np.int32(32632)
            f.attrs["Product_ULcorner_easting"] = 500015.0
            f.attrs["Product_ULcorner_northing"] = 5000015.0

        hco = f.create_group(f"HDFEOS/SWATHS/PRS_L{level}_HCO")
        data = hco.create_group("Data Fields")
        geo = hco.create_group("Geolocation Fields")
        geom = hco.create_group("Geometric Fields")

        data.create_dataset("VNIR_Cube", data=cube_dn(len(vnir_stored)))
        data.create_dataset("SWIR_Cube", data=cube_dn(len(swir_stored), cols=swir_cols, offset=5))

        lat, lon = raw_latlon(RAW_ROWS, RAW_COLS, STEP)
        geo.create_dataset("Latitude", data=lat)
        geo.create_dataset("Longitude", data=lon)

        base = np.arange(RAW_ROWS * RAW_COLS, dtype=np.float32).reshape(RAW_ROWS, RAW_COLS)
        geom.create_dataset("Observing_Angle", data=base / 10.0)
        geom.create_dataset("Rel_Azimuth_Angle", data=base + 100.0)
        geom.create_dataset("Solar_Zenith_Angle", data=np.full_like(base, 35.5))

        if with_masks:
            mask = (np.arange(RAW_ROWS * RAW_COLS) % 3).reshape(RAW_ROWS, RAW_COLS).astype(np.uint8)
            data.create_dataset("Cloud_Mask", data=mask)
            data.create_dataset("SunGlint_Mask", data=(mask == 1).astype(np.uint8))
            data.create_dataset("LandCover_Mask", data=mask + 1)

        if with_pan:
            pco = f.create_group(f"HDFEOS/SWATHS/PRS_L{level}_PCO")
            pan_rows, pan_cols = RAW_ROWS * PAN_FACTOR, RAW_COLS * PAN_FACTOR
            pan = np.arange(pan_rows * pan_cols, dtype=np.uint16).reshape(pan_rows, pan_cols)
            pco.create_group("Data Fields").create_dataset("Cube", data=pan)
            pan_lat, pan_lon = raw_latlon(pan_rows, pan_cols, STEP / PAN_FACTOR)
            pan_geo = pco.create_group("Geolocation Fields")
            pan_geo.create_dataset("Latitude", data=pan_lat)
            pan_geo.create_dataset("Longitude", data=pan_lon)

    return path


def product_name(level):
    return f"PRS_L{level}_STD_20200524103704_20200524103708_0001.he5"


@pytest.fixture
def make_product(tmp_path):
    """Factory writing a synthetic product into tmp_path."""
    def _make(level="2C", name=None, **kwargs):
        return write_prisma_product(tmp_path / (name or product_name(level)), level=level, **kwargs)
    return _make


@pytest.fixture
def l2c_product(make_product):
    return make_product("2C")


@pytest.fixture
def l2d_product(make_product):
    return make_product("2D")


@pytest.fixture
def l2b_product(make_product):
    return make_product("2B")
