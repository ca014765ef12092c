"""
Read PRISMA Level-2 (2B/2C/2D) HDF5 products.

This module handles:
- Inspecting and validating the HDF-EOS5 structure of a product
- Reading VNIR/SWIR cubes with their wavelengths and FWHM
- Reading ancillary layers (geolocation, angles, PAN, masks)
- Reading acquisition time, sun angles and the 2D map projection

Arrays are returned in the orientation they are stored in the file;
``prisma_convert.georef`` turns them north-up.
"""

import re
import warnings
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import h5py
import numpy as np

from prisma_convert.config import (
    ANGLE_BAND_NAMES,
    ANGLE_DATASETS,
    CUBE_DATASETS,
    DATA_FIELDS,
    EPSG_ATTR,
    FWHM_ATTRS,
    GEO_FIELDS,
    GEOMETRIC_FIELDS,
    HCO_SWATH,
    HDF5_SWATH_BASE,
    L2_DN_MAX,
    LATITUDE_DATASET,
    LATLON_BAND_NAMES,
    LEVEL_ATTR,
    LONGITUDE_DATASET,
    MASK_DATASETS,
    PAN_DATASET,
    PCO_SWATH,
    SCALE_ATTRS,
    SPECTROMETERS,
    START_TIME_ATTR,
    SUN_AZIMUTH_ATTR,
    SUN_ZENITH_ATTR,
    SUPPORTED_LEVELS,
    UL_EASTING_ATTR,
    UL_NORTHING_ATTR,
    WAVELENGTH_ATTRS,
)
from prisma_convert.exceptions import MissingInputDatasetError, UnsupportedFormatError
from prisma_convert.geometry import parse_acquisition_time, parse_time_from_filename
from prisma_convert.model import AncillaryLayer, BandMetadata, HyperspectralCube

_LEVEL_RE = re.compile(r"2([BCD])", re.IGNORECASE)
_SWATH_LEVEL_RE = re.compile(r"^PRS_L(2[BCD])_HCO$")
_FILENAME_LEVEL_RE = re.compile(r"PRS_L(2[BCD])_")


def _decode(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode()
    if isinstance(value, np.ndarray) and value.dtype.kind == "S":
        return [v.decode() for v in value.ravel()]
    return value


def inspect_hdf5(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Inspect HDF5 file structure and return detailed information.

    Args:
        path: Path to HDF5 file

    Returns:
        Dictionary with datasets, groups, and attributes
    """
    path = Path(path)
    info = {
        "path": str(path),
        "groups": [],
        "datasets": [],
        "attributes": {},
    }

    with h5py.File(path, "r") as f:
        def visitor(name, obj):
            if isinstance(obj, h5py.Dataset):
                info["datasets"].append({
                    "name": name,
                    "shape": obj.shape,
                    "dtype": str(obj.dtype),
                    "attrs": {k: _decode(v) for k, v in obj.attrs.items()},
                })
            elif isinstance(obj, h5py.Group):
                info["groups"].append(name)

        f.visititems(visitor)

        info["attributes"] = {k: _decode(v) for k, v in f.attrs.items()}

    return info


def print_hdf5_structure(path: Union[str, Path]) -> None:
    """
    Print HDF5 structure to console for debugging.

    Args:
        path: Path to HDF5 file
    """
    info = inspect_hdf5(path)

    print(f"\nHDF5 File: {info['path']}")
    print("=" * 60)

    print("\nRoot Attributes:")
    for key, val in info["attributes"].items():
        if isinstance(val, np.ndarray) and val.size > 6:
            val = f"array{val.shape} [{val.ravel()[0]} ... {val.ravel()[-1]}]"
        print(f"  {key}: {val}")

    print("\nGroups:")
    for group in sorted(info["groups"]):
        print(f"  /{group}/")

    print("\nDatasets:")
    for ds in info["datasets"]:
        print(f"  {ds['name']}")
        print(f"    shape: {ds['shape']}, dtype: {ds['dtype']}")
        if ds["attrs"]:
            for key, val in list(ds["attrs"].items())[:5]:
                print(f"    @{key}: {val}")


def _get_attribute(obj: Union[h5py.File, h5py.Dataset], names: List[str]) -> Optional[Any]:
    """Try multiple attribute names to find a value."""
    for name in names:
        if name in obj.attrs:
            return _decode(obj.attrs[name])
    return None


def detect_level(f: h5py.File, path: Union[str, Path] = "") -> str:
    """
    Detect the PRISMA processing level ("2B", "2C" or "2D").

    Looks at the Processing_Level attribute, then at the name of the
    hyperspectral swath group, then at the file name.

    Raises:
        UnsupportedFormatError: If the product is not a 2B/2C/2D product
    """
    level_attr = _get_attribute(f, [LEVEL_ATTR])
    if level_attr is not None:
        match = _LEVEL_RE.search(str(level_attr))
        if match:
            return "2" + match.group(1).upper()
        raise UnsupportedFormatError(
            f"Unsupported PRISMA processing level {level_attr!r}; "
            f"expected one of {SUPPORTED_LEVELS}"
        )

    if HDF5_SWATH_BASE in f:
        for name in f[HDF5_SWATH_BASE].keys():
            match = _SWATH_LEVEL_RE.match(name)
            if match:
                return match.group(1)

    match = _FILENAME_LEVEL_RE.search(Path(path).name)
    if match:
        return match.group(1)

    raise UnsupportedFormatError(f"{path} is not a PRISMA L2B/L2C/L2D product")


class PrismaL2Reader:
    """
    Reader for one PRISMA Level-2 product.

    Use as a context manager so the HDF5 handle is released on every exit
    path::

        with PrismaL2Reader(path) as reader:
            vnir = reader.read_cube("VNIR")
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.level: Optional[str] = None
        self._file: Optional[h5py.File] = None

    def __enter__(self) -> "PrismaL2Reader":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> None:
        if not self.path.exists():
            raise FileNotFoundError(f"Input file not found: {self.path}")
        self._file = h5py.File(self.path, "r")
        try:
            self.level = detect_level(self._file, self.path)
        except Exception:
            self.close()
            raise

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    @property
    def is_open(self) -> bool:
        return self._file is not None

    @property
    def file(self) -> h5py.File:
        if self._file is None:
            raise RuntimeError(f"{self.path} is not open")
        return self._file

    @property
    def is_projected(self) -> bool:
        return self.level == "2D"

    # ------------------------------------------------------------------
    # Low level access
    # ------------------------------------------------------------------

    def _swath_path(self, swath: str, group: str, name: str) -> str:
        return f"{HDF5_SWATH_BASE}/{swath.format(level=self.level)}/{group}/{name}"

    def _dataset(self, path: str) -> h5py.Dataset:
        if path not in self.file:
            raise MissingInputDatasetError(path, self.path)
        return self.file[path]

    def attribute(self, name: str, default: Any = MissingInputDatasetError) -> Any:
        """
        Read a root attribute.

        Raises:
            MissingInputDatasetError: If absent and no default is given
        """
        value = _get_attribute(self.file, [name])
        if value is None:
            if default is MissingInputDatasetError:
                raise MissingInputDatasetError(f"@{name}", self.path)
            return default
        return value

    def _scale(self, dn: np.ndarray, key: str) -> np.ndarray:
        """Convert 16-bit DN to physical values with the L2Scale attributes."""
        min_name, max_name = SCALE_ATTRS[key]
        scale_min = self.attribute(min_name, None)
        scale_max = self.attribute(max_name, None)
        if scale_min is None or scale_max is None:
            warnings.warn(
                f"{min_name}/{max_name} not found in {self.path.name}, keeping raw {key} values"
            )
            return dn.astype(np.float32)
        scale_min = float(scale_min)
        scale_max = float(scale_max)
        scaled = scale_min + dn.astype(np.float32) * np.float32((scale_max - scale_min) / L2_DN_MAX)
        return scaled.astype(np.float32)

    # ------------------------------------------------------------------
    # Spectral cubes
    # ------------------------------------------------------------------

    def band_metadata(self, spectrometer: str) -> Tuple[BandMetadata, np.ndarray]:
        """
        Wavelengths and FWHM of the valid bands of a spectrometer.

        Channels flagged with a zero wavelength are dropped and the rest is
        sorted by ascending wavelength.

        Args:
            spectrometer: "VNIR" or "SWIR"

        Returns:
            Tuple of (BandMetadata, indices of those bands in the stored cube)
        """
        spectrometer = spectrometer.upper()
        if spectrometer not in SPECTROMETERS:
            raise UnsupportedFormatError(f"Unknown spectrometer {spectrometer!r}")

        wavelengths = np.asarray(self.attribute(WAVELENGTH_ATTRS[spectrometer]), dtype=np.float64)
        fwhm = np.asarray(self.attribute(FWHM_ATTRS[spectrometer]), dtype=np.float64)
        if wavelengths.shape != fwhm.shape:
            raise ValueError(
                f"{spectrometer}: {wavelengths.size} wavelengths but {fwhm.size} FWHM values"
            )

        valid = np.flatnonzero(wavelengths > 0)
        order = valid[np.argsort(wavelengths[valid], kind="stable")]
        return BandMetadata(wavelengths[order], fwhm[order]), order

    def read_cube(self, spectrometer: str) -> HyperspectralCube:
        """
        Read a VNIR or SWIR cube as (rows, cols, bands) float32.

        Args:
            spectrometer: "VNIR" or "SWIR"

        Returns:
            HyperspectralCube with ascending band wavelengths
        """
        spectrometer = spectrometer.upper()
        bands, order = self.band_metadata(spectrometer)
        ds = self._dataset(self._swath_path(HCO_SWATH, DATA_FIELDS, CUBE_DATASETS[spectrometer]))

        if ds.ndim != 3:
            raise ValueError(f"{ds.name} should be 3D, got {ds.ndim}D")
        # Stored as (rows, bands, cols)
        n_stored = ds.shape[1]
        if n_stored != len(self.attribute(WAVELENGTH_ATTRS[spectrometer])):
            raise ValueError(
                f"{ds.name} has {n_stored} bands but "
                f"{WAVELENGTH_ATTRS[spectrometer]} lists a different number"
            )

        dn = ds[:]
        dn = np.transpose(dn[:, order, :], (0, 2, 1))
        data = self._scale(dn, spectrometer)

        return HyperspectralCube(spectrometer, data, bands)

    # ------------------------------------------------------------------
    # Ancillary layers
    # ------------------------------------------------------------------

    def read_latlon(self, pan: bool = False) -> AncillaryLayer:
        """
        Read per-pixel latitude and longitude.

        Args:
            pan: Read the geolocation of the panchromatic swath instead

        Returns:
            AncillaryLayer "LATLON" with bands (latitude, longitude)
        """
        swath = PCO_SWATH if pan else HCO_SWATH
        lat = self._dataset(self._swath_path(swath, GEO_FIELDS, LATITUDE_DATASET))[:]
        lon = self._dataset(self._swath_path(swath, GEO_FIELDS, LONGITUDE_DATASET))[:]
        if lat.shape != lon.shape:
            raise ValueError(f"Latitude {lat.shape} and longitude {lon.shape} differ in shape")
        data = np.stack([lat, lon], axis=-1).astype(np.float64)
        return AncillaryLayer("LATLON", data, tuple(LATLON_BAND_NAMES))

    def read_angles(self) -> AncillaryLayer:
        """Read view zenith, relative azimuth and solar zenith angles (degrees)."""
        layers = [
            self._dataset(self._swath_path(HCO_SWATH, GEOMETRIC_FIELDS, name))[:]
            for name in ANGLE_DATASETS
        ]
        data = np.stack(layers, axis=-1).astype(np.float32)
        return AncillaryLayer("ANG", data, tuple(ANGLE_BAND_NAMES))

    def read_pan(self) -> AncillaryLayer:
        """Read the panchromatic band as float32."""
        ds = self._dataset(self._swath_path(PCO_SWATH, DATA_FIELDS, PAN_DATASET))
        data = self._scale(ds[:], "PAN")
        return AncillaryLayer("PAN", data, ("pan",))

    def read_mask(self, name: str) -> AncillaryLayer:
        """
        Read a classification mask.

        Args:
            name: "CLD", "GLINT" or "LC"
        """
        name = name.upper()
        if name not in MASK_DATASETS:
            raise UnsupportedFormatError(f"Unknown mask {name!r}; expected one of {list(MASK_DATASETS)}")
        ds = self._dataset(self._swath_path(HCO_SWATH, DATA_FIELDS, MASK_DATASETS[name]))
        return AncillaryLayer(name, ds[:].astype(np.uint8), (MASK_DATASETS[name].lower(),))

    # ------------------------------------------------------------------
    # Acquisition metadata
    # ------------------------------------------------------------------

    def acquisition_time(self) -> datetime:
        """Sensing start time from Product_StartTime, or from the file name."""
        start = self.attribute(START_TIME_ATTR, None)
        if start is not None:
            try:
                return parse_acquisition_time(start)
            except ValueError:
                warnings.warn(f"Cannot parse {START_TIME_ATTR}={start!r}, using file name")
        return parse_time_from_filename(self.path)

    def sun_angles(self) -> Tuple[float, float]:
        """Scene-center (sun zenith, sun azimuth) in degrees."""
        return (
            float(self.attribute(SUN_ZENITH_ATTR)),
            float(self.attribute(SUN_AZIMUTH_ATTR)),
        )

    def projection(self) -> Tuple[int, float, float]:
        """
        Map projection of a 2D product.

        Returns:
            Tuple of (EPSG code, upper-left easting, upper-left northing);
            the corner coordinates refer to the center of the upper-left pixel
        """
        return (
            int(self.attribute(EPSG_ATTR)),
            float(self.attribute(UL_EASTING_ATTR)),
            float(self.attribute(UL_NORTHING_ATTR)),
        )


def validate_hdf5_structure(path: Union[str, Path]) -> Tuple[bool, List[str]]:
    """
    Validate that an HDF5 file has the expected PRISMA L2 structure.

    Args:
        path: Path to HDF5 file

    Returns:
        Tuple of (is_valid, list of issues)
    """
    path = Path(path)
    issues = []

    if not path.exists():
        return False, [f"File not found: {path}"]

    try:
        with h5py.File(path, "r") as f:
            try:
                level = detect_level(f, path)
            except UnsupportedFormatError as e:
                return False, [str(e)]

            hco = f"{HDF5_SWATH_BASE}/{HCO_SWATH.format(level=level)}"
            for spectrometer, ds_name in CUBE_DATASETS.items():
                ds = f.get(f"{hco}/{DATA_FIELDS}/{ds_name}")
                if ds is None:
                    issues.append(f"Missing {spectrometer} cube")
                elif ds.ndim != 3:
                    issues.append(f"{spectrometer} cube should be 3D, got {ds.ndim}D")
                if WAVELENGTH_ATTRS[spectrometer] not in f.attrs:
                    issues.append(f"Missing {WAVELENGTH_ATTRS[spectrometer]} attribute")

            for name in (LATITUDE_DATASET, LONGITUDE_DATASET):
                if f"{hco}/{GEO_FIELDS}/{name}" not in f:
                    issues.append(f"Missing {name.lower()} dataset")

            if level == "2D":
                for attr in (EPSG_ATTR, UL_EASTING_ATTR, UL_NORTHING_ATTR):
                    if attr not in f.attrs:
                        issues.append(f"Missing {attr} attribute")

    except OSError as e:
        return False, [f"Error reading HDF5: {e}"]

    return len(issues) == 0, issues


def get_scene_bounds(path: Union[str, Path]) -> Dict[str, float]:
    """
    Get geographic bounds of a PRISMA scene.

    Args:
        path: Path to HDF5 file

    Returns:
        Dictionary with min_lat, max_lat, min_lon, max_lon
    """
    with PrismaL2Reader(path) as reader:
        latlon = reader.read_latlon().data

    latitude = latlon[:, :, 0]
    longitude = latlon[:, :, 1]
    return {
        "min_lat": float(np.nanmin(latitude)),
        "max_lat": float(np.nanmax(latitude)),
        "min_lon": float(np.nanmin(longitude)),
        "max_lon": float(np.nanmax(longitude)),
    }
