"""
Raster and side-car table writers.

Two raster formats are supported, selected through the closed
``OutputFormat`` enum:

- GeoTIFF (``tif``), written with rioxarray
- ENVI (``envi``), raw band-sequential binary plus ``.hdr`` header

Every spectral cube gets a ``.wvl`` side-car table (band, wl, fwhm) and an
acquisition geometry table (date, hour, sunzen, sunaz) is written next to
the angle layers.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
import rioxarray
import xarray as xr
from affine import Affine
from rasterio.crs import CRS

from prisma_convert.config import (
    GEOMETRY_TABLE_SUFFIX,
    SOURCE_TAG,
    WAVELENGTH_TABLE_SUFFIX,
    WGS84_EPSG,
)
from prisma_convert.exceptions import OverwriteDeniedError, UnsupportedFormatError
from prisma_convert.model import BandMetadata, GeoLayer, GeoState
from prisma_convert.utils import ENVI_BINARY_SUFFIX, read_envi_file, write_envi_file


def check_target(path: Union[str, Path], overwrite: bool) -> Path:
    """
    Refuse to replace an existing file unless overwrite is set.

    Raises:
        OverwriteDeniedError: If the file exists and overwrite is False
    """
    path = Path(path)
    if path.exists() and not overwrite:
        raise OverwriteDeniedError(path)
    return path


def _pixel_centers(transform: Affine, rows: int, cols: int) -> Tuple[np.ndarray, np.ndarray]:
    """Pixel center coordinates of a north-up grid."""
    x = transform.c + (np.arange(cols) + 0.5) * transform.a
    y = transform.f + (np.arange(rows) + 0.5) * transform.e
    return x, y


def _epsg_of(crs: Optional[CRS]) -> Optional[int]:
    if crs is None:
        return None
    return crs.to_epsg()


def _state_for_epsg(epsg: Optional[int]) -> GeoState:
    if epsg is None:
        return GeoState.UNGEOREFERENCED
    if epsg == WGS84_EPSG:
        return GeoState.BASE_GEOREFERENCED
    return GeoState.PROJECTED


class RasterWriter(ABC):
    """Writes a GeoLayer to one raster file."""

    extension: str = ""

    def write(self, layer: GeoLayer, path: Union[str, Path], overwrite: bool = False) -> Path:
        """
        Write a layer, refusing to replace an existing file.

        Args:
            layer: North-up layer to write
            path: Output raster path
            overwrite: Replace an existing file

        Returns:
            Path of the written raster

        Raises:
            OverwriteDeniedError: If any file of the raster exists and
                overwrite is False; nothing is written in that case
        """
        path = Path(path)
        for target in self.targets(path):
            check_target(target, overwrite)
        self._write(layer, path)
        return path

    def targets(self, path: Union[str, Path]) -> List[Path]:
        """All files written for a raster at path."""
        return [Path(path)]

    @abstractmethod
    def _write(self, layer: GeoLayer, path: Path) -> None:
        ...

    @abstractmethod
    def read(self, path: Union[str, Path]) -> GeoLayer:
        ...


class GTiffWriter(RasterWriter):
    """GeoTIFF output through rioxarray."""

    extension = "tif"

    def _write(self, layer: GeoLayer, path: Path) -> None:
        rows, cols, nbands = layer.shape
        coords = {"band": np.arange(1, nbands + 1)}
        # Without x/y coordinates rioxarray keeps the written transform as is
        if layer.state is not GeoState.UNGEOREFERENCED:
            coords["x"], coords["y"] = _pixel_centers(layer.transform, rows, cols)
        da = xr.DataArray(
            np.moveaxis(np.asarray(layer.data), 2, 0),
            dims=("band", "y", "x"),
            coords=coords,
            name=layer.name,
        )
        if layer.crs is not None:
            da = da.rio.write_crs(f"EPSG:{layer.crs}")
        da = da.rio.write_transform(layer.transform)
        if layer.nodata is not None:
            da = da.rio.write_nodata(layer.nodata, encoded=False)
        if layer.band_names:
            da.attrs["long_name"] = tuple(layer.band_names)
        da.rio.to_raster(path, driver="GTiff")

    def read(self, path: Union[str, Path]) -> GeoLayer:
        path = Path(path)
        with rioxarray.open_rasterio(path) as da:
            data = np.moveaxis(da.values, 0, 2)
            epsg = _epsg_of(da.rio.crs)
            transform = da.rio.transform() if epsg is not None else Affine.identity()
            nodata = da.rio.nodata
            long_name = da.attrs.get("long_name", ())
        if isinstance(long_name, str):
            long_name = (long_name,)
        return GeoLayer(
            name=path.stem,
            data=data,
            state=_state_for_epsg(epsg),
            crs=epsg,
            transform=transform,
            band_names=tuple(long_name),
            nodata=nodata,
        )


def _envi_map_info(layer: GeoLayer) -> Optional[list]:
    t = layer.transform
    if layer.state is GeoState.UNGEOREFERENCED:
        return None
    if layer.crs == WGS84_EPSG:
        return ["Geographic Lat/Lon", 1, 1, t.c, t.f, t.a, -t.e, "WGS-84", "units=Degrees"]
    if 32601 <= layer.crs <= 32660:
        return ["UTM", 1, 1, t.c, t.f, t.a, -t.e, layer.crs - 32600, "North", "WGS-84", "units=Meters"]
    if 32701 <= layer.crs <= 32760:
        return ["UTM", 1, 1, t.c, t.f, t.a, -t.e, layer.crs - 32700, "South", "WGS-84", "units=Meters"]
    raise UnsupportedFormatError(
        f"ENVI output supports WGS84 geographic or UTM/WGS84 only, got EPSG:{layer.crs}"
    )


def _parse_envi_map_info(map_info) -> Tuple[Optional[int], Affine]:
    if not map_info:
        return None, Affine.identity()
    items = [str(v).strip() for v in map_info]
    easting, northing = float(items[3]), float(items[4])
    xres, yres = float(items[5]), float(items[6])
    transform = Affine(xres, 0.0, easting, 0.0, -yres, northing)
    if items[0].upper().startswith("UTM"):
        zone = int(float(items[7]))
        north = items[8].lower().startswith("n")
        return (32600 if north else 32700) + zone, transform
    return WGS84_EPSG, transform


class EnviWriter(RasterWriter):
    """ENVI band-sequential binary plus header."""

    extension = ENVI_BINARY_SUFFIX.lstrip(".")

    def targets(self, path: Union[str, Path]) -> List[Path]:
        path = Path(path)
        return [path, path.with_suffix(".hdr")]

    def _write(self, layer: GeoLayer, path: Path) -> None:
        header_kwargs: Dict[str, Any] = {}
        map_info = _envi_map_info(layer)
        if map_info is not None:
            header_kwargs["map_info"] = map_info
            header_kwargs["coordinate_system_string"] = (
                "{" + CRS.from_epsg(layer.crs).to_wkt() + "}"
            )
        if layer.nodata is not None:
            header_kwargs["data_ignore_value"] = layer.nodata

        bands = layer.bands
        write_envi_file(
            np.asarray(layer.data),
            path,
            wavelengths=list(bands.wavelengths) if bands is not None else None,
            fwhm=list(bands.fwhm) if bands is not None else None,
            band_names=list(layer.band_names) or None,
            interleave="bsq",
            description=f"PRISMA {layer.name}",
            **header_kwargs,
        )

    def read(self, path: Union[str, Path]) -> GeoLayer:
        path = Path(path)
        data, header = read_envi_file(path)
        epsg, transform = _parse_envi_map_info(header.get("map info"))
        names = header.get("band names", [])
        if isinstance(names, str):
            names = [names]
        nodata = header.get("data ignore value")
        return GeoLayer(
            name=path.stem,
            data=data,
            state=_state_for_epsg(epsg),
            crs=epsg,
            transform=transform,
            band_names=tuple(str(n) for n in names),
            nodata=float(nodata) if nodata is not None else None,
        )


class OutputFormat(Enum):
    """Supported raster output formats."""

    GTIFF = "tif"
    ENVI = "envi"

    @classmethod
    def parse(cls, value: Union[str, "OutputFormat"]) -> "OutputFormat":
        """
        Resolve a format name.

        Raises:
            UnsupportedFormatError: For names other than tif/tiff/gtiff/geotiff/envi
        """
        if isinstance(value, cls):
            return value
        aliases = {
            "tif": cls.GTIFF,
            "tiff": cls.GTIFF,
            "gtiff": cls.GTIFF,
            "geotiff": cls.GTIFF,
            "envi": cls.ENVI,
        }
        key = str(value).strip().lower().lstrip(".")
        if key not in aliases:
            raise UnsupportedFormatError(
                f"Unsupported output format {value!r}; use 'tif' or 'envi'"
            )
        return aliases[key]

    @property
    def extension(self) -> str:
        return self.writer().extension

    def writer(self) -> RasterWriter:
        return _WRITERS[self]()


_WRITERS = {
    OutputFormat.GTIFF: GTiffWriter,
    OutputFormat.ENVI: EnviWriter,
}


def output_path(
    out_folder: Union[str, Path],
    out_filebase: str,
    dataset: str,
    out_format: OutputFormat,
) -> Path:
    """
    Build the output raster path ``<out_filebase>_HCO_<dataset>.<ext>``.

    Args:
        out_folder: Output directory
        out_filebase: Base name, usually the input product stem
        dataset: Dataset suffix (VNIR, SWIR, FULL, PAN, LATLON, ANG, ...)
        out_format: Output format

    Returns:
        Path of the raster file
    """
    return Path(out_folder) / f"{out_filebase}_{SOURCE_TAG}_{dataset}.{out_format.extension}"


def wavelength_table_path(raster_path: Union[str, Path]) -> Path:
    return Path(raster_path).with_suffix(WAVELENGTH_TABLE_SUFFIX)


def geometry_table_path(out_folder: Union[str, Path], out_filebase: str) -> Path:
    return Path(out_folder) / f"{out_filebase}{GEOMETRY_TABLE_SUFFIX}"


def write_wavelength_table(
    bands: BandMetadata,
    output_path: Union[str, Path],
    overwrite: bool = False,
) -> Path:
    """
    Write the band/wavelength/FWHM side-car table of a cube.

    Columns: band (1-based), wl (nm), fwhm (nm).

    Args:
        bands: Band metadata of the cube
        output_path: Path of the table
        overwrite: Replace an existing table

    Returns:
        Path to created table
    """
    output_path = check_target(output_path, overwrite)
    table = pd.DataFrame({
        "band": np.arange(1, len(bands) + 1),
        "wl": list(bands.wavelengths),
        "fwhm": list(bands.fwhm),
    })
    table.to_csv(output_path, index=False)
    return output_path


def read_wavelength_table(path: Union[str, Path]) -> BandMetadata:
    """Read a side-car table written by write_wavelength_table."""
    table = pd.read_csv(path, float_precision="round_trip")
    table = table.sort_values("band")
    return BandMetadata(table["wl"].tolist(), table["fwhm"].tolist())


def write_geometry_table(
    acquisition_time: datetime,
    sun_zenith: float,
    sun_azimuth: float,
    output_path: Union[str, Path],
    overwrite: bool = False,
) -> Path:
    """
    Write the acquisition geometry side-car table.

    Columns: date (YYYY-MM-DD), hour (decimal UTC hours), sunzen, sunaz (degrees).

    Returns:
        Path to created table
    """
    from prisma_convert.geometry import time_to_decimal_hours

    output_path = check_target(output_path, overwrite)
    table = pd.DataFrame({
        "date": [acquisition_time.strftime("%Y-%m-%d")],
        "hour": [time_to_decimal_hours(acquisition_time)],
        "sunzen": [float(sun_zenith)],
        "sunaz": [float(sun_azimuth)],
    })
    table.to_csv(output_path, index=False)
    return output_path


def read_converted(path: Union[str, Path]) -> GeoLayer:
    """
    Read back a raster written by the converter.

    Band wavelengths are taken from the ``.wvl`` side-car table when it
    exists.

    Args:
        path: Path to a .tif, .envi or .hdr file

    Returns:
        GeoLayer with data, georeferencing and band metadata

    Raises:
        ValueError: If the side-car table lists a different number of bands
    """
    path = Path(path)
    if path.suffix == ".hdr":
        path = path.with_suffix(ENVI_BINARY_SUFFIX)
    out_format = OutputFormat.parse(path.suffix)
    layer = out_format.writer().read(path)

    table = wavelength_table_path(path)
    if not table.exists():
        return layer

    bands = read_wavelength_table(table)
    if len(bands) != layer.shape[2]:
        raise ValueError(
            f"{table.name} lists {len(bands)} bands but {path.name} has {layer.shape[2]}"
        )
    return GeoLayer(
        name=layer.name,
        data=layer.data,
        state=layer.state,
        crs=layer.crs,
        transform=layer.transform,
        band_names=layer.band_names,
        bands=bands,
        nodata=layer.nodata,
    )
