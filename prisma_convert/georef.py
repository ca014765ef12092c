"""
Georeferencing of PRISMA L2 arrays.

- 2D products are already map-projected (UTM/WGS84): arrays are turned
  north-up and keep the product projection.
- 2B/2C products are in sensor geometry. With ``base_georef`` they are
  resampled to a regular WGS84 Lat/Lon grid through a nearest-neighbour
  geographic lookup table (GLT) built from the per-pixel geolocation, which
  also removes the bowtie distortion. Without it they are only turned
  north-up and stay ungeoreferenced.
"""

import warnings
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence, Tuple

import numpy as np
from affine import Affine
from scipy.spatial import cKDTree

from prisma_convert.config import HCO_PIXEL_SIZE_M, PCO_PIXEL_SIZE_M, WGS84_EPSG
from prisma_convert.model import (
    AncillaryLayer,
    BandMetadata,
    GeoLayer,
    GeoState,
    HyperspectralCube,
)


def to_north_up(data: np.ndarray) -> np.ndarray:
    """
    Turn an array from HDF-EOS storage orientation to north-up.

    PRISMA swaths are stored with the first axis running west to east;
    a 90 degree clockwise rotation of the (rows, cols) plane puts north on top.
    Extra trailing band axes are carried along.
    """
    return np.rot90(np.asarray(data), k=-1, axes=(0, 1))


def _median_spacing(lat: np.ndarray, lon: np.ndarray, axis: int) -> float:
    d = np.hypot(np.diff(lat, axis=axis), np.diff(lon, axis=axis))
    d = d[np.isfinite(d) & (d > 0)]
    return float(np.median(d)) if d.size else float("nan")


def estimate_pixel_size(lat: np.ndarray, lon: np.ndarray) -> Tuple[float, float]:
    """
    Estimate the geolocation grid spacing in degrees.

    Returns:
        Tuple of (output pixel size, neighbour search radius): the smaller
        and the larger of the median along-row and along-column spacings

    Raises:
        ValueError: If fewer than two valid geolocated pixels are available
    """
    spacings = [s for s in (_median_spacing(lat, lon, 0), _median_spacing(lat, lon, 1))
                if np.isfinite(s)]
    if not spacings:
        raise ValueError("Cannot estimate pixel size from geolocation arrays")
    return min(spacings), max(spacings)


@dataclass(frozen=True, eq=False)
class GeoLookupTable:
    """
    Source pixel of every cell of a regular Lat/Lon output grid.

    Attributes:
        rows: (out_rows, out_cols) source row index, -1 where no source pixel
        cols: (out_rows, out_cols) source column index, -1 where no source pixel
        transform: Pixel-corner affine transform of the output grid (degrees)
    """

    rows: np.ndarray
    cols: np.ndarray
    transform: Affine

    @property
    def shape(self) -> Tuple[int, int]:
        return self.rows.shape

    @property
    def valid(self) -> np.ndarray:
        return self.rows >= 0


def build_glt(
    latitude: np.ndarray,
    longitude: np.ndarray,
    pixel_size: Optional[float] = None,
    search_radius: Optional[float] = None,
    chunk_rows: int = 256,
) -> GeoLookupTable:
    """
    Build a nearest-neighbour geographic lookup table.

    Args:
        latitude: 2D north-up latitude array (degrees)
        longitude: 2D north-up longitude array (degrees)
        pixel_size: Output pixel size in degrees, estimated when None
        search_radius: Largest distance (degrees) between an output cell
            center and its source pixel, estimated when None
        chunk_rows: Output rows queried against the KD-tree at a time

    Returns:
        GeoLookupTable covering the bounding box of the valid geolocation
    """
    latitude = np.asarray(latitude, dtype=np.float64)
    longitude = np.asarray(longitude, dtype=np.float64)
    if latitude.shape != longitude.shape:
        raise ValueError(f"Latitude {latitude.shape} and longitude {longitude.shape} differ")

    finite = np.isfinite(latitude) & np.isfinite(longitude)
    if not finite.any():
        raise ValueError("No valid geolocation to build a GLT from")

    if pixel_size is None or search_radius is None:
        est_size, est_radius = estimate_pixel_size(latitude, longitude)
        pixel_size = est_size if pixel_size is None else pixel_size
        search_radius = est_radius if search_radius is None else search_radius

    west = float(longitude[finite].min())
    east = float(longitude[finite].max())
    south = float(latitude[finite].min())
    north = float(latitude[finite].max())

    n_cols = int(np.round((east - west) / pixel_size)) + 1
    n_rows = int(np.round((north - south) / pixel_size)) + 1

    # Grid cell centers; the first center sits on the western/northern extreme
    x = west + np.arange(n_cols) * pixel_size
    y = north - np.arange(n_rows) * pixel_size

    src_rows, src_cols = np.nonzero(finite)
    tree = cKDTree(np.column_stack([longitude[finite], latitude[finite]]))

    rows = np.full((n_rows, n_cols), -1, dtype=np.int32)
    cols = np.full((n_rows, n_cols), -1, dtype=np.int32)
    chunk_rows = max(1, int(chunk_rows))
    for start in range(0, n_rows, chunk_rows):
        stop = min(start + chunk_rows, n_rows)
        grid_x, grid_y = np.meshgrid(x, y[start:stop])
        dist, idx = tree.query(
            np.column_stack([grid_x.ravel(), grid_y.ravel()]),
            k=1,
            distance_upper_bound=search_radius,
        )
        hit = np.isfinite(dist)
        block_rows = np.full(hit.size, -1, dtype=np.int32)
        block_cols = np.full(hit.size, -1, dtype=np.int32)
        block_rows[hit] = src_rows[idx[hit]]
        block_cols[hit] = src_cols[idx[hit]]
        rows[start:stop] = block_rows.reshape(stop - start, n_cols)
        cols[start:stop] = block_cols.reshape(stop - start, n_cols)

    transform = Affine(
        pixel_size, 0.0, west - pixel_size / 2.0,
        0.0, -pixel_size, north + pixel_size / 2.0,
    )
    return GeoLookupTable(rows, cols, transform)


def apply_glt(data: np.ndarray, glt: GeoLookupTable, fill_value: float = np.nan) -> np.ndarray:
    """
    Resample a north-up (rows, cols[, bands]) array onto the GLT grid.

    Integer arrays keep their dtype unless fill_value is NaN, in which case
    they are promoted to float32.
    """
    data = np.asarray(data)
    dtype = data.dtype
    if np.isnan(fill_value) and dtype.kind in "iub":
        dtype = np.dtype(np.float32)

    out = np.full(glt.shape + data.shape[2:], fill_value, dtype=dtype)
    valid = glt.valid
    out[valid] = data[glt.rows[valid], glt.cols[valid]]
    return out


class Georeferencer:
    """
    Produces north-up GeoLayers for one PRISMA product.

    Args:
        level: Processing level ("2B", "2C" or "2D")
        base_georef: Resample 2B/2C arrays to a Lat/Lon grid
        latlon_loader: Callable returning the file-oriented LATLON layer,
            taking ``pan`` (bool) to select the panchromatic geolocation;
            required for 2B/2C with base_georef
        projection: (EPSG code, upper-left easting, upper-left northing) of a
            2D product, upper-left coordinates at the pixel center
    """

    def __init__(
        self,
        level: str,
        base_georef: bool = True,
        latlon_loader: Optional[Callable[[bool], AncillaryLayer]] = None,
        projection: Optional[Tuple[int, float, float]] = None,
    ):
        self.level = level
        self.base_georef = base_georef
        self._latlon_loader = latlon_loader
        self._projection = projection
        self._glts: Dict[bool, GeoLookupTable] = {}

        if self.level == "2D":
            if projection is None:
                raise ValueError("2D products need their map projection")
            warnings.warn(
                "L2D products keep the projection stored in the file; its geolocation "
                "accuracy has not been verified"
            )
        elif self.base_georef and latlon_loader is None:
            raise ValueError("base_georef needs the product geolocation")

    @property
    def initial_state(self) -> GeoState:
        return GeoState.PROJECTED if self.level == "2D" else GeoState.UNGEOREFERENCED

    @property
    def target_state(self) -> GeoState:
        if self.level == "2D":
            return GeoState.PROJECTED
        if self.base_georef:
            return GeoState.BASE_GEOREFERENCED
        return GeoState.UNGEOREFERENCED

    def glt(self, pan: bool = False) -> GeoLookupTable:
        """Lookup table of the hyperspectral (or panchromatic) grid, built once."""
        if pan not in self._glts:
            latlon = to_north_up(self._latlon_loader(pan).data)
            self._glts[pan] = build_glt(latlon[:, :, 0], latlon[:, :, 1])
            empty = 1.0 - self._glts[pan].valid.mean()
            if empty > 0.5:
                warnings.warn(f"{empty:.0%} of the georeferenced grid has no source pixel")
        return self._glts[pan]

    def _projected_transform(self, pan: bool) -> Affine:
        _, ul_easting, ul_northing = self._projection
        # Upper-left pixel corner is half a hyperspectral pixel from its center
        half = HCO_PIXEL_SIZE_M / 2.0
        size = PCO_PIXEL_SIZE_M if pan else HCO_PIXEL_SIZE_M
        return Affine(size, 0.0, ul_easting - half, 0.0, -size, ul_northing + half)

    def georeference(
        self,
        name: str,
        data: np.ndarray,
        band_names: Sequence[str] = (),
        bands: Optional[BandMetadata] = None,
        pan: bool = False,
        fill_value: float = np.nan,
    ) -> GeoLayer:
        """
        Georeference a file-oriented (rows, cols[, bands]) array.

        Args:
            name: Output dataset suffix
            data: Array as read from the product
            band_names: Names of the bands
            bands: Wavelength metadata of spectral cubes
            pan: The array is on the panchromatic grid
            fill_value: Value of output cells without source pixel

        Returns:
            GeoLayer in the target state
        """
        north_up = to_north_up(data)
        state = self.target_state

        if state is GeoState.PROJECTED:
            epsg = self._projection[0]
            return GeoLayer(name, north_up, state, epsg, self._projected_transform(pan),
                            tuple(band_names), bands)

        if state is GeoState.BASE_GEOREFERENCED:
            glt = self.glt(pan)
            resampled = apply_glt(north_up, glt, fill_value)
            return GeoLayer(name, resampled, state, WGS84_EPSG, glt.transform,
                            tuple(band_names), bands, nodata=fill_value)

        return GeoLayer(name, north_up, state, None, Affine.identity(), tuple(band_names), bands)

    def georeference_cube(self, cube: HyperspectralCube) -> GeoLayer:
        return self.georeference(cube.name, cube.data, cube.band_names, cube.bands)

    def georeference_layer(
        self,
        layer: AncillaryLayer,
        pan: bool = False,
        fill_value: float = np.nan,
    ) -> GeoLayer:
        return self.georeference(layer.name, layer.data, layer.band_names,
                                 pan=pan, fill_value=fill_value)
