"""
In-memory containers passed between reader, band selector, fuser,
georeferencer and writer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np
from affine import Affine


@dataclass(frozen=True)
class BandMetadata:
    """Per-band center wavelength and FWHM in nm, one entry per cube band."""

    wavelengths: Tuple[float, ...]
    fwhm: Tuple[float, ...]

    def __post_init__(self):
        object.__setattr__(self, "wavelengths", tuple(float(w) for w in self.wavelengths))
        object.__setattr__(self, "fwhm", tuple(float(f) for f in self.fwhm))
        if len(self.wavelengths) != len(self.fwhm):
            raise ValueError(
                f"Got {len(self.wavelengths)} wavelengths but {len(self.fwhm)} FWHM values"
            )

    def __len__(self) -> int:
        return len(self.wavelengths)

    def take(self, indices: Sequence[int]) -> "BandMetadata":
        return BandMetadata(
            [self.wavelengths[i] for i in indices],
            [self.fwhm[i] for i in indices],
        )


def _freeze(data: np.ndarray) -> np.ndarray:
    data = np.asarray(data)
    if data.flags.writeable:
        data = data.view()
        data.flags.writeable = False
    return data


@dataclass(frozen=True, eq=False)
class HyperspectralCube:
    """
    A (rows, cols, bands) cube with ascending band wavelengths.

    The array is made read-only on construction.
    """

    name: str
    data: np.ndarray
    bands: BandMetadata

    def __post_init__(self):
        data = _freeze(self.data)
        if data.ndim != 3:
            raise ValueError(f"{self.name} cube must be 3D, got {data.ndim}D")
        if data.shape[2] != len(self.bands):
            raise ValueError(
                f"{self.name} cube has {data.shape[2]} bands but "
                f"{len(self.bands)} wavelengths"
            )
        object.__setattr__(self, "data", data)

    @property
    def shape(self) -> Tuple[int, int, int]:
        return self.data.shape

    @property
    def wavelengths(self) -> np.ndarray:
        return np.asarray(self.bands.wavelengths)

    @property
    def band_names(self) -> List[str]:
        return [f"wl_{w:.3f}" for w in self.bands.wavelengths]


@dataclass(frozen=True, eq=False)
class AncillaryLayer:
    """A 2D or 3D (rows, cols, bands) ancillary array with band names."""

    name: str
    data: np.ndarray
    band_names: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        data = _freeze(self.data)
        if data.ndim not in (2, 3):
            raise ValueError(f"{self.name} layer must be 2D or 3D, got {data.ndim}D")
        names = tuple(self.band_names) or (self.name.lower(),)
        nbands = 1 if data.ndim == 2 else data.shape[2]
        if len(names) != nbands:
            raise ValueError(f"{self.name} layer has {nbands} bands but {len(names)} names")
        object.__setattr__(self, "data", data)
        object.__setattr__(self, "band_names", names)


class GeoState(Enum):
    """Georeferencing state of an output layer."""

    UNGEOREFERENCED = "ungeoreferenced"
    BASE_GEOREFERENCED = "base_georeferenced"
    PROJECTED = "projected"


@dataclass(frozen=True, eq=False)
class GeoLayer:
    """
    A north-up array ready to be written.

    Attributes:
        name: Output dataset suffix (VNIR, SWIR, FULL, PAN, LATLON, ANG, ...)
        data: (rows, cols, bands) array
        state: Georeferencing state
        crs: EPSG code, None when ungeoreferenced
        transform: Pixel-corner affine transform (identity when ungeoreferenced)
        band_names: One name per band
        bands: Wavelength metadata for spectral cubes, None for ancillary layers
        nodata: Fill value for cells outside the image footprint
    """

    name: str
    data: np.ndarray
    state: GeoState
    crs: Optional[int] = None
    transform: Affine = Affine.identity()
    band_names: Tuple[str, ...] = ()
    bands: Optional[BandMetadata] = None
    nodata: Optional[float] = None

    def __post_init__(self):
        data = np.asarray(self.data)
        if data.ndim == 2:
            data = data[:, :, np.newaxis]
        object.__setattr__(self, "data", _freeze(data))
        if self.state is GeoState.UNGEOREFERENCED and self.crs is not None:
            raise ValueError("Ungeoreferenced layers cannot carry a CRS")

    @property
    def shape(self) -> Tuple[int, int, int]:
        return self.data.shape
