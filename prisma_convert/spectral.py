"""
Spectral band selection and VNIR/SWIR cube fusion.
"""

from typing import List, Sequence

import numpy as np

from prisma_convert.exceptions import (
    IncompatibleGridsError,
    InvalidWavelengthError,
    UnsupportedFormatError,
)
from prisma_convert.model import BandMetadata, HyperspectralCube


def nominal_sampling(wavelengths: Sequence[float]) -> float:
    """
    Nominal spectral sampling (median spacing between adjacent bands) in nm.

    Returns 0 for cubes with fewer than two bands.
    """
    wavelengths = np.sort(np.asarray(wavelengths, dtype=np.float64))
    if wavelengths.size < 2:
        return 0.0
    return float(np.median(np.diff(wavelengths)))


def nearest_band_indices(
    wavelengths: Sequence[float],
    requested: Sequence[float],
    name: str = "",
) -> List[int]:
    """
    Indices of the bands closest to each requested wavelength.

    Ties go to the lower band index. The result is sorted in ascending
    order and has one entry per requested wavelength.

    Args:
        wavelengths: Band center wavelengths (nm)
        requested: Requested wavelengths (nm)
        name: Spectrometer name used in error messages

    Returns:
        Sorted list of band indices

    Raises:
        InvalidWavelengthError: If a requested wavelength lies more than half
            the nominal sampling outside the covered range
    """
    wavelengths = np.asarray(wavelengths, dtype=np.float64)
    if wavelengths.size == 0:
        raise ValueError(f"{name or 'Cube'} has no bands to select from")

    half_step = nominal_sampling(wavelengths) / 2.0
    low, high = float(wavelengths.min()), float(wavelengths.max())

    indices = []
    for wl in requested:
        wl = float(wl)
        if wl < low - half_step or wl > high + half_step:
            raise InvalidWavelengthError(wl, low, high, name)
        # argmin returns the first minimum, i.e. the lower index on ties
        indices.append(int(np.argmin(np.abs(wavelengths - wl))))

    return sorted(indices)


def select_bands(cube: HyperspectralCube, requested: Sequence[float]) -> HyperspectralCube:
    """
    Reduce a cube to the bands nearest the requested wavelengths.

    Args:
        cube: Cube with ascending band wavelengths
        requested: Wavelengths in nm

    Returns:
        New cube with len(requested) bands in ascending wavelength order
    """
    indices = nearest_band_indices(cube.wavelengths, requested, cube.name)
    return HyperspectralCube(cube.name, cube.data[:, :, indices], cube.bands.take(indices))


def fuse_cubes(
    vnir: HyperspectralCube,
    swir: HyperspectralCube,
    join_priority: str = "SWIR",
) -> HyperspectralCube:
    """
    Merge VNIR and SWIR cubes into one FULL cube.

    In the wavelength region covered by both spectrometers only the bands of
    the prioritized cube are kept. The output bands are sorted by ascending
    wavelength.

    Args:
        vnir: VNIR cube
        swir: SWIR cube
        join_priority: "VNIR" or "SWIR"

    Returns:
        Fused cube named "FULL"

    Raises:
        IncompatibleGridsError: If the spatial dimensions differ
        UnsupportedFormatError: If join_priority is not VNIR or SWIR
    """
    if vnir.shape[:2] != swir.shape[:2]:
        raise IncompatibleGridsError(
            f"Cannot fuse VNIR {vnir.shape[:2]} with SWIR {swir.shape[:2]}: "
            "spatial dimensions differ"
        )

    priority = str(join_priority).upper()
    vnir_wl = vnir.wavelengths
    swir_wl = swir.wavelengths

    if priority == "VNIR":
        keep_vnir = np.ones(vnir_wl.size, dtype=bool)
        keep_swir = swir_wl > vnir_wl.max() if vnir_wl.size else np.ones(swir_wl.size, dtype=bool)
    elif priority == "SWIR":
        keep_swir = np.ones(swir_wl.size, dtype=bool)
        keep_vnir = vnir_wl < swir_wl.min() if swir_wl.size else np.ones(vnir_wl.size, dtype=bool)
    else:
        raise UnsupportedFormatError(f"join_priority must be 'VNIR' or 'SWIR', got {join_priority!r}")

    vnir_idx = np.flatnonzero(keep_vnir)
    swir_idx = np.flatnonzero(keep_swir)

    wavelengths = np.concatenate([vnir_wl[vnir_idx], swir_wl[swir_idx]])
    fwhm = np.concatenate([
        np.asarray(vnir.bands.fwhm)[vnir_idx],
        np.asarray(swir.bands.fwhm)[swir_idx],
    ])
    data = np.concatenate([vnir.data[:, :, vnir_idx], swir.data[:, :, swir_idx]], axis=2)

    order = np.argsort(wavelengths, kind="stable")
    return HyperspectralCube(
        "FULL",
        data[:, :, order],
        BandMetadata(wavelengths[order], fwhm[order]),
    )
