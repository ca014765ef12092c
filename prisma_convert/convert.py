"""
Convert PRISMA Level-2 HDF5 products to GeoTIFF or ENVI rasters.

This module handles:
- Reading VNIR/SWIR cubes and ancillary datasets from the product
- Optional band selection and VNIR/SWIR fusion into a FULL cube
- Georeferencing (GLT Lat/Lon for 2B/2C, UTM pass-through for 2D)
- Writing rasters plus wavelength and acquisition geometry tables
"""

from pathlib import Path
from typing import Dict, Optional, Union

from prisma_convert.config import MASK_DATASETS, MASK_FILL_VALUE
from prisma_convert.georef import Georeferencer
from prisma_convert.model import GeoLayer, HyperspectralCube
from prisma_convert.reader import PrismaL2Reader
from prisma_convert.request import ConversionRequest
from prisma_convert.spectral import fuse_cubes, select_bands
from prisma_convert.utils import ensure_directory
from prisma_convert.writers import (
    OutputFormat,
    RasterWriter,
    check_target,
    geometry_table_path,
    output_path,
    wavelength_table_path,
    write_geometry_table,
    write_wavelength_table,
)


def _read_cubes(reader: PrismaL2Reader, request: ConversionRequest) -> Dict[str, HyperspectralCube]:
    """Read, subset and fuse the cubes the request asks for."""
    cubes = {}
    selections = {"VNIR": request.selbands_vnir, "SWIR": request.selbands_swir}

    for spectrometer in ("VNIR", "SWIR"):
        if not (getattr(request, spectrometer) or request.FULL):
            continue
        print(f"  Reading {spectrometer} cube...")
        cube = reader.read_cube(spectrometer)
        if selections[spectrometer] is not None:
            cube = select_bands(cube, selections[spectrometer])
            print(f"    Selected {cube.shape[2]} bands")
        cubes[spectrometer] = cube

    if request.FULL:
        print(f"  Joining VNIR and SWIR ({request.join_priority} priority in overlap)...")
        cubes["FULL"] = fuse_cubes(cubes["VNIR"], cubes["SWIR"], request.join_priority)

    return cubes


def _write_layer(
    writer: RasterWriter,
    layer: GeoLayer,
    out_folder: Path,
    out_filebase: str,
    out_format: OutputFormat,
    overwrite: bool,
    outputs: Dict[str, Path],
) -> None:
    path = output_path(out_folder, out_filebase, layer.name, out_format)
    print(f"  Writing {layer.name} ({layer.shape[0]} x {layer.shape[1]} x {layer.shape[2]}) "
          f"to {path.name}...")
    # The .wvl name is shared by both formats; check it with the raster files
    targets = writer.targets(path)
    if layer.bands is not None:
        targets.append(wavelength_table_path(path))
    for target in targets:
        check_target(target, overwrite)
    outputs[layer.name] = writer.write(layer, path, overwrite=overwrite)
    if out_format is OutputFormat.ENVI:
        outputs[f"{layer.name}_hdr"] = path.with_suffix(".hdr")
    if layer.bands is not None:
        outputs[f"{layer.name}_wvl"] = write_wavelength_table(
            layer.bands, wavelength_table_path(path), overwrite=overwrite
        )


def convert_prisma_l2(
    in_file: Union[str, Path],
    out_folder: Union[str, Path],
    request: Optional[ConversionRequest] = None,
    **options,
) -> Dict[str, Path]:
    """
    Convert a PRISMA L2B/L2C/L2D product to GeoTIFF or ENVI.

    Output files are named ``<out_filebase>_HCO_<DATASET>.<tif|envi>``,
    cubes get a ``.wvl`` table next to them and ANGLES also writes
    ``<out_filebase>_ANG.txt``.

    Files written before a failure are left in place.

    Args:
        in_file: Path to the input .he5 file
        out_folder: Directory for the outputs (created if missing)
        request: Conversion options; defaults to ConversionRequest()
        **options: ConversionRequest fields overriding those of ``request``

    Returns:
        Dictionary mapping dataset names (VNIR, SWIR, FULL, PAN, LATLON, ANG,
        CLD, GLINT, LC, plus ``<name>_wvl``, ``<name>_hdr`` and ``ANG_txt``)
        to written paths

    Raises:
        InvalidWavelengthError: Requested band outside the spectrometer range
        IncompatibleGridsError: VNIR and SWIR grids differ
        OverwriteDeniedError: An output exists and overwrite is False
        UnsupportedFormatError: Unknown format/option or non-L2 product
        MissingInputDatasetError: Requested dataset absent from the product
    """
    if request is None:
        request = ConversionRequest(**options)
    elif options:
        request = request.with_options(**options)
    request.validate()

    in_file = Path(in_file)
    if not in_file.exists():
        raise FileNotFoundError(f"Input file not found: {in_file}")

    out_folder = ensure_directory(out_folder)
    out_filebase = request.out_filebase or in_file.stem
    out_format = request.out_format
    writer = out_format.writer()
    outputs: Dict[str, Path] = {}

    def write(layer: GeoLayer) -> None:
        _write_layer(writer, layer, out_folder, out_filebase, out_format,
                     request.overwrite, outputs)

    print(f"Converting {in_file.name} to {out_format.name}...")

    with PrismaL2Reader(in_file) as reader:
        print(f"  Processing level: L{reader.level}")
        georef = Georeferencer(
            reader.level,
            base_georef=request.base_georef,
            latlon_loader=lambda pan: reader.read_latlon(pan=pan),
            projection=reader.projection() if reader.is_projected else None,
        )
        print(f"  Georeferencing: {georef.target_state.value}")

        if request.wants_cubes:
            cubes = _read_cubes(reader, request)
            for name in ("VNIR", "SWIR", "FULL"):
                if getattr(request, name):
                    write(georef.georeference_cube(cubes[name]))
            del cubes

        if request.PAN:
            print("  Reading PAN...")
            write(georef.georeference_layer(reader.read_pan(), pan=True))

        if request.LATLON:
            print("  Reading geolocation...")
            write(georef.georeference_layer(reader.read_latlon()))

        if request.ANGLES:
            print("  Reading angles...")
            write(georef.georeference_layer(reader.read_angles()))
            sun_zenith, sun_azimuth = reader.sun_angles()
            outputs["ANG_txt"] = write_geometry_table(
                reader.acquisition_time(),
                sun_zenith,
                sun_azimuth,
                geometry_table_path(out_folder, out_filebase),
                overwrite=request.overwrite,
            )

        for mask in MASK_DATASETS:
            if getattr(request, mask):
                print(f"  Reading {mask} mask...")
                write(georef.georeference_layer(reader.read_mask(mask), fill_value=MASK_FILL_VALUE))

    print(f"  Conversion complete. Output in: {out_folder}")

    return outputs
