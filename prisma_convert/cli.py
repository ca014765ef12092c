"""
Command-line interface for the PRISMA L2 converter.

Provides commands for:
- inspect: Examine and validate the HDF5 file structure
- convert: Convert a L2B/L2C/L2D product to GeoTIFF or ENVI
- check: Print header information and statistics of a converted raster
"""

import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from prisma_convert import __version__
from prisma_convert.exceptions import PrismaConvertError


def _parse_wavelengths(value: Optional[str]) -> Optional[Tuple[float, ...]]:
    """Parse a comma separated wavelength list such as '450,550,650'."""
    if not value:
        return None
    try:
        return tuple(float(x) for x in value.split(",") if x.strip())
    except ValueError as e:
        raise click.BadParameter(f"Expected comma separated wavelengths in nm: {e}")


@click.group()
@click.version_option(version=__version__)
def main():
    """PRISMA L2 converter - convert PRISMA L2B/L2C/L2D HDF5 to GeoTIFF or ENVI."""
    pass


@main.command()
@click.argument("input_he5", type=click.Path(exists=True))
def inspect(input_he5: str):
    """
    Inspect HDF5 file structure.

    Prints all datasets, groups, and attributes in the file.
    """
    from prisma_convert.reader import print_hdf5_structure, validate_hdf5_structure

    input_path = Path(input_he5)

    click.echo(f"\nInspecting: {input_path}")

    is_valid, issues = validate_hdf5_structure(input_path)

    if is_valid:
        click.echo(click.style("\n✓ Valid PRISMA L2 HDF5 structure", fg="green"))
    else:
        click.echo(click.style("\n✗ Structure validation issues:", fg="yellow"))
        for issue in issues:
            click.echo(f"  - {issue}")

    print_hdf5_structure(input_path)


@main.command()
@click.argument("input_he5", type=click.Path(exists=True))
@click.argument("output_dir", type=click.Path())
@click.option("--format", "out_format", type=click.Choice(["tif", "envi"], case_sensitive=False),
              default="tif", show_default=True, help="Output raster format")
@click.option("--vnir", is_flag=True, help="Write the VNIR cube")
@click.option("--swir", is_flag=True, help="Write the SWIR cube")
@click.option("--full", is_flag=True, help="Write VNIR and SWIR joined in a single cube")
@click.option("--pan", is_flag=True, help="Write the panchromatic band")
@click.option("--latlon", is_flag=True, help="Write latitude/longitude layers")
@click.option("--angles", is_flag=True, help="Write angle layers and the acquisition geometry table")
@click.option("--cloud", "cld", is_flag=True, help="Write the cloud mask")
@click.option("--glint", is_flag=True, help="Write the sun-glint mask")
@click.option("--landcover", "lc", is_flag=True, help="Write the land-cover mask")
@click.option("--base-georef/--no-base-georef", default=True, show_default=True,
              help="Apply GLT georeferencing to L2B/L2C products")
@click.option("--join-priority", type=click.Choice(["VNIR", "SWIR"], case_sensitive=False),
              default="SWIR", show_default=True,
              help="Spectrometer kept where VNIR and SWIR overlap")
@click.option("--selbands-vnir", type=str, default=None,
              help="VNIR wavelengths to keep, e.g. '450,550,650'")
@click.option("--selbands-swir", type=str, default=None,
              help="SWIR wavelengths to keep, e.g. '1600,2200'")
@click.option("--out-filebase", type=str, default=None,
              help="Base name of output files (default: input file name)")
@click.option("--overwrite", is_flag=True, help="Replace existing output files")
def convert(
    input_he5: str,
    output_dir: str,
    out_format: str,
    vnir: bool,
    swir: bool,
    full: bool,
    pan: bool,
    latlon: bool,
    angles: bool,
    cld: bool,
    glint: bool,
    lc: bool,
    base_georef: bool,
    join_priority: str,
    selbands_vnir: Optional[str],
    selbands_swir: Optional[str],
    out_filebase: Optional[str],
    overwrite: bool,
):
    """
    Convert a PRISMA L2 product.

    Writes one raster per requested dataset plus wavelength tables.
    """
    from prisma_convert.convert import convert_prisma_l2
    from prisma_convert.request import ConversionRequest

    try:
        request = ConversionRequest(
            VNIR=vnir,
            SWIR=swir,
            FULL=full,
            PAN=pan,
            LATLON=latlon,
            ANGLES=angles,
            CLD=cld,
            GLINT=glint,
            LC=lc,
            base_georef=base_georef,
            join_priority=join_priority,
            selbands_vnir=_parse_wavelengths(selbands_vnir),
            selbands_swir=_parse_wavelengths(selbands_swir),
            out_format=out_format,
            overwrite=overwrite,
            out_filebase=out_filebase,
        )
        result = convert_prisma_l2(input_he5, output_dir, request)

    except (PrismaConvertError, ValueError, OSError) as e:
        click.echo(click.style(f"\n✗ Conversion failed: {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(click.style("\n✓ Conversion complete", fg="green"))
    for key, path in result.items():
        click.echo(f"  {key}: {path}")


@main.command()
@click.argument("raster_file", type=click.Path(exists=True))
def check(raster_file: str):
    """
    Check a converted raster and print statistics.

    Useful for verifying conversion output.
    """
    from prisma_convert.writers import read_converted
    import numpy as np

    raster_path = Path(raster_file)

    try:
        layer = read_converted(raster_path)
    except (PrismaConvertError, ValueError, OSError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    data = layer.data.astype(np.float64)

    click.echo(f"\nRaster file: {raster_path}")
    click.echo("-" * 40)
    click.echo(f"  Lines: {layer.shape[0]}")
    click.echo(f"  Samples: {layer.shape[1]}")
    click.echo(f"  Bands: {layer.shape[2]}")
    click.echo(f"  Georeferencing: {layer.state.value}")
    if layer.crs is not None:
        click.echo(f"  CRS: EPSG:{layer.crs}")

    click.echo("\nStatistics:")
    click.echo(f"  Min: {np.nanmin(data):.6f}")
    click.echo(f"  Max: {np.nanmax(data):.6f}")
    click.echo(f"  Mean: {np.nanmean(data):.6f}")
    click.echo(f"  NaN fraction: {np.isnan(data).mean():.2%}")

    if layer.bands is not None and len(layer.bands) > 0:
        wl = layer.bands.wavelengths
        click.echo(f"\nWavelength range: {min(wl):.1f} - {max(wl):.1f} nm")


if __name__ == "__main__":
    main()
