#!/usr/bin/env python
"""
Example: Convert a PRISMA L2 scene and check the outputs.

This script demonstrates:
1. Validating the HDF5 structure of a PRISMA L2B/L2C/L2D product
2. Converting the FULL cube (optionally band-subset) plus angles and cloud mask
3. Reading the written rasters back and printing a summary

Usage:
    python convert_scene.py <input_he5> <output_dir> [--format envi] [--bands 450,550,650,1600]
"""

import argparse
from pathlib import Path


def main():
    parser = argparse.ArgumentParser(
        description="Convert a PRISMA L2 product to GeoTIFF or ENVI"
    )
    parser.add_argument("input_he5", help="Input PRISMA L2 .he5 file")
    parser.add_argument("output_dir", help="Output directory")
    parser.add_argument(
        "--format", "-f", choices=["tif", "envi"], default="tif",
        help="Output raster format"
    )
    parser.add_argument(
        "--bands", "-b", type=str, default=None,
        help="Wavelengths to keep, e.g. '450,550,650,1600'"
    )
    parser.add_argument(
        "--no-base-georef", action="store_true",
        help="Keep 2B/2C products in sensor geometry"
    )

    args = parser.parse_args()

    from prisma_convert import ConversionRequest, convert_prisma_l2, read_converted
    from prisma_convert.reader import validate_hdf5_structure

    is_valid, issues = validate_hdf5_structure(args.input_he5)
    if not is_valid:
        print("✗ Structure validation issues:")
        for issue in issues:
            print(f"  - {issue}")
        return

    # VNIR and SWIR share the same selection list; each keeps what it covers
    selbands_vnir = selbands_swir = None
    if args.bands:
        wavelengths = [float(x) for x in args.bands.split(",")]
        selbands_vnir = [w for w in wavelengths if w < 1000] or None
        selbands_swir = [w for w in wavelengths if w >= 1000] or None

    request = ConversionRequest(
        FULL=True,
        ANGLES=True,
        CLD=True,
        base_georef=not args.no_base_georef,
        selbands_vnir=selbands_vnir,
        selbands_swir=selbands_swir,
        out_format=args.format,
    )

    print(f"\n{'='*60}")
    print("PRISMA L2 conversion")
    print(f"{'='*60}")
    print(f"Input: {args.input_he5}")
    print(f"Output: {args.output_dir}")
    print()

    outputs = convert_prisma_l2(args.input_he5, args.output_dir, request)

    print(f"\n{'='*60}")
    print("Summary")
    print(f"{'='*60}")
    for name in ("FULL", "ANG", "CLD"):
        layer = read_converted(outputs[name])
        print(f"{name}: {Path(outputs[name]).name} {layer.shape} ({layer.state.value})")
    full = read_converted(outputs["FULL"])
    print(f"FULL bands: {len(full.bands)} "
          f"({min(full.bands.wavelengths):.1f} - {max(full.bands.wavelengths):.1f} nm)")
    print(f"Geometry table: {outputs['ANG_txt']}")


if __name__ == "__main__":
    main()
