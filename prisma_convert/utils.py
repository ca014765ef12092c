"""
Utility functions for ENVI file I/O and file helpers.
"""

from pathlib import Path
from typing import Optional, List, Dict, Any, Tuple, Union

import numpy as np

from prisma_convert.config import ENVI_DTYPE_CODES, ENVI_DTYPE_FLOAT32

ENVI_BINARY_SUFFIX = ".envi"


def envi_dtype_code(dtype: Union[np.dtype, type]) -> int:
    """
    Map a numpy dtype to its ENVI data type code.

    Raises:
        ValueError: For dtypes ENVI cannot represent
    """
    scalar_type = np.dtype(dtype).type
    if scalar_type not in ENVI_DTYPE_CODES:
        raise ValueError(f"No ENVI data type for {np.dtype(dtype)}")
    return ENVI_DTYPE_CODES[scalar_type]


def write_envi_header(
    header_path: Union[str, Path],
    lines: int,
    samples: int,
    bands: int,
    dtype: int = ENVI_DTYPE_FLOAT32,
    interleave: str = "bsq",
    wavelengths: Optional[List[float]] = None,
    fwhm: Optional[List[float]] = None,
    band_names: Optional[List[str]] = None,
    description: str = "",
    byte_order: int = 0,
    **kwargs: Any,
) -> None:
    """
    Write an ENVI header file.

    Args:
        header_path: Path to write header file (.hdr)
        lines: Number of lines (rows) in the image
        samples: Number of samples (columns) per line
        bands: Number of bands
        dtype: ENVI data type (4 = float32)
        interleave: Data interleave format ('bip', 'bil', 'bsq')
        wavelengths: List of center wavelengths in nm
        fwhm: List of FWHM values in nm
        band_names: List of band names
        description: File description
        byte_order: 0 for little-endian, 1 for big-endian
        **kwargs: Additional header fields; underscores in keys become spaces
    """
    header_path = Path(header_path)

    with open(header_path, "w") as f:
        f.write("ENVI\n")
        if description:
            f.write(f"description = {{{description}}}\n")
        f.write(f"samples = {samples}\n")
        f.write(f"lines = {lines}\n")
        f.write(f"bands = {bands}\n")
        f.write("header offset = 0\n")
        f.write("file type = ENVI Standard\n")
        f.write(f"data type = {dtype}\n")
        f.write(f"interleave = {interleave}\n")
        f.write(f"byte order = {byte_order}\n")

        if wavelengths is not None and len(wavelengths) > 0:
            f.write("wavelength units = Nanometers\n")
            f.write("wavelength = {\n")
            _write_list_field(f, [float(w) for w in wavelengths])
            f.write("}\n")

        if fwhm is not None and len(fwhm) > 0:
            f.write("fwhm = {\n")
            _write_list_field(f, [float(v) for v in fwhm])
            f.write("}\n")

        if band_names is not None and len(band_names) > 0:
            f.write("band names = {\n")
            for i, name in enumerate(band_names):
                if i < len(band_names) - 1:
                    f.write(f"  {name},\n")
                else:
                    f.write(f"  {name}\n")
            f.write("}\n")

        for key, value in kwargs.items():
            key = key.replace("_", " ")
            if isinstance(value, list):
                f.write(f"{key} = {{")
                f.write(", ".join(str(v) for v in value))
                f.write("}\n")
            else:
                f.write(f"{key} = {value}\n")


def _write_list_field(f, values: List, items_per_line: int = 10) -> None:
    """Helper to write a list field with proper formatting."""
    for i in range(0, len(values), items_per_line):
        chunk = values[i:i + items_per_line]
        line = ", ".join(f"{v:.6f}" if isinstance(v, float) else str(v) for v in chunk)
        if i + items_per_line < len(values):
            f.write(f"  {line},\n")
        else:
            f.write(f"  {line}\n")


def write_envi_file(
    data: np.ndarray,
    output_path: Union[str, Path],
    wavelengths: Optional[List[float]] = None,
    fwhm: Optional[List[float]] = None,
    band_names: Optional[List[str]] = None,
    interleave: str = "bsq",
    description: str = "",
    **header_kwargs: Any,
) -> Tuple[Path, Path]:
    """
    Write data array to ENVI format (binary + header).

    The array keeps its dtype; the header data type is derived from it.

    Args:
        data: 3D numpy array (lines, samples, bands)
        output_path: Path of the binary file (the header gets a .hdr suffix)
        wavelengths: Center wavelengths for spectral data
        fwhm: FWHM values for spectral data
        band_names: Names for each band
        interleave: Data interleave ('bip', 'bil', 'bsq')
        description: File description
        **header_kwargs: Additional header fields

    Returns:
        Tuple of (binary_path, header_path)
    """
    binary_path = Path(output_path)
    header_path = binary_path.with_suffix(".hdr")

    data = np.asarray(data)
    if data.ndim == 2:
        data = data[:, :, np.newaxis]
    dtype_code = envi_dtype_code(data.dtype)

    lines, samples, bands = data.shape

    if interleave.lower() == "bip":
        write_data = data
    elif interleave.lower() == "bil":
        write_data = np.transpose(data, (0, 2, 1))
    elif interleave.lower() == "bsq":
        write_data = np.transpose(data, (2, 0, 1))
    else:
        raise ValueError(f"Unknown interleave format: {interleave}")

    # Always little-endian on disk
    write_data = np.ascontiguousarray(write_data, dtype=data.dtype.newbyteorder("<"))
    write_data.tofile(str(binary_path))

    write_envi_header(
        header_path,
        lines=lines,
        samples=samples,
        bands=bands,
        dtype=dtype_code,
        interleave=interleave,
        wavelengths=wavelengths,
        fwhm=fwhm,
        band_names=band_names,
        description=description,
        **header_kwargs,
    )

    return binary_path, header_path


def read_envi_header(header_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read and parse an ENVI header file.

    Args:
        header_path: Path to header file (.hdr)

    Returns:
        Dictionary of header fields
    """
    header_path = Path(header_path)
    header = {}

    with open(header_path, "r") as f:
        content = f.read()

    if content.startswith("ENVI"):
        content = content[4:].strip()

    i = 0
    while i < len(content):
        while i < len(content) and content[i] in " \t\n":
            i += 1

        if i >= len(content):
            break

        eq_pos = content.find("=", i)
        if eq_pos == -1:
            break

        key = content[i:eq_pos].strip()
        i = eq_pos + 1

        while i < len(content) and content[i] in " \t":
            i += 1

        if i >= len(content):
            header[key] = ""
            break

        # Multi-line value enclosed in braces
        if content[i] == "{":
            brace_end = content.find("}", i)
            if brace_end == -1:
                value = content[i + 1:].strip()
                i = len(content)
            else:
                value = content[i + 1:brace_end].strip()
                i = brace_end + 1

            if "," in value or "\n" in value:
                items = [v.strip() for v in value.replace("\n", ",").split(",")]
                items = [v for v in items if v]
                try:
                    header[key] = [float(v) for v in items]
                except ValueError:
                    header[key] = items
            else:
                header[key] = value
        else:
            newline_pos = content.find("\n", i)
            if newline_pos == -1:
                value = content[i:].strip()
                i = len(content)
            else:
                value = content[i:newline_pos].strip()
                i = newline_pos + 1

            try:
                if "." in value or "e" in value.lower():
                    header[key] = float(value)
                else:
                    header[key] = int(value)
            except ValueError:
                header[key] = value

    return header


def read_envi_file(
    file_path: Union[str, Path],
    header_path: Optional[Union[str, Path]] = None,
) -> Tuple[np.ndarray, Dict[str, Any]]:
    """
    Read ENVI file (binary + header).

    Args:
        file_path: Path to binary file, or to its .hdr header
        header_path: Path to header file (auto-detected if None)

    Returns:
        Tuple of (data array as (lines, samples, bands), header dict)
    """
    file_path = Path(file_path)

    if header_path is None:
        if file_path.suffix == ".hdr":
            header_path = file_path
            file_path = file_path.with_suffix(ENVI_BINARY_SUFFIX)
        else:
            header_path = file_path.with_suffix(".hdr")

    header = read_envi_header(header_path)

    lines = int(header.get("lines", 0))
    samples = int(header.get("samples", 0))
    bands = int(header.get("bands", 1))
    dtype_code = int(header.get("data type", ENVI_DTYPE_FLOAT32))
    interleave = str(header.get("interleave", "bsq")).lower()
    byte_order = int(header.get("byte order", 0))

    codes_to_dtype = {code: dtype for dtype, code in ENVI_DTYPE_CODES.items()}
    dtype = np.dtype(codes_to_dtype.get(dtype_code, np.float32))
    dtype = dtype.newbyteorder(">" if byte_order == 1 else "<")

    data = np.fromfile(str(file_path), dtype=dtype)

    if interleave == "bip":
        data = data.reshape((lines, samples, bands))
    elif interleave == "bil":
        data = data.reshape((lines, bands, samples))
        data = np.transpose(data, (0, 2, 1))
    elif interleave == "bsq":
        data = data.reshape((bands, lines, samples))
        data = np.transpose(data, (1, 2, 0))
    else:
        raise ValueError(f"Unknown interleave format: {interleave}")

    return data.astype(dtype.newbyteorder("="), copy=False), header


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path

    Returns:
        Path object for the directory
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path
