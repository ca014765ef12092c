"""
Conversion request: the set of switches controlling one conversion.
"""

from dataclasses import dataclass, field, fields, replace
from typing import Any, Optional, Tuple

from prisma_convert.exceptions import UnsupportedFormatError
from prisma_convert.writers import OutputFormat


JOIN_PRIORITIES = ("VNIR", "SWIR")


def _as_wavelengths(values) -> Optional[Tuple[float, ...]]:
    if values is None:
        return None
    if isinstance(values, (int, float)):
        values = [values]
    return tuple(float(v) for v in values)


@dataclass(frozen=True)
class ConversionRequest:
    """
    Options for converting a PRISMA L2 file.

    Attributes:
        VNIR: Write the VNIR reflectance/radiance cube
        SWIR: Write the SWIR cube
        FULL: Write VNIR and SWIR fused into a single cube
        PAN: Write the panchromatic band
        LATLON: Write latitude/longitude layers
        ANGLES: Write view/solar angle layers and the acquisition geometry table
        CLD: Write the cloud mask
        GLINT: Write the sun-glint mask
        LC: Write the land-cover mask
        base_georef: Apply GLT georeferencing to 2B/2C products
        join_priority: Spectrometer kept in the VNIR/SWIR overlap ("VNIR" or "SWIR")
        selbands_vnir: Wavelengths (nm) of VNIR bands to keep, all if None
        selbands_swir: Wavelengths (nm) of SWIR bands to keep, all if None
        out_format: "tif" (GeoTIFF) or "envi"
        overwrite: Replace existing output files
        out_filebase: Base name of output files, input file stem if None
    """

    VNIR: bool = False
    SWIR: bool = False
    FULL: bool = False
    PAN: bool = False
    LATLON: bool = False
    ANGLES: bool = False
    CLD: bool = False
    GLINT: bool = False
    LC: bool = False
    base_georef: bool = True
    join_priority: str = "SWIR"
    selbands_vnir: Optional[Tuple[float, ...]] = None
    selbands_swir: Optional[Tuple[float, ...]] = None
    out_format: Any = OutputFormat.GTIFF
    overwrite: bool = False
    out_filebase: Optional[str] = field(default=None)

    def __post_init__(self):
        # Normalise inputs on a frozen instance
        object.__setattr__(self, "selbands_vnir", _as_wavelengths(self.selbands_vnir))
        object.__setattr__(self, "selbands_swir", _as_wavelengths(self.selbands_swir))
        object.__setattr__(self, "out_format", OutputFormat.parse(self.out_format))
        object.__setattr__(self, "join_priority", str(self.join_priority).upper())

    @property
    def wants_cubes(self) -> bool:
        return self.VNIR or self.SWIR or self.FULL

    @property
    def wants_anything(self) -> bool:
        return any([
            self.wants_cubes, self.PAN, self.LATLON, self.ANGLES,
            self.CLD, self.GLINT, self.LC,
        ])

    def validate(self) -> "ConversionRequest":
        """
        Check option consistency.

        Returns:
            The request itself, for chaining

        Raises:
            UnsupportedFormatError: Unknown join_priority
            ValueError: Nothing to convert, or empty band selections
        """
        if self.join_priority not in JOIN_PRIORITIES:
            raise UnsupportedFormatError(
                f"join_priority must be one of {JOIN_PRIORITIES}, got {self.join_priority!r}"
            )
        if not self.wants_anything:
            raise ValueError("Nothing to convert: enable at least one output dataset")
        for name in ("selbands_vnir", "selbands_swir"):
            value = getattr(self, name)
            if value is not None and len(value) == 0:
                raise ValueError(f"{name} is empty; use None to keep all bands")
        return self

    def with_options(self, **overrides: Any) -> "ConversionRequest":
        """Return a copy of the request with some fields replaced."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown conversion options: {sorted(unknown)}")
        return replace(self, **overrides)
