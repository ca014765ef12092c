"""
Exceptions raised by the PRISMA Level-2 converter.
"""


class PrismaConvertError(Exception):
    """Base class for all conversion errors."""


class InvalidWavelengthError(PrismaConvertError, ValueError):
    """A requested wavelength lies outside the spectrometer's range."""

    def __init__(self, wavelength: float, low: float, high: float, spectrometer: str = ""):
        self.wavelength = wavelength
        self.low = low
        self.high = high
        self.spectrometer = spectrometer
        prefix = f"{spectrometer} " if spectrometer else ""
        super().__init__(
            f"Requested wavelength {wavelength:g} nm is outside the {prefix}"
            f"covered range {low:.2f}-{high:.2f} nm"
        )


class IncompatibleGridsError(PrismaConvertError, ValueError):
    """Two cubes to be fused do not share the same spatial grid."""


class OverwriteDeniedError(PrismaConvertError, FileExistsError):
    """An output file already exists and overwriting is not allowed."""

    def __init__(self, path):
        self.path = path
        super().__init__(
            f"Output file {path} already exists. Set overwrite=True to replace it."
        )


class UnsupportedFormatError(PrismaConvertError, ValueError):
    """Unknown output format, processing level or option value."""


class MissingInputDatasetError(PrismaConvertError, LookupError):
    """A requested dataset or attribute is absent from the input file."""

    def __init__(self, name: str, path=None):
        self.name = name
        self.path = path
        where = f" in {path}" if path is not None else ""
        super().__init__(f"Cannot find dataset '{name}'{where}")

    def __str__(self) -> str:
        return self.args[0]
