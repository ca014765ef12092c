"""
Acquisition time and solar geometry helpers for PRISMA products.
"""

import re
from datetime import datetime
from pathlib import Path
from typing import Union

import pandas as pd

# PRS_L2D_STD_20200524103704_20200524103708_0001.he5
_FILENAME_TIME_RE = re.compile(r"PRS_L\w+?_(\d{14})_\d{14}")


def parse_acquisition_time(value: Union[str, bytes]) -> datetime:
    """
    Parse a PRISMA acquisition time.

    Accepts the ISO timestamp stored in the ``Product_StartTime`` attribute
    (e.g. ``2020-05-24T10:37:04.123456``) or a compact ``YYYYMMDDHHMMSS``
    string as found in product file names.

    Args:
        value: Timestamp string or bytes

    Returns:
        Naive UTC datetime

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, bytes):
        value = value.decode()
    value = str(value).strip()

    if re.fullmatch(r"\d{14}", value):
        return datetime.strptime(value, "%Y%m%d%H%M%S")

    try:
        timestamp = pd.Timestamp(value.replace("Z", "+00:00"))
    except (ValueError, TypeError) as e:
        raise ValueError(f"Cannot parse acquisition time: {value}") from e
    if pd.isna(timestamp):
        raise ValueError(f"Cannot parse acquisition time: {value}")
    if timestamp.tzinfo is not None:
        timestamp = timestamp.tz_convert("UTC").tz_localize(None)
    return timestamp.to_pydatetime()


def parse_time_from_filename(path: Union[str, Path]) -> datetime:
    """
    Parse the sensing start time from a PRISMA file name.

    Args:
        path: Path to a PRS_L2x_STD_<start>_<stop>_<nnnn>.he5 file

    Returns:
        Naive UTC datetime

    Raises:
        ValueError: If the name does not follow the PRISMA convention
    """
    match = _FILENAME_TIME_RE.search(Path(path).name)
    if match is None:
        raise ValueError(f"Cannot parse acquisition time from {Path(path).name}")
    return parse_acquisition_time(match.group(1))


def time_to_decimal_hours(dt: datetime) -> float:
    """
    Convert datetime to decimal hours (UTC).

    Args:
        dt: Datetime object

    Returns:
        Time as decimal hours (0-24)
    """
    return dt.hour + dt.minute / 60.0 + (dt.second + dt.microsecond / 1e6) / 3600.0
