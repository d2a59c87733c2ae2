"""GTFS time-of-day codec.

GTFS times are written ``HH:MM:SS`` and count from local midnight of the
service day, so values past ``24:00:00`` are legal for trips running after
midnight. In the store they are kept as integer seconds and must fit a signed
32-bit integer.
"""

from __future__ import annotations

import re

MAX_GTFS_TIME = 2**31 - 1

# optional sign and ASCII digits only
_INTEGER = re.compile(r"[+-]?[0-9]+")


class TimeCodecError(ValueError):
    """Base class for GTFS time conversion errors."""


class TimeEncodingError(TimeCodecError):
    """Raised when seconds cannot be rendered as a GTFS time."""


class TimeFormatError(TimeCodecError):
    """Raised when a GTFS time string does not have three fields."""


class TimeParseError(TimeCodecError):
    """Raised when a GTFS time field is not a base-10 integer."""


class TimeRangeError(TimeCodecError):
    """Raised when a GTFS time exceeds the 32-bit range."""


def encode_gtfs_time(seconds: int) -> str:
    """Render seconds since midnight as ``HH:MM:SS``.

    Examples:
        0 -> "00:00:00"
        52621 -> "14:37:01"
        90090 -> "25:01:30"

    Raises:
        TimeEncodingError: If seconds is outside ``[0, 2**31 - 1]``.
    """
    if seconds < 0 or seconds > MAX_GTFS_TIME:
        msg = f"cannot encode GTFS time from {seconds}: out of range"
        raise TimeEncodingError(msg)

    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def parse_gtfs_time(time_str: str) -> int:
    """Parse a GTFS time string to seconds from midnight.

    The hour field may have any number of digits ("4:05:00", "104:00:00").

    Raises:
        TimeFormatError: If the string does not split into exactly three fields.
        TimeParseError: If a field is not an integer.
        TimeRangeError: If the total exceeds ``2**31 - 1``.
    """
    parts = time_str.split(":")
    if len(parts) != 3:
        msg = f"cannot parse GTFS time from {time_str!r}"
        raise TimeFormatError(msg)

    values = []
    for name, part in zip(("hours", "minutes", "seconds"), parts):
        if not _INTEGER.fullmatch(part):
            msg = f"cannot parse GTFS {name} from {part!r}"
            raise TimeParseError(msg)
        values.append(int(part))

    hours, minutes, seconds = values
    total = hours * 3600 + minutes * 60 + seconds
    if total > MAX_GTFS_TIME:
        msg = f"cannot parse GTFS time from {time_str!r}: max value exceeded"
        raise TimeRangeError(msg)

    return total
