"""
Codec for the compact timestamp identifiers that key every stored reading.

Reading identifiers are ASCII digits with an optional ``T`` separator at
position 8:

- ``YYYYMMDDTHHMMSS``: second precision (15-minute samples).
- ``YYYYMMDDTHHMM``: minute precision, seconds default to 0.
- ``YYYYMMDD``: day precision (daily samples), time defaults to 00:00:00.

Decoded instants are naive datetimes in the device's local wall clock, the
same clock the identifiers were written in. Labels are rendered from fixed
English name tables so the output never depends on the process locale.

CHANGELOG:
- 2026-10-08: Add bucket_label for gap-filled buckets without an identifier (STORY-105)
- 2026-10-05: Initial creation (STORY-101)

TODO:
- None
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

__all__ = [
    "MalformedIdentifier",
    "Precision",
    "Resolution",
    "bucket_label",
    "encode_instant",
    "format_full_datetime",
    "format_label",
    "identifier_precision",
    "parse_instant",
]

_SEPARATOR = "T"
_SEPARATOR_POS = 8

MONTH_ABBR = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)
WEEKDAY_ABBR = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


class MalformedIdentifier(ValueError):
    """Raised when a reading identifier matches none of the supported widths."""

    def __init__(self, identifier: str, reason: str = "unsupported width") -> None:
        self.identifier = identifier
        super().__init__(f"Invalid reading identifier {identifier!r}: {reason}")


class Precision(str, Enum):
    """Resolution of the time part encoded in an identifier."""

    SECOND = "second"
    MINUTE = "minute"
    DAY = "day"


class Resolution(str, Enum):
    """Chart granularity: governs bucket count, anchoring, and labels."""

    ROLLING_24H = "24h"
    WEEK = "7d"
    MONTH = "1m"
    YEAR = "1y"


_WIDTHS: dict[int, Precision] = {
    14: Precision.SECOND,
    12: Precision.MINUTE,
    8: Precision.DAY,
}

_FORMATS: dict[Precision, str] = {
    Precision.SECOND: "%Y%m%dT%H%M%S",
    Precision.MINUTE: "%Y%m%dT%H%M",
    Precision.DAY: "%Y%m%d",
}


def _strip_separator(identifier: str) -> str:
    if len(identifier) > _SEPARATOR_POS and identifier[_SEPARATOR_POS] == _SEPARATOR:
        return identifier[:_SEPARATOR_POS] + identifier[_SEPARATOR_POS + 1 :]
    return identifier


def identifier_precision(identifier: str) -> Precision:
    """Return the precision encoded by *identifier*.

    Raises:
        MalformedIdentifier: If the width or content is not supported.
    """
    digits = _strip_separator(identifier)
    if not (digits.isascii() and digits.isdigit()):
        raise MalformedIdentifier(identifier, "expected ASCII digits")
    try:
        return _WIDTHS[len(digits)]
    except KeyError:
        raise MalformedIdentifier(identifier) from None


def parse_instant(identifier: str) -> datetime:
    """Decode a reading identifier into its capture instant.

    Args:
        identifier: ``YYYYMMDDTHHMMSS``, ``YYYYMMDDTHHMM`` or ``YYYYMMDD``.

    Returns:
        datetime: Naive local instant; absent time fields are zero.

    Raises:
        MalformedIdentifier: On an unsupported width, non-digit content, or
            an impossible calendar value (e.g. month 13).
    """
    precision = identifier_precision(identifier)
    digits = _strip_separator(identifier)

    year = int(digits[0:4])
    month = int(digits[4:6])
    day = int(digits[6:8])
    hour = minute = second = 0
    if precision is not Precision.DAY:
        hour = int(digits[8:10])
        minute = int(digits[10:12])
    if precision is Precision.SECOND:
        second = int(digits[12:14])

    try:
        return datetime(year, month, day, hour, minute, second)
    except ValueError as exc:
        raise MalformedIdentifier(identifier, str(exc)) from None


def encode_instant(instant: datetime, precision: Precision = Precision.SECOND) -> str:
    """Encode *instant* as an identifier at the given precision.

    Inverse of :func:`parse_instant`: encoding the parsed instant of an
    identifier at that identifier's precision reproduces it exactly.
    """
    return instant.strftime(_FORMATS[precision])


def _hour12(hour: int) -> tuple[int, str]:
    suffix = "AM" if hour < 12 else "PM"
    return (hour % 12) or 12, suffix


def format_label(identifier: str, resolution: Resolution) -> str:
    """Render a short chart label for a raw reading.

    - ``24h``: ``HH:MM`` (24-hour clock)
    - ``7d``: ``Oct 30, 07 AM``
    - ``1m``: ``Oct 30``
    - ``1y``: ``Oct 2025``
    """
    instant = parse_instant(identifier)
    month = MONTH_ABBR[instant.month - 1]
    resolution = Resolution(resolution)

    if resolution is Resolution.ROLLING_24H:
        return f"{instant.hour:02d}:{instant.minute:02d}"
    if resolution is Resolution.WEEK:
        hour, suffix = _hour12(instant.hour)
        return f"{month} {instant.day}, {hour:02d} {suffix}"
    if resolution is Resolution.MONTH:
        return f"{month} {instant.day}"
    return f"{month} {instant.year}"


def format_full_datetime(value: str | datetime) -> str:
    """Render a complete date-time for detail displays.

    Accepts an identifier or an already decoded instant and returns
    ``MM/DD/YYYY, hh:mm:ss AM``.
    """
    instant = parse_instant(value) if isinstance(value, str) else value
    hour, suffix = _hour12(instant.hour)
    return (
        f"{instant.month:02d}/{instant.day:02d}/{instant.year:04d}, "
        f"{hour:02d}:{instant.minute:02d}:{instant.second:02d} {suffix}"
    )


def bucket_label(start: datetime, resolution: Resolution) -> str:
    """Label a bucket by its start boundary.

    Hourly buckets read ``HH:00``, week buckets the weekday name, month
    buckets ``Oct 30`` and year buckets the month name.
    """
    resolution = Resolution(resolution)
    if resolution is Resolution.ROLLING_24H:
        return f"{start.hour:02d}:00"
    if resolution is Resolution.WEEK:
        return WEEKDAY_ABBR[start.weekday()]
    if resolution is Resolution.MONTH:
        return f"{MONTH_ABBR[start.month - 1]} {start.day}"
    return MONTH_ABBR[start.month - 1]
