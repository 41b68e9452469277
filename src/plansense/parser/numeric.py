"""
Numeric lexing for plan report cells.

Oracle reports abbreviate large values with magnitude suffixes
("500K", "1904K", "1.2M") and print durations in several shapes
("00:00:17.2", "218s", "12ms", "450us"). Every helper here returns
None when the cell cannot be read, so a single bad field never
aborts the row that contains it.
"""

from __future__ import annotations

import math
import re

_MAGNITUDE = re.compile(r"^(\d+(?:\.\d*)?|\.\d+)\s*([KMGT])?$", re.IGNORECASE)

_MULTIPLIERS: dict[str, float] = {
    "": 1.0,
    "K": 1e3,
    "M": 1e6,
    "G": 1e9,
    "T": 1e12,
}

# HH:MM:SS(.f) or MM:SS(.f)
_CLOCK = re.compile(r"^(?:(\d+):)?(\d+):(\d+(?:\.\d+)?)$")

_UNIT_DURATION = re.compile(
    r"^(\d+(?:\.\d*)?|\.\d+)\s*(us|µs|ms|s|m|h)?$",
    re.IGNORECASE,
)

_UNIT_TO_MS: dict[str, float] = {
    "us": 0.001,
    "µs": 0.001,
    "ms": 1.0,
    "s": 1000.0,
    "m": 60_000.0,
    "h": 3_600_000.0,
}

_PERCENT = re.compile(r"^(\d+(?:\.\d+)?)\s*%?$")

_LEADING_INT = re.compile(r"-?\d+")


def parse_magnitude(value: str | None) -> int | None:
    """
    Parse a count that may carry a K/M/G suffix and comma separators.

    Decimal values are scaled first and then rounded to the nearest
    integer, so "1.2M" gives 1200000.

    Examples:
        >>> parse_magnitude("500K")
        500000
        >>> parse_magnitude("1,234")
        1234
        >>> parse_magnitude("") is None
        True
    """
    if value is None:
        return None

    cleaned = value.replace(",", "").strip()
    if not cleaned:
        return None

    match = _MAGNITUDE.match(cleaned)
    if match:
        number = float(match.group(1))
        suffix = (match.group(2) or "").upper()
        return _round_finite(number * _MULTIPLIERS[suffix])

    try:
        return int(cleaned)
    except ValueError:
        return None


def parse_int(value: str | None) -> int | None:
    """Parse a plain integer (XML attribute or element text)."""
    if value is None:
        return None

    cleaned = value.replace(",", "").strip()
    if not cleaned:
        return None

    try:
        return int(cleaned)
    except ValueError:
        pass

    try:
        return _round_finite(float(cleaned))
    except ValueError:
        return None


def _round_finite(number: float) -> int | None:
    # float() yields inf/nan for "inf", "nan" and out-of-range text
    if not math.isfinite(number):
        return None
    return int(round(number))


def _finite(number: float) -> float | None:
    return number if math.isfinite(number) else None


def parse_leading_int(value: str | None) -> int | None:
    """Return the first integer found in the string, if any."""
    if not value:
        return None
    match = _LEADING_INT.search(value)
    return int(match.group(0)) if match else None


def parse_duration_ms(value: str | None, default_unit: str = "s") -> float | None:
    """
    Parse a duration string into milliseconds.

    Accepts clock notation ("00:00:17.2", "01:30"), unit-suffixed values
    ("17s", "12ms", "450us", "1.5m", "2h"), and bare numbers, which are
    read in ``default_unit``.

    Examples:
        >>> parse_duration_ms("00:00:17.2")
        17200.0
        >>> parse_duration_ms("218s")
        218000.0
    """
    if value is None:
        return None

    cleaned = value.replace(",", "").strip()
    if not cleaned:
        return None

    clock = _CLOCK.match(cleaned)
    if clock:
        hours = int(clock.group(1) or 0)
        minutes = int(clock.group(2))
        seconds = float(clock.group(3))
        return _finite((hours * 3600 + minutes * 60 + seconds) * 1000.0)

    match = _UNIT_DURATION.match(cleaned)
    if not match:
        return None

    unit = (match.group(2) or default_unit).lower()
    return _finite(float(match.group(1)) * _UNIT_TO_MS[unit])


def parse_percent(value: str | None) -> float | None:
    """Parse "12%" or "12" into 12.0."""
    if value is None:
        return None

    cleaned = value.strip()
    if not cleaned:
        return None

    match = _PERCENT.match(cleaned)
    if not match:
        return None
    return _finite(float(match.group(1)))
