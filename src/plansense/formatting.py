"""Compact display formatting for plan metrics."""

from __future__ import annotations

import math

INFINITY_SYMBOL = "∞"


def format_number_short(
    value: float | None,
    *,
    empty: str | None = None,
    infinity: str = INFINITY_SYMBOL,
) -> str | None:
    """1500 -> '1.5K', 2300000 -> '2.3M', 42 -> '42'."""
    if value is None:
        return empty
    if math.isinf(value):
        return infinity
    if value >= 1_000_000:
        return f"{value / 1_000_000:.1f}M"
    if value >= 1_000:
        return f"{value / 1_000:.1f}K"
    return str(value)


def format_bytes(
    value: float | None,
    *,
    empty: str | None = None,
    infinity: str = INFINITY_SYMBOL,
) -> str | None:
    """Binary units: 2048 -> '2.0 KB'."""
    if value is None:
        return empty
    if math.isinf(value):
        return infinity
    if value >= 1024 ** 3:
        return f"{value / 1024 ** 3:.1f} GB"
    if value >= 1024 ** 2:
        return f"{value / 1024 ** 2:.1f} MB"
    if value >= 1024:
        return f"{value / 1024:.1f} KB"
    return f"{value} B"


def format_time_short(
    value: float | None,
    *,
    empty: str | None = None,
    infinity: str = INFINITY_SYMBOL,
) -> str | None:
    """Milliseconds as '850ms', '2.50s' or '1.5m'."""
    if value is None:
        return empty
    if math.isinf(value):
        return infinity
    if value >= 60_000:
        return f"{value / 60_000:.1f}m"
    if value >= 1_000:
        return f"{value / 1_000:.2f}s"
    return f"{value:.0f}ms"


def format_time_detailed(
    value: float | None,
    *,
    empty: str | None = None,
    infinity: str = INFINITY_SYMBOL,
) -> str | None:
    """
    Milliseconds with more precision for detail views.

    '2m 5.0s', '2.50s', '12.3ms', or microseconds below 1ms ('450us').
    """
    if value is None:
        return empty
    if math.isinf(value):
        return infinity
    if value >= 60_000:
        minutes = int(value // 60_000)
        seconds = (value % 60_000) / 1_000
        return f"{minutes}m {seconds:.1f}s"
    if value >= 1_000:
        return f"{value / 1_000:.2f}s"
    if value >= 1:
        return f"{value:.1f}ms"
    return f"{value * 1_000:.0f}us"
