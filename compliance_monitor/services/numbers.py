"""Numeric and formatting helpers shared by the alert and report engines."""

from __future__ import annotations

import math


def safe_percentage(part: float, whole: float) -> float | None:
    """Return ``part / whole * 100``, or None when the result would not be finite."""
    if whole == 0:
        return None
    result = part / whole * 100
    if not math.isfinite(result):
        return None
    return result


def safe_mean(total: float, count: int) -> float:
    """Average that is 0 for an empty set."""
    if count <= 0:
        return 0.0
    return total / count


def tier_severity(value: float, high_above: float, medium_above: float) -> str:
    """Map a metric to low/medium/high using strict lower bounds."""
    if value > high_above:
        return "high"
    if value > medium_above:
        return "medium"
    return "low"


def format_currency(amount: float) -> str:
    """Dollar amount with thousands separators; cents only when present.

    >>> format_currency(1250000)
    '$1,250,000'
    >>> format_currency(99.5)
    '$99.50'
    """
    if float(amount).is_integer():
        return f"${amount:,.0f}"
    return f"${amount:,.2f}"


def format_number(value: float) -> str:
    """Render a ratio or index the way it was stored, without a trailing ``.0``."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def round_half_up(value: float, digits: int = 0) -> float:
    """Round with halves going up, not to the nearest even digit.

    >>> round_half_up(2.5)
    3.0
    >>> round_half_up(35.25, 1)
    35.3
    """
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor
