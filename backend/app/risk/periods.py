from __future__ import annotations

from typing import Optional


def parse_period(period: str) -> Optional[tuple[int, int]]:
    """
    Parse 'YYYY-MM' -> (year, month).
    Returns None if invalid.
    """
    try:
        y_str, m_str = str(period).split("-")
        y = int(y_str)
        m = int(m_str)
    except (TypeError, ValueError):
        return None
    if y <= 0 or m < 1 or m > 12:
        return None
    return y, m


def period_to_index(period: str) -> int:
    # malformed periods sort first
    parsed = parse_period(period)
    if not parsed:
        return 0
    year, month = parsed
    return year * 12 + month


def period_month(period: str) -> int:
    parsed = parse_period(period)
    return parsed[1] if parsed else 0
