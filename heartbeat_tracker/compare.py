"""
Trend Comparison Module.

This module compares coding time between two periods, typically the current
week against last week.
"""

from __future__ import annotations

from typing import Any

NO_HISTORY = "no-history"


def calculate_change(current: float, previous: float) -> dict[str, Any]:
    """
    Calculate the change between two values.

    Args:
        current: The current period value.
        previous: The previous period value.

    Returns:
        A dictionary containing:
            - current: The current value
            - previous: The previous value
            - diff: The absolute difference
            - percent: The percentage change (None if previous is 0)
            - direction: "up", "down", "same", or NO_HISTORY when there is
              no previous value to compare against
    """
    diff = current - previous

    if previous == 0:
        percent = None
        direction = NO_HISTORY
    else:
        percent = round((diff / previous) * 100, 1)
        if percent == 0:
            direction = "same"
        elif diff > 0:
            direction = "up"
        else:
            direction = "down"

    return {
        "current": current,
        "previous": previous,
        "diff": round(diff, 1),
        "percent": percent,
        "direction": direction,
    }


def has_history(change: dict[str, Any]) -> bool:
    """Check whether a change dictionary carries a usable percentage."""
    return change["direction"] != NO_HISTORY


def format_change(change: dict[str, Any], label: str = "vs last week") -> str:
    """
    Format a change dictionary as a human-readable string.

    Args:
        change: A change dictionary from calculate_change.
        label: Suffix naming the reference period.

    Returns:
        A string like "+15.2% vs last week", or a no-history notice.
    """
    if not has_history(change):
        return "No history to compare"

    sign = "+" if change["percent"] >= 0 else ""
    return f"{sign}{change['percent']:.1f}% {label}"
