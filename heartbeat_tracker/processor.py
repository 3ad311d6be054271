"""
Data Processing Module.

This module holds the aggregation primitives used by the report builders:
range filtering, grouping durations by a derived key, ranking, and the label
normalization applied to keys before grouping.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable

from heartbeat_tracker.models import RankedItem, TimedHeartbeat

MINIMUM_DISPLAY_SECONDS = 60

NO_LANGUAGE = "No language"
NO_PROJECT = "No project"
NO_BRANCH = "No branch"
NO_FILE = "No file"


def in_range(heartbeat: TimedHeartbeat, start_ms: int, end_ms: int) -> bool:
    """Check whether a heartbeat falls in the half-open range [start, end)."""
    heartbeat_ms = heartbeat.timestamp * 1000
    return start_ms <= heartbeat_ms < end_ms


def sum_in_range(
    heartbeats: Iterable[TimedHeartbeat],
    start_ms: int,
    end_ms: int,
) -> int:
    """
    Sum durations of heartbeats inside [start_ms, end_ms).

    Args:
        heartbeats: Timed heartbeats.
        start_ms: Inclusive lower bound in epoch milliseconds.
        end_ms: Exclusive upper bound in epoch milliseconds.

    Returns:
        Total seconds.
    """
    return sum(
        hb.duration_seconds for hb in heartbeats if in_range(hb, start_ms, end_ms)
    )


def filter_by_range(
    heartbeats: Iterable[TimedHeartbeat],
    start_ms: int,
    end_ms: int,
) -> list[TimedHeartbeat]:
    """Return the heartbeats inside [start_ms, end_ms), keeping their order."""
    return [hb for hb in heartbeats if in_range(hb, start_ms, end_ms)]


def group_duration_by(
    heartbeats: Iterable[TimedHeartbeat],
    key_fn: Callable[[TimedHeartbeat], str],
) -> dict[str, int]:
    """
    Sum durations per derived key.

    Args:
        heartbeats: Timed heartbeats.
        key_fn: Maps a heartbeat to its grouping key. Callers apply
            to_safe_label inside key_fn so blank values get a fallback.

    Returns:
        Dictionary mapping keys to total seconds, in first-seen key order.
    """
    grouped: dict[str, int] = defaultdict(int)
    for heartbeat in heartbeats:
        grouped[key_fn(heartbeat)] += heartbeat.duration_seconds
    return dict(grouped)


def top_ranked(
    grouped: dict[str, float],
    limit: int,
    minimum_seconds: float = MINIMUM_DISPLAY_SECONDS,
) -> list[RankedItem]:
    """
    Rank grouped durations.

    Entries below minimum_seconds are excluded entirely. The rest are sorted
    by seconds descending; equal totals keep the grouping's key order.

    Args:
        grouped: Mapping of label to total seconds.
        limit: Maximum number of items to return.
        minimum_seconds: Ranking floor.

    Returns:
        At most limit ranked items.
    """
    eligible = [
        RankedItem(label=label, seconds=seconds)
        for label, seconds in grouped.items()
        if seconds >= minimum_seconds
    ]
    eligible.sort(key=lambda item: -item.seconds)
    return eligible[: max(limit, 0)]


def top_one(
    grouped: dict[str, float],
    minimum_seconds: float = MINIMUM_DISPLAY_SECONDS,
) -> RankedItem | None:
    """Return the best ranked item, or None if nothing reaches the floor."""
    ranked = top_ranked(grouped, 1, minimum_seconds)
    return ranked[0] if ranked else None


def to_safe_label(value: str | None, fallback: str) -> str:
    """Return the stripped value, or fallback when it is absent or blank."""
    text = value.strip() if isinstance(value, str) else ""
    return text or fallback


def to_folder_and_file(file_path: str) -> str:
    """
    Reduce a path to "parent/file".

    Args:
        file_path: Any path; backslashes are treated as separators.

    Returns:
        "parent/name", just "name" when there is no parent, or NO_FILE for
        an empty path.
    """
    parts = [part for part in file_path.replace("\\", "/").split("/") if part]
    if not parts:
        return NO_FILE
    return "/".join(parts[-2:])


def truncate_middle(value: str, max_length: int) -> str:
    """
    Shorten a label with a middle ellipsis.

    Example:
        >>> truncate_middle("src/components/VeryLongName.tsx", 20)
        'src/comp...gName.tsx'
    """
    if len(value) <= max_length:
        return value

    left_size = max((max_length - 3) // 2, 0)
    right_size = max(max_length - 3 - left_size, 0)
    right = value[len(value) - right_size:] if right_size else ""
    return f"{value[:left_size]}...{right}"


# Key functions used by the report builders


def language_key(heartbeat: TimedHeartbeat) -> str:
    return to_safe_label(heartbeat.language, NO_LANGUAGE)


def upper_language_key(heartbeat: TimedHeartbeat) -> str:
    return language_key(heartbeat).upper()


def project_key(heartbeat: TimedHeartbeat) -> str:
    return to_safe_label(heartbeat.project, NO_PROJECT)


def branch_key(heartbeat: TimedHeartbeat) -> str:
    return to_safe_label(heartbeat.branch, NO_BRANCH)


def file_key(heartbeat: TimedHeartbeat) -> str:
    return to_folder_and_file(to_safe_label(heartbeat.file_path, NO_FILE))
