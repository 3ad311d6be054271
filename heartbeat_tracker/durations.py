"""
Duration Inference Module.

Heartbeats are point-in-time pings. This module infers how long each one
stands for from the gap to the next ping, capped so that idle stretches are
not counted as work, and gives the final ping a fixed trailing allowance.
"""

from __future__ import annotations

from collections.abc import Iterable

from heartbeat_tracker.models import Heartbeat, TimedHeartbeat

INACTIVITY_LIMIT_SECONDS = 120
MAXIMUM_SECONDS_PER_HEARTBEAT = 300
EFFECTIVE_HEARTBEAT_SECONDS_LIMIT = min(
    INACTIVITY_LIMIT_SECONDS, MAXIMUM_SECONDS_PER_HEARTBEAT
)
TRAILING_HEARTBEAT_SECONDS = 60


def gap_duration(
    current: int,
    following: int,
    cap: int = EFFECTIVE_HEARTBEAT_SECONDS_LIMIT,
) -> int:
    """
    Compute the active duration between two consecutive timestamps.

    Args:
        current: Timestamp of the heartbeat being measured.
        following: Timestamp of the next heartbeat.
        cap: Maximum seconds a single heartbeat may account for.

    Returns:
        0 for duplicate or out-of-order timestamps, otherwise the gap
        limited to cap.
    """
    delta = following - current
    if delta <= 0:
        return 0
    return min(delta, cap)


def build_timed_heartbeats(
    heartbeats: Iterable[Heartbeat],
    cap: int = EFFECTIVE_HEARTBEAT_SECONDS_LIMIT,
    trailing_seconds: int = TRAILING_HEARTBEAT_SECONDS,
) -> list[TimedHeartbeat]:
    """
    Turn unordered heartbeats into ordered heartbeats with durations.

    The input is stably sorted by timestamp. Each heartbeat is worth the gap
    to its successor (see gap_duration); the last one is worth
    trailing_seconds. Zero-duration results are dropped.

    Args:
        heartbeats: Heartbeats in any order.
        cap: Per-heartbeat ceiling in seconds.
        trailing_seconds: Duration given to the final heartbeat.

    Returns:
        Timed heartbeats ordered by timestamp, all with positive duration.
    """
    ordered = sorted(heartbeats, key=lambda hb: hb.timestamp)

    timed: list[TimedHeartbeat] = []
    for index, heartbeat in enumerate(ordered):
        if index + 1 < len(ordered):
            duration = gap_duration(
                heartbeat.timestamp, ordered[index + 1].timestamp, cap
            )
        else:
            duration = trailing_seconds

        if duration > 0:
            timed.append(TimedHeartbeat.from_heartbeat(heartbeat, duration))

    return timed


def daily_total_seconds(
    heartbeats: Iterable[Heartbeat],
    cap: int = EFFECTIVE_HEARTBEAT_SECONDS_LIMIT,
    trailing_seconds: int = TRAILING_HEARTBEAT_SECONDS,
) -> int:
    """
    Sum the inferred durations of a heartbeat set.

    Used for the one-line status total, typically over the heartbeats read
    with HeartbeatStore.query_after(start_of_today).
    """
    timestamps = sorted(hb.timestamp for hb in heartbeats)
    if not timestamps:
        return 0

    total = trailing_seconds
    for current, following in zip(timestamps, timestamps[1:]):
        total += gap_duration(current, following, cap)
    return total
