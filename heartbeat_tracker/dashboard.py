"""
Report Builder Module.

This module composes the aggregation primitives into the coding reports:
period totals, last-week metrics, week-over-week comparison, monthly
rankings, the featured project drill-down, per-weekday insights and the
all-time views. Every builder is relative to a caller-supplied "now".
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from heartbeat_tracker.compare import calculate_change
from heartbeat_tracker.durations import build_timed_heartbeats
from heartbeat_tracker.models import DayInsight, Heartbeat, TimedHeartbeat
from heartbeat_tracker.processor import (
    NO_PROJECT,
    branch_key,
    file_key,
    filter_by_range,
    group_duration_by,
    language_key,
    project_key,
    sum_in_range,
    top_one,
    top_ranked,
    upper_language_key,
)
from heartbeat_tracker.ranges import (
    get_day_ranges,
    get_last_week_range,
    get_lookback_range,
    get_month_range,
    get_today_range,
    get_week_range,
    get_yesterday_range,
    to_ms,
)

DAY_LABELS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
TOP_LIMIT = 3


def _window_ms(window: tuple[datetime, datetime]) -> tuple[int, int]:
    return to_ms(window[0]), to_ms(window[1])


def build_period_totals(
    timed: list[TimedHeartbeat],
    now: datetime,
) -> dict[str, int]:
    """
    Sum coding time for today, yesterday, this week and this month.

    Returns:
        Dictionary with "today", "yesterday", "week" and "month" seconds.
    """
    return {
        "today": sum_in_range(timed, *_window_ms(get_today_range(now))),
        "yesterday": sum_in_range(timed, *_window_ms(get_yesterday_range(now))),
        "week": sum_in_range(timed, *_window_ms(get_week_range(now))),
        "month": sum_in_range(timed, *_window_ms(get_month_range(now))),
    }


def build_last_week(timed: list[TimedHeartbeat], now: datetime) -> dict[str, Any]:
    """
    Compute last week's totals.

    Returns:
        Dictionary containing:
            - total_seconds: Seconds over the whole of last week
            - daily_seconds: Seven per-day totals, Monday first
            - active_days: Days with a non-zero total
            - average_per_active_day: total // active_days, or 0
    """
    window = get_last_week_range(now)
    total = sum_in_range(timed, *_window_ms(window))
    daily = [
        sum_in_range(timed, *_window_ms(day)) for day in get_day_ranges(window[0], 7)
    ]
    active_days = sum(1 for seconds in daily if seconds > 0)

    return {
        "total_seconds": total,
        "daily_seconds": daily,
        "active_days": active_days,
        "average_per_active_day": total // active_days if active_days else 0,
    }


def build_featured_project(month: list[TimedHeartbeat]) -> dict[str, Any]:
    """
    Drill into the project with the most time in the month.

    Branch, file and language tops are ranked only over the featured
    project's heartbeats.

    Args:
        month: Timed heartbeats already filtered to the month window.

    Returns:
        Dictionary with "project" (RankedItem or None) and "top_branch",
        "top_file", "top_language". The tops are None without a project.
    """
    project = top_one(group_duration_by(month, project_key))
    if project is None:
        return {
            "project": None,
            "top_branch": None,
            "top_file": None,
            "top_language": None,
        }

    project_heartbeats = [hb for hb in month if project_key(hb) == project.label]
    return {
        "project": project,
        "top_branch": top_one(group_duration_by(project_heartbeats, branch_key)),
        "top_file": top_one(group_duration_by(project_heartbeats, file_key)),
        "top_language": top_one(group_duration_by(project_heartbeats, language_key)),
    }


def build_week_days(timed: list[TimedHeartbeat], now: datetime) -> list[DayInsight]:
    """Build one DayInsight per weekday of the current week, Monday first."""
    week_start, _ = get_week_range(now)
    insights: list[DayInsight] = []

    for label, day in zip(DAY_LABELS, get_day_ranges(week_start, 7)):
        day_heartbeats = filter_by_range(timed, *_window_ms(day))
        insights.append(
            DayInsight(
                day_label=label,
                total_seconds=sum(hb.duration_seconds for hb in day_heartbeats),
                top_language=top_one(group_duration_by(day_heartbeats, language_key)),
                top_file=top_one(group_duration_by(day_heartbeats, file_key)),
                top_project=top_one(group_duration_by(day_heartbeats, project_key)),
            )
        )

    return insights


def build_all_time(
    timed: list[TimedHeartbeat],
    now: datetime,
    limit: int = 10,
) -> dict[str, Any]:
    """
    Build the global views over the whole store.

    Language totals span every stored heartbeat. Project totals span a
    lookback window reaching back to the day of the oldest heartbeat.

    Returns:
        Dictionary with "languages", "projects" (ranked lists) and
        "lookback_days".
    """
    oldest = datetime.fromtimestamp(timed[0].timestamp) if timed else None
    lookback = get_lookback_range(now, oldest)
    lookback_heartbeats = filter_by_range(timed, *_window_ms(lookback))

    return {
        "languages": top_ranked(group_duration_by(timed, upper_language_key), limit),
        "projects": top_ranked(
            group_duration_by(lookback_heartbeats, project_key), limit
        ),
        "lookback_days": (now.date() - lookback[0].date()).days,
    }


class ReportBuilder:
    """
    Builds the full coding report from raw heartbeats.

    This class runs duration inference once and feeds the result to every
    section builder.

    Attributes:
        top_limit: Number of entries in the monthly rankings.

    Example:
        >>> builder = ReportBuilder()
        >>> report = builder.build(store.query_all(), datetime.now())
        >>> report["totals"]["today"]
        5400
    """

    def __init__(self, top_limit: int = TOP_LIMIT) -> None:
        self.top_limit = top_limit

    def build(self, heartbeats: Iterable[Heartbeat], now: datetime) -> dict[str, Any]:
        """
        Build every report section.

        Args:
            heartbeats: Raw heartbeats in any order.
            now: Reference time (naive local datetime).

        Returns:
            Dictionary containing:
                - totals: Seconds for today/yesterday/week/month
                - last_week: Last week's totals and active-day metrics
                - comparison: This week against last week
                - top_languages: Top languages of the month (upper-cased)
                - top_projects: Top projects of the month
                - featured: Featured project drill-down
                - week_days: Per-weekday insights
                - all_time: Global language/project views
                - heartbeat_count: Number of timed heartbeats
        """
        timed = build_timed_heartbeats(heartbeats)
        month = filter_by_range(timed, *_window_ms(get_month_range(now)))

        totals = build_period_totals(timed, now)
        last_week = build_last_week(timed, now)

        return {
            "totals": totals,
            "last_week": last_week,
            "comparison": calculate_change(totals["week"], last_week["total_seconds"]),
            "top_languages": top_ranked(
                group_duration_by(month, upper_language_key), self.top_limit
            ),
            "top_projects": top_ranked(
                group_duration_by(month, project_key), self.top_limit
            ),
            "featured": build_featured_project(month),
            "week_days": build_week_days(timed, now),
            "all_time": build_all_time(timed, now),
            "heartbeat_count": len(timed),
        }

    @staticmethod
    def empty(now: datetime) -> dict[str, Any]:
        """Build the "no data" report used when the store cannot be read."""
        return ReportBuilder().build([], now)


def featured_project_label(featured: dict[str, Any]) -> str:
    """Return the featured project's name or a placeholder."""
    project = featured.get("project")
    return project.label if project else f"{NO_PROJECT} this month"
