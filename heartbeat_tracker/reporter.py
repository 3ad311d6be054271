"""
Report Output Module.

This module formats computed report values as text, writes Markdown report
files, and prints progress and results to the console.
"""

from __future__ import annotations

import os
from datetime import datetime
from typing import Any

from heartbeat_tracker.compare import format_change
from heartbeat_tracker.dashboard import featured_project_label
from heartbeat_tracker.models import RankedItem
from heartbeat_tracker.processor import MINIMUM_DISPLAY_SECONDS, truncate_middle


def format_duration(seconds: float) -> str:
    """
    Format seconds as "Xh Ym" or "Ym".

    Durations below MINIMUM_DISPLAY_SECONDS show as "0m".
    """
    if seconds < MINIMUM_DISPLAY_SECONDS:
        return "0m"

    minutes = int(seconds // 60)
    hours, rest = divmod(minutes, 60)
    if hours == 0:
        return f"{minutes}m"
    return f"{hours}h {rest}m"


def format_status_text(total_seconds: float) -> str:
    """Format the one-line daily total, e.g. "2hrs, 5 mins coding"."""
    safe_seconds = max(0, int(total_seconds))
    total_minutes = safe_seconds // 60
    hours, minutes = divmod(total_minutes, 60)
    if hours == 0:
        return f"{total_minutes} mins coding"
    return f"{hours}hrs, {minutes} mins coding"


def format_bytes(size: int) -> str:
    """Format a byte count in megabytes with one or two decimals."""
    if size <= 0:
        return "0 MB"

    value_mb = size / (1024 * 1024)
    if value_mb >= 10:
        return f"{value_mb:.1f} MB"
    return f"{value_mb:.2f} MB"


def format_ranked_item(
    item: RankedItem | None,
    fallback: str,
    max_length: int = 40,
    uppercase: bool = False,
) -> str:
    """Format "label (duration)" for a single top entry."""
    label = item.label if item else fallback
    if uppercase:
        label = label.upper()
    seconds = item.seconds if item else 0
    return f"{truncate_middle(label, max_length)} ({format_duration(seconds)})"


def format_rank_list(items: list[RankedItem], empty_message: str) -> list[str]:
    """Format a numbered ranking, or a single placeholder line."""
    if not items:
        return [f"- {empty_message}: 0m"]
    return [
        f"{index}. {item.label}: {format_duration(item.seconds)}"
        for index, item in enumerate(items, start=1)
    ]


def build_report_lines(report: dict[str, Any]) -> list[str]:
    """
    Render a report from ReportBuilder.build as Markdown lines.

    Args:
        report: The report dictionary.

    Returns:
        The lines of the rendered report.
    """
    totals = report["totals"]
    last_week = report["last_week"]
    featured = report["featured"]

    lines = [
        "## Coding time",
        f"- Today: {format_duration(totals['today'])}",
        f"- Yesterday: {format_duration(totals['yesterday'])}",
        f"- Week: {format_duration(totals['week'])}",
        f"- Month: {format_duration(totals['month'])}",
        "",
        "## Last week",
        f"- Total: {format_duration(last_week['total_seconds'])}",
        f"- Active days: {last_week['active_days']}",
        f"- Average per active day: {format_duration(last_week['average_per_active_day'])}",
        f"- Comparison: {format_change(report['comparison'])}",
        "",
        "## Top languages (month)",
        *format_rank_list(report["top_languages"], "No language this month"),
        "",
        "## Top projects (month)",
        *format_rank_list(report["top_projects"], "No project this month"),
        "",
        "## Featured project",
        f"- Project: {featured_project_label(featured)}",
        f"- Time this month: {format_duration(featured['project'].seconds if featured['project'] else 0)}",
        f"- Branch: {format_ranked_item(featured['top_branch'], 'No branch')}",
        f"- File: {format_ranked_item(featured['top_file'], 'No file', max_length=36)}",
        f"- Language: {format_ranked_item(featured['top_language'], 'No language', uppercase=True)}",
        "",
        "## This week by day",
    ]

    for day in report["week_days"]:
        lines.append(
            f"- {day.day_label} {format_duration(day.total_seconds)} | "
            f"{format_ranked_item(day.top_language, 'No language', 26, uppercase=True)} | "
            f"{format_ranked_item(day.top_file, 'No file', 24)} | "
            f"{format_ranked_item(day.top_project, 'No project', 24)}"
        )

    all_time = report["all_time"]
    lines.extend(
        [
            "",
            "## All time languages",
            *format_rank_list(all_time["languages"], "No language recorded"),
            "",
            f"## Projects (last {all_time['lookback_days']} days)",
            *format_rank_list(all_time["projects"], "No project recorded"),
        ]
    )
    return lines


class ReportGenerator:
    """
    Generator for creating and saving Markdown coding reports.

    Attributes:
        output_dir: Directory path where reports will be saved.

    Example:
        >>> generator = ReportGenerator("./reports")
        >>> filepath = generator.save(report, now)
    """

    def __init__(self, output_dir: str = "./reports") -> None:
        self.output_dir = output_dir

    def generate_markdown(self, report: dict[str, Any], now: datetime) -> str:
        """
        Generate complete Markdown report content.

        Args:
            report: The report dictionary from ReportBuilder.build.
            now: The reference time of the report.

        Returns:
            The complete Markdown report as a string.
        """
        body = "\n".join(build_report_lines(report))
        return f"""# Coding report
> Generated: {now.strftime('%Y-%m-%d %H:%M')}

---

{body}
"""

    def save(self, report: dict[str, Any], now: datetime) -> str:
        """
        Save the report to a Markdown file.

        Creates the output directory if it doesn't exist.

        Returns:
            The path to the saved report file.
        """
        os.makedirs(self.output_dir, exist_ok=True)

        filename = os.path.join(
            self.output_dir, f"report_{now.strftime('%Y-%m-%d')}.md"
        )
        with open(filename, "w", encoding="utf-8") as f:
            f.write(self.generate_markdown(report, now))

        return filename


class ConsolePrinter:
    """
    Utility class for console output.

    All methods are static and print progress messages, store information
    and reports to the console with consistent formatting.
    """

    @staticmethod
    def print_header() -> None:
        """Print the application header banner."""
        print("=" * 50)
        print("Heartbeat Tracker")
        print("=" * 50)

    @staticmethod
    def print_period(period_name: str, start: datetime, end: datetime) -> None:
        print(
            f"\n{period_name}: "
            f"{start.strftime('%Y-%m-%d')} ~ {end.strftime('%Y-%m-%d')}"
        )

    @staticmethod
    def print_collecting() -> None:
        print("\nCollecting editor events from ActivityWatch...")

    @staticmethod
    def print_imported(found: int, inserted: int) -> None:
        """
        Print the outcome of an import.

        Args:
            found: Heartbeats read from ActivityWatch.
            inserted: Heartbeats that were new to the store.
        """
        print(f"   - Heartbeats found: {found}")
        print(f"   - New heartbeats stored: {inserted}")

    @staticmethod
    def print_store_info(stats: dict[str, Any]) -> None:
        """
        Print store size and ceiling information.

        Args:
            stats: Dictionary from HeartbeatStore.stats.
        """
        size = format_bytes(stats["size_bytes"])
        if stats["count"] > 0:
            print(f"   - Store size: {size} ({stats['count']} heartbeats)")
        else:
            print(f"   - Store size: 0 MB (0 heartbeats, base file: {size})")
        print(
            f"   - Ceiling: {stats['ceiling_mb']} MB "
            f"(allowed {stats['min_ceiling_mb']}-{stats['max_ceiling_mb']} MB)"
        )

    @staticmethod
    def print_status(total_seconds: float) -> None:
        print(format_status_text(total_seconds))

    @staticmethod
    def print_saved(filename: str) -> None:
        print(f"\nReport saved: {filename}")

    @staticmethod
    def print_message(message: str) -> None:
        print(message)

    @staticmethod
    def print_report(report: dict[str, Any]) -> None:
        """
        Print the full report.

        Args:
            report: The report dictionary from ReportBuilder.build.
        """
        print("\n" + "=" * 50)
        print("Coding report")
        print("=" * 50)
        print("\n".join(build_report_lines(report)))
        print("\n" + "=" * 50)

    @staticmethod
    def print_error(message: str) -> None:
        print(f"Error: {message}")
