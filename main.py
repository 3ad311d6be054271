#!/usr/bin/env python3
"""
Heartbeat Tracker v0.3.

Coding time accounting from editor heartbeats.
This module provides the CLI entry point for the application.
"""

from __future__ import annotations

import argparse
import logging
import sqlite3
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

import requests
import yaml

from heartbeat_tracker.collector import DEFAULT_EDITOR_WATCHERS, ActivityWatchCollector
from heartbeat_tracker.dashboard import ReportBuilder
from heartbeat_tracker.durations import daily_total_seconds
from heartbeat_tracker.models import Heartbeat
from heartbeat_tracker.ranges import (
    get_custom_range,
    get_today_range,
    get_week_range,
    start_of_day,
)
from heartbeat_tracker.reporter import ConsolePrinter, ReportGenerator
from heartbeat_tracker.store import (
    DEFAULT_CEILING_MB,
    HeartbeatStore,
    StoreClearError,
    StoreError,
)

logger = logging.getLogger("heartbeat_tracker")


def load_config(config_path: str = "config/config.yaml") -> dict[str, Any]:
    """
    Load configuration from a YAML file.

    Sections missing from the file are filled in from the defaults.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Configuration dictionary. Returns default config if file not found.
    """
    config = get_default_config()
    path = Path(config_path)
    if not path.exists():
        print(f"Warning: config file not found: {config_path}, using defaults")
        return config

    with open(path, encoding="utf-8") as f:
        loaded = yaml.safe_load(f) or {}

    for key, value in loaded.items():
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            config[key].update(value)
        else:
            config[key] = value
    return config


def get_default_config() -> dict[str, Any]:
    """
    Get the default configuration.

    Returns:
        Default configuration dictionary with all required settings.
    """
    return {
        "store": {
            "path": "~/.heartbeat-tracker/heartbeats.db",
            "ceiling_mb": DEFAULT_CEILING_MB,
        },
        "activitywatch": {"host": "http://localhost:5600"},
        "editor_watchers": list(DEFAULT_EDITOR_WATCHERS),
        "output": {"reports_dir": "./reports"},
        "logging": {"level": "INFO"},
    }


def save_config(config: dict[str, Any], config_path: str = "config/config.yaml") -> None:
    """
    Write the configuration back to a YAML file.

    Args:
        config: Configuration dictionary.
        config_path: Path to the configuration file. Parent directories
            are created.
    """
    path = Path(config_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config, f, sort_keys=False, allow_unicode=True)


def setup_logging(level: str = "INFO", verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        description="Heartbeat Tracker - coding time reports from editor heartbeats"
    )
    parser.add_argument(
        "--config",
        type=str,
        default="config/config.yaml",
        help="Config file path. Default: config/config.yaml",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    report = subparsers.add_parser("report", help="Print the coding report")
    report.add_argument(
        "--save",
        action="store_true",
        help="Also save the report as Markdown in the reports directory",
    )

    subparsers.add_parser("status", help="Print today's coding total")

    importer = subparsers.add_parser(
        "import", help="Import editor events from ActivityWatch"
    )
    importer.add_argument(
        "--period",
        choices=["day", "week"],
        default="day",
        help="Import period: day (today) or week (this week). Default: day",
    )
    importer.add_argument(
        "--start",
        type=str,
        help="Start date (format: YYYY-MM-DD) for custom period",
    )
    importer.add_argument(
        "--end",
        type=str,
        help="End date (format: YYYY-MM-DD) for custom period",
    )

    ceiling = subparsers.add_parser("set-ceiling", help="Set the store size ceiling")
    ceiling.add_argument("megabytes", help="Ceiling in MB (15-100)")

    subparsers.add_parser("clear", help="Delete every stored heartbeat")
    subparsers.add_parser("info", help="Print store size and ceiling")

    return parser.parse_args(argv)


def open_store(config: dict[str, Any]) -> HeartbeatStore:
    """Create the single store instance shared by every command."""
    store_config = config["store"]
    return HeartbeatStore(
        store_config["path"],
        ceiling_mb=store_config.get("ceiling_mb", DEFAULT_CEILING_MB),
    )


def read_heartbeats(store: HeartbeatStore, after: int | None = None) -> list[Heartbeat]:
    """Read heartbeats, degrading to no data when the store fails."""
    try:
        if after is None:
            return store.query_all()
        return store.query_after(after)
    except (StoreError, sqlite3.Error) as e:
        logger.warning("Could not read heartbeats, reporting no data: %s", e)
        return []


def run_report(store: HeartbeatStore, config: dict[str, Any], save: bool) -> None:
    printer = ConsolePrinter()
    now = datetime.now()

    report = ReportBuilder().build(read_heartbeats(store), now)
    printer.print_report(report)

    if save:
        reporter = ReportGenerator(config["output"]["reports_dir"])
        printer.print_saved(reporter.save(report, now))


def run_status(store: HeartbeatStore) -> None:
    today = int(start_of_day(datetime.now()).timestamp())
    heartbeats = read_heartbeats(store, after=today - 1)
    ConsolePrinter.print_status(daily_total_seconds(heartbeats))


def run_import(store: HeartbeatStore, config: dict[str, Any], args: argparse.Namespace) -> None:
    printer = ConsolePrinter()

    if args.start and args.end:
        start, end = get_custom_range(args.start, args.end)
        period_name = "Custom period"
    elif args.period == "week":
        start, end = get_week_range(datetime.now())
        period_name = "This week"
    else:
        start, end = get_today_range(datetime.now())
        period_name = "Today"

    printer.print_period(period_name, start, end)
    printer.print_collecting()

    collector = ActivityWatchCollector(config["activitywatch"]["host"])
    try:
        heartbeats = collector.collect_heartbeats(
            start, end, config.get("editor_watchers") or None
        )
    except requests.RequestException as e:
        printer.print_error(f"Data collection failed: {e}")
        printer.print_error("Please verify ActivityWatch is running")
        sys.exit(1)

    inserted = store.append(heartbeats)
    printer.print_imported(len(heartbeats), inserted)


def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the heartbeat tracker.

    This function orchestrates the workflow:
    1. Load configuration and set up logging
    2. Open the heartbeat store
    3. Run the requested command
    4. Close the store
    """
    args = parse_args(argv)
    config = load_config(args.config)
    setup_logging(config.get("logging", {}).get("level", "INFO"), args.verbose)

    printer = ConsolePrinter()
    store = open_store(config)

    try:
        if args.command == "report":
            run_report(store, config, args.save)
        elif args.command == "status":
            run_status(store)
        elif args.command == "import":
            run_import(store, config, args)
        elif args.command == "set-ceiling":
            ceiling = store.set_ceiling_mb(args.megabytes)
            config["store"]["ceiling_mb"] = ceiling
            save_config(config, args.config)
            printer.print_message(f"Ceiling set to {ceiling} MB")
            printer.print_store_info(store.stats())
        elif args.command == "clear":
            try:
                store.clear_all()
            except StoreClearError as e:
                printer.print_error(str(e))
                sys.exit(1)
            printer.print_message("All heartbeats deleted")
            printer.print_store_info(store.stats())
        elif args.command == "info":
            printer.print_header()
            printer.print_store_info(store.stats())
    finally:
        store.close()


if __name__ == "__main__":
    main()
