"""
Heartbeat Tracker - Coding time accounting from editor heartbeats.

This package infers active coding time from heartbeat pings, aggregates it
into time-windowed reports, and stores heartbeats in a size-bounded embedded
database.
"""

from heartbeat_tracker.collector import ActivityWatchCollector
from heartbeat_tracker.dashboard import ReportBuilder
from heartbeat_tracker.durations import build_timed_heartbeats, daily_total_seconds
from heartbeat_tracker.models import (
    DayInsight,
    Heartbeat,
    RankedItem,
    Source,
    TimedHeartbeat,
    new_heartbeat,
)
from heartbeat_tracker.reporter import ConsolePrinter, ReportGenerator
from heartbeat_tracker.store import (
    HeartbeatStore,
    StoreClearError,
    StoreClosedError,
    StoreError,
    clamp_ceiling_mb,
)

__version__ = "0.3.0"

__all__ = [
    # Models
    "Heartbeat",
    "TimedHeartbeat",
    "RankedItem",
    "DayInsight",
    "Source",
    "new_heartbeat",
    # Inference
    "build_timed_heartbeats",
    "daily_total_seconds",
    # Reports
    "ReportBuilder",
    # Store
    "HeartbeatStore",
    "StoreError",
    "StoreClosedError",
    "StoreClearError",
    "clamp_ceiling_mb",
    # Collector
    "ActivityWatchCollector",
    # Reporter
    "ReportGenerator",
    "ConsolePrinter",
]
