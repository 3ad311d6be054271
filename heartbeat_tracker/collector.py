"""
Data Collection Module.

This module imports editor activity from a local ActivityWatch server. Each
event recorded by an editor watcher (aw-watcher-vscode and friends) becomes
one heartbeat, with an id derived from the bucket and event id so repeated
imports of the same range are idempotent.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any

import requests

from heartbeat_tracker.models import Heartbeat, Source, new_heartbeat

logger = logging.getLogger(__name__)

DEFAULT_EDITOR_WATCHERS = [
    "aw-watcher-vscode",
    "aw-watcher-pycharm",
    "aw-watcher-intellij",
    "aw-watcher-webstorm",
]


def to_epoch_seconds(ts_str: str) -> int | None:
    """
    Parse an ISO format timestamp into epoch seconds.

    ActivityWatch stores timestamps in UTC with an offset. Timestamps
    without an offset are taken as local time.

    Args:
        ts_str: The timestamp string to parse.

    Returns:
        Epoch seconds if parsing succeeds, None otherwise.
    """
    if not ts_str:
        return None
    try:
        parsed = datetime.fromisoformat(ts_str.replace("Z", "+00:00"))
    except ValueError:
        return None
    return int(parsed.timestamp())


def project_name(project_path: str) -> str:
    """Simplify a project path to just the directory name."""
    return project_path.replace("\\", "/").rstrip("/").split("/")[-1]


def event_to_heartbeat(bucket_id: str, event: dict[str, Any]) -> Heartbeat | None:
    """
    Convert an editor watcher event into a heartbeat.

    Args:
        bucket_id: The bucket the event came from.
        event: The raw ActivityWatch event.

    Returns:
        The heartbeat, or None if the event has no file or timestamp.
    """
    data = event.get("data", {})
    file_path = data.get("file") or ""
    timestamp = to_epoch_seconds(event.get("timestamp", ""))
    if not file_path or file_path == "unknown" or timestamp is None:
        return None

    project_path = data.get("project") or ""
    if project_path == "unknown":
        project_path = ""

    heartbeat_id = f"aw:{bucket_id}:{event['id']}" if "id" in event else None
    return new_heartbeat(
        file_path,
        project=project_name(project_path) if project_path else "",
        branch=data.get("branch") or "",
        source=Source.HUMAN,
        timestamp=timestamp,
        root=project_path or None,
        heartbeat_id=heartbeat_id,
    )


class ActivityWatchCollector:
    """
    ActivityWatch editor event importer.

    This class handles communication with the ActivityWatch server API
    to retrieve bucket information and editor events.

    Attributes:
        host: The ActivityWatch server URL.

    Example:
        >>> collector = ActivityWatchCollector("http://localhost:5600")
        >>> heartbeats = collector.collect_heartbeats(start, end)
        >>> store.append(heartbeats)
    """

    def __init__(self, host: str = "http://localhost:5600", timeout: int = 30) -> None:
        """
        Initialize the collector.

        Args:
            host: The ActivityWatch server URL. Defaults to localhost:5600.
                The AW_HOST environment variable takes precedence.
            timeout: Request timeout in seconds.
        """
        self.host = os.getenv("AW_HOST", host).rstrip("/")
        self.timeout = timeout
        self._buckets_cache: dict[str, Any] | None = None

    def get_buckets(self) -> dict[str, Any]:
        """
        Retrieve all buckets from the ActivityWatch server.

        Results are cached after the first call.

        Returns:
            A dictionary mapping bucket IDs to their metadata.

        Raises:
            requests.HTTPError: If the API request fails.
        """
        if self._buckets_cache is None:
            resp = requests.get(f"{self.host}/api/0/buckets", timeout=self.timeout)
            resp.raise_for_status()
            self._buckets_cache = resp.json()
        return self._buckets_cache

    def get_events(
        self,
        bucket_id: str,
        start: datetime,
        end: datetime,
    ) -> list[dict[str, Any]]:
        """
        Retrieve events from a specific bucket within a time range.

        Raises:
            requests.HTTPError: If the API request fails.
        """
        params = {
            "start": start.astimezone().isoformat(),
            "end": end.astimezone().isoformat(),
        }
        resp = requests.get(
            f"{self.host}/api/0/buckets/{bucket_id}/events",
            params=params,
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def find_all_buckets(self, client_prefix: str) -> list[str]:
        """
        Find all buckets matching a client name prefix.

        Args:
            client_prefix: The prefix to match against bucket client names.

        Returns:
            A list of matching bucket IDs.
        """
        buckets = self.get_buckets()
        return [
            bucket_id
            for bucket_id, info in buckets.items()
            if info.get("client", "").startswith(client_prefix)
        ]

    def collect_heartbeats(
        self,
        start: datetime,
        end: datetime,
        editor_prefixes: list[str] | None = None,
    ) -> list[Heartbeat]:
        """
        Collect editor events as heartbeats.

        Args:
            start: The start of the time range.
            end: The end of the time range.
            editor_prefixes: Editor watcher client prefixes. Defaults to
                DEFAULT_EDITOR_WATCHERS.

        Returns:
            Heartbeats from every matching bucket. Events without a file are
            skipped.

        Raises:
            requests.RequestException: If the server cannot be reached.
        """
        prefixes = editor_prefixes or DEFAULT_EDITOR_WATCHERS

        bucket_ids: list[str] = []
        for prefix in prefixes:
            for bucket_id in self.find_all_buckets(prefix):
                if bucket_id not in bucket_ids:
                    bucket_ids.append(bucket_id)

        heartbeats: list[Heartbeat] = []
        for bucket_id in bucket_ids:
            events = self.get_events(bucket_id, start, end)
            converted = [event_to_heartbeat(bucket_id, event) for event in events]
            kept = [hb for hb in converted if hb is not None]
            logger.debug(
                "Bucket %s: %d events, %d heartbeats", bucket_id, len(events), len(kept)
            )
            heartbeats.extend(kept)

        return heartbeats
