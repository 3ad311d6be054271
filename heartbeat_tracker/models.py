"""
Data Model Module.

This module defines the value types shared by the store, the duration
inference engine and the report builders, plus the factory used by ingest
code to create normalized heartbeats.
"""

from __future__ import annotations

import os
import time
import uuid
from dataclasses import dataclass, fields
from enum import Enum


class Source(str, Enum):
    """Origin of the editing activity behind a heartbeat."""

    HUMAN = "human"
    AI = "ai"
    DEBUGGING = "debugging"


@dataclass(frozen=True)
class Heartbeat:
    """
    A timestamped activity signal emitted while editing a file.

    Attributes:
        id: Unique opaque identifier (primary key in the store).
        timestamp: Epoch seconds.
        file_path: Project-relative, slash-normalized path.
        language: Token derived from the file extension, may be empty.
        project: Project (workspace) name.
        branch: VCS branch name, may be empty.
        source: Who produced the activity.
    """

    id: str
    timestamp: int
    file_path: str
    language: str = ""
    project: str = ""
    branch: str = ""
    source: Source = Source.HUMAN


@dataclass(frozen=True)
class TimedHeartbeat(Heartbeat):
    """A heartbeat annotated with its inferred active duration."""

    duration_seconds: int = 0

    @classmethod
    def from_heartbeat(cls, heartbeat: Heartbeat, duration_seconds: int) -> TimedHeartbeat:
        values = {f.name: getattr(heartbeat, f.name) for f in fields(Heartbeat)}
        return cls(**values, duration_seconds=duration_seconds)


@dataclass(frozen=True)
class RankedItem:
    """A label with its summed duration, as produced by ranking."""

    label: str
    seconds: float


@dataclass(frozen=True)
class DayInsight:
    """Totals and top entries for a single weekday."""

    day_label: str
    total_seconds: float
    top_language: RankedItem | None = None
    top_file: RankedItem | None = None
    top_project: RankedItem | None = None


def normalize_file_path(file_path: str, root: str | None = None) -> str:
    """
    Normalize a file path to a project-relative, slash-separated form.

    Args:
        file_path: Absolute or relative path as reported by the editor.
        root: Project root. When given and the path lies under it, the
            result is relative to it.

    Returns:
        The normalized path without leading slashes.
    """
    path = file_path.replace("\\", "/")
    if root:
        prefix = root.replace("\\", "/").rstrip("/") + "/"
        if path.startswith(prefix):
            path = path[len(prefix):]
    return path.lstrip("/")


def language_from_path(file_path: str) -> str:
    """Return the file extension without the dot ("" when there is none)."""
    return os.path.splitext(file_path.replace("\\", "/"))[1].lstrip(".")


def new_heartbeat(
    file_path: str,
    project: str = "",
    branch: str = "",
    source: Source | str = Source.HUMAN,
    timestamp: int | None = None,
    root: str | None = None,
    heartbeat_id: str | None = None,
) -> Heartbeat:
    """
    Create a normalized heartbeat for the given file.

    Args:
        file_path: Path of the edited file.
        project: Project name.
        branch: Current branch name.
        source: Activity source. Strings are coerced to Source.
        timestamp: Epoch seconds. Defaults to now.
        root: Project root used to make file_path relative.
        heartbeat_id: Explicit id. Defaults to a random UUID4.

    Returns:
        A new Heartbeat.

    Raises:
        ValueError: If source is not a known Source value.
    """
    normalized = normalize_file_path(file_path, root)
    return Heartbeat(
        id=heartbeat_id or str(uuid.uuid4()),
        timestamp=int(time.time()) if timestamp is None else int(timestamp),
        file_path=normalized,
        language=language_from_path(normalized),
        project=project or "",
        branch=branch or "",
        source=Source(source),
    )
