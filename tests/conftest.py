import itertools
from datetime import datetime

import pytest

from heartbeat_tracker.models import Heartbeat, Source
from heartbeat_tracker.store import HeartbeatStore

_ids = itertools.count()

# Wednesday, mid-month, so week and month windows both have room on each side.
NOW = datetime(2026, 10, 14, 15, 30, 0)


def ts(moment: datetime) -> int:
    return int(moment.timestamp())


def make_hb(
    timestamp: int,
    file_path: str = "src/app.py",
    language: str = "py",
    project: str = "demo",
    branch: str = "main",
    source: Source = Source.HUMAN,
    heartbeat_id: str | None = None,
) -> Heartbeat:
    return Heartbeat(
        id=heartbeat_id or f"hb-{next(_ids)}",
        timestamp=timestamp,
        file_path=file_path,
        language=language,
        project=project,
        branch=branch,
        source=source,
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def store(tmp_path):
    """Create a temporary heartbeat store."""
    st = HeartbeatStore(tmp_path / "heartbeats.db")
    yield st
    st.close()
