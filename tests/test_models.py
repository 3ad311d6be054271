"""
Heartbeat model tests.
"""

import dataclasses

import pytest

from heartbeat_tracker.models import (
    Heartbeat,
    Source,
    TimedHeartbeat,
    language_from_path,
    new_heartbeat,
    normalize_file_path,
)


def test_heartbeat_is_immutable():
    hb = Heartbeat(id="a", timestamp=1, file_path="x.py")
    with pytest.raises(dataclasses.FrozenInstanceError):
        hb.timestamp = 2


def test_timed_heartbeat_from_heartbeat():
    hb = Heartbeat(id="a", timestamp=1, file_path="x.py", source=Source.DEBUGGING)
    timed = TimedHeartbeat.from_heartbeat(hb, 42)
    assert timed.duration_seconds == 42
    assert timed.source is Source.DEBUGGING
    assert timed.id == "a"


def test_normalize_file_path():
    assert normalize_file_path("C:\\work\\proj\\src\\a.py", "C:\\work\\proj") == "src/a.py"
    assert normalize_file_path("/home/me/proj/lib/b.rs", "/home/me/proj/") == "lib/b.rs"
    assert normalize_file_path("/elsewhere/c.go", "/home/me/proj") == "elsewhere/c.go"


def test_language_from_path():
    assert language_from_path("src/app.tsx") == "tsx"
    assert language_from_path("Makefile") == ""
    assert language_from_path("dir.v2/README") == ""


def test_new_heartbeat_defaults():
    hb = new_heartbeat("/repo/src/main.py", project="repo", root="/repo", timestamp=99)
    assert hb.file_path == "src/main.py"
    assert hb.language == "py"
    assert hb.project == "repo"
    assert hb.branch == ""
    assert hb.source is Source.HUMAN
    assert hb.timestamp == 99
    assert len(hb.id) == 36


def test_new_heartbeat_ids_are_unique():
    assert new_heartbeat("a.py").id != new_heartbeat("a.py").id


def test_new_heartbeat_source_coercion():
    assert new_heartbeat("a.py", source="ai").source is Source.AI
    with pytest.raises(ValueError):
        new_heartbeat("a.py", source="robot")
