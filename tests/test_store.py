"""
Heartbeat store tests.

Covers idempotent appends, ordered queries, persistence across reopen,
ceiling clamping and eviction, clearing, schema migration, and the
behaviour on unreadable or unwritable files.
"""

import logging
import sqlite3
from pathlib import Path
from unittest import mock

import pytest
from conftest import make_hb

from heartbeat_tracker import schema
from heartbeat_tracker import store as store_module
from heartbeat_tracker.models import Source
from heartbeat_tracker.store import (
    DEFAULT_CEILING_MB,
    MAX_CEILING_MB,
    MIN_CEILING_MB,
    HeartbeatStore,
    StoreClearError,
    StoreClosedError,
    clamp_ceiling_mb,
)


def test_fresh_store_has_empty_schema_file(store):
    assert store.path.exists()
    assert store.loaded is False
    assert store.count() == 0
    assert store.size_bytes() > 0


def test_append_and_query_ordered(store):
    hbs = [make_hb(300), make_hb(100), make_hb(200)]
    assert store.append(hbs) == 3
    assert [hb.timestamp for hb in store.query_all()] == [100, 200, 300]


def test_append_is_idempotent(store):
    hb = make_hb(100, heartbeat_id="same")
    assert store.append([hb]) == 1
    first = store.query_all()

    assert store.append([hb]) == 0
    assert store.query_all() == first


def test_append_does_not_overwrite(store):
    store.append([make_hb(100, heartbeat_id="x", project="original")])
    store.append([make_hb(999, heartbeat_id="x", project="changed")])

    (stored,) = store.query_all()
    assert stored.project == "original"
    assert stored.timestamp == 100


def test_append_empty_batch(store):
    assert store.append([]) == 0


def test_round_trip_fields(store):
    hb = make_hb(
        1234,
        file_path="pkg/mod.py",
        language="",
        project="",
        branch="",
        source=Source.AI,
    )
    store.append([hb])
    assert store.query_all() == [hb]


def test_query_after_is_exclusive(store):
    store.append([make_hb(t) for t in (100, 200, 300)])
    assert [hb.timestamp for hb in store.query_after(200)] == [300]
    assert [hb.timestamp for hb in store.query_after(99)] == [100, 200, 300]


def test_delete_by_ids(store):
    store.append([make_hb(1, heartbeat_id="a"), make_hb(2, heartbeat_id="b")])
    assert store.delete_by_ids(["a", "unknown"]) == 1
    assert [hb.id for hb in store.query_all()] == ["b"]
    assert store.delete_by_ids(["unknown"]) == 0
    assert store.delete_by_ids([]) == 0


def test_reopen_keeps_data(tmp_path):
    path = tmp_path / "heartbeats.db"
    first = HeartbeatStore(path)
    first.append([make_hb(10, heartbeat_id="kept")])
    first.close()

    second = HeartbeatStore(path)
    assert second.loaded is True
    assert [hb.id for hb in second.query_all()] == ["kept"]
    second.close()


def test_write_is_atomic_and_leaves_no_temp_files(store):
    store.append([make_hb(t) for t in range(50)])
    leftovers = [p for p in store.path.parent.iterdir() if p.name.endswith(".tmp")]
    assert leftovers == []


@pytest.mark.parametrize(
    "value,expected",
    [
        (20, 20),
        (15, 15),
        (100, 100),
        (5, MIN_CEILING_MB),
        (500, MAX_CEILING_MB),
        (42.6, 43),
        ("30", 30),
        ("abc", DEFAULT_CEILING_MB),
        (None, DEFAULT_CEILING_MB),
        (float("nan"), DEFAULT_CEILING_MB),
        (float("inf"), DEFAULT_CEILING_MB),
    ],
)
def test_clamp_ceiling_mb(value, expected):
    assert clamp_ceiling_mb(value) == expected


def test_set_ceiling_mb_clamps(store):
    assert store.set_ceiling_mb(1000) == MAX_CEILING_MB
    assert store.ceiling_mb == MAX_CEILING_MB
    assert store.set_ceiling_mb("nope") == DEFAULT_CEILING_MB


def test_clear_all_leaves_base_schema(store):
    store.append([make_hb(t) for t in range(100)])
    store.set_ceiling_mb(15)

    store.clear_all()

    assert store.count() == 0
    assert store.size_bytes() > 0
    assert store.loaded is False
    # The store stays usable after clearing.
    store.append([make_hb(1)])
    assert store.count() == 1


def test_clear_all_reports_leftover_rows(store, monkeypatch):
    monkeypatch.setattr(store, "count", lambda: 1)
    with pytest.raises(StoreClearError):
        store.clear_all()


def test_clear_all_fails_when_file_cannot_be_replaced(tmp_path, monkeypatch):
    path = tmp_path / "stuck.db"
    st = HeartbeatStore(path)
    st.append([make_hb(t) for t in range(10)])

    monkeypatch.setattr(Path, "unlink", mock.Mock(side_effect=PermissionError("denied")))
    monkeypatch.setattr(store_module.os, "replace", mock.Mock(side_effect=OSError("ro")))

    with pytest.raises(StoreClearError):
        st.clear_all()
    # In-memory state is restored to what is still on disk.
    assert st.count() == 10

    monkeypatch.undo()
    st.close()
    reopened = HeartbeatStore(path)
    assert reopened.count() == 10
    reopened.close()


def test_constructor_clamps_ceiling_once(tmp_path):
    with mock.patch.object(
        store_module, "clamp_ceiling_mb", wraps=clamp_ceiling_mb
    ) as clamp:
        st = HeartbeatStore(tmp_path / "once.db", ceiling_mb=500)

    assert clamp.call_count == 1
    assert st.ceiling_mb == MAX_CEILING_MB
    st.close()


def test_eviction_converges_and_keeps_newest(tmp_path, monkeypatch):
    # Scale megabytes down to 4 KiB pages so the ceiling is easy to exceed.
    monkeypatch.setattr(store_module, "BYTES_PER_MB", 4096)
    st = HeartbeatStore(
        tmp_path / "small.db", ceiling_mb=MIN_CEILING_MB, eviction_batch_size=100
    )
    ceiling_bytes = MIN_CEILING_MB * 4096

    hbs = [
        make_hb(
            1_000_000 + t,
            file_path=f"src/module_{t}/file_{t}.py",
            heartbeat_id=f"{t:08d}-0000-4000-8000-000000000000",
        )
        for t in range(3000)
    ]
    st.append(hbs)

    assert st.size_bytes() <= ceiling_bytes or st.count() == 0
    remaining = [hb.timestamp for hb in st.query_all()]
    assert 0 < len(remaining) < 3000
    # Oldest-first: what is left is the newest tail.
    assert remaining == [hb.timestamp for hb in hbs[-len(remaining):]]
    st.close()


def test_eviction_is_bounded(tmp_path, monkeypatch):
    monkeypatch.setattr(store_module, "BYTES_PER_MB", 4096)
    st = HeartbeatStore(
        tmp_path / "bounded.db",
        ceiling_mb=MIN_CEILING_MB,
        eviction_batch_size=1,
        max_eviction_rounds=3,
    )
    st.append([make_hb(t, file_path=f"f/{t}.py") for t in range(2000)])
    assert st.count() == 1997
    st.close()


def test_closed_store_rejects_calls(tmp_path):
    st = HeartbeatStore(tmp_path / "closed.db")
    st.close()
    st.close()

    assert st.closed
    with pytest.raises(StoreClosedError):
        st.count()
    with pytest.raises(StoreClosedError):
        st.append([make_hb(1)])


def test_corrupt_file_starts_fresh(tmp_path, caplog):
    path = tmp_path / "corrupt.db"
    path.write_bytes(b"this is not a sqlite database" * 10)

    with caplog.at_level(logging.WARNING, logger="heartbeat_tracker.store"):
        st = HeartbeatStore(path)

    assert st.count() == 0
    assert st.loaded is False
    assert "starting fresh" in caplog.text
    st.append([make_hb(1)])
    st.close()

    reopened = HeartbeatStore(path)
    assert reopened.count() == 1
    reopened.close()


def test_failed_write_keeps_previous_file(store, monkeypatch, caplog):
    store.append([make_hb(1)])
    before = store.path.read_bytes()

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(store_module.os, "replace", broken_replace)
    with caplog.at_level(logging.WARNING, logger="heartbeat_tracker.store"):
        assert store.append([make_hb(2)]) == 0

    # Memory matches the file: the unsaved heartbeat is gone.
    assert store.count() == 1
    assert store.path.read_bytes() == before
    assert "Failed to write" in caplog.text
    assert [p for p in store.path.parent.iterdir() if p.name.endswith(".tmp")] == []


def test_failed_delete_is_rolled_back(store, monkeypatch):
    store.append([make_hb(1, heartbeat_id="a"), make_hb(2, heartbeat_id="b")])
    monkeypatch.setattr(store_module.os, "replace", mock.Mock(side_effect=OSError("ro")))

    assert store.delete_by_ids(["a"]) == 0
    assert [hb.id for hb in store.query_all()] == ["a", "b"]


def test_failed_eviction_round_is_rolled_back(tmp_path, monkeypatch):
    st = HeartbeatStore(tmp_path / "evict.db")
    st.append([make_hb(t, file_path=f"f/{t}.py") for t in range(200)])

    monkeypatch.setattr(store_module, "BYTES_PER_MB", 1)
    monkeypatch.setattr(store_module.os, "replace", mock.Mock(side_effect=OSError("ro")))

    assert st.enforce_ceiling() == 0
    assert st.count() == 200

    monkeypatch.undo()
    st.close()
    reopened = HeartbeatStore(tmp_path / "evict.db")
    assert reopened.count() == 200
    reopened.close()


def test_legacy_schema_is_migrated(tmp_path):
    path = tmp_path / "legacy.db"
    conn = sqlite3.connect(path)
    conn.executescript(schema.LEGACY_SCHEMA_V1)
    conn.execute(
        "INSERT INTO heartbeats "
        "(id, timestamp, filePath, language, project, editor, branch, os, sent) "
        "VALUES ('old', 50, 'a/b.py', 'py', 'legacy', 'VS Code', 'main', 'Linux', 1)"
    )
    conn.commit()
    conn.close()

    st = HeartbeatStore(path)
    (hb,) = st.query_all()
    assert (hb.id, hb.project, hb.branch, hb.source) == ("old", "legacy", "main", Source.HUMAN)
    st.close()

    check = sqlite3.connect(path)
    assert schema.get_version(check) == schema.SCHEMA_VERSION
    columns = [row[1] for row in check.execute("PRAGMA table_info(heartbeats)")]
    assert columns == list(schema.COLUMNS)
    check.close()


def test_stats(store):
    store.append([make_hb(1)])
    stats = store.stats()
    assert stats["count"] == 1
    assert stats["size_bytes"] == store.size_bytes()
    assert stats["ceiling_mb"] == DEFAULT_CEILING_MB
    assert (stats["min_ceiling_mb"], stats["max_ceiling_mb"]) == (15, 100)
