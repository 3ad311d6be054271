"""
Heartbeat Store Schema.

The schema is versioned with SQLite's user_version pragma. Version 1 is the
historical layout that carried editor, os and sent columns; version 2 drops
them and adds the activity source.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

SCHEMA = """
CREATE TABLE IF NOT EXISTS heartbeats (
    id TEXT PRIMARY KEY,
    timestamp INTEGER NOT NULL,
    filePath TEXT NOT NULL,
    language TEXT NOT NULL,
    project TEXT,
    branch TEXT,
    source TEXT NOT NULL CHECK (source IN ('human', 'ai', 'debugging'))
);

CREATE INDEX IF NOT EXISTS idx_heartbeats_timestamp ON heartbeats(timestamp);
"""

LEGACY_SCHEMA_V1 = """
CREATE TABLE IF NOT EXISTS heartbeats (
    id TEXT PRIMARY KEY,
    timestamp INTEGER NOT NULL,
    filePath TEXT NOT NULL,
    language TEXT NOT NULL,
    project TEXT,
    editor TEXT NOT NULL,
    branch TEXT,
    os TEXT NOT NULL,
    sent INTEGER DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_sent ON heartbeats(sent);
"""

COLUMNS = ("id", "timestamp", "filePath", "language", "project", "branch", "source")


def get_version(conn: sqlite3.Connection) -> int:
    return conn.execute("PRAGMA user_version").fetchone()[0]


def _table_columns(conn: sqlite3.Connection) -> list[str]:
    return [row[1] for row in conn.execute("PRAGMA table_info(heartbeats)")]


def _migrate_v1_to_v2(conn: sqlite3.Connection) -> None:
    """Rebuild a version 1 table, keeping rows and marking them human."""
    conn.executescript(
        """
        DROP INDEX IF EXISTS idx_sent;
        ALTER TABLE heartbeats RENAME TO heartbeats_v1;
        """
    )
    conn.executescript(SCHEMA)
    conn.execute(
        """
        INSERT OR IGNORE INTO heartbeats
            (id, timestamp, filePath, language, project, branch, source)
        SELECT id, timestamp, filePath, language, project, branch, 'human'
        FROM heartbeats_v1
        """
    )
    conn.execute("DROP TABLE heartbeats_v1")


def initialize(conn: sqlite3.Connection) -> int:
    """
    Bring a connection's schema up to SCHEMA_VERSION.

    A fresh database gets the current schema. An unversioned database whose
    heartbeats table lacks the source column is treated as version 1 and
    migrated once.

    Args:
        conn: Open SQLite connection.

    Returns:
        The schema version found before initialization (0 for fresh).
    """
    found = get_version(conn)
    columns = _table_columns(conn)

    with conn:
        if found < 2 and columns and "source" not in columns:
            logger.info("Migrating heartbeat schema from version 1 to %d", SCHEMA_VERSION)
            _migrate_v1_to_v2(conn)
        else:
            conn.executescript(SCHEMA)
        conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")

    return found
