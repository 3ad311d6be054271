"""
Heartbeat Storage Module.

This module persists heartbeats in an embedded SQLite database that is kept
in memory and written to disk as a whole image after every mutation. The
file is replaced atomically, and the store evicts its oldest heartbeats
whenever the file grows past the configured size ceiling.
"""

from __future__ import annotations

import logging
import math
import os
import sqlite3
import tempfile
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from heartbeat_tracker import schema
from heartbeat_tracker.models import Heartbeat, Source

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024

MIN_CEILING_MB = 15
MAX_CEILING_MB = 100
DEFAULT_CEILING_MB = 20

EVICTION_BATCH_SIZE = 500
MAX_EVICTION_ROUNDS = 50


class StoreError(Exception):
    """Base class for heartbeat store failures."""


class StoreClosedError(StoreError):
    """Raised when a closed store is used."""


class StoreClearError(StoreError):
    """Raised when clearing the store leaves heartbeats behind."""


def clamp_ceiling_mb(value: Any) -> int:
    """
    Normalize a requested size ceiling.

    Args:
        value: Requested ceiling in megabytes, possibly a string or None.

    Returns:
        DEFAULT_CEILING_MB for non-numeric or non-finite input, otherwise the
        value rounded to an integer and clamped to
        [MIN_CEILING_MB, MAX_CEILING_MB].
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CEILING_MB

    if not math.isfinite(number):
        return DEFAULT_CEILING_MB

    return min(MAX_CEILING_MB, max(MIN_CEILING_MB, round(number)))


def _row_to_heartbeat(row: sqlite3.Row) -> Heartbeat:
    return Heartbeat(
        id=row["id"],
        timestamp=row["timestamp"],
        file_path=row["filePath"],
        language=row["language"],
        project=row["project"] or "",
        branch=row["branch"] or "",
        source=Source(row["source"]),
    )


class HeartbeatStore:
    """
    Size-bounded heartbeat store.

    Create one instance at startup and pass it to every collaborator.
    Access is expected to be serialized by the caller.

    Attributes:
        path: Location of the database file.
        ceiling_mb: Current size ceiling in megabytes.
        loaded: True if an existing file was loaded, False for a fresh store.

    Example:
        >>> store = HeartbeatStore("~/.heartbeat-tracker/heartbeats.db")
        >>> store.append([new_heartbeat("src/app.py", project="demo")])
        1
        >>> store.count()
        1
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        ceiling_mb: Any = DEFAULT_CEILING_MB,
        eviction_batch_size: int = EVICTION_BATCH_SIZE,
        max_eviction_rounds: int = MAX_EVICTION_ROUNDS,
    ) -> None:
        """
        Open or create the store.

        An unreadable or corrupt file is logged and replaced by a fresh,
        empty store instead of failing.

        Args:
            path: Database file location. Parent directories are created.
            ceiling_mb: Size ceiling in megabytes, clamped on the way in.
            eviction_batch_size: Rows deleted per eviction round.
            max_eviction_rounds: Upper bound on eviction rounds per call.
        """
        self.path = Path(path).expanduser()
        self.eviction_batch_size = eviction_batch_size
        self.max_eviction_rounds = max_eviction_rounds
        self.ceiling_mb = clamp_ceiling_mb(ceiling_mb)
        self.loaded = False
        self._conn: sqlite3.Connection | None = self._open()

        if not self.path.exists() or not self.loaded:
            self._persist()

        self.enforce_ceiling()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _open(self) -> sqlite3.Connection:
        """Load the file image into memory, or start from an empty schema."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning("Cannot create store directory %s: %s", self.path.parent, e)

        if self.path.exists():
            conn = self._new_connection()
            try:
                conn.deserialize(self.path.read_bytes())
                previous = schema.initialize(conn)
                self.loaded = True
                if previous != schema.SCHEMA_VERSION:
                    self._persist_connection(conn)
                logger.debug("Loaded heartbeat store from %s", self.path)
                return conn
            except (OSError, sqlite3.DatabaseError) as e:
                logger.warning("Could not load %s, starting fresh: %s", self.path, e)
                conn.close()

        return self._fresh_connection()

    @staticmethod
    def _new_connection() -> sqlite3.Connection:
        conn = sqlite3.connect(":memory:")
        conn.row_factory = sqlite3.Row
        return conn

    def _fresh_connection(self) -> sqlite3.Connection:
        conn = self._new_connection()
        schema.initialize(conn)
        self.loaded = False
        return conn

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreClosedError(f"Heartbeat store {self.path} is closed")
        return self._conn

    @property
    def closed(self) -> bool:
        return self._conn is None

    def close(self) -> None:
        """Persist and close the store. Closing twice is a no-op."""
        if self._conn is None:
            return
        self._persist()
        self._conn.close()
        self._conn = None

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _persist(self) -> bool:
        return self._persist_connection(self._connection())

    def _persist_connection(self, conn: sqlite3.Connection) -> bool:
        """
        Write the whole database image to disk atomically.

        Returns:
            True on success. Write failures are logged and leave the
            previous file in place.
        """
        tmp_name: str | None = None
        try:
            image = conn.serialize()
            with tempfile.NamedTemporaryFile(
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(image)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, self.path)
            return True
        except OSError as e:
            logger.warning("Failed to write heartbeat store %s: %s", self.path, e)
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            return False

    def _persist_or_restore(self, snapshot: bytes) -> bool:
        """
        Persist the current image, or roll memory back to snapshot.

        Keeps the in-memory database identical to the file on disk when a
        write fails.

        Args:
            snapshot: Image serialized before the mutation.

        Returns:
            True if the mutation was persisted.
        """
        if self._persist():
            return True
        self._connection().deserialize(snapshot)
        logger.warning("Rolled back unsaved changes to %s", self.path)
        return False

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def append(self, heartbeats: Iterable[Heartbeat]) -> int:
        """
        Insert heartbeats, ignoring ids that already exist.

        Ceiling enforcement runs after the batch is committed. If the batch
        cannot be written to disk it is dropped from memory as well.

        Args:
            heartbeats: Heartbeats to store.

        Returns:
            Number of rows actually inserted and persisted.
        """
        conn = self._connection()
        rows = [
            (
                hb.id,
                int(hb.timestamp),
                hb.file_path,
                hb.language or "",
                hb.project,
                hb.branch,
                Source(hb.source).value,
            )
            for hb in heartbeats
        ]
        if not rows:
            return 0

        snapshot = conn.serialize()
        with conn:
            cursor = conn.executemany(
                """
                INSERT OR IGNORE INTO heartbeats
                    (id, timestamp, filePath, language, project, branch, source)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
        inserted = max(cursor.rowcount, 0)
        if not inserted:
            return 0

        if not self._persist_or_restore(snapshot):
            return 0
        logger.debug("Appended %d of %d heartbeats", inserted, len(rows))

        self.enforce_ceiling()
        return inserted

    def delete_by_ids(self, ids: Iterable[str]) -> int:
        """
        Delete heartbeats by id. Unknown ids are ignored.

        Returns:
            Number of rows deleted. 0 when the deletion could not be written.
        """
        conn = self._connection()
        id_list = [(heartbeat_id,) for heartbeat_id in ids]
        if not id_list:
            return 0

        snapshot = conn.serialize()
        with conn:
            cursor = conn.executemany("DELETE FROM heartbeats WHERE id = ?", id_list)
        deleted = max(cursor.rowcount, 0)

        if deleted and not self._persist_or_restore(snapshot):
            return 0
        return deleted

    def _delete_oldest(self, limit: int) -> int:
        conn = self._connection()
        with conn:
            cursor = conn.execute(
                """
                DELETE FROM heartbeats WHERE id IN (
                    SELECT id FROM heartbeats
                    ORDER BY timestamp ASC, rowid ASC
                    LIMIT ?
                )
                """,
                (limit,),
            )
        # Reclaim free pages so the serialized image shrinks.
        conn.execute("VACUUM")
        return cursor.rowcount

    def enforce_ceiling(self) -> int:
        """
        Evict the oldest heartbeats until the file fits under the ceiling.

        Each round deletes eviction_batch_size rows, compacts, persists and
        re-measures. The loop stops after max_eviction_rounds, when a round
        deletes nothing, or when a write fails. A round whose write fails is
        rolled back in memory. An empty store may still exceed the ceiling;
        that is accepted.

        Returns:
            Total number of heartbeats evicted.
        """
        ceiling_bytes = self.ceiling_mb * BYTES_PER_MB
        evicted = 0

        for _ in range(self.max_eviction_rounds):
            size = self.size_bytes()
            if size <= ceiling_bytes:
                break

            snapshot = self._connection().serialize()
            deleted = self._delete_oldest(self.eviction_batch_size)
            if deleted <= 0:
                break

            if not self._persist_or_restore(snapshot):
                break
            evicted += deleted

        if evicted:
            logger.info(
                "Evicted %d heartbeats to respect the %d MB ceiling",
                evicted,
                self.ceiling_mb,
            )
        return evicted

    def set_ceiling_mb(self, value: Any) -> int:
        """
        Set the size ceiling and enforce it immediately.

        Args:
            value: Requested ceiling in megabytes; see clamp_ceiling_mb.

        Returns:
            The effective ceiling.
        """
        self._connection()
        self.ceiling_mb = clamp_ceiling_mb(value)
        self.enforce_ceiling()
        return self.ceiling_mb

    def _reset(self) -> None:
        if self._conn is not None:
            self._conn.close()
        self._conn = None

        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove %s: %s", self.path, e)

        self._conn = self._fresh_connection()
        self._persist()

    def _persisted_count(self) -> int:
        """Count the heartbeats in the file on disk (0 when it is missing)."""
        try:
            image = self.path.read_bytes()
        except FileNotFoundError:
            return 0

        conn = self._new_connection()
        try:
            conn.deserialize(image)
            return conn.execute("SELECT COUNT(*) FROM heartbeats").fetchone()[0]
        finally:
            conn.close()

    def _is_cleared(self) -> bool:
        try:
            return self.count() == 0 and self._persisted_count() == 0
        except (OSError, sqlite3.DatabaseError) as e:
            logger.warning("Could not verify cleared store %s: %s", self.path, e)
            return False

    def clear_all(self) -> None:
        """
        Delete every heartbeat by recreating the store from an empty schema.

        Both the in-memory database and the file on disk are checked. The
        reset is retried once; if heartbeats remain the previous contents
        are restored in memory and the failure is raised.

        Raises:
            StoreClearError: If heartbeats remain after a retry.
        """
        snapshot = self._connection().serialize()
        was_loaded = self.loaded

        for attempt in range(2):
            self._reset()
            if self._is_cleared():
                logger.info("Cleared heartbeat store %s", self.path)
                return
            if attempt == 0:
                logger.warning("Heartbeat store %s not cleared, retrying", self.path)

        self._connection().deserialize(snapshot)
        self.loaded = was_loaded
        raise StoreClearError("Heartbeat store clear operation was not completed")

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def query_all(self) -> list[Heartbeat]:
        """Return every heartbeat ordered by timestamp ascending."""
        rows = self._connection().execute(
            "SELECT * FROM heartbeats ORDER BY timestamp ASC, rowid ASC"
        )
        return [_row_to_heartbeat(row) for row in rows]

    def query_after(self, timestamp: int) -> list[Heartbeat]:
        """Return heartbeats strictly after timestamp, oldest first."""
        rows = self._connection().execute(
            "SELECT * FROM heartbeats WHERE timestamp > ? "
            "ORDER BY timestamp ASC, rowid ASC",
            (int(timestamp),),
        )
        return [_row_to_heartbeat(row) for row in rows]

    def count(self) -> int:
        return self._connection().execute("SELECT COUNT(*) FROM heartbeats").fetchone()[0]

    def size_bytes(self) -> int:
        """
        Size of the persisted store.

        Falls back to the size of the in-memory image when the file cannot
        be stat'ed.
        """
        conn = self._connection()
        try:
            return self.path.stat().st_size
        except OSError:
            return len(conn.serialize())

    def stats(self) -> dict[str, Any]:
        """
        Summarize the store for settings displays.

        Returns:
            Dictionary containing size_bytes, count, ceiling_mb,
            min_ceiling_mb, max_ceiling_mb and default_ceiling_mb.
        """
        return {
            "size_bytes": self.size_bytes(),
            "count": self.count(),
            "ceiling_mb": self.ceiling_mb,
            "min_ceiling_mb": MIN_CEILING_MB,
            "max_ceiling_mb": MAX_CEILING_MB,
            "default_ceiling_mb": DEFAULT_CEILING_MB,
        }
