"""SQLite-backed key-value store for the local-only mode.

Each record (tasks, members, selected member, ...) is stored as one JSON
document under a fixed key. Reads never raise: a missing or corrupt record
reads as ``None``. Writes never raise either: a record above the configured
size ceiling, or a failed write, is logged and reported as ``False``.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import aiosqlite

from questlog.core.config import settings


logger = logging.getLogger(__name__)


class StorageKeys:
    """Keys of the independent records kept in the local store."""

    TASKS = "questlog-tasks"
    MEMBERS = "questlog-members"
    SELECTED_MEMBER = "questlog-selected-member"
    ACHIEVEMENTS = "questlog-achievements"
    TEMPLATES = "questlog-templates"

    ALL = (TASKS, MEMBERS, SELECTED_MEMBER, ACHIEVEMENTS, TEMPLATES)


_SCHEMA = """CREATE TABLE IF NOT EXISTS kv_records (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated TEXT NOT NULL DEFAULT (datetime('now'))
)"""


def get_db_path(db_path: str | Path | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.local_store_path
    return Path(path_str).resolve()


class KeyValueStore:
    """Async key-value store over a single SQLite table."""

    def __init__(self, db_path: str | Path | None = None, *, max_bytes: int | None = None) -> None:
        self._path = get_db_path(db_path)
        self._max_bytes = max_bytes if max_bytes is not None else settings.local_store_max_bytes
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def _get_connection(self) -> aiosqlite.Connection:
        if self._conn is not None:
            return self._conn

        async with self._lock:
            # Double-check after acquiring lock
            if self._conn is not None:
                return self._conn

            self._path.parent.mkdir(parents=True, exist_ok=True)
            conn = await aiosqlite.connect(str(self._path))
            await conn.execute("PRAGMA journal_mode = WAL")
            await conn.execute(_SCHEMA)
            await conn.commit()
            self._conn = conn

            logger.info("Opened local store", extra={"db_path": str(self._path)})
            return conn

    async def close(self) -> None:
        """Close the underlying connection if it is open."""
        if self._conn is None:
            return
        try:
            await self._conn.close()
            logger.info("Closed local store", extra={"db_path": str(self._path)})
        except Exception as e:
            logger.warning("Error closing local store", extra={"error": str(e)})
        finally:
            self._conn = None

    async def read(self, key: str) -> Any | None:
        """Return the decoded record stored under ``key``, or None."""
        try:
            conn = await self._get_connection()
            cursor = await conn.execute("SELECT value FROM kv_records WHERE key = ?", (key,))
            row = await cursor.fetchone()
        except Exception as e:
            logger.error("read_record_failed", extra={"key": key, "error": str(e)})
            return None

        if row is None:
            return None

        try:
            return json.loads(row[0])
        except json.JSONDecodeError as e:
            logger.warning("Corrupt local record, ignoring", extra={"key": key, "error": str(e)})
            return None

    async def write(self, key: str, value: Any) -> bool:
        """Store ``value`` under ``key``. Returns False when the write was skipped or failed."""
        try:
            serialized = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.error("Unserializable local record", extra={"key": key, "error": str(e)})
            return False

        size = len(serialized.encode("utf-8"))
        if size > self._max_bytes:
            logger.warning(
                "Local store size ceiling exceeded, write skipped. Consider exporting data.",
                extra={"key": key, "size": size, "max_bytes": self._max_bytes},
            )
            return False

        try:
            conn = await self._get_connection()
            await conn.execute(
                "INSERT INTO kv_records (key, value, updated) VALUES (?, ?, datetime('now')) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated = excluded.updated",
                (key, serialized),
            )
            await conn.commit()
        except Exception as e:
            logger.error("write_record_failed", extra={"key": key, "error": str(e)})
            return False

        logger.debug("Wrote local record", extra={"key": key, "size": size})
        return True

    async def delete(self, key: str) -> None:
        """Remove the record stored under ``key`` (no-op when absent)."""
        try:
            conn = await self._get_connection()
            await conn.execute("DELETE FROM kv_records WHERE key = ?", (key,))
            await conn.commit()
        except Exception as e:
            logger.error("delete_record_failed", extra={"key": key, "error": str(e)})

    async def clear(self) -> None:
        """Remove every questlog record."""
        for key in StorageKeys.ALL:
            await self.delete(key)
