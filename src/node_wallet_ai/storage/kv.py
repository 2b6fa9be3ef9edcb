"""Opaque async key-value storage.

The node graph only ever needs ``get_item`` / ``set_item`` on string keys,
so persistence is kept behind this small interface. ``SqliteKeyValueStore``
uses ``aiosqlite`` with WAL mode; ``MemoryKeyValueStore`` keeps everything in
a dict for tests and throwaway sessions.
"""

from __future__ import annotations

import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import aiosqlite


class KeyValueStore(ABC):
    """Minimal async string key-value store."""

    async def connect(self) -> None:
        """Prepare the store for use. No-op by default."""

    async def close(self) -> None:
        """Release any resources held by the store. No-op by default."""

    @abstractmethod
    async def get_item(self, key: str) -> str | None:
        """Return the stored value, or ``None`` if *key* is absent."""

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        """Store *value* under *key*, replacing any previous value."""

    @abstractmethod
    async def remove_item(self, key: str) -> None:
        """Delete *key* if present."""


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store. Nothing survives the process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> str | None:
        return self.data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self.data[key] = value

    async def remove_item(self, key: str) -> None:
        self.data.pop(key, None)


class SqliteKeyValueStore(KeyValueStore):
    """Key-value store backed by a single SQLite table.

    Parameters
    ----------
    db_path:
        Filesystem path to the SQLite database file.  The file (and any
        intermediate directories) will be created automatically on
        :meth:`connect` if they do not already exist.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._conn: Optional[aiosqlite.Connection] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the database connection, enable WAL mode, and run migrations."""
        if self._conn is not None:
            return
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(str(self.db_path))
        await self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.row_factory = sqlite3.Row
        await self._migrate()

    async def close(self) -> None:
        """Close the database connection gracefully."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    # ------------------------------------------------------------------
    # Key-value operations
    # ------------------------------------------------------------------

    async def get_item(self, key: str) -> str | None:
        assert self._conn is not None, "Store not connected. Call connect() first."
        cursor = await self._conn.execute(
            "SELECT value FROM kv_store WHERE key = ?", (key,)
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return row["value"]

    async def set_item(self, key: str, value: str) -> None:
        assert self._conn is not None, "Store not connected. Call connect() first."
        await self._conn.execute(
            "INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
            "updated_at = CURRENT_TIMESTAMP",
            (key, value),
        )
        await self._conn.commit()

    async def remove_item(self, key: str) -> None:
        assert self._conn is not None, "Store not connected. Call connect() first."
        await self._conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        await self._conn.commit()

    # ------------------------------------------------------------------
    # Migrations
    # ------------------------------------------------------------------

    async def _migrate(self) -> None:
        """Create the key-value table if it does not already exist."""
        assert self._conn is not None

        await self._conn.executescript(
            """\
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
            """
        )
        await self._conn.commit()


# ------------------------------------------------------------------
# Convenience factory
# ------------------------------------------------------------------

def get_store(app_dir: Path, backend: str = "sqlite", path: str = "state.db") -> KeyValueStore:
    """Return a key-value store for *backend*.

    The caller is responsible for calling :meth:`KeyValueStore.connect`
    before using the returned instance.
    """
    if backend == "memory":
        return MemoryKeyValueStore()
    if backend == "sqlite":
        return SqliteKeyValueStore(Path(app_dir) / path)
    raise ValueError(f"Unknown storage backend '{backend}'. Expected 'sqlite' or 'memory'.")
