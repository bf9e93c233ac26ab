"""Durable namespaced key-value storage for local state, backed by SQLite."""

import logging
from pathlib import Path

import aiosqlite

from taskmirror.core.config import settings


logger = logging.getLogger(__name__)

_SCHEMA = "CREATE TABLE IF NOT EXISTS local_storage (key TEXT PRIMARY KEY, value TEXT NOT NULL)"


class LocalStorage:
    """Key-value store with the semantics of a browser's localStorage.

    Values are opaque strings; callers serialize their own state.
    """

    def __init__(self, db_path: str | None = None) -> None:
        self._path = Path(db_path or settings.local_storage_path).resolve()
        self._initialized = False

    @property
    def path(self) -> Path:
        return self._path

    async def _connect(self) -> aiosqlite.Connection:
        if not self._initialized:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(str(self._path))
        if not self._initialized:
            await conn.execute(_SCHEMA)
            await conn.commit()
            self._initialized = True
            logger.info("Initialized local storage", extra={"db_path": str(self._path)})
        return conn

    async def get_item(self, key: str) -> str | None:
        """Return the stored value for ``key``, or None if absent."""
        conn = await self._connect()
        try:
            cursor = await conn.execute("SELECT value FROM local_storage WHERE key = ?", (key,))
            row = await cursor.fetchone()
        finally:
            await conn.close()
        return row[0] if row else None

    async def set_item(self, key: str, value: str) -> None:
        """Insert or overwrite ``key``."""
        conn = await self._connect()
        try:
            await conn.execute(
                "INSERT INTO local_storage (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )
            await conn.commit()
        finally:
            await conn.close()
        logger.debug("Stored local item", extra={"key": key, "bytes": len(value)})

    async def remove_item(self, key: str) -> None:
        conn = await self._connect()
        try:
            await conn.execute("DELETE FROM local_storage WHERE key = ?", (key,))
            await conn.commit()
        finally:
            await conn.close()
