"""Durable key-value layer on SQLite.

Each store instance addresses one namespace of a shared database file, so the
embedded vector store, the vector cache and user preferences can live side by
side. Blocking SQLite calls run in a worker thread.
"""

import asyncio
import sqlite3
from contextlib import closing
from datetime import UTC, datetime
from pathlib import Path

from iconsearch.exceptions import ErrorCode, VectorStoreError
from iconsearch.logging_config import get_logger

logger = get_logger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_entries (
    namespace TEXT NOT NULL,
    key TEXT NOT NULL,
    value BLOB NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (namespace, key)
)
"""


class SQLiteKeyValueStore:
    """Async get/set of opaque blobs keyed by string."""

    def __init__(self, path: Path, namespace: str) -> None:
        """Initialize the store.

        Args:
            path: SQLite database file; created on first write.
            namespace: Logical partition inside the file.
        """
        self._path = Path(path)
        self._namespace = namespace

    @property
    def path(self) -> Path:
        return self._path

    @property
    def namespace(self) -> str:
        return self._namespace

    def _connect(self) -> sqlite3.Connection:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self._path)
        conn.execute(_SCHEMA)
        return conn

    def _get(self, key: str) -> bytes | None:
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT value FROM kv_entries WHERE namespace = ? AND key = ?",
                (self._namespace, key),
            ).fetchone()
        return bytes(row[0]) if row else None

    def _set(self, key: str, value: bytes) -> None:
        with closing(self._connect()) as conn, conn:
            conn.execute(
                "INSERT OR REPLACE INTO kv_entries (namespace, key, value, updated_at) "
                "VALUES (?, ?, ?, ?)",
                (self._namespace, key, value, datetime.now(UTC).isoformat()),
            )

    def _delete(self, key: str) -> None:
        with closing(self._connect()) as conn, conn:
            conn.execute(
                "DELETE FROM kv_entries WHERE namespace = ? AND key = ?",
                (self._namespace, key),
            )

    def _keys(self) -> list[str]:
        with closing(self._connect()) as conn:
            rows = conn.execute(
                "SELECT key FROM kv_entries WHERE namespace = ? ORDER BY key",
                (self._namespace,),
            ).fetchall()
        return [row[0] for row in rows]

    async def get(self, key: str) -> bytes | None:
        """Return the blob stored under ``key``, or None."""
        try:
            return await asyncio.to_thread(self._get, key)
        except sqlite3.Error as e:
            raise VectorStoreError(
                f"Failed to read {key}: {e}",
                code=ErrorCode.VECTOR_STORE_ERROR,
                details={"namespace": self._namespace, "key": key},
            ) from e

    async def set(self, key: str, value: bytes) -> None:
        """Store ``value`` under ``key``, replacing any previous blob."""
        try:
            await asyncio.to_thread(self._set, key, value)
        except sqlite3.Error as e:
            raise VectorStoreError(
                f"Failed to write {key}: {e}",
                code=ErrorCode.VECTOR_STORE_ERROR,
                details={"namespace": self._namespace, "key": key},
            ) from e
        logger.debug(
            f"Stored {len(value)} bytes",
            extra={"namespace": self._namespace, "key": key},
        )

    async def delete(self, key: str) -> None:
        """Remove ``key``; missing keys are ignored."""
        try:
            await asyncio.to_thread(self._delete, key)
        except sqlite3.Error as e:
            raise VectorStoreError(
                f"Failed to delete {key}: {e}",
                code=ErrorCode.VECTOR_STORE_ERROR,
                details={"namespace": self._namespace, "key": key},
            ) from e

    async def keys(self) -> list[str]:
        """List keys of this namespace."""
        try:
            return await asyncio.to_thread(self._keys)
        except sqlite3.Error as e:
            raise VectorStoreError(
                f"Failed to list keys: {e}",
                code=ErrorCode.VECTOR_STORE_ERROR,
                details={"namespace": self._namespace},
            ) from e
