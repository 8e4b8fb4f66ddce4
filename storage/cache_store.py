"""
Cache store - last-good-value persistence per logical key in SQLite.
Thin IO layer. Best-effort: storage failures are logged and absorbed,
never raised to the caller.
"""

import json
import logging
import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, List, Optional

# Set up logger
logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = 'investHubCache'


class CacheErrorKind(str, Enum):
    """Why a cache operation failed."""
    UNAVAILABLE = 'unavailable'
    CORRUPT = 'corrupt'


class CacheError(Exception):
    """Raised internally when the cache cannot be read or written."""

    def __init__(self, kind: CacheErrorKind, message: str):
        super().__init__(message)
        self.kind = CacheErrorKind(kind)


@dataclass(frozen=True)
class CacheEntry:
    """One stored payload and when it was written (UTC)."""
    key: str
    timestamp: datetime
    payload: Any


def init_cache_table(conn: sqlite3.Connection) -> None:
    """
    Create the cache table.
    Idempotent - safe to call multiple times.

    Args:
        conn: SQLite connection
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS cache_entries (
            key TEXT PRIMARY KEY,
            timestamp DATETIME NOT NULL,
            payload TEXT NOT NULL
        )
    """)
    conn.commit()


def get_connection(db_path: str = './data/cache.db') -> sqlite3.Connection:
    """
    Get SQLite connection with proper configuration.

    The connection is shared across worker threads; CacheStore serialises
    access with its own lock.

    Args:
        db_path: Path to SQLite database file, or ':memory:'

    Returns:
        Configured SQLite connection
    """
    if db_path != ':memory:':
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.execute("PRAGMA journal_mode = WAL")  # Better concurrency
    return conn


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheStore:
    """
    Namespaced key/value cache of JSON payloads.

    No TTL and no eviction: an entry lives until the next successful
    save for the same key overwrites it.

    Args:
        conn: Open SQLite connection (takes precedence over db_path)
        db_path: Database file used when no connection is given
        namespace: Prefix applied to every stored key
        clock: Returns the current UTC time (for tests)
    """

    def __init__(
        self,
        conn: Optional[sqlite3.Connection] = None,
        db_path: str = './data/cache.db',
        namespace: str = DEFAULT_NAMESPACE,
        clock: Callable[[], datetime] = _utcnow
    ):
        self.namespace = namespace
        self._clock = clock
        self._lock = threading.Lock()

        try:
            self._conn = conn if conn is not None else get_connection(db_path)
            init_cache_table(self._conn)
        except (sqlite3.Error, OSError) as e:
            logger.warning(f"Cache unavailable, continuing without persistence: {e}")
            self._conn = None

    @property
    def available(self) -> bool:
        return self._conn is not None

    def save(self, key: str, payload: Any) -> bool:
        """
        Store payload under key, overwriting any previous entry.

        Args:
            key: Logical key (namespace is added here)
            payload: JSON-serialisable value

        Returns:
            True if the entry was written, False if the write was dropped
        """
        try:
            self._write(key, payload)
            return True
        except CacheError as e:
            logger.warning(f"Cache save dropped for {key}: {e}")
            return False

    def load(self, key: str) -> Optional[Any]:
        """Stored payload for key, or None if missing, corrupt or unavailable."""
        entry = self.load_entry(key)
        return entry.payload if entry is not None else None

    def load_entry(self, key: str) -> Optional[CacheEntry]:
        """
        Stored entry (payload plus write time) for key.

        Returns:
            CacheEntry, or None if missing, corrupt or unavailable
        """
        try:
            return self._read(key)
        except CacheError as e:
            logger.warning(f"Cache load failed for {key}: {e}")
            return None

    def keys(self, prefix: Optional[str] = None) -> List[str]:
        """Logical keys currently stored, optionally filtered by prefix."""
        if self._conn is None:
            return []

        pattern = _like_escape(self._namespaced(prefix or '')) + '%'
        try:
            with self._lock:
                cursor = self._conn.execute(
                    "SELECT key FROM cache_entries WHERE key LIKE ? ESCAPE '\\' ORDER BY key",
                    (pattern,)
                )
                rows = cursor.fetchall()
        except sqlite3.Error as e:
            logger.warning(f"Cache key listing failed: {e}")
            return []

        offset = len(self.namespace) + 1
        return [row[0][offset:] for row in rows]

    def delete(self, key: str) -> None:
        """Remove one entry (no-op if absent)."""
        self._execute("DELETE FROM cache_entries WHERE key = ?", (self._namespaced(key),))

    def clear(self) -> None:
        """Remove every entry in this store's namespace."""
        pattern = _like_escape(self.namespace + ':') + '%'
        self._execute("DELETE FROM cache_entries WHERE key LIKE ? ESCAPE '\\'", (pattern,))

    def close(self) -> None:
        if self._conn is not None:
            with self._lock:
                self._conn.close()
                self._conn = None

    def _namespaced(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def _write(self, key: str, payload: Any) -> None:
        if self._conn is None:
            raise CacheError(CacheErrorKind.UNAVAILABLE, "no database connection")

        try:
            text = json.dumps(payload, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise CacheError(CacheErrorKind.CORRUPT, f"payload not serialisable: {e}") from e

        timestamp = self._clock().isoformat()
        try:
            with self._lock:
                self._conn.execute(
                    "INSERT OR REPLACE INTO cache_entries (key, timestamp, payload) VALUES (?, ?, ?)",
                    (self._namespaced(key), timestamp, text)
                )
                self._conn.commit()
        except sqlite3.Error as e:
            raise CacheError(CacheErrorKind.UNAVAILABLE, str(e)) from e

    def _read(self, key: str) -> Optional[CacheEntry]:
        if self._conn is None:
            raise CacheError(CacheErrorKind.UNAVAILABLE, "no database connection")

        try:
            with self._lock:
                cursor = self._conn.execute(
                    "SELECT timestamp, payload FROM cache_entries WHERE key = ?",
                    (self._namespaced(key),)
                )
                row = cursor.fetchone()
        except sqlite3.Error as e:
            raise CacheError(CacheErrorKind.UNAVAILABLE, str(e)) from e

        if row is None:
            return None

        try:
            timestamp = datetime.fromisoformat(row[0])
            payload = json.loads(row[1])
        except (TypeError, ValueError) as e:
            raise CacheError(CacheErrorKind.CORRUPT, f"unreadable entry: {e}") from e

        return CacheEntry(key=key, timestamp=timestamp, payload=payload)

    def _execute(self, sql: str, params: tuple) -> None:
        if self._conn is None:
            return
        try:
            with self._lock:
                self._conn.execute(sql, params)
                self._conn.commit()
        except sqlite3.Error as e:
            logger.warning(f"Cache maintenance failed: {e}")


def _like_escape(text: str) -> str:
    return text.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
