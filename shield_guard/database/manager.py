"""Database manager: connection pooling, schema, thread safety."""

import random
import sqlite3
import threading
import time
from typing import Any, List, Optional, Tuple

from shield_guard.utils.logger import get_logger

SCHEMA = [
    """CREATE TABLE IF NOT EXISTS kv_entries (
        entry_key TEXT PRIMARY KEY,
        entry_value TEXT NOT NULL,
        expires_at REAL NOT NULL,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );""",
    "CREATE INDEX IF NOT EXISTS idx_kv_expires_at ON kv_entries(expires_at);",
]

_PRAGMAS = [
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA cache_size=10000",
    "PRAGMA temp_store=memory",
    "PRAGMA busy_timeout=5000",
]


def _escape_like(prefix: str) -> str:
    return prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class DatabaseManager:
    """Manages SQLite key-value storage with thread safety and connection pooling."""

    def __init__(self, database_path: str, max_pool_size: int = 5):
        self.logger = get_logger("database.manager")
        # Use shared in-memory DB for ":memory:" so pooled connections see one database
        if database_path == ":memory:":
            self.database_path = "file::memory:?cache=shared"
            self._use_uri = True
        else:
            self.database_path = database_path
            self._use_uri = database_path.startswith("file:")
        self._lock = threading.Lock()
        self._pool: List[sqlite3.Connection] = []
        self._max_pool_size = max_pool_size
        self._initialize_connections()
        self._initialize_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.database_path, check_same_thread=False, uri=self._use_uri)
        for pragma in _PRAGMAS:
            conn.execute(pragma)
        return conn

    def _initialize_connections(self):
        for _ in range(self._max_pool_size):
            self._pool.append(self._connect())

    def _initialize_schema(self):
        conn = self.get_connection()
        try:
            cur = conn.cursor()
            for stmt in SCHEMA:
                cur.execute(stmt)
            conn.commit()
        finally:
            self.return_connection(conn)

    def get_connection(self) -> sqlite3.Connection:
        with self._lock:
            if self._pool:
                return self._pool.pop()
        return self._connect()

    def return_connection(self, conn: sqlite3.Connection):
        with self._lock:
            if len(self._pool) < self._max_pool_size:
                self._pool.append(conn)
                return
        conn.close()

    def execute_query(self, query: str, params: tuple = (), retries: int = 10, delay: float = 0.05) -> List[Any]:
        for attempt in range(retries):
            conn = self.get_connection()
            try:
                cur = conn.cursor()
                cur.execute(query, params)
                return cur.fetchall()
            except sqlite3.OperationalError as e:
                if "locked" in str(e).lower() and attempt < retries - 1:
                    # Exponential backoff with jitter
                    time.sleep(min(delay * (2**attempt) + random.uniform(0, 0.1), 1.0))
                    continue
                raise
            finally:
                self.return_connection(conn)
        return []

    def execute_update(self, query: str, params: tuple = (), retries: int = 10, delay: float = 0.05) -> int:
        for attempt in range(retries):
            conn = self.get_connection()
            try:
                cur = conn.cursor()
                cur.execute(query, params)
                conn.commit()
                return cur.rowcount
            except sqlite3.OperationalError as e:
                if "locked" in str(e).lower() and attempt < retries - 1:
                    time.sleep(min(delay * (2**attempt) + random.uniform(0, 0.1), 1.0))
                    continue
                raise
            finally:
                self.return_connection(conn)
        return 0

    def get_value(self, key: str, now: Optional[float] = None) -> Optional[str]:
        """Return the live value for ``key``, or None."""
        now = time.time() if now is None else now
        rows = self.execute_query(
            "SELECT entry_value FROM kv_entries WHERE entry_key = ? AND expires_at > ?",
            (key, now),
        )
        return rows[0][0] if rows else None

    def put_value(self, key: str, value: str, ttl_seconds: int, now: Optional[float] = None) -> int:
        now = time.time() if now is None else now
        return self.execute_update(
            "REPLACE INTO kv_entries (entry_key, entry_value, expires_at, updated_at) "
            "VALUES (?, ?, ?, CURRENT_TIMESTAMP)",
            (key, value, now + ttl_seconds),
        )

    def list_keys(
        self, prefix: str, limit: int, after: Optional[str] = None, now: Optional[float] = None
    ) -> Tuple[List[str], bool]:
        """List live keys with ``prefix`` ordered by key, starting after ``after``.

        Returns:
            Tuple of (keys, complete)
        """
        now = time.time() if now is None else now
        params: tuple = (_escape_like(prefix) + "%", now)
        query = "SELECT entry_key FROM kv_entries WHERE entry_key LIKE ? ESCAPE '\\' AND expires_at > ?"
        if after:
            query += " AND entry_key > ?"
            params += (after,)
        query += " ORDER BY entry_key LIMIT ?"
        # Fetch one extra row to learn whether another page exists
        rows = self.execute_query(query, params + (limit + 1,))
        keys = [row[0] for row in rows]
        return keys[:limit], len(keys) <= limit

    def delete_value(self, key: str) -> int:
        return self.execute_update("DELETE FROM kv_entries WHERE entry_key = ?", (key,))

    def purge_expired(self, now: Optional[float] = None) -> int:
        """Delete expired entries; returns how many were removed."""
        now = time.time() if now is None else now
        removed = self.execute_update("DELETE FROM kv_entries WHERE expires_at <= ?", (now,))
        if removed:
            self.logger.debug(f"Purged {removed} expired entries")
        return removed

    def count_entries(self) -> int:
        return self.execute_query("SELECT COUNT(*) FROM kv_entries")[0][0]

    def close(self):
        """Close all pooled database connections."""
        with self._lock:
            while self._pool:
                conn = self._pool.pop()
                try:
                    conn.close()
                except sqlite3.Error as e:
                    self.logger.debug(f"Error closing connection: {e}")

    def __del__(self):
        self.close()
