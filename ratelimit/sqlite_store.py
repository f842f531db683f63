"""
SQLite-backed durable counter store.

Source of truth when the fast counter service is absent or failing.

Design:
- One table: rate_limit_counters
- Columns: key, count, expires_at (epoch seconds), updated_at
- Rows past expires_at read as zero and are restarted on the next increment
- Increment is a single upsert, so it is atomic per key
"""

import asyncio
import logging
import sqlite3
import threading
from datetime import datetime
from typing import Optional

from .base import CounterStore, RateLimitStoreError

logger = logging.getLogger(__name__)


class SQLiteCounterStore(CounterStore):
    """
    Durable rate limit counters in SQLite.

    A single connection is shared by the process and serialised with a lock;
    blocking calls run in a worker thread so the event loop is never held.
    Expired rows are deleted whenever an increment opens a new window.
    """

    name = "sqlite"

    def __init__(self, db_path: Optional[str] = None):
        """
        Args:
            db_path: Path to SQLite database file.
                     If None, uses ':memory:' (in-memory, useful for testing).
        """
        self.db_path = db_path or ":memory:"
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None
        # Window end seen by the last increment; a new one triggers a purge
        self._current_expiry: Optional[float] = None
        self._initialize_db()

    def _initialize_db(self) -> None:
        """Create the schema. A no-op if the database already exists."""
        try:
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
            cursor = conn.cursor()

            # WAL for crash recovery and concurrent readers
            if self.db_path != ":memory:":
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA synchronous=FULL")

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS rate_limit_counters (
                    key TEXT PRIMARY KEY,
                    count INTEGER NOT NULL DEFAULT 0,
                    expires_at REAL NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_rate_limit_expires
                ON rate_limit_counters(expires_at)
            """)
            conn.commit()
            self._conn = conn
            logger.debug(f"SQLite rate limit store initialized: {self.db_path}")
        except sqlite3.Error as e:
            # Store is marked unavailable; every operation will raise
            logger.error(f"Failed to initialize SQLite rate limit store: {str(e)}")
            self._conn = None

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RateLimitStoreError(f"SQLite store unavailable: {self.db_path}")
        return self._conn

    def _get_sync(self, key: str, now_ts: float) -> int:
        with self._lock:
            conn = self._connection()
            row = conn.execute(
                "SELECT count FROM rate_limit_counters WHERE key = ? AND expires_at > ?",
                (key, now_ts),
            ).fetchone()
        return int(row[0]) if row else 0

    def _increment_sync(self, key: str, expires_ts: float, now_ts: float) -> int:
        with self._lock:
            conn = self._connection()
            with conn:
                if expires_ts != self._current_expiry:
                    conn.execute(
                        "DELETE FROM rate_limit_counters WHERE expires_at <= ?",
                        (now_ts,),
                    )
                    self._current_expiry = expires_ts
                conn.execute(
                    """
                    INSERT INTO rate_limit_counters (key, count, expires_at)
                    VALUES (?, 1, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        count = CASE
                            WHEN rate_limit_counters.expires_at <= ? THEN 1
                            ELSE rate_limit_counters.count + 1
                        END,
                        expires_at = excluded.expires_at,
                        updated_at = CURRENT_TIMESTAMP
                    """,
                    (key, expires_ts, now_ts),
                )
                row = conn.execute(
                    "SELECT count FROM rate_limit_counters WHERE key = ?",
                    (key,),
                ).fetchone()
        return int(row[0]) if row else 1

    async def get(self, key: str, now: datetime) -> int:
        try:
            return await asyncio.to_thread(self._get_sync, key, now.timestamp())
        except sqlite3.Error as e:
            logger.error(f"SQLite error during rate limit read: {str(e)}")
            raise RateLimitStoreError(f"SQLite read failed: {e}") from e

    async def increment(self, key: str, reset_at: datetime, now: datetime) -> int:
        try:
            return await asyncio.to_thread(
                self._increment_sync, key, reset_at.timestamp(), now.timestamp()
            )
        except sqlite3.Error as e:
            logger.error(f"SQLite error during rate limit increment: {str(e)}")
            raise RateLimitStoreError(f"SQLite increment failed: {e}") from e

    def purge_expired(self, now: datetime) -> int:
        """
        Delete expired counters.

        Returns:
            Number of rows removed, 0 if the store is unavailable
        """
        try:
            with self._lock:
                conn = self._connection()
                with conn:
                    cursor = conn.execute(
                        "DELETE FROM rate_limit_counters WHERE expires_at <= ?",
                        (now.timestamp(),),
                    )
            return cursor.rowcount
        except (sqlite3.Error, RateLimitStoreError) as e:
            logger.warning(f"Failed to purge expired rate limit counters: {str(e)}")
            return 0

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    async def aclose(self) -> None:
        self.close()
