"""Persistent key-value storage for cached lint results.

Entries are addressed by (domain, key). Writers serialize on an advisory
per-key lock so that concurrent runs don't race on the same entry.
"""

import logging
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path

from xref.errors import StorageError

logger = logging.getLogger(__name__)

# a lock older than this is considered abandoned by a crashed run
DEFAULT_LOCK_TIMEOUT = 300.0


class PersistentStorage(ABC):
    """Contract of the cache backend used by the lint engines."""

    @abstractmethod
    def save_data(self, domain: str, key: str, data: str) -> None:
        pass

    @abstractmethod
    def restore_data(self, domain: str, key: str) -> str | None:
        """Return the stored data, or None on a miss."""
        pass

    @abstractmethod
    def get_lock(self, key: str) -> bool:
        """Try to acquire the advisory lock for key without blocking."""
        pass

    @abstractmethod
    def release_lock(self, key: str) -> None:
        pass

    def close(self) -> None:
        """Release resources held by the backend."""
        pass


class MemoryStorage(PersistentStorage):
    """In-process storage, used by tests and by `storage_manager: memory`."""

    def __init__(self):
        self.data: dict[tuple[str, str], str] = {}
        self.locks: set[str] = set()

    def save_data(self, domain: str, key: str, data: str) -> None:
        self.data[(domain, key)] = data

    def restore_data(self, domain: str, key: str) -> str | None:
        return self.data.get((domain, key))

    def get_lock(self, key: str) -> bool:
        if key in self.locks:
            return False
        self.locks.add(key)
        return True

    def release_lock(self, key: str) -> None:
        self.locks.discard(key)


class SqliteStorage(PersistentStorage):
    """SQLite database holding cached data and advisory locks.

    The storage uses two tables:
    - data: serialized values keyed by (domain, key)
    - locks: one row per held lock, with the time it was taken

    Uses WAL mode so several xref processes can share one data directory.
    """

    def __init__(self, data_dir: Path, lock_timeout: float = DEFAULT_LOCK_TIMEOUT):
        """Initialize the storage database.

        Args:
            data_dir: Directory to store the database (typically .xref-data)
            lock_timeout: Seconds after which a held lock may be stolen

        Raises:
            StorageError: If the database can't be opened.
        """
        self.data_dir = data_dir
        self.db_path = self.data_dir / "storage.db"
        self.lock_timeout = lock_timeout
        self.conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._open()

    def _open(self) -> None:
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
                timeout=10.0,
            )
            self.conn.execute("PRAGMA journal_mode = WAL")
            self.conn.execute("PRAGMA busy_timeout = 10000")  # milliseconds
            self.create_tables()
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Failed to open storage database at {self.db_path}: {e}")
            if self.conn:
                self.conn.close()
                self.conn = None
            raise StorageError(f"Can't open storage at {self.db_path}: {e}") from e

    def create_tables(self) -> None:
        """Create database schema if it doesn't exist."""
        if self.conn is None:
            raise StorageError("Database connection not initialized")

        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS data (
                domain TEXT NOT NULL,
                key TEXT NOT NULL,
                value TEXT NOT NULL,
                PRIMARY KEY (domain, key)
            )
        """)

        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS locks (
                key TEXT PRIMARY KEY,
                acquired_at REAL NOT NULL
            )
        """)

        self.conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def __enter__(self) -> "SqliteStorage":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def save_data(self, domain: str, key: str, data: str) -> None:
        """Insert or replace one entry.

        Raises:
            StorageError: If database operation fails.
        """
        if self.conn is None:
            raise StorageError("Database connection not initialized")

        with self._lock:
            try:
                self.conn.execute(
                    "INSERT OR REPLACE INTO data (domain, key, value) VALUES (?, ?, ?)",
                    (domain, key, data)
                )
                self.conn.commit()
            except sqlite3.Error as e:
                logger.error(f"Failed to save {domain}/{key}: {e}")
                self.conn.rollback()
                raise StorageError(f"Failed to save {domain}/{key}: {e}") from e

    def restore_data(self, domain: str, key: str) -> str | None:
        """Look up one entry.

        Returns:
            Stored value, or None if there is no entry

        Raises:
            StorageError: If database operation fails.
        """
        if self.conn is None:
            raise StorageError("Database connection not initialized")

        with self._lock:
            try:
                cursor = self.conn.execute(
                    "SELECT value FROM data WHERE domain = ? AND key = ?",
                    (domain, key)
                )
                result = cursor.fetchone()
                return result[0] if result else None
            except sqlite3.Error as e:
                logger.error(f"Failed to restore {domain}/{key}: {e}")
                raise StorageError(f"Failed to restore {domain}/{key}: {e}") from e

    def get_lock(self, key: str) -> bool:
        """Take the lock for key, stealing it if the holder is older than lock_timeout.

        Returns:
            True if the lock is now held by the caller

        Raises:
            StorageError: If database operation fails.
        """
        if self.conn is None:
            raise StorageError("Database connection not initialized")

        now = time.time()
        with self._lock:
            try:
                self.conn.execute(
                    "DELETE FROM locks WHERE key = ? AND acquired_at < ?",
                    (key, now - self.lock_timeout)
                )
                cursor = self.conn.execute(
                    "INSERT OR IGNORE INTO locks (key, acquired_at) VALUES (?, ?)",
                    (key, now)
                )
                self.conn.commit()
                acquired = cursor.rowcount == 1
            except sqlite3.Error as e:
                logger.error(f"Failed to acquire lock {key}: {e}")
                self.conn.rollback()
                raise StorageError(f"Failed to acquire lock {key}: {e}") from e

        if not acquired:
            logger.warning(f"Lock {key} is held by another process")
        return acquired

    def release_lock(self, key: str) -> None:
        """Drop the lock for key; releasing a lock that isn't held is a no-op.

        Raises:
            StorageError: If database operation fails.
        """
        if self.conn is None:
            raise StorageError("Database connection not initialized")

        with self._lock:
            try:
                self.conn.execute("DELETE FROM locks WHERE key = ?", (key,))
                self.conn.commit()
            except sqlite3.Error as e:
                logger.error(f"Failed to release lock {key}: {e}")
                self.conn.rollback()
                raise StorageError(f"Failed to release lock {key}: {e}") from e
