"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/cache.py
Hash caches: remember content hashes across runs so unchanged files are not re-read.
"""

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from spacesaver.core.interfaces import HashCache

logger = logging.getLogger(__name__)


class InMemoryHashCache(HashCache):
    """Process-local cache, mostly useful for repeated scans in one session."""

    def __init__(self):
        self._entries: Dict[Tuple[str, int], str] = {}
        self._lock = threading.Lock()

    def get(self, path: str, modified: int) -> Optional[str]:
        with self._lock:
            return self._entries.get((path, modified))

    def set(self, path: str, modified: int, content_hash: str) -> None:
        with self._lock:
            self._entries[(path, modified)] = content_hash

    def __len__(self):
        return len(self._entries)


class SqliteHashCache(HashCache):
    """
    Persistent cache backed by a single SQLite table.
    Safe to share between worker threads; every access goes through one lock.
    """

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS file_hashes (
            path TEXT NOT NULL,
            modified INTEGER NOT NULL,
            hash TEXT NOT NULL,
            PRIMARY KEY (path, modified)
        )
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        db_path = str(db_path)
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._lock = threading.Lock()
        with self._lock, self._conn:
            self._conn.execute(self.SCHEMA)
        logger.debug(f"Hash cache opened: {db_path}")

    def get(self, path: str, modified: int) -> Optional[str]:
        with self._lock:
            row = self._conn.execute(
                "SELECT hash FROM file_hashes WHERE path = ? AND modified = ?",
                (path, modified),
            ).fetchone()
        return row[0] if row else None

    def set(self, path: str, modified: int, content_hash: str) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO file_hashes (path, modified, hash) VALUES (?, ?, ?)",
                (path, modified, content_hash),
            )

    def forget(self, path: str) -> None:
        """Drops every cached hash of a path (e.g. after it was transcoded)."""
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM file_hashes WHERE path = ?", (path,))

    def __len__(self):
        with self._lock:
            return self._conn.execute("SELECT COUNT(*) FROM file_hashes").fetchone()[0]

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> 'SqliteHashCache':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
