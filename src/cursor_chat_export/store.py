"""Key-value store access for Cursor's state.vscdb databases.

Cursor keeps its state in SQLite files holding simple key/value tables:
``ItemTable`` in every workspace database and ``cursorDiskKV`` in the global
database. All access here is read-only.
"""

import logging
import sqlite3
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional

from .config import get_query_timeout
from .errors import StoreUnavailableError

logger = logging.getLogger(__name__)

WORKSPACE_TABLE = "ItemTable"
GLOBAL_TABLE = "cursorDiskKV"

# Stay well below SQLITE_MAX_VARIABLE_NUMBER on older builds
_BATCH_SIZE = 500


class KeyValueStore(ABC):
    """Read-only string key to text value lookup."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value stored under ``key``, or None when absent."""
        ...

    @abstractmethod
    def batch_get(self, keys: Iterable[str]) -> list[tuple[str, str]]:
        """Return ``(key, value)`` pairs for every present key."""
        ...

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class SqliteStore(KeyValueStore):
    """A key-value table inside a state.vscdb file, opened read-only.

    Every query runs under a deadline: a statement still running after
    ``timeout`` seconds is interrupted and reported as StoreUnavailableError.
    """

    def __init__(self, db_path: Path, table: str = WORKSPACE_TABLE, timeout: float | None = None):
        if table not in (WORKSPACE_TABLE, GLOBAL_TABLE):
            raise ValueError(f"Unknown table: {table}")
        self.db_path = Path(db_path)
        self.table = table
        self.timeout = timeout if timeout is not None else get_query_timeout()
        try:
            self._conn = sqlite3.connect(f"file:{self.db_path}?mode=ro", uri=True, timeout=self.timeout)
        except sqlite3.Error as e:
            raise StoreUnavailableError(str(self.db_path), str(e)) from e

    def get(self, key: str) -> Optional[str]:
        rows = self._query(f"SELECT value FROM {self.table} WHERE [key] = ?", (key,))
        if not rows:
            return None
        return _decode_value(rows[0][0])

    def batch_get(self, keys: Iterable[str]) -> list[tuple[str, str]]:
        keys = list(keys)
        results = []
        for start in range(0, len(keys), _BATCH_SIZE):
            chunk = keys[start: start + _BATCH_SIZE]
            placeholders = ",".join("?" for _ in chunk)
            rows = self._query(
                f"SELECT [key], value FROM {self.table} WHERE [key] IN ({placeholders})",
                tuple(chunk),
            )
            for key, value in rows:
                decoded = _decode_value(value)
                if decoded is not None:
                    results.append((key, decoded))
        return results

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _query(self, sql: str, params: tuple) -> list[tuple]:
        if self._conn is None:
            raise StoreUnavailableError(str(self.db_path), "store is closed")

        deadline = time.monotonic() + self.timeout
        # A non-zero return from the handler aborts the running statement
        self._conn.set_progress_handler(lambda: int(time.monotonic() > deadline), 1000)
        try:
            return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            logger.warning("Query on %s failed: %s", self.db_path, e)
            raise StoreUnavailableError(str(self.db_path), str(e)) from e
        finally:
            self._conn.set_progress_handler(None, 0)


def _decode_value(value) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else bytes(value).decode("utf-8", errors="replace")
