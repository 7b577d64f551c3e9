"""
SymJump Persistent Stores

A minimal get/set key/value contract plus two implementations:

* :class:`MemoryStore` — process-local, used by tests and throwaway clients.
* :class:`SqliteStore` — one JSON value per key in a small SQLite file,
  shared by every root a user searches (the store is installation-wide,
  not per project).

Values must be JSON-serializable.  A value that cannot be decoded is
reported as missing; callers never see a half-parsed blob.
"""

import json
import logging
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

from symjump.exceptions import StoreError

logger = logging.getLogger(__name__)


class KeyValueStore:
    """
    Abstract base for persistent stores.

    Subclasses implement :meth:`get` and :meth:`set`; everything else in
    SymJump talks to a store only through those two calls.
    """

    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value for *key*, or *default* when absent."""
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        """Persist *value* under *key*, replacing any previous value."""
        raise NotImplementedError

    def close(self) -> None:
        """Release resources. Idempotent."""


class MemoryStore(KeyValueStore):
    """Dict-backed store.

    Values are round-tripped through JSON on write so a test observes the
    same copy semantics (and the same serialization failures) as
    :class:`SqliteStore`.
    """

    def __init__(self, initial: Dict[str, Any] | None = None):
        self._data: Dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        raw = self._data.get(key)
        if raw is None:
            return default
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise StoreError(f"Value for '{key}' is not JSON-serializable: {exc}") from exc

    def keys(self):
        return list(self._data.keys())


class SqliteStore(KeyValueStore):
    """SQLite-based key/value store.

    Uses thread-local connections so that each thread reuses a single
    connection instead of opening/closing one per call.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Return a thread-local SQLite connection, creating it on first use."""
        if not hasattr(self._local, "conn") or self._local.conn is None:
            self._local.conn = sqlite3.connect(self.db_path)
        return self._local.conn

    def close(self) -> None:
        """Close the thread-local connection for the current thread. Idempotent."""
        if hasattr(self._local, "conn") and self._local.conn is not None:
            self._local.conn.close()
            self._local.conn = None

    def _init_db(self):
        try:
            conn = self._get_connection()
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
            """)
            conn.commit()
        except sqlite3.Error as exc:
            logger.warning(f"State database {self.db_path} is unusable, reads will be empty: {exc}")
            self._usable = False
        else:
            self._usable = True

    def get(self, key: str, default: Any = None) -> Any:
        if not self._usable:
            return default
        try:
            conn = self._get_connection()
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            logger.warning(f"Could not read '{key}' from {self.db_path}: {exc}")
            return default
        if row is None:
            return default
        try:
            return json.loads(row[0])
        except json.JSONDecodeError as exc:
            logger.warning(f"Discarding undecodable value for '{key}' in {self.db_path}: {exc}")
            return default

    def set(self, key: str, value: Any) -> None:
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise StoreError(f"Value for '{key}' is not JSON-serializable: {exc}") from exc
        if not self._usable:
            raise StoreError(f"State database {self.db_path} is unusable")
        # ISO string avoids the sqlite3 default datetime adapter deprecation (3.12+)
        now_iso = datetime.now().isoformat()
        try:
            conn = self._get_connection()
            conn.execute("""
                INSERT OR REPLACE INTO kv_store (key, value, updated_at)
                VALUES (?, ?, ?)
            """, (key, payload, now_iso))
            conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Could not write '{key}' to {self.db_path}: {exc}") from exc
