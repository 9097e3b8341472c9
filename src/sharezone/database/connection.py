"""Thread-local SQLite access for the metadata store."""

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path

from .schema import SCHEMA_VERSION, get_init_schema
from ..core.exceptions import StorageError


class DatabaseConnection:
    """One autocommit SQLite connection per thread, schema created on first use."""

    __slots__ = ("db_path", "timeout", "_local", "_setup_lock", "_ready")

    def __init__(self, db_path="./sharezone.db", timeout=5.0):
        self.db_path = Path(db_path).expanduser()
        self.timeout = timeout
        self._local = threading.local()
        self._setup_lock = threading.Lock()
        self._ready = False

    def initialize(self):
        """Create tables, indexes and triggers (idempotent)."""
        if self._ready:
            return
        with self._setup_lock:
            if self._ready:
                return
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with self._cursor() as cursor:
                for statement in get_init_schema():
                    cursor.execute(statement)
            self._ready = True

    def _connect(self):
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = sqlite3.connect(str(self.db_path), timeout=self.timeout, isolation_level=None)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            self._local.conn = conn
        return conn

    @contextmanager
    def _cursor(self):
        cursor = None
        try:
            cursor = self._connect().cursor()
            yield cursor
        except sqlite3.Error as e:
            raise StorageError(f"Database error: {e}") from e
        finally:
            if cursor is not None:
                cursor.close()

    def execute(self, query, params=()):
        """Run one statement and return how many rows it changed."""
        with self._cursor() as cursor:
            cursor.execute(query, params)
            return cursor.rowcount

    def fetch_one(self, query, params=()):
        with self._cursor() as cursor:
            row = cursor.execute(query, params).fetchone()
            return dict(row) if row is not None else None

    def fetch_all(self, query, params=()):
        with self._cursor() as cursor:
            return [dict(row) for row in cursor.execute(query, params).fetchall()]

    def get_version(self):
        """Highest applied schema version, 0 for an uninitialized database."""
        try:
            row = self.fetch_one("SELECT MAX(version) AS v FROM schema_version")
        except StorageError:
            return 0
        return (row or {}).get("v") or 0

    def is_current(self):
        return self.get_version() == SCHEMA_VERSION

    def close(self):
        """Close the calling thread's connection."""
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None
