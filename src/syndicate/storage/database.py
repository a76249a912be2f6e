"""
Shared SQLite connection for every store.

All stores (nodes, content, meta, options) share one connection and one
re-entrant lock, the same way the palace facade shares a connection
between its CRUD and search components.
"""

import sqlite3
import threading
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

from .schema import init_database

logger = logging.getLogger(__name__)


class Database:
    """
    Thread-safe wrapper around a single SQLite connection.

    Example:
        db = Database(tmp_path / "syndicate.sqlite")
        with db.transaction() as conn:
            conn.execute("INSERT INTO nodes (id, name) VALUES (?, ?)", (1, "main"))
    """

    def __init__(self, db_path: Union[str, Path], enable_wal: bool = True):
        """
        Args:
            db_path: Path to SQLite database file (or ':memory:' for in-memory)
            enable_wal: Enable WAL mode for concurrent writes (default: True)
        """
        self.db_path = Path(db_path) if str(db_path) != ':memory:' else ':memory:'

        if self.db_path != ':memory:':
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        # isolation_level=None: autocommit, explicit BEGIN in transaction()
        self._conn = sqlite3.connect(
            str(self.db_path),
            check_same_thread=False,
            isolation_level=None,
            timeout=30.0
        )
        self._conn.row_factory = sqlite3.Row
        self.lock = threading.RLock()
        self._depth = 0

        init_database(self._conn, enable_wal and self.db_path != ':memory:')
        logger.debug(f"Opened database at {self.db_path}")

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        with self.lock:
            return self._conn.execute(sql, params)

    def fetchone(self, sql: str, params: tuple = ()):
        with self.lock:
            return self._conn.execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: tuple = ()):
        with self.lock:
            return self._conn.execute(sql, params).fetchall()

    @contextmanager
    def transaction(self, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """
        Run a block of statements atomically.

        Nested calls join the outermost transaction.

        Args:
            immediate: Take the database write lock up front (BEGIN IMMEDIATE),
                so read-modify-write blocks exclude other connections
        """
        with self.lock:
            outermost = self._depth == 0
            if outermost:
                self._conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            self._depth += 1
            try:
                yield self._conn
            except Exception:
                self._depth -= 1
                if outermost:
                    self._conn.execute("ROLLBACK")
                raise
            else:
                self._depth -= 1
                if outermost:
                    self._conn.execute("COMMIT")

    def close(self) -> None:
        with self.lock:
            self._conn.close()
