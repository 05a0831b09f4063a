"""SQLite connection layer with sqlite-vec extension."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import sqlite_vec

MEMORY = ":memory:"


class Database:
    """SQLite database with optional sqlite-vec vector search support."""

    def __init__(self, db_path: Path | str, *, load_vec: bool = True) -> None:
        """Store the database path. Call connect() to open the connection.

        Args:
            db_path: Path to the SQLite database file (created if missing), or
                ``":memory:"`` for a process-local database.
            load_vec: Load the sqlite-vec extension on connect.
        """
        self.db_path = db_path if str(db_path) == MEMORY else Path(db_path)
        self.load_vec = load_vec
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        """Open a connection and return it.

        The connection may be shared between threads; callers serialise
        access with their own lock.
        """
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        if self.load_vec:
            conn.enable_load_extension(True)
            sqlite_vec.load(conn)
            conn.enable_load_extension(False)
        conn.execute("PRAGMA foreign_keys = ON")
        if self.db_path != MEMORY:
            conn.execute("PRAGMA journal_mode = WAL")
        return conn

    def __enter__(self) -> sqlite3.Connection:
        self._conn = self.connect()
        return self._conn

    def __exit__(self, *args: object) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None
