"""SQLite connection layer with sqlite-vec extension."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import sqlite_vec


class Database:
    """Handbook vector store: one SQLite file with sqlite-vec loaded.

    Two access tiers are supported: the default read-write connection used by
    ingestion and cache writes, and a read-only connection (``read_only=True``)
    for the request path, which can only run similarity searches.
    """

    def __init__(self, db_path: Path | str, *, read_only: bool = False) -> None:
        """Store the database path. Call connect() to open the connection.

        Args:
            db_path: Path to the SQLite database file (created if missing,
                unless *read_only*).
            read_only: Open with ``mode=ro``; the file must already exist.
        """
        self.db_path = Path(db_path)
        self.read_only = read_only
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        """Open a connection, load sqlite-vec, and return the connection.

        Connections may be handed to the background writer thread, so the
        same-thread check is disabled; each connection is still used by one
        thread at a time.
        """
        if self.read_only:
            if not self.db_path.exists():
                raise FileNotFoundError(f"Database not found: {self.db_path}")
            uri = f"{self.db_path.resolve().as_uri()}?mode=ro"
            conn = sqlite3.connect(uri, uri=True, check_same_thread=False)
        else:
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.enable_load_extension(True)
        sqlite_vec.load(conn)
        conn.enable_load_extension(False)
        if not self.read_only:
            conn.execute("PRAGMA journal_mode = WAL")
        return conn

    def __enter__(self) -> sqlite3.Connection:
        """Open the database and return the connection (context manager support)."""
        self._conn = self.connect()
        return self._conn

    def __exit__(self, *args: object) -> None:
        """Close the connection when leaving the context manager."""
        if self._conn:
            self._conn.close()
            self._conn = None
