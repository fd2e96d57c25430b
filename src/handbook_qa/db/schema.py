"""Database initialization: relational tables plus vector tables."""

from __future__ import annotations

import sqlite3

from handbook_qa.db.migrations import run_migrations
from handbook_qa.db.vectors import ensure_vec_tables


def initialize(conn: sqlite3.Connection, dimensions: int = 1536) -> None:
    """Bring the schema up to date and create the vec tables (idempotent)."""
    run_migrations(conn)
    ensure_vec_tables(conn, dimensions)
