"""Handbook store: SQLite + sqlite-vec."""

from handbook_qa.db.connection import Database
from handbook_qa.db.migrations import MIGRATIONS, run_migrations
from handbook_qa.db.repository import Repository
from handbook_qa.db.schema import initialize
from handbook_qa.db.vectors import ensure_vec_table, ensure_vec_tables

__all__ = [
    "Database",
    "Repository",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "ensure_vec_table",
    "ensure_vec_tables",
]
