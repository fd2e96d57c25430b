"""sqlite-vec virtual tables for chunk and cached-question embeddings."""

from __future__ import annotations

import re
import sqlite3

CHUNK_VEC_TABLE = "vec_chunks"
QUESTION_VEC_TABLE = "vec_questions"


def ensure_vec_table(conn: sqlite3.Connection, table: str, dimensions: int) -> str:
    """Create a cosine-distance vec0 table called *table* if missing.

    Args:
        conn: Active database connection (sqlite-vec must be loaded).
        table: Table name; lowercase letters, digits and underscores only.
        dimensions: Embedding vector dimensions (1536 for text-embedding-3-small).

    Returns:
        The table name.
    """
    if not re.fullmatch(r"[a-z0-9_]+", table):
        raise ValueError(f"Invalid vec table name '{table}'.")
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    existing = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()

    if existing is None:
        conn.execute(
            f"CREATE VIRTUAL TABLE {table} USING "
            f"vec0(embedding float[{dimensions}] distance_metric=cosine)"
        )
        conn.commit()

    return table


def ensure_vec_tables(conn: sqlite3.Connection, dimensions: int) -> None:
    """Create both the chunk and the question vec tables."""
    ensure_vec_table(conn, CHUNK_VEC_TABLE, dimensions)
    ensure_vec_table(conn, QUESTION_VEC_TABLE, dimensions)


def similarity_from_distance(distance: float) -> float:
    """Convert a vec0 cosine distance into a cosine similarity."""
    return 1.0 - float(distance)
