"""Repository pattern for all handbook store operations.

Single interface for: chunks, chunk embeddings, cached question/answer pairs
and their embeddings. It is also the production nearest-neighbour service
behind the request path (see ``handbook_qa.rag.interfaces.VectorIndex``).
"""

from __future__ import annotations

import json
import sqlite3

from handbook_qa.db.models import CachedQA, Chunk, ChunkMatch, QuestionMatch
from handbook_qa.db.vectors import (
    CHUNK_VEC_TABLE,
    QUESTION_VEC_TABLE,
    similarity_from_distance,
)

# SQLite's default host-parameter limit is 999 on older builds.
_DELETE_BATCH = 500


class Repository:
    """Data access layer for chunks and the semantic answer cache.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see handbook_qa.db.schema.initialize).
        """
        self._conn = conn

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def add_chunk(self, chunk: Chunk) -> int:
        """Insert chunk + its embedding. Returns the new chunk id."""
        cur = self._conn.execute(
            """
            INSERT INTO chunks (source, page, section, content, sha256)
            VALUES (?, ?, ?, ?, ?)
            """,
            (chunk.source, chunk.page, chunk.section, chunk.content, chunk.sha256),
        )
        chunk_id = cur.lastrowid
        self._conn.execute(
            f"INSERT INTO {CHUNK_VEC_TABLE}(rowid, embedding) VALUES (?, ?)",
            (chunk_id, json.dumps(chunk.embedding)),
        )
        self._conn.commit()
        chunk.id = chunk_id
        return chunk_id

    def clear_chunks(self) -> int:
        """Delete every chunk and chunk embedding. Returns the number of chunks removed."""
        ids = [r[0] for r in self._conn.execute("SELECT id FROM chunks").fetchall()]
        for start in range(0, len(ids), _DELETE_BATCH):
            batch = ids[start : start + _DELETE_BATCH]
            placeholders = ",".join("?" * len(batch))
            self._conn.execute(
                f"DELETE FROM {CHUNK_VEC_TABLE} WHERE rowid IN ({placeholders})",  # noqa: S608
                batch,
            )
        self._conn.execute("DELETE FROM chunks")
        self._conn.commit()
        return len(ids)

    def count_chunks(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM chunks").fetchone()[0]

    def count_chunks_without_page(self) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM chunks WHERE page IS NULL"
        ).fetchone()[0]

    def chunk_counts_by_source(self) -> list[tuple[str, int]]:
        """Return [(source, chunk_count), ...] ordered by source name."""
        rows = self._conn.execute(
            "SELECT source, COUNT(*) AS n FROM chunks GROUP BY source ORDER BY source"
        ).fetchall()
        return [(r["source"], r["n"]) for r in rows]

    def match_chunks(self, vector: list[float], count: int) -> list[ChunkMatch]:
        """Nearest-neighbour search over chunks, most similar first."""
        vec_rows = self._knn(CHUNK_VEC_TABLE, vector, count)

        results: list[ChunkMatch] = []
        for vec_row in vec_rows:
            row = self._conn.execute(
                "SELECT source, page, section, content FROM chunks WHERE id = ?",
                (vec_row["rowid"],),
            ).fetchone()
            if row is None:
                continue
            results.append(
                ChunkMatch(
                    content=row["content"],
                    source=row["source"],
                    page=row["page"],
                    section=row["section"],
                    similarity=similarity_from_distance(vec_row["distance"]),
                )
            )
        return results

    # ------------------------------------------------------------------
    # Semantic answer cache
    # ------------------------------------------------------------------

    def match_questions(
        self, vector: list[float], threshold: float, count: int
    ) -> list[QuestionMatch]:
        """Cached questions with similarity >= *threshold*, most similar first."""
        results: list[QuestionMatch] = []
        for vec_row in self._knn(QUESTION_VEC_TABLE, vector, count):
            similarity = similarity_from_distance(vec_row["distance"])
            if similarity < threshold:
                continue
            row = self._conn.execute(
                "SELECT id, question, answer, citations FROM qa_cache WHERE id = ?",
                (vec_row["rowid"],),
            ).fetchone()
            if row is None:
                continue
            results.append(
                QuestionMatch(
                    id=row["id"],
                    question=row["question"],
                    answer=row["answer"],
                    citations=json.loads(row["citations"]),
                    similarity=similarity,
                )
            )
        results.sort(key=lambda m: m.similarity, reverse=True)
        return results

    def upsert_cache(
        self,
        question: str,
        embedding: list[float],
        answer: str,
        citations: list[dict],
        doc_version: str,
        dedup_threshold: float = 0.9,
    ) -> int:
        """Store an answer, reusing the closest entry if it is a near-duplicate.

        A near-duplicate (similarity >= *dedup_threshold*) keeps its id, question
        text and hit counter; its answer, citations and doc version are replaced.

        Returns:
            The id of the updated or newly inserted entry.
        """
        nearest = self._knn(QUESTION_VEC_TABLE, embedding, 1)
        if nearest and similarity_from_distance(nearest[0]["distance"]) >= dedup_threshold:
            cache_id = nearest[0]["rowid"]
            self._conn.execute(
                """
                UPDATE qa_cache
                SET answer = ?, citations = ?, doc_version = ?, updated_at = datetime('now')
                WHERE id = ?
                """,
                (answer, json.dumps(citations), doc_version, cache_id),
            )
            self._conn.commit()
            return cache_id
        return self.insert_cache(question, embedding, answer, citations, doc_version)

    def insert_cache(
        self,
        question: str,
        embedding: list[float],
        answer: str,
        citations: list[dict],
        doc_version: str,
    ) -> int:
        """Insert a new cache entry unconditionally. Returns its id."""
        cur = self._conn.execute(
            """
            INSERT INTO qa_cache (question, answer, citations, doc_version)
            VALUES (?, ?, ?, ?)
            """,
            (question, answer, json.dumps(citations), doc_version),
        )
        cache_id = cur.lastrowid
        self._conn.execute(
            f"INSERT INTO {QUESTION_VEC_TABLE}(rowid, embedding) VALUES (?, ?)",
            (cache_id, json.dumps(embedding)),
        )
        self._conn.commit()
        return cache_id

    def increment_cache_hit(self, cache_id: int) -> None:
        self._conn.execute("UPDATE qa_cache SET hits = hits + 1 WHERE id = ?", (cache_id,))
        self._conn.commit()

    def get_cached(self, cache_id: int) -> CachedQA | None:
        """Return a cache entry by id, or None if not found."""
        row = self._conn.execute(
            "SELECT id, question, answer, citations, doc_version, hits FROM qa_cache WHERE id = ?",
            (cache_id,),
        ).fetchone()
        return _row_to_cached(row) if row else None

    def cache_stats(self) -> tuple[int, int]:
        """Return (entries, total_hits)."""
        row = self._conn.execute(
            "SELECT COUNT(*), COALESCE(SUM(hits), 0) FROM qa_cache"
        ).fetchone()
        return row[0], row[1]

    def duplicate_questions(self) -> list[tuple[str, int]]:
        """Questions stored more than once verbatim, as [(question, count), ...]."""
        rows = self._conn.execute(
            """
            SELECT question, COUNT(*) AS n FROM qa_cache
            GROUP BY question HAVING n > 1 ORDER BY n DESC, question
            """
        ).fetchall()
        return [(r["question"], r["n"]) for r in rows]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _knn(self, table: str, vector: list[float], k: int) -> list[sqlite3.Row]:
        if k < 1:
            return []
        return self._conn.execute(
            f"SELECT rowid, distance FROM {table} WHERE embedding MATCH ? AND k = ? ORDER BY distance",
            (json.dumps(vector), k),
        ).fetchall()


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _row_to_cached(row: sqlite3.Row) -> CachedQA:
    return CachedQA(
        id=row["id"],
        question=row["question"],
        answer=row["answer"],
        citations=json.loads(row["citations"]),
        doc_version=row["doc_version"],
        hits=row["hits"],
    )
