"""Semantic answer cache.

Lookups go through the read-only index; hit counting and answer storage go
through the read-write index and run on the background writer, so neither
blocks nor fails a response.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from handbook_qa.rag.background import BackgroundWriter
from handbook_qa.rag.citations import Citation
from handbook_qa.rag.interfaces import VectorIndex

logger = logging.getLogger(__name__)


@dataclass
class CacheLookup:
    hit: bool
    answer: str | None = None
    citations: list[Citation] = field(default_factory=list)
    id: int | None = None


MISS = CacheLookup(hit=False)


class SemanticCache:
    """Two-threshold semantic cache over previously answered questions.

    Args:
        reader: Index used for nearest-neighbour lookups.
        writer: Index used for hit increments and stores (admin tier).
        background: Executor for fire-and-forget writes.
        retrieval_threshold: Candidate floor passed to the index query.
        admit_threshold: Minimum similarity for the best candidate to be served.
        candidates: Number of candidates requested from the index.
        dedup_threshold: Similarity at which a store overwrites an existing entry.
        doc_version: Corpus version tag written with every stored answer.
    """

    def __init__(
        self,
        reader: VectorIndex,
        writer: VectorIndex,
        background: BackgroundWriter,
        retrieval_threshold: float = 0.7,
        admit_threshold: float = 0.9,
        candidates: int = 5,
        dedup_threshold: float = 0.9,
        doc_version: str = "v2025",
    ) -> None:
        if retrieval_threshold > admit_threshold:
            raise ValueError(
                f"retrieval_threshold ({retrieval_threshold}) must not exceed "
                f"admit_threshold ({admit_threshold})"
            )
        self._reader = reader
        self._writer = writer
        self._background = background
        self.retrieval_threshold = retrieval_threshold
        self.admit_threshold = admit_threshold
        self.candidates = candidates
        self.dedup_threshold = dedup_threshold
        self.doc_version = doc_version

    def lookup(self, vector: list[float], admit_threshold: float | None = None) -> CacheLookup:
        """Return the best cached answer if it clears the admission threshold."""
        threshold = self.admit_threshold if admit_threshold is None else admit_threshold
        try:
            matches = self._reader.match_questions(
                vector, self.retrieval_threshold, self.candidates
            )
        except Exception as exc:
            logger.warning("Cache lookup failed, treating as miss: %s", exc)
            return MISS

        if not matches:
            logger.info("Cache miss: no candidates")
            return MISS

        best = matches[0]
        logger.info("Cache best similarity %.4f (threshold %.2f)", best.similarity, threshold)
        if best.similarity < threshold or not best.answer:
            return MISS

        return CacheLookup(
            hit=True,
            answer=best.answer,
            citations=[Citation.from_dict(c) for c in best.citations or []],
            id=best.id,
        )

    def record_hit(self, cache_id: int) -> None:
        """Schedule a hit-counter increment."""
        self._background.submit(
            lambda: self._writer.increment_cache_hit(cache_id),
            label=f"increment_cache_hit({cache_id})",
        )

    def store(
        self,
        question: str,
        vector: list[float],
        answer: str,
        citations: list[Citation],
    ) -> None:
        """Schedule a best-effort write of a fresh answer."""
        payload = [c.to_dict() for c in citations]
        self._background.submit(
            lambda: self._store_now(question, vector, answer, payload),
            label="cache store",
        )

    def _store_now(
        self, question: str, vector: list[float], answer: str, citations: list[dict]
    ) -> None:
        try:
            self._writer.upsert_cache(
                question, vector, answer, citations, self.doc_version,
                dedup_threshold=self.dedup_threshold,
            )
            logger.info("Cached answer for %r", question[:50])
            return
        except Exception as exc:
            logger.warning("Cache upsert failed, using plain insert: %s", exc)
        self._writer.insert_cache(question, vector, answer, citations, self.doc_version)
