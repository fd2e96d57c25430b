"""Context retriever: nearest chunks for a question vector, with citations.

Retrieval never fails a request. Any index error yields an empty context and
the prompt tells the model that no excerpts were found.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from handbook_qa.rag.citations import DEFAULT_SOURCE, Citation
from handbook_qa.rag.interfaces import VectorIndex

logger = logging.getLogger(__name__)


@dataclass
class RetrievedContext:
    """Excerpt texts for the prompt and one raw citation per matched row."""

    blocks: list[str] = field(default_factory=list)
    citations: list[Citation] = field(default_factory=list)


class ContextRetriever:
    def __init__(
        self,
        index: VectorIndex,
        max_chunks: int = 6,
        default_source: str = DEFAULT_SOURCE,
    ) -> None:
        self._index = index
        self.max_chunks = max_chunks
        self.default_source = default_source

    def retrieve(self, vector: list[float], max_chunks: int | None = None) -> RetrievedContext:
        count = self.max_chunks if max_chunks is None else max_chunks
        try:
            rows = self._index.match_chunks(vector, count)
        except Exception as exc:
            logger.warning("Chunk retrieval failed, continuing without context: %s", exc)
            return RetrievedContext()

        logger.info("Retrieved %d chunks", len(rows))
        if not rows:
            logger.warning("No matching chunks; has the corpus been ingested?")

        context = RetrievedContext()
        for row in rows:
            content = str(row.content or "")
            if content:
                context.blocks.append(content)
            page = row.page
            context.citations.append(
                Citation(
                    source=row.source or self.default_source,
                    page=page if isinstance(page, int) and not isinstance(page, bool) else None,
                    section=row.section,
                )
            )
        return context
