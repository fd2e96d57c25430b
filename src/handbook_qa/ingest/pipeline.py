"""Ingestion pipeline — rebuild the chunk store from a directory of PDFs.

For each document:
  1. Extract raw text and page count (pypdf).
  2. Sanitize the full text (uncapped) and split it into token windows.
  3. Per window: sanitize + cap, skip if blank, append related links,
     estimate the page from the window's character offset, embed, hash, store.

The store is cleared first: every run is a full rebuild. Ingestion must not
run concurrently with itself; queries during a run may see a partial corpus.
"""

from __future__ import annotations

import hashlib
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from handbook_qa.db.models import Chunk
from handbook_qa.db.repository import Repository
from handbook_qa.ingest.chunker import TokenChunker
from handbook_qa.ingest.links import enrich_with_links, extract_links
from handbook_qa.ingest.pdf import PdfText, extract_pdf
from handbook_qa.ingest.sanitize import MAX_CHUNK_CHARS, sanitize_chunk, sanitize_text

logger = logging.getLogger(__name__)


class IngestError(RuntimeError):
    """Raised when ingestion cannot start (e.g. no documents found)."""


@dataclass
class DocumentReport:
    source: str
    pages: int
    chunks: int = 0
    inserted: int = 0
    skipped: int = 0
    links: int = 0


@dataclass
class IngestReport:
    cleared: int = 0
    documents: list[DocumentReport] = field(default_factory=list)

    @property
    def inserted(self) -> int:
        return sum(d.inserted for d in self.documents)

    @property
    def skipped(self) -> int:
        return sum(d.skipped for d in self.documents)


def estimate_page(position: int, chars_per_page: float, total_pages: int) -> int:
    """Map a character offset to a page in ``[1, total_pages]``.

    Assumes uniform character density per page; the extractor does not keep
    page boundaries.
    """
    if chars_per_page <= 0:
        return 1
    return min(total_pages, max(1, math.ceil(position / chars_per_page)))


def content_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def find_documents(docs_dir: Path) -> list[Path]:
    """Return the PDFs directly inside *docs_dir*, sorted by name."""
    if not docs_dir.is_dir():
        return []
    return sorted(p for p in docs_dir.iterdir() if p.is_file() and p.suffix.lower() == ".pdf")


class IngestionPipeline:
    """Rebuild the chunk store from source PDFs.

    Args:
        repo: Read-write Repository.
        embed: Passage embedding function (text → vector).
        chunker: Token chunker (800 / 120 by default).
        extractor: PDF text extractor; replaceable for tests.
        max_chunk_chars: Per-chunk character cap applied after sanitization.
        on_chunk: Optional progress callback, called once per window with
            ``(document_name, window_index, window_count)``.
    """

    def __init__(
        self,
        repo: Repository,
        embed: Callable[[str], list[float]],
        chunker: TokenChunker | None = None,
        extractor: Callable[[Path], PdfText] = extract_pdf,
        max_chunk_chars: int = MAX_CHUNK_CHARS,
        on_chunk: Callable[[str, int, int], None] | None = None,
    ) -> None:
        self._repo = repo
        self._embed = embed
        self._chunker = chunker or TokenChunker()
        self._extractor = extractor
        self._max_chunk_chars = max_chunk_chars
        self._on_chunk = on_chunk

    def run(self, docs_dir: Path | str) -> IngestReport:
        """Clear the store and ingest every PDF in *docs_dir*.

        Raises:
            IngestError: If *docs_dir* contains no PDFs.
        """
        docs_dir = Path(docs_dir)
        files = find_documents(docs_dir)
        if not files:
            raise IngestError(f"No PDFs found in {docs_dir}")

        report = IngestReport(cleared=self._repo.clear_chunks())
        logger.info("Cleared %d existing chunks", report.cleared)

        for path in files:
            report.documents.append(self.ingest_document(path))
        return report

    def ingest_document(self, path: Path) -> DocumentReport:
        """Chunk, embed and store a single PDF. Returns its counts."""
        extracted = self._extractor(path)
        total_pages = extracted.page_count or 1
        full_text = sanitize_text(extracted.text)
        windows = self._chunker.split(full_text)

        doc = DocumentReport(
            source=path.name,
            pages=total_pages,
            chunks=len(windows),
            links=len(extract_links(full_text)),
        )
        logger.info(
            "Processing %s: %d pages, %d chars, %d chunks, %d links",
            path.name, total_pages, len(full_text), len(windows), doc.links,
        )

        chars_per_page = len(full_text) / total_pages
        position = 0

        for i, original in enumerate(windows):
            if self._on_chunk is not None:
                self._on_chunk(path.name, i, len(windows))

            cleaned = sanitize_chunk(original, self._max_chunk_chars)
            if not cleaned.strip():
                doc.skipped += 1
                position += len(original)
                continue

            enriched = enrich_with_links(cleaned)
            page = estimate_page(position, chars_per_page, total_pages)
            position += len(original)

            try:
                embedding = self._embed(enriched)
            except Exception as exc:
                logger.error("Embed failed for %s chunk %d: %s", path.name, i + 1, exc)
                doc.skipped += 1
                continue

            self._repo.add_chunk(
                Chunk(
                    source=path.name,
                    page=page,
                    section=None,
                    content=enriched,
                    embedding=embedding,
                    sha256=content_hash(enriched),
                )
            )
            doc.inserted += 1

        logger.info("Finished %s: inserted=%d, skipped=%d", path.name, doc.inserted, doc.skipped)
        return doc
