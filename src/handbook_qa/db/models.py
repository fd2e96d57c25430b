"""Domain models for the handbook store."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Chunk:
    """A persisted retrieval unit.

    ``section`` is reserved for a sub-location label and is always None at
    ingestion. ``sha256`` fingerprints ``content`` for auditing; it is not a
    uniqueness constraint.
    """

    source: str
    content: str
    embedding: list[float]
    sha256: str
    page: int | None = None
    section: str | None = None
    id: int | None = None  # set after insert; None for unsaved chunks


@dataclass
class ChunkMatch:
    content: str
    source: str | None
    page: int | None
    section: str | None
    similarity: float


@dataclass
class CachedQA:
    id: int
    question: str
    answer: str
    citations: list[dict] = field(default_factory=list)
    doc_version: str = ""
    hits: int = 0


@dataclass
class QuestionMatch:
    id: int
    question: str
    answer: str
    citations: list[dict]
    similarity: float
