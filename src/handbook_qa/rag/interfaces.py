"""Structural types for the collaborators of the answer pipeline.

The production implementations are ``handbook_qa.db.repository.Repository``
(VectorIndex), ``handbook_qa.rag.embedder.EmbeddingGateway`` (Embedder) and
``handbook_qa.rag.generator.LiteLLMGenerator`` (Generator). Tests substitute
in-memory fakes.
"""

from __future__ import annotations

from typing import Protocol

from handbook_qa.db.models import ChunkMatch, QuestionMatch


class VectorIndex(Protocol):
    """Nearest-neighbour lookups and writes over chunks and cached answers."""

    def match_chunks(self, vector: list[float], count: int) -> list[ChunkMatch]: ...

    def match_questions(
        self, vector: list[float], threshold: float, count: int
    ) -> list[QuestionMatch]: ...

    def upsert_cache(
        self,
        question: str,
        embedding: list[float],
        answer: str,
        citations: list[dict],
        doc_version: str,
        dedup_threshold: float = 0.9,
    ) -> int: ...

    def insert_cache(
        self,
        question: str,
        embedding: list[float],
        answer: str,
        citations: list[dict],
        doc_version: str,
    ) -> int: ...

    def increment_cache_hit(self, cache_id: int) -> None: ...


class Embedder(Protocol):
    async def aembed_query(self, text: str) -> list[float]: ...


class Generator(Protocol):
    """One model call. Returns the (possibly empty) answer text or raises."""

    async def generate(self, model: str, prompt: str, max_tokens: int) -> str: ...
