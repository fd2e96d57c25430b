"""Embedding gateway: whitespace-normalized text → vector."""

from __future__ import annotations

import re

from handbook_qa.rag import llm_client

_WHITESPACE_RE = re.compile(r"\s+")


def normalize(text: str | None) -> str:
    """Collapse whitespace runs to a single space and trim."""
    return _WHITESPACE_RE.sub(" ", text or "").strip()


class EmbeddingGateway:
    """Wraps the embedding model.

    Whitespace differences between otherwise identical questions are removed
    before embedding so they map to the same vector. Empty input returns an
    empty vector without calling the model.
    """

    def __init__(self, model: str, timeout_s: float | None = None) -> None:
        self.model = model
        self.timeout_s = timeout_s

    def embed_passage(self, text: str) -> list[float]:
        """Embed a document chunk (ingestion, sync, retried)."""
        cleaned = normalize(text)
        if not cleaned:
            return []
        return llm_client.embed(self.model, cleaned)

    async def aembed_query(self, text: str) -> list[float]:
        """Embed a user question on the request path."""
        cleaned = normalize(text)
        if not cleaned:
            return []
        return await llm_client.aembed(self.model, cleaned, timeout=self.timeout_s)
