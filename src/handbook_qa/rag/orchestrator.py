"""Answer orchestrator — the request path behind ``POST /api/ask``.

Steps: validate → rate check → embed → cache check → retrieve → prompt →
generate (primary, then fallback) → finalize (dedupe citations, cache write).

Cache and retrieval problems degrade the answer, never fail it. Only a bad
question, the rate ceiling, an unusable embedding or both model tiers failing
end the request with an error.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from handbook_qa.rag.cache import SemanticCache
from handbook_qa.rag.citations import Citation, deduplicate_citations
from handbook_qa.rag.errors import (
    EmbeddingFailedError,
    GenerationUnavailableError,
    InvalidQuestionError,
    RateLimitedError,
)
from handbook_qa.rag.interfaces import Embedder, Generator
from handbook_qa.rag.prompt import build_prompt
from handbook_qa.rag.ratelimit import RateLimiter
from handbook_qa.rag.retriever import ContextRetriever

logger = logging.getLogger(__name__)

EMPTY_ANSWER = "I couldn’t compose an answer from the provided residence materials."


@dataclass
class AnswerResult:
    answer: str
    citations: list[Citation] = field(default_factory=list)
    cached: bool = False


@dataclass
class ModelTier:
    model: str
    max_tokens: int


class AnswerOrchestrator:
    """Answers one question end to end.

    Args:
        embedder: Question embedder.
        cache: Semantic answer cache.
        retriever: Chunk retriever.
        generator: Single-call model client.
        limiter: Per-client request limiter.
        primary: Fast model tried first.
        fallback: Stronger model tried once after a primary failure or empty answer.
        top_k: Number of chunks to retrieve.
    """

    def __init__(
        self,
        embedder: Embedder,
        cache: SemanticCache,
        retriever: ContextRetriever,
        generator: Generator,
        limiter: RateLimiter,
        primary: ModelTier,
        fallback: ModelTier,
        top_k: int = 6,
    ) -> None:
        self._embedder = embedder
        self._cache = cache
        self._retriever = retriever
        self._generator = generator
        self._limiter = limiter
        self.primary = primary
        self.fallback = fallback
        self.top_k = top_k

    async def answer(self, question: object, client_ip: str) -> AnswerResult:
        """Answer *question* for the client at *client_ip*.

        Raises:
            InvalidQuestionError: Question missing, not a string or blank.
            RateLimitedError: The client is over its request ceiling.
            EmbeddingFailedError: The question could not be embedded.
            GenerationUnavailableError: Both model tiers raised.
        """
        if not isinstance(question, str) or not question.strip():
            raise InvalidQuestionError()
        question = question.strip()

        if self._limiter.hit(client_ip):
            logger.info("Rate limit exceeded for %s", client_ip)
            raise RateLimitedError()

        vector = await self._embed(question)

        # sqlite-vec queries block; keep them off the event loop.
        cached = await asyncio.to_thread(self._cache.lookup, vector)
        if cached.hit and cached.id is not None:
            logger.info("Cache hit for %r", question[:100])
            self._cache.record_hit(cached.id)
            return AnswerResult(answer=cached.answer or "", citations=cached.citations, cached=True)

        context = await asyncio.to_thread(self._retriever.retrieve, vector, self.top_k)
        logger.info("Retrieved %d context blocks for %r", len(context.blocks), question[:100])
        prompt = build_prompt(question, context.blocks)

        text = await self._generate(prompt)
        if not text:
            return AnswerResult(answer=EMPTY_ANSWER, citations=[], cached=False)

        citations = deduplicate_citations(context.citations, self._retriever.default_source)
        self._cache.store(question, vector, text, citations)
        return AnswerResult(answer=text, citations=citations, cached=False)

    async def _embed(self, question: str) -> list[float]:
        try:
            vector = await self._embedder.aembed_query(question)
        except Exception as exc:
            logger.error("Embedding failed for %r: %s", question[:100], exc)
            raise EmbeddingFailedError(str(exc) or type(exc).__name__) from exc
        if not vector:
            logger.error("Empty embedding for %r", question[:100])
            raise EmbeddingFailedError("Embedding model returned an empty vector.")
        return list(vector)

    async def _call(self, tier: ModelTier, prompt: str) -> str:
        text = await self._generator.generate(tier.model, prompt, tier.max_tokens)
        return (text or "").strip()

    async def _generate(self, prompt: str) -> str:
        """Primary, then at most one fallback call. Returns "" if nothing usable came back."""
        try:
            text = await self._call(self.primary, prompt)
        except Exception as exc:
            logger.error("Primary model call failed (%s): %s", self.primary.model, exc)
            try:
                return await self._call(self.fallback, prompt)
            except Exception as exc2:
                logger.error("Fallback model call failed (%s): %s", self.fallback.model, exc2)
                raise GenerationUnavailableError(str(exc2) or type(exc2).__name__) from exc2

        if text:
            return text

        logger.warning("Primary model returned an empty answer; trying %s", self.fallback.model)
        try:
            return await self._call(self.fallback, prompt)
        except Exception as exc:
            logger.error("Fallback on empty response failed (%s): %s", self.fallback.model, exc)
            return ""
