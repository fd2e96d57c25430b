"""Shared pytest fixtures and in-memory fakes."""

from __future__ import annotations

import math

import pytest

from handbook_qa.db.connection import Database
from handbook_qa.db.models import ChunkMatch, QuestionMatch
from handbook_qa.db.schema import initialize

DIMS = 3


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized (3-dim vectors), closed after test."""
    db = Database(tmp_path / ".handbook.db")
    conn = db.connect()
    initialize(conn, dimensions=DIMS)
    yield conn
    conn.close()


# ------------------------------------------------------------------
# Fakes
# ------------------------------------------------------------------


class CharEncoding:
    """One token per character; stands in for a tiktoken encoding offline."""

    def encode(self, text, **kwargs):
        return [ord(c) for c in text]

    def decode(self, tokens):
        return "".join(chr(t) for t in tokens)


def _cosine(a, b):
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    if not na or not nb:
        return 0.0
    return dot / (na * nb)


class FakeIndex:
    """In-memory VectorIndex with cosine similarity."""

    def __init__(self):
        self.chunks = []  # (vector, ChunkMatch-without-similarity kwargs)
        self.cache = {}  # id → dict
        self.fail_match_chunks = False
        self.fail_match_questions = False
        self.fail_upsert = False
        self.upsert_calls = 0
        self.insert_calls = 0
        self._next_id = 1

    def add_chunk(self, vector, content, source="Handbook.pdf", page=1, section=None):
        self.chunks.append(
            (vector, {"content": content, "source": source, "page": page, "section": section})
        )

    def match_chunks(self, vector, count):
        if self.fail_match_chunks:
            raise RuntimeError("match_chunks unavailable")
        scored = [
            ChunkMatch(similarity=_cosine(vector, v), **row) for v, row in self.chunks
        ]
        scored.sort(key=lambda m: m.similarity, reverse=True)
        return scored[:count]

    def match_questions(self, vector, threshold, count):
        if self.fail_match_questions:
            raise RuntimeError("match_questions unavailable")
        matches = []
        for cache_id, entry in self.cache.items():
            sim = _cosine(vector, entry["embedding"])
            if sim >= threshold:
                matches.append(
                    QuestionMatch(
                        id=cache_id,
                        question=entry["question"],
                        answer=entry["answer"],
                        citations=entry["citations"],
                        similarity=sim,
                    )
                )
        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches[:count]

    def upsert_cache(self, question, embedding, answer, citations, doc_version, dedup_threshold=0.9):
        self.upsert_calls += 1
        if self.fail_upsert:
            raise RuntimeError("upsert unavailable")
        for cache_id, entry in self.cache.items():
            if _cosine(embedding, entry["embedding"]) >= dedup_threshold:
                entry.update(answer=answer, citations=citations, doc_version=doc_version)
                return cache_id
        return self._insert(question, embedding, answer, citations, doc_version)

    def insert_cache(self, question, embedding, answer, citations, doc_version):
        self.insert_calls += 1
        return self._insert(question, embedding, answer, citations, doc_version)

    def _insert(self, question, embedding, answer, citations, doc_version):
        cache_id = self._next_id
        self._next_id += 1
        self.cache[cache_id] = {
            "question": question,
            "embedding": list(embedding),
            "answer": answer,
            "citations": citations,
            "doc_version": doc_version,
            "hits": 0,
        }
        return cache_id

    def increment_cache_hit(self, cache_id):
        self.cache[cache_id]["hits"] += 1


class FakeEmbedder:
    """Maps known questions to fixed vectors; everything else to *default*."""

    def __init__(self, vectors=None, default=(1.0, 0.0, 0.0)):
        self.vectors = dict(vectors or {})
        self.default = list(default)
        self.calls = []
        self.error = None

    async def aembed_query(self, text):
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return list(self.vectors.get(text, self.default))


class FakeGenerator:
    """Scripted model: each call pops the next outcome (str or Exception)."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def generate(self, model, prompt, max_tokens):
        self.calls.append((model, prompt, max_tokens))
        outcome = self.outcomes.pop(0) if self.outcomes else ""
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def char_encoding():
    return CharEncoding()


@pytest.fixture
def fake_index():
    return FakeIndex()


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def make_generator():
    return FakeGenerator
