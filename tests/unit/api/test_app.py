"""Tests for the HTTP API (FastAPI TestClient over a fake-backed orchestrator)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from handbook_qa.api.app import build_services, client_ip, create_app
from handbook_qa.config import HandbookConfig
from handbook_qa.rag.background import BackgroundWriter
from handbook_qa.rag.cache import SemanticCache
from handbook_qa.rag.orchestrator import EMPTY_ANSWER, AnswerOrchestrator, ModelTier
from handbook_qa.rag.ratelimit import InMemoryBucketStore, RateLimiter
from handbook_qa.rag.retriever import ContextRetriever

QUESTION = {"question": "What are the quiet hours?"}


@pytest.fixture
def background():
    writer = BackgroundWriter()
    yield writer
    writer.shutdown()


@pytest.fixture
def make_client(fake_index, fake_embedder, fake_clock, background):
    fake_index.add_chunk([1.0, 0.0, 0.0], "Quiet hours are 11pm-8am", source="Handbook.pdf", page=12)

    def _make(generator, production=False, max_calls=60):
        orchestrator = AnswerOrchestrator(
            embedder=fake_embedder,
            cache=SemanticCache(fake_index, fake_index, background),
            retriever=ContextRetriever(fake_index),
            generator=generator,
            limiter=RateLimiter(InMemoryBucketStore(), max_calls=max_calls, clock=fake_clock),
            primary=ModelTier("openai/gpt-5-nano", 220),
            fallback=ModelTier("openai/gpt-4o-mini", 300),
        )
        return TestClient(create_app(orchestrator, production=production))

    return _make


# ------------------------------------------------------------------
# POST /api/ask
# ------------------------------------------------------------------


def test_ask_returns_answer_with_citations(make_client, make_generator):
    client = make_client(make_generator("Quiet hours are 11pm to 8am."))
    resp = client.post("/api/ask", json=QUESTION)

    assert resp.status_code == 200
    assert resp.json() == {
        "answer": "Quiet hours are 11pm to 8am.",
        "citations": [{"source": "Handbook.pdf", "page": 12, "section": "Page 12"}],
        "cached": False,
    }


def test_second_ask_is_cached(make_client, make_generator, background):
    client = make_client(make_generator("Quiet hours are 11pm to 8am."))
    first = client.post("/api/ask", json=QUESTION).json()
    background.flush()
    second = client.post("/api/ask", json=QUESTION).json()

    assert second["cached"] is True
    assert second["answer"] == first["answer"]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"json": {"question": ""}},
        {"json": {"question": "   "}},
        {"json": {}},
        {"json": {"question": 5}},
        {"json": ["not", "an", "object"]},
        {"content": b"{not json", "headers": {"content-type": "application/json"}},
        {},
    ],
)
def test_bad_question_is_400(make_client, make_generator, fake_embedder, kwargs):
    client = make_client(make_generator())
    resp = client.post("/api/ask", **kwargs)

    assert resp.status_code == 400
    assert resp.json() == {"error": "Missing 'question' in request body."}
    assert fake_embedder.calls == []


def test_rate_limit_is_429(make_client, make_generator):
    client = make_client(make_generator(*(["answer"] * 20)), production=True, max_calls=20)
    headers = {"x-forwarded-for": "203.0.113.7"}
    for _ in range(20):
        assert client.post("/api/ask", json=QUESTION, headers=headers).status_code == 200

    resp = client.post("/api/ask", json=QUESTION, headers=headers)
    assert resp.status_code == 429
    assert resp.json() == {"error": "Too many AI requests, try again soon."}

    other = client.post("/api/ask", json=QUESTION, headers={"x-forwarded-for": "198.51.100.1"})
    assert other.status_code == 200


def test_both_models_failing_is_503_generic_in_production(make_client, make_generator):
    client = make_client(
        make_generator(RuntimeError("primary down"), RuntimeError("quota exceeded")),
        production=True,
    )
    resp = client.post("/api/ask", json=QUESTION)
    assert resp.status_code == 503
    assert resp.json() == {"error": "AI service unavailable."}


def test_both_models_failing_shows_detail_in_development(make_client, make_generator):
    client = make_client(make_generator(RuntimeError("primary down"), RuntimeError("quota exceeded")))
    resp = client.post("/api/ask", json=QUESTION)
    assert resp.status_code == 503
    assert resp.json() == {"error": "quota exceeded"}


def test_embedding_failure_is_500_generic_in_production(make_client, make_generator, fake_embedder):
    fake_embedder.error = RuntimeError("openai 401 invalid key")
    resp = make_client(make_generator(), production=True).post("/api/ask", json=QUESTION)
    assert resp.status_code == 500
    assert resp.json() == {
        "error": "Failed to create embedding for the question. Please try rephrasing."
    }


def test_embedding_failure_shows_detail_in_development(make_client, make_generator, fake_embedder):
    fake_embedder.error = RuntimeError("openai 401 invalid key")
    resp = make_client(make_generator()).post("/api/ask", json=QUESTION)
    assert resp.status_code == 500
    assert resp.json() == {"error": "openai 401 invalid key"}


def test_empty_model_output_is_graceful_200(make_client, make_generator):
    resp = make_client(make_generator("", "")).post("/api/ask", json=QUESTION)
    assert resp.status_code == 200
    assert resp.json() == {"answer": EMPTY_ANSWER, "citations": [], "cached": False}


def test_unexpected_error_hidden_in_production():
    orchestrator = MagicMock()
    orchestrator.answer = AsyncMock(side_effect=KeyError("boom"))
    client = TestClient(create_app(orchestrator, production=True))

    resp = client.post("/api/ask", json=QUESTION)
    assert resp.status_code == 500
    assert resp.json() == {"error": "Unexpected server error."}


def test_unexpected_error_detail_in_development():
    orchestrator = MagicMock()
    orchestrator.answer = AsyncMock(side_effect=ValueError("bad state"))
    client = TestClient(create_app(orchestrator, production=False))

    resp = client.post("/api/ask", json=QUESTION)
    assert resp.status_code == 500
    assert resp.json() == {"error": "bad state"}


def test_health():
    client = TestClient(create_app(MagicMock()))
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_shutdown_hook_runs():
    closed = []
    with TestClient(create_app(MagicMock(), on_shutdown=lambda: closed.append(True))):
        pass
    assert closed == [True]


# ------------------------------------------------------------------
# Client IP
# ------------------------------------------------------------------


def _request(headers: dict[str, str], client=("192.0.2.10", 5000)) -> Request:
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/api/ask",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": client,
    }
    return Request(scope)


def test_client_ip_prefers_first_forwarded_entry():
    req = _request({"X-Forwarded-For": " 203.0.113.7 , 10.0.0.1", "X-Real-IP": "198.51.100.1"})
    assert client_ip(req) == "203.0.113.7"


def test_client_ip_falls_back_to_real_ip():
    assert client_ip(_request({"X-Real-IP": "198.51.100.1"})) == "198.51.100.1"


def test_client_ip_falls_back_to_peer():
    assert client_ip(_request({})) == "192.0.2.10"


def test_client_ip_default():
    assert client_ip(_request({}, client=None)) == "127.0.0.1"


# ------------------------------------------------------------------
# Production wiring
# ------------------------------------------------------------------


def test_build_services_wires_both_tiers(tmp_path):
    cfg = HandbookConfig(environment="production")
    cfg.database.path = str(tmp_path / "h.db")
    cfg.embedding.dimensions = 3

    services = build_services(cfg)
    try:
        orchestrator = services.orchestrator
        assert orchestrator.primary == ModelTier("openai/gpt-5-nano", 220)
        assert orchestrator.fallback == ModelTier("openai/gpt-4o-mini", 300)
        assert orchestrator.top_k == 6
        assert len(services.databases) == 2
    finally:
        services.close()


def test_build_services_answers_through_litellm(tmp_path):
    cfg = HandbookConfig()
    cfg.database.path = str(tmp_path / "h.db")
    cfg.embedding.dimensions = 3

    services = build_services(cfg)
    try:
        with patch(
            "handbook_qa.rag.embedder.llm_client.aembed", new=AsyncMock(return_value=[1.0, 0.0, 0.0])
        ), patch(
            "handbook_qa.rag.generator.llm_client.acomplete", new=AsyncMock(return_value="Hello")
        ):
            client = TestClient(create_app(services.orchestrator))
            resp = client.post("/api/ask", json=QUESTION)
        assert resp.status_code == 200
        assert resp.json()["answer"] == "Hello"
    finally:
        services.close()
