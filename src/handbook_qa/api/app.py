"""FastAPI application: ``POST /api/ask`` and ``GET /api/health``.

``create_app`` takes a ready orchestrator so tests can inject fakes;
``build_services`` wires the production collaborators from a HandbookConfig.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from handbook_qa.api.schemas import AskResponse, ErrorResponse, HealthResponse
from handbook_qa.config import HandbookConfig
from handbook_qa.db.connection import Database
from handbook_qa.db.repository import Repository
from handbook_qa.db.schema import initialize
from handbook_qa.rag.background import BackgroundWriter
from handbook_qa.rag.cache import SemanticCache
from handbook_qa.rag.embedder import EmbeddingGateway
from handbook_qa.rag.errors import AskError, InvalidQuestionError
from handbook_qa.rag.generator import LiteLLMGenerator
from handbook_qa.rag.orchestrator import AnswerOrchestrator, ModelTier
from handbook_qa.rag.ratelimit import InMemoryBucketStore, RateLimiter
from handbook_qa.rag.retriever import ContextRetriever

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_IP = "127.0.0.1"


def client_ip(request: Request) -> str:
    """Client identity for rate limiting.

    First ``X-Forwarded-For`` entry, then ``X-Real-IP``, then the socket peer.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = (request.headers.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return DEFAULT_CLIENT_IP


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(ErrorResponse(error=message).model_dump(), status_code=status_code)


def create_app(
    orchestrator: AnswerOrchestrator,
    *,
    production: bool = False,
    on_shutdown: Callable[[], None] | None = None,
) -> FastAPI:
    """Build the HTTP app around *orchestrator*.

    Args:
        orchestrator: Handles each question.
        production: Hide upstream error detail from clients.
        on_shutdown: Called once when the app stops (flush writes, close DBs).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if on_shutdown is not None:
            on_shutdown()

    app = FastAPI(
        title="Handbook QA API",
        description="Answers questions from the residence handbook with citations",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.get("/api/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/api/ask", response_model=AskResponse)
    async def ask(request: Request):
        try:
            try:
                body = json.loads(await request.body() or b"{}")
            except (json.JSONDecodeError, UnicodeDecodeError):
                raise InvalidQuestionError()
            question = body.get("question") if isinstance(body, dict) else None

            result = await orchestrator.answer(question, client_ip(request))
            return AskResponse.from_result(result)
        except AskError as exc:
            return _error(exc.status_code, exc.message(production))
        except Exception as exc:
            logger.exception("Unhandled /api/ask error")
            message = "Unexpected server error." if production else (str(exc) or type(exc).__name__)
            return _error(500, message)

    return app


# ------------------------------------------------------------------
# Production wiring
# ------------------------------------------------------------------


@dataclass
class Services:
    """Production collaborators and the resources they hold open."""

    orchestrator: AnswerOrchestrator
    background: BackgroundWriter
    databases: list = field(default_factory=list)

    def close(self) -> None:
        self.background.flush()
        self.background.shutdown()
        for conn in self.databases:
            conn.close()


def build_services(config: HandbookConfig) -> Services:
    """Open both store tiers and assemble the orchestrator.

    The admin (read-write) connection initialises the schema and serves only
    the background writer; matching goes through a read-only connection.
    """
    db_path = config.database.path
    admin_conn = Database(db_path).connect()
    initialize(admin_conn, dimensions=config.embedding.dimensions)
    reader_conn = Database(db_path, read_only=True).connect()

    reader = Repository(reader_conn)
    writer = Repository(admin_conn)
    background = BackgroundWriter()

    gen = config.generation
    orchestrator = AnswerOrchestrator(
        embedder=EmbeddingGateway(config.embedding.model, timeout_s=gen.timeout_s),
        cache=SemanticCache(
            reader,
            writer,
            background,
            retrieval_threshold=config.cache.retrieval_threshold,
            admit_threshold=config.cache.admit_threshold,
            candidates=config.cache.candidates,
            dedup_threshold=config.cache.dedup_threshold,
            doc_version=config.cache.doc_version,
        ),
        retriever=ContextRetriever(
            reader,
            max_chunks=config.retrieval.top_k,
            default_source=config.retrieval.fallback_source,
        ),
        generator=LiteLLMGenerator(temperature=gen.temperature, timeout_s=gen.timeout_s),
        limiter=RateLimiter(
            InMemoryBucketStore(),
            max_calls=config.max_calls_per_window,
            window_s=config.rate_limit.window_s,
        ),
        primary=ModelTier(gen.primary_model, gen.primary_max_tokens),
        fallback=ModelTier(gen.fallback_model, gen.fallback_max_tokens),
        top_k=config.retrieval.top_k,
    )
    return Services(orchestrator, background, [reader_conn, admin_conn])


def build_app(config: HandbookConfig) -> FastAPI:
    services = build_services(config)
    return create_app(
        services.orchestrator,
        production=config.is_production,
        on_shutdown=services.close,
    )
