"""Response models for the HTTP API."""

from __future__ import annotations

from pydantic import BaseModel

from handbook_qa.rag.citations import Citation
from handbook_qa.rag.orchestrator import AnswerResult


class CitationOut(BaseModel):
    source: str | None
    page: int | None = None
    section: str | None = None

    @classmethod
    def from_citation(cls, citation: Citation) -> CitationOut:
        return cls(source=citation.source, page=citation.page, section=citation.section)


class AskResponse(BaseModel):
    answer: str
    citations: list[CitationOut]
    cached: bool

    @classmethod
    def from_result(cls, result: AnswerResult) -> AskResponse:
        return cls(
            answer=result.answer,
            citations=[CitationOut.from_citation(c) for c in result.citations],
            cached=result.cached,
        )


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str
