"""Request-level failures of the ask pipeline.

Each error maps to one HTTP status. ``public_message`` is safe to show in
production; ``detail`` may carry upstream text and is only exposed outside
production.
"""

from __future__ import annotations


class AskError(Exception):
    status_code: int = 500
    public_message: str = "Unexpected server error."

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.public_message
        super().__init__(self.detail)

    def message(self, production: bool) -> str:
        return self.public_message if production else self.detail


class InvalidQuestionError(AskError):
    status_code = 400
    public_message = "Missing 'question' in request body."


class RateLimitedError(AskError):
    status_code = 429
    public_message = "Too many AI requests, try again soon."


class EmbeddingFailedError(AskError):
    status_code = 500
    public_message = "Failed to create embedding for the question. Please try rephrasing."


class GenerationUnavailableError(AskError):
    status_code = 503
    public_message = "AI service unavailable."
