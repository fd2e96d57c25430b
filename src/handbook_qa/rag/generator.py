"""LiteLLM-backed answer generator (one call per ``generate``)."""

from __future__ import annotations

import asyncio

from handbook_qa.rag import llm_client


class LiteLLMGenerator:
    """Single model call with a hard per-call budget.

    ``asyncio.TimeoutError`` is raised when the call exceeds ``timeout_s``;
    the orchestrator treats it like any other call failure.
    """

    def __init__(self, temperature: float = 0.2, timeout_s: float = 20.0) -> None:
        self.temperature = temperature
        self.timeout_s = timeout_s

    async def generate(self, model: str, prompt: str, max_tokens: int) -> str:
        return await asyncio.wait_for(
            llm_client.acomplete(
                model,
                prompt,
                max_tokens=max_tokens,
                temperature=self.temperature,
                timeout=self.timeout_s,
            ),
            timeout=self.timeout_s,
        )
