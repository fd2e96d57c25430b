"""LiteLLM client wrapper: API key validation, completion and embedding calls.

Every model call on the request path and in ingestion routes through this
module. Request-path calls are async (``acomplete`` / ``aembed``) and carry a
per-call timeout; ingestion uses the sync ``embed`` with LiteLLM's built-in
retry.
"""

from __future__ import annotations

import os

import litellm

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}

# Substrings of model names that accept a sampling temperature.
# Reasoning models (gpt-5-nano etc.) reject the parameter.
TEMPERATURE_MODEL_MARKERS: tuple[str, ...] = ("gpt-4", "mini")


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = _PROVIDER_ENV.get(provider)

    if env_var is None:
        return

    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


def supports_temperature(model: str) -> bool:
    name = model.lower()
    return any(marker in name for marker in TEMPERATURE_MODEL_MARKERS)


def _completion_kwargs(
    model: str,
    prompt: str,
    max_tokens: int,
    temperature: float | None,
    timeout: float | None,
) -> dict:
    kwargs: dict = {
        "model": model,
        "messages": [{"role": "user", "content": prompt}],
        "max_tokens": max_tokens,
    }
    if temperature is not None and supports_temperature(model):
        kwargs["temperature"] = temperature
    if timeout is not None:
        kwargs["timeout"] = timeout
    return kwargs


async def acomplete(
    model: str,
    prompt: str,
    max_tokens: int,
    temperature: float | None = None,
    timeout: float | None = None,
) -> str:
    """Call litellm.acompletion() once. Returns the stripped content string.

    No retries: the caller owns the fallback policy. *temperature* is dropped
    for models outside the allow-list.

    Raises:
        litellm.exceptions.APIError: On any API failure, including timeouts.
    """
    response = await litellm.acompletion(
        **_completion_kwargs(model, prompt, max_tokens, temperature, timeout)
    )
    return (response.choices[0].message.content or "").strip()


def embed(model: str, text: str, num_retries: int = 3) -> list[float]:
    """Call litellm.embedding() with retry/backoff. Returns embedding vector.

    Args:
        model: LiteLLM embedding model string (provider/model format).
        text: Text to embed.
        num_retries: Number of retries on transient errors.

    Returns:
        Embedding as a list of floats.
    """
    response = litellm.embedding(
        model=model,
        input=[text],
        num_retries=num_retries,
    )
    return response.data[0]["embedding"]


async def aembed(model: str, text: str, timeout: float | None = None) -> list[float]:
    """Async counterpart of :func:`embed` for the request path."""
    kwargs: dict = {"model": model, "input": [text]}
    if timeout is not None:
        kwargs["timeout"] = timeout
    response = await litellm.aembedding(**kwargs)
    return response.data[0]["embedding"]
