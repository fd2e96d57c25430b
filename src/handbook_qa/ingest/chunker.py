"""Token-window chunker (tiktoken BPE).

Chunk size is bounded in tokens of the embedding model's vocabulary rather
than characters, so embedding cost and context usage stay predictable
regardless of how dense the text is.
"""

from __future__ import annotations

from typing import Any, Protocol

import tiktoken


class Encoding(Protocol):
    """The subset of ``tiktoken.Encoding`` the chunker relies on."""

    def encode(self, text: str, **kwargs: Any) -> list[int]: ...

    def decode(self, tokens: list[int]) -> str: ...


class TokenChunker:
    """Split text into overlapping fixed-size token windows.

    Consecutive windows share *overlap* tokens (step = max(1, max_tokens -
    overlap)); the last window may be shorter. Splitting stops as soon as a
    window reaches the end of the text: tail windows that would lie wholly
    inside the previous window are not emitted. A document therefore yields
    fewer chunks than stepping through the whole token stream would, and the
    running character position used for page estimates is shorter to match.

    Args:
        max_tokens: Window size in tokens.
        overlap: Tokens shared by consecutive windows.
        encoding: A tiktoken encoding name, or an object with
            ``encode``/``decode`` (resolved lazily for names).
    """

    def __init__(
        self,
        max_tokens: int = 800,
        overlap: int = 120,
        encoding: str | Encoding = "cl100k_base",
    ) -> None:
        if max_tokens < 1:
            raise ValueError("max_tokens must be >= 1")
        if overlap < 0:
            raise ValueError("overlap must be >= 0")
        self.max_tokens = max_tokens
        self.overlap = overlap
        self._encoding_spec = encoding
        self._encoding: Encoding | None = None if isinstance(encoding, str) else encoding

    @property
    def step(self) -> int:
        return max(1, self.max_tokens - self.overlap)

    @property
    def encoding(self) -> Encoding:
        if self._encoding is None:
            self._encoding = tiktoken.get_encoding(self._encoding_spec)
        return self._encoding

    def encode(self, text: str) -> list[int]:
        # Handbook text is data, never control tokens.
        return list(self.encoding.encode(text, disallowed_special=()))

    def count_tokens(self, text: str) -> int:
        return len(self.encode(text))

    def split(self, text: str) -> list[str]:
        """Return the decoded token windows of *text* (empty list for empty text)."""
        tokens = self.encode(text)
        total = len(tokens)
        chunks: list[str] = []
        for start in range(0, total, self.step):
            end = min(total, start + self.max_tokens)
            chunks.append(self.encoding.decode(tokens[start:end]))
            if end >= total:
                break
        return chunks
