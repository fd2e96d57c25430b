"""Text sanitization for extracted PDF text.

Produces clean, model-safe text: leaked character-code arrays are decoded,
control and invisible characters are blanked, Unicode is NFKC-normalized and
whitespace is tidied. ``sanitize_text`` is for whole documents (never capped);
``sanitize_chunk`` adds the per-chunk length cap.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Any

MAX_CHUNK_CHARS = 6000

# Some PDFs leak their text layer as "32,119,104,..." instead of characters.
_CSV_CODES_RE = re.compile(r"^(?:\s*\d{1,6}\s*,){30,}\s*\d{1,6}\s*$")
_MAX_CODE_PARTS = 20_000

# ASCII controls except \t and \n, lone surrogates, BOM, NBSP, and the
# invisible / bidirectional formatting ranges.
_UNSAFE_RE = re.compile(
    r"[\x00-\x08\x0b-\x1f\x7f"
    r"\ud800-\udfff"
    r"\ufeff\u00a0"
    r"\u2000-\u200f\u2028\u2029\u202a-\u202e\u2060-\u206f]"
)
_SPACE_BEFORE_NEWLINE_RE = re.compile(r"[ \t]+\n")
_SPACE_RUN_RE = re.compile(r"[ \t]{2,}")


def decode_char_codes(text: str) -> str:
    """Decode a comma-separated list of code points; other text passes through."""
    if not _CSV_CODES_RE.match(text):
        return text
    out: list[str] = []
    for part in text.split(",")[:_MAX_CODE_PARTS]:
        n = int(part.strip())
        if 9 <= n <= 0x10FFFF:
            out.append(chr(n))
    return "".join(out)


def sanitize_text(raw: Any) -> str:
    """Normalize raw extracted text. Non-string input is stringified (None → "")."""
    text = raw if isinstance(raw, str) else ("" if raw is None else str(raw))
    text = decode_char_codes(text)
    text = _UNSAFE_RE.sub(" ", text)
    text = unicodedata.normalize("NFKC", text)
    text = _SPACE_BEFORE_NEWLINE_RE.sub("\n", text)
    text = _SPACE_RUN_RE.sub(" ", text)
    return text.strip()


def sanitize_chunk(raw: Any, max_chars: int = MAX_CHUNK_CHARS) -> str:
    """Sanitize one chunk and cap it to *max_chars* characters."""
    return sanitize_text(raw)[:max_chars]
