"""Answer prompt: fixed rules, the question and numbered handbook excerpts."""

from __future__ import annotations

SYSTEM_RULES = """\
You are the Residence & Housing handbook assistant.
Answer ONLY using the provided handbook excerpts. If the answer is not present, say you cannot find it in the materials provided.
Be concise and precise. Use bullet points when listing items.
DO NOT include source references or page numbers in your answer - they will be added automatically as citations.

IMPORTANT: If the provided context includes any URLs or links (often in a [Related Links] section), and those links are relevant to answering the question, you MUST include them at the end of your answer.
Format links in Markdown style for clickability: [Descriptive Text](URL)
Example: [Submit Maintenance Request](https://example.com/maintenance)
"""

NO_EXCERPTS = "(no excerpts found)"

_OUTPUT_FORMAT = """\
### Output format
- Direct answer (3-8 bullet points if appropriate).
- Do NOT add any source notes or citations in your answer text.
- If the excerpts contain relevant URLs/links (especially in [Related Links] sections), include them AFTER your bullet points.
- Format links in Markdown: **Helpful Link:** [Descriptive Title](URL)
- Use descriptive, user-friendly link text like "Submit Request Online" or "Contact Housing Services", NOT the raw URL.
"""


def format_excerpts(blocks: list[str]) -> str:
    if not blocks:
        return NO_EXCERPTS
    return "\n\n".join(f"Excerpt {i}:\n{block}" for i, block in enumerate(blocks, start=1))


def build_prompt(question: str, blocks: list[str]) -> str:
    """Assemble the single-message prompt sent to the answer model."""
    return (
        f"{SYSTEM_RULES}\n"
        "### Task\n"
        "Answer the user question strictly from the provided handbook context. "
        "If missing, state that you cannot find it in the provided materials.\n\n"
        "### Question\n"
        f"{question.strip()}\n\n"
        "### Context (excerpts)\n"
        f"{format_excerpts(blocks)}\n\n"
        f"{_OUTPUT_FORMAT}"
    )
