"""Link detection and per-chunk "Related Links" enrichment."""

from __future__ import annotations

import re

_LINK_RE = re.compile(
    r"https?://\S+|www\.\S+|[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}",
    re.IGNORECASE,
)
_TRAILING_PUNCT_RE = re.compile(r"[.,;:)\]}>]+$")

RELATED_LINKS_HEADER = "[Related Links]"


def extract_links(text: str) -> set[str]:
    """Return the URLs, www. hosts and email addresses found in *text*.

    Trailing sentence punctuation is stripped; matches of five characters or
    fewer, or ending in an ellipsis, are dropped.
    """
    links: set[str] = set()
    for match in _LINK_RE.findall(text):
        link = _TRAILING_PUNCT_RE.sub("", match)
        if len(link) > 5 and not link.endswith("..."):
            links.add(link)
    return links


def enrich_with_links(text: str) -> str:
    """Append a ``[Related Links]`` section listing the links in *text*.

    Text without links is returned unchanged.
    """
    links = extract_links(text)
    if not links:
        return text
    listing = "\n".join(f"- {link}" for link in sorted(links))
    return f"{text}\n\n{RELATED_LINKS_HEADER}\n{listing}"
