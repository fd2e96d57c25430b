"""Citation model and per-source deduplication."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import asdict, dataclass

DEFAULT_SOURCE = "Residence_and_Housing_Handbook2025.pdf"

_PAGE_LABEL_RE = re.compile(r"^Pages?\s+(\d+(?:\s*,\s*\d+)*)$")


@dataclass(frozen=True)
class Citation:
    source: str | None
    page: int | None = None
    section: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> Citation:
        page = data.get("page")
        return cls(
            source=data.get("source"),
            page=page if isinstance(page, int) and not isinstance(page, bool) else None,
            section=data.get("section"),
        )


def _pages_from_label(section: str | None) -> list[int]:
    """Parse the pages back out of a "Page N" / "Pages a, b" label."""
    if not section:
        return []
    m = _PAGE_LABEL_RE.match(section.strip())
    if not m:
        return []
    return [int(p) for p in m.group(1).split(",")]


def _page_label(pages: list[int]) -> str | None:
    if not pages:
        return None
    if len(pages) == 1:
        return f"Page {pages[0]}"
    return "Pages " + ", ".join(str(p) for p in pages)


def deduplicate_citations(
    citations: Iterable[Citation], default_source: str = DEFAULT_SOURCE
) -> list[Citation]:
    """Merge citations that share a source into one citation per source.

    Sources keep their first-seen order. Pages are unioned and sorted; the
    result carries the lowest page as ``page`` and a "Page N" / "Pages a, b"
    summary as ``section`` (``None`` when no pages are known). Applying the
    function to its own output returns the same list.
    """
    by_source: dict[str, set[int]] = {}
    for cite in citations:
        source = cite.source or default_source
        pages = by_source.setdefault(source, set())
        if cite.page is not None:
            pages.add(cite.page)
        pages.update(_pages_from_label(cite.section))

    result: list[Citation] = []
    for source, pages in by_source.items():
        ordered = sorted(pages)
        result.append(
            Citation(
                source=source,
                page=ordered[0] if ordered else None,
                section=_page_label(ordered),
            )
        )
    return result
