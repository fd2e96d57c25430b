"""PDF text extraction via pypdf."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import pypdf


@dataclass
class PdfText:
    text: str
    page_count: int


def extract_pdf(path: Path | str) -> PdfText:
    """Extract the text of every page of the PDF at *path*.

    Pages are joined with blank lines, including pages that yield no text
    (scanned images), so character offsets stay proportional to page order.
    """
    reader = pypdf.PdfReader(str(path))
    pages = [page.extract_text() or "" for page in reader.pages]
    return PdfText(text="\n\n".join(pages), page_count=len(pages))
