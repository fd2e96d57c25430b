"""Handbook ingest pipeline — sanitizer, link enricher, token chunker, PDF extraction."""

from handbook_qa.ingest.chunker import TokenChunker
from handbook_qa.ingest.links import enrich_with_links, extract_links
from handbook_qa.ingest.pdf import PdfText, extract_pdf
from handbook_qa.ingest.pipeline import IngestError, IngestionPipeline, IngestReport
from handbook_qa.ingest.sanitize import sanitize_chunk, sanitize_text

__all__ = [
    "IngestError",
    "IngestReport",
    "IngestionPipeline",
    "PdfText",
    "TokenChunker",
    "enrich_with_links",
    "extract_links",
    "extract_pdf",
    "sanitize_chunk",
    "sanitize_text",
]
