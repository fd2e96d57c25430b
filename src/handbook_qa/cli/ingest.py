"""handbook ingest — rebuild the chunk store from the handbook PDFs.

Destructive: every stored chunk is deleted first, then each PDF in the
documents directory is sanitized, token-chunked, link-enriched, embedded and
stored with an estimated page number.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from handbook_qa.cli.errors import (
    err_config,
    err_no_api_key,
    err_no_documents,
    warn_destructive_ingest,
)
from handbook_qa.config import ConfigError, HandbookConfig, load_config
from handbook_qa.db.connection import Database
from handbook_qa.db.repository import Repository
from handbook_qa.db.schema import initialize
from handbook_qa.ingest.chunker import TokenChunker
from handbook_qa.ingest.pdf import extract_pdf
from handbook_qa.ingest.pipeline import IngestError, IngestionPipeline, IngestReport, find_documents
from handbook_qa.logger import configure_logging
from handbook_qa.rag.embedder import EmbeddingGateway
from handbook_qa.rag.llm_client import validate_api_key

console = Console()


def ingest_cmd(
    docs: Annotated[
        Path | None,
        typer.Option("--docs", help="Directory holding the handbook PDFs."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the handbook database (created if missing)."),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip the confirmation prompt."),
    ] = False,
) -> None:
    """Clear the chunk store and re-ingest every PDF."""
    configure_logging("WARNING")
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)

    docs_dir = docs or Path(cfg.documents.dir)
    db_path = db or Path(cfg.database.path)

    files = find_documents(docs_dir)
    if not files:
        console.print(err_no_documents(str(docs_dir)))
        raise typer.Exit(1)

    try:
        validate_api_key(cfg.embedding.model)
    except EnvironmentError:
        provider = cfg.embedding.model.split("/")[0] if "/" in cfg.embedding.model else "openai"
        console.print(err_no_api_key(provider))
        raise typer.Exit(1)

    conn = _open_db(db_path, cfg)
    try:
        repo = Repository(conn)
        console.print(f"[bold]→ {len(files)} PDF(s) in {docs_dir}[/]")
        existing = repo.count_chunks()
        if existing:
            console.print(warn_destructive_ingest(existing))
            if not yes and not typer.confirm("  Proceed?", default=True):
                console.print("  [dim]Aborted.[/]")
                raise typer.Exit(0)

        report = _run(repo, cfg, docs_dir)
    except IngestError as exc:
        console.print(f"[red]Error:[/] {exc}")
        raise typer.Exit(1)
    finally:
        conn.close()

    _show_report(report)


# ------------------------------------------------------------------
# Pipeline
# ------------------------------------------------------------------


def _run(repo: Repository, cfg: HandbookConfig, docs_dir: Path) -> IngestReport:
    embedder = EmbeddingGateway(cfg.embedding.model)
    chunker = TokenChunker(
        max_tokens=cfg.ingest.max_tokens,
        overlap=cfg.ingest.overlap,
        encoding=cfg.ingest.encoding,
    )

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        transient=True,
        console=console,
    ) as prog:
        task = prog.add_task("Embedding…", total=None)

        def _on_chunk(name: str, idx: int, total: int) -> None:
            prog.update(task, description=f"Embedding {name}", completed=idx + 1, total=total)

        pipeline = IngestionPipeline(
            repo,
            embed=embedder.embed_passage,
            chunker=chunker,
            extractor=extract_pdf,
            max_chunk_chars=cfg.ingest.max_chunk_chars,
            on_chunk=_on_chunk,
        )
        return pipeline.run(docs_dir)


def _show_report(report: IngestReport) -> None:
    table = Table(title="Ingestion")
    table.add_column("Document")
    table.add_column("Pages", justify="right")
    table.add_column("Chunks", justify="right")
    table.add_column("Inserted", justify="right", style="green")
    table.add_column("Skipped", justify="right", style="yellow")
    table.add_column("Links", justify="right", style="dim")
    for doc in report.documents:
        table.add_row(
            doc.source,
            str(doc.pages),
            str(doc.chunks),
            str(doc.inserted),
            str(doc.skipped),
            str(doc.links),
        )
    console.print(table)
    console.print(
        f"[green]✓[/] Inserted {report.inserted} chunks "
        f"({report.skipped} skipped, {report.cleared} cleared)"
    )


# ------------------------------------------------------------------
# DB helpers
# ------------------------------------------------------------------


def _open_db(db_path: Path, cfg: HandbookConfig) -> sqlite3.Connection:
    """Open (or create) the handbook database and bring the schema up to date."""
    conn = Database(db_path).connect()
    initialize(conn, dimensions=cfg.embedding.dimensions)
    return conn
