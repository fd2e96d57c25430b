"""handbook status — store diagnostics.

Shows chunk totals (and how many lack a page), per-document chunk counts,
and semantic-cache statistics including questions stored more than once.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from handbook_qa.cli.errors import err_no_db
from handbook_qa.config import HandbookConfig, load_config
from handbook_qa.db.connection import Database
from handbook_qa.db.repository import Repository

console = Console()


def status_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the handbook database."),
    ] = None,
) -> None:
    """Show chunk and cache statistics."""
    # Status works even with a broken handbook.yaml
    try:
        cfg = load_config()
    except Exception:
        cfg = HandbookConfig()

    db_path = db or Path(cfg.database.path)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    with Database(db_path, read_only=True) as conn:
        repo = Repository(conn)
        _show_chunks_panel(db_path, repo)
        _show_cache_panel(repo)


# ---------------------------------------------------------------------------
# Panel renderers
# ---------------------------------------------------------------------------


def _show_chunks_panel(db_path: Path, repo: Repository) -> None:
    total = repo.count_chunks()
    no_page = repo.count_chunks_without_page()
    size_mb = db_path.stat().st_size / (1024 * 1024)

    lines = [
        f"Database:  {db_path} ({size_mb:.1f} MB)",
        f"Chunks:    [bold]{total:,}[/]",
    ]
    if no_page:
        lines.append(f"[yellow]✗[/] {no_page:,} chunks have no page number")
    if not total:
        lines.append("[dim]Nothing ingested yet. Run:  handbook ingest[/]")

    by_source = repo.chunk_counts_by_source()
    if by_source:
        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column("Source")
        table.add_column("Chunks", justify="right", style="bold")
        for source, n in by_source:
            table.add_row(source, f"{n:,}")
        console.print(Panel("\n".join(lines), title="[bold]Chunks[/]", expand=False))
        console.print(Panel(table, title="[bold]Documents[/]", expand=False))
        return

    console.print(Panel("\n".join(lines), title="[bold]Chunks[/]", expand=False))


def _show_cache_panel(repo: Repository) -> None:
    entries, hits = repo.cache_stats()
    lines = [f"Entries: [bold]{entries:,}[/]  |  Hits: [bold]{hits:,}[/]"]

    duplicates = repo.duplicate_questions()
    if duplicates:
        lines.append(f"[yellow]Duplicate questions ({len(duplicates)}):[/]")
        for question, n in duplicates[:10]:
            lines.append(f"  {n}× {question[:70]}")
    else:
        lines.append("[green]✓[/] No duplicate questions")

    console.print(Panel("\n".join(lines), title="[bold]Answer cache[/]", expand=False))
