"""handbook links — preview the links ingestion would attach, per PDF."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from handbook_qa.cli.errors import err_no_documents
from handbook_qa.config import HandbookConfig, load_config
from handbook_qa.ingest.links import extract_links
from handbook_qa.ingest.pdf import extract_pdf
from handbook_qa.ingest.pipeline import find_documents
from handbook_qa.ingest.sanitize import sanitize_text

console = Console()


def links_cmd(
    docs: Annotated[
        Path | None,
        typer.Option("--docs", help="Directory holding the handbook PDFs."),
    ] = None,
) -> None:
    """List the URLs and email addresses found in each PDF."""
    try:
        cfg = load_config()
    except Exception:
        cfg = HandbookConfig()

    docs_dir = docs or Path(cfg.documents.dir)
    files = find_documents(docs_dir)
    if not files:
        console.print(err_no_documents(str(docs_dir)))
        raise typer.Exit(1)

    for path in files:
        console.print(f"\n[bold]→ {path.name}[/]")
        try:
            text = sanitize_text(extract_pdf(path).text)
        except Exception as exc:
            console.print(f"  [red]✗ Error:[/] {exc}")
            continue

        links = sorted(extract_links(text))
        if not links:
            console.print("  [dim]No links found (they may only exist as PDF annotations).[/]")
            continue
        console.print(f"  [green]✓[/] {len(links)} unique links")
        for i, link in enumerate(links, start=1):
            console.print(f"  {i:>3}. {link}", markup=False, highlight=False)
