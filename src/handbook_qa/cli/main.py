"""handbook CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from handbook_qa.cli.ingest import ingest_cmd
from handbook_qa.cli.links import links_cmd
from handbook_qa.cli.serve import serve_cmd
from handbook_qa.cli.status import status_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("handbook-qa")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"handbook {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="handbook",
    help=(
        "Handbook QA — answers questions from the residence handbook.\n\n"
        "  handbook ingest  Rebuild the chunk store from the handbook PDFs.\n"
        "  handbook serve   Run the POST /api/ask service."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """Handbook QA — answers questions from the residence handbook."""


app.command("ingest")(ingest_cmd)
app.command("serve")(serve_cmd)
app.command("status")(status_cmd)
app.command("links")(links_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed handbook-qa version."""
    typer.echo(f"handbook {_installed_version()}")


if __name__ == "__main__":
    app()
