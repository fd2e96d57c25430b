"""handbook serve — run the question-answering API under uvicorn."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
import uvicorn
from rich.console import Console

from handbook_qa.api.app import build_app
from handbook_qa.cli.errors import err_config, err_no_api_key, err_no_db
from handbook_qa.config import ConfigError, load_config
from handbook_qa.logger import configure_logging
from handbook_qa.rag.llm_client import validate_api_key

console = Console()


def serve_cmd(
    host: Annotated[str, typer.Option("--host", help="Interface to bind.")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", help="Port to listen on.")] = 8000,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the handbook database."),
    ] = None,
    log_level: Annotated[str, typer.Option("--log-level", help="Root log level.")] = "INFO",
) -> None:
    """Serve POST /api/ask."""
    configure_logging(log_level)
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)

    if db is not None:
        cfg.database.path = str(db)
    if not Path(cfg.database.path).exists():
        console.print(err_no_db(cfg.database.path))
        raise typer.Exit(1)

    for model in (cfg.embedding.model, cfg.generation.primary_model, cfg.generation.fallback_model):
        try:
            validate_api_key(model)
        except EnvironmentError:
            console.print(err_no_api_key(model.split("/")[0] if "/" in model else "openai"))
            raise typer.Exit(1)

    app = build_app(cfg)
    console.print(
        f"[green]✓[/] Serving on http://{host}:{port} "
        f"[dim]({cfg.environment}, {cfg.max_calls_per_window} req/{cfg.rate_limit.window_s:g}s per client)[/]"
    )
    uvicorn.run(app, host=host, port=port, log_config=None)
