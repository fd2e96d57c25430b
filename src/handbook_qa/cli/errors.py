"""Rich error messages for the handbook CLI.

Every error shown to the user states what went wrong and the exact action
that fixes it.

Usage:
    from handbook_qa.cli.errors import err_no_db
    console.print(err_no_db(str(db)))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_map = {
        "openai": "OPENAI_API_KEY",
        "anthropic": "ANTHROPIC_API_KEY",
        "mistral": "MISTRAL_API_KEY",
        "azure": "AZURE_API_KEY",
    }
    env_var = env_map.get(provider.lower(), f"{provider.upper()}_API_KEY")
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_no_db(db_path: str = ".handbook.db") -> str:
    """No database at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  handbook ingest"
    )


def err_no_documents(docs_dir: str) -> str:
    """Ingestion found nothing to read."""
    return (
        f"[red]Error:[/] No PDFs found in '{docs_dir}'.\n"
        "  Put the handbook PDFs in that directory, or point to them with:\n"
        "    handbook ingest --docs <dir>"
    )


def err_config(message: str) -> str:
    """handbook.yaml is invalid."""
    return f"[red]Error:[/] Invalid configuration.\n  {message}"


def warn_destructive_ingest(chunks: int) -> str:
    """Shown before ingestion clears the chunk store."""
    return (
        f"[yellow]⚠[/] Ingestion deletes all {chunks:,} stored chunks and rebuilds them.\n"
        "  Queries served while it runs may see a partial corpus."
    )
