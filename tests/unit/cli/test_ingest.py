"""Tests for handbook ingest."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import yaml
from typer.testing import CliRunner

from handbook_qa.cli.main import app
from handbook_qa.db.connection import Database
from handbook_qa.db.models import Chunk
from handbook_qa.db.repository import Repository
from handbook_qa.db.schema import initialize
from handbook_qa.ingest.pdf import PdfText

runner = CliRunner()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def project(tmp_path: Path, monkeypatch, char_encoding) -> Path:
    """A project dir with handbook.yaml (3-dim vectors) and one PDF."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    for var in ("HANDBOOK_DB_PATH", "HANDBOOK_DOCS_DIR", "HANDBOOK_EMBEDDING_MODEL"):
        monkeypatch.delenv(var, raising=False)
    (tmp_path / "handbook.yaml").write_text(
        yaml.dump({"embedding": {"dimensions": 3}, "ingest": {"max_tokens": 20, "overlap": 0}}),
        encoding="utf-8",
    )
    docs = tmp_path / "data" / "pdfs"
    docs.mkdir(parents=True)
    (docs / "Handbook.pdf").write_bytes(b"%PDF-1.4")
    monkeypatch.setattr("handbook_qa.cli.ingest.configure_logging", lambda level: None)
    monkeypatch.setattr("handbook_qa.ingest.chunker.tiktoken.get_encoding", lambda name: char_encoding)
    return tmp_path


def _gateway(vector=(1.0, 0.0, 0.0)) -> MagicMock:
    gateway = MagicMock()
    gateway.return_value.embed_passage.return_value = list(vector)
    return gateway


def _count(db: Path) -> int:
    with Database(db) as conn:
        return Repository(conn).count_chunks()


TEXT = "Quiet hours are 11pm-8am. Visit https://example.ca/quiet for details."


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


def test_ingest_stores_chunks_and_prints_table(project: Path) -> None:
    with patch("handbook_qa.cli.ingest.extract_pdf", return_value=PdfText(TEXT, 2)), patch(
        "handbook_qa.cli.ingest.EmbeddingGateway", _gateway()
    ):
        result = runner.invoke(app, ["ingest", "--yes"])

    assert result.exit_code == 0, result.output
    assert "Handbook.pdf" in result.output
    assert "Inserted" in result.output
    assert _count(project / ".handbook.db") > 0


def test_ingest_custom_docs_and_db(project: Path, tmp_path: Path) -> None:
    other = tmp_path / "other"
    other.mkdir()
    (other / "Guide.pdf").write_bytes(b"%PDF-1.4")
    db = tmp_path / "custom.db"

    with patch("handbook_qa.cli.ingest.extract_pdf", return_value=PdfText(TEXT, 1)), patch(
        "handbook_qa.cli.ingest.EmbeddingGateway", _gateway()
    ):
        result = runner.invoke(app, ["ingest", "--docs", str(other), "--db", str(db), "--yes"])

    assert result.exit_code == 0, result.output
    assert "Guide.pdf" in result.output
    assert _count(db) > 0


def test_ingest_no_pdfs_exits_1(project: Path, tmp_path: Path) -> None:
    empty = tmp_path / "empty"
    empty.mkdir()
    result = runner.invoke(app, ["ingest", "--docs", str(empty), "--yes"])
    assert result.exit_code == 1
    assert "No PDFs found" in result.output


def test_ingest_without_api_key_exits_1(project: Path, monkeypatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    result = runner.invoke(app, ["ingest", "--yes"])
    assert result.exit_code == 1
    assert "OPENAI_API_KEY" in result.output


def test_ingest_declined_keeps_existing_chunks(project: Path) -> None:
    db = project / ".handbook.db"
    with Database(db) as conn:
        initialize(conn, dimensions=3)
        Repository(conn).add_chunk(
            Chunk(source="old.pdf", content="old", embedding=[1.0, 0.0, 0.0], sha256="x")
        )

    with patch("handbook_qa.cli.ingest.extract_pdf", return_value=PdfText(TEXT, 1)), patch(
        "handbook_qa.cli.ingest.EmbeddingGateway", _gateway()
    ):
        result = runner.invoke(app, ["ingest"], input="n\n")

    assert result.exit_code == 0
    assert "Aborted" in result.output
    assert _count(db) == 1


def test_ingest_confirmed_rebuilds(project: Path) -> None:
    db = project / ".handbook.db"
    with Database(db) as conn:
        initialize(conn, dimensions=3)
        Repository(conn).add_chunk(
            Chunk(source="old.pdf", content="old", embedding=[1.0, 0.0, 0.0], sha256="x")
        )

    with patch("handbook_qa.cli.ingest.extract_pdf", return_value=PdfText(TEXT, 1)), patch(
        "handbook_qa.cli.ingest.EmbeddingGateway", _gateway()
    ):
        result = runner.invoke(app, ["ingest"], input="y\n")

    assert result.exit_code == 0, result.output
    with Database(db) as conn:
        assert [s for s, _ in Repository(conn).chunk_counts_by_source()] == ["Handbook.pdf"]


def test_ingest_forbidden_config_key_exits_1(project: Path) -> None:
    (project / "handbook.yaml").write_text(yaml.dump({"generation": {"api_key": "sk"}}), encoding="utf-8")
    result = runner.invoke(app, ["ingest", "--yes"])
    assert result.exit_code == 1
    assert "Invalid configuration" in result.output
