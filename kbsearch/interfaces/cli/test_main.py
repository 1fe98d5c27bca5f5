"""Tests for the command-line interface."""

import json
from collections.abc import Generator
from pathlib import Path

import pytest
from typer.testing import CliRunner

from kbsearch.config import get_settings

from .main import app

runner = CliRunner()


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Point settings at a temporary data directory with no credential."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("DB_PATH", str(tmp_path / "data" / "kb.db"))
    monkeypatch.setenv("FAISS_INDEX_PATH", str(tmp_path / "data" / "faiss"))
    monkeypatch.setenv("EMBEDDING_DIMENSION", "2")
    monkeypatch.delenv("EMBEDDING_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


def test_version() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "KBSearch v" in result.output


def test_import_missing_file(workspace: Path) -> None:
    result = runner.invoke(app, ["import", str(workspace / "missing.jsonl")])
    assert result.exit_code == 1
    assert "File not found" in result.output


def test_init_import_and_build_index(workspace: Path) -> None:
    """Test the corpus setup flow end to end against a temporary database."""
    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0
    assert (workspace / "data" / "kb.db").exists()

    corpus = workspace / "corpus.jsonl"
    corpus.write_text(
        json.dumps(
            {
                "document": {"id": "doc-1", "title": "Gate Plan", "status": "published"},
                "chunks": [
                    {"content": "Gate A opens at noon.", "embedding": [1.0, 0.0]},
                    {"content": "Gate B is accessible.", "embedding": [0.0, 1.0]},
                ],
            }
        )
        + "\n",
        encoding="utf-8",
    )
    result = runner.invoke(app, ["import", str(corpus)])
    assert result.exit_code == 0
    assert "Imported 1 documents, 2 chunks" in result.output

    result = runner.invoke(app, ["build-index"])
    assert result.exit_code == 0
    assert (workspace / "data" / "faiss" / "manifest.json").exists()


def test_search_without_credential(workspace: Path) -> None:
    """Test a missing provider credential is reported, not a traceback."""
    result = runner.invoke(app, ["search", "accessible entrance"])
    assert result.exit_code == 1
    assert "credential not configured" in result.output


def test_search_rejects_zero_top_k(workspace: Path) -> None:
    result = runner.invoke(app, ["search", "gate", "--top-k", "0"])
    assert result.exit_code == 1
