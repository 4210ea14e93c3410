"""Tests for quarry items."""

from __future__ import annotations

from typer.testing import CliRunner

from quarry.cli.items import _preview
from quarry.cli.main import app

runner = CliRunner()


def _seed() -> None:
    assert runner.invoke(app, ["ingest", "note", "Buy seeds for spring."]).exit_code == 0
    assert runner.invoke(app, ["ingest", "url", "https://example.com/garden"]).exit_code == 0


def test_items_empty_knowledge_base(cli_project):
    result = runner.invoke(app, ["items"])

    assert result.exit_code == 0, result.output
    assert "No content ingested yet" in result.output


def test_items_lists_notes_and_pages(cli_project):
    _seed()

    result = runner.invoke(app, ["items"])

    assert result.exit_code == 0, result.output
    assert "NOTE" in result.output
    assert "URL" in result.output
    assert "2 item(s)" in result.output


def test_items_filtered_by_source(cli_project):
    _seed()

    result = runner.invoke(app, ["items", "--source", "note"])

    assert result.exit_code == 0, result.output
    assert "NOTE" in result.output
    assert "1 item(s)" in result.output


def test_items_rejects_unknown_source(cli_project):
    result = runner.invoke(app, ["items", "--source", "pdf"])
    assert result.exit_code != 0


def test_preview_flattens_and_truncates():
    assert _preview("one\n\ntwo") == "one two"
    long = "word " * 40
    preview = _preview(long)
    assert len(preview) == 60
    assert preview.endswith("…")
