"""quarry ingest — add notes and web pages to the knowledge base.

  quarry ingest note "text"        one note from the command line
  quarry ingest note --file a.txt  one note from a UTF-8 file
  quarry ingest url URL [URL ...]  scrape pages concurrently (static, then headless fallback)

Exits with code 1 if any item fails; the other items are still ingested.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from quarry.cli.errors import err_file_not_found, err_ingest_failed, err_no_input
from quarry.cli.runtime import load_runtime_config, require_api_keys, run_in_context
from quarry.context import AppContext
from quarry.ingest.pipeline import IngestResult, Note, Url

console = Console()

ingest_app = typer.Typer(help="Ingest notes and web pages.", no_args_is_help=True)

_DbOption = Annotated[
    Path | None,
    typer.Option("--db", help="Path to the quarry database (default from config)."),
]


@ingest_app.command("note")
def ingest_note_cmd(
    text: Annotated[str | None, typer.Argument(help="Note text.")] = None,
    file: Annotated[
        Path | None,
        typer.Option("--file", "-f", help="Read the note from a UTF-8 text file."),
    ] = None,
    db: _DbOption = None,
) -> None:
    """Ingest a note."""
    if file is not None:
        if not file.is_file():
            console.print(err_file_not_found(str(file)))
            raise typer.Exit(1)
        text = file.read_text(encoding="utf-8")
    if text is None:
        console.print(err_no_input())
        raise typer.Exit(1)

    cfg = load_runtime_config(db)
    require_api_keys(cfg.embedding.model)

    async def _ingest(ctx: AppContext) -> IngestResult:
        return await ctx.pipeline.ingest(Note(text))

    result = run_in_context(cfg, _ingest)
    if not result.success:
        console.print(err_ingest_failed("note", result.message))
        raise typer.Exit(1)

    console.print(
        f"[green]✓[/] {escape(result.message)} [dim](document {result.document_id})[/]"
    )


@ingest_app.command("url")
def ingest_url_cmd(
    urls: Annotated[list[str], typer.Argument(help="One or more http(s) URLs.")],
    db: _DbOption = None,
) -> None:
    """Scrape and ingest web pages."""
    cfg = load_runtime_config(db)
    require_api_keys(cfg.embedding.model)

    async def _ingest(ctx: AppContext) -> list[IngestResult]:
        return await ctx.pipeline.ingest_many([Url(u) for u in urls])

    results = run_in_context(cfg, _ingest)

    table = Table(show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("URL", overflow="fold")
    table.add_column("Result")
    table.add_column("Chunks", justify="right")
    for url, result in zip(urls, results):
        mark = "[green]✓[/]" if result.success else "[red]✗[/]"
        table.add_row(
            mark,
            escape(url),
            escape(result.message),
            str(result.chunk_count) if result.success else "-",
        )
    console.print(table)

    failed = [(u, r) for u, r in zip(urls, results) if not r.success]
    if failed:
        for url, result in failed:
            console.print(err_ingest_failed(url, result.message))
        raise typer.Exit(1)
