"""quarry items — list ingested documents, newest first."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from quarry.cli.errors import warn_nothing_ingested
from quarry.cli.runtime import load_runtime_config, run_in_context
from quarry.context import AppContext
from quarry.db.models import Document, SourceKind

console = Console()

_PREVIEW_CHARS = 60


def items_cmd(
    source: Annotated[
        SourceKind | None,
        typer.Option("--source", "-s", case_sensitive=False, help="Only NOTE or URL items."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the quarry database (default from config)."),
    ] = None,
) -> None:
    """List ingested notes and pages."""
    cfg = load_runtime_config(db)

    async def _list(ctx: AppContext) -> list[Document]:
        return await ctx.pipeline.list_documents(source)

    documents = run_in_context(cfg, _list)
    if not documents:
        console.print(warn_nothing_ingested())
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", justify="right")
    table.add_column("Type")
    table.add_column("Title")
    table.add_column("URL / preview", overflow="fold")
    table.add_column("Added", style="dim")
    for doc in documents:
        detail = doc.url or _preview(doc.content)
        table.add_row(
            str(doc.id),
            doc.source.value,
            escape(doc.title),
            escape(detail),
            doc.created_at or "",
        )
    console.print(table)
    console.print(f"[dim]{len(documents)} item(s)[/]")


def _preview(content: str) -> str:
    flat = " ".join(content.split())
    if len(flat) <= _PREVIEW_CHARS:
        return flat
    return flat[: _PREVIEW_CHARS - 1] + "…"
