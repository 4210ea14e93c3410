"""quarry ask — answer a question from the knowledge base, with citations.

A new conversation is started unless --conversation is given. The
conversation id is printed so follow-up questions can continue it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from quarry.cli.errors import err_ask_failed, err_conversation_not_found
from quarry.cli.runtime import load_runtime_config, require_api_keys, run_in_context
from quarry.context import AppContext
from quarry.db.models import Citation
from quarry.rag.engine import Answer

console = Console()


def ask_cmd(
    question: Annotated[str, typer.Argument(help="The question to answer.")],
    conversation: Annotated[
        int | None,
        typer.Option("--conversation", "-c", help="Continue an existing conversation."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the quarry database (default from config)."),
    ] = None,
) -> None:
    """Ask a question; the answer cites the notes and pages it used."""
    cfg = load_runtime_config(db)
    require_api_keys(cfg.embedding.model, cfg.generation.model)

    async def _ask(ctx: AppContext) -> Answer | None:
        if conversation is not None and await ctx.repo.get_conversation(conversation) is None:
            return None
        return await ctx.engine.answer_question(question, conversation)

    answer = run_in_context(cfg, _ask)
    if answer is None:
        console.print(err_conversation_not_found(conversation))
        raise typer.Exit(1)
    if not answer.success:
        console.print(err_ask_failed(answer.message, answer.conversation_id))
        raise typer.Exit(1)

    console.print(Panel(escape(answer.answer), title="[bold]Answer[/]", expand=False))
    if answer.citations:
        console.print(format_citations(answer.citations))
    console.print(f"[dim]Conversation {answer.conversation_id}[/]")


def format_citations(citations: list[Citation]) -> str:
    """Render citations as a rich-markup source list."""
    lines = ["[bold]Sources[/]"]
    for c in citations:
        where = f" — {escape(c.url)}" if c.url else ""
        lines.append(f"  [{c.number}] {escape(c.title)} [dim]({c.source_type})[/]{where}")
    return "\n".join(lines)
