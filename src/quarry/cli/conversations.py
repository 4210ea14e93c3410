"""quarry conversations / quarry conversation ID — browse past questions."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from quarry.cli.ask import format_citations
from quarry.cli.errors import err_conversation_not_found
from quarry.cli.runtime import load_runtime_config, run_in_context
from quarry.context import AppContext
from quarry.db.models import Conversation, ConversationThread

console = Console()

_DbOption = Annotated[
    Path | None,
    typer.Option("--db", help="Path to the quarry database (default from config)."),
]


def conversations_cmd(db: _DbOption = None) -> None:
    """List conversations, most recently updated first."""
    cfg = load_runtime_config(db)

    async def _list(ctx: AppContext) -> list[Conversation]:
        return await ctx.engine.list_conversations()

    conversations = run_in_context(cfg, _list)
    if not conversations:
        console.print('[dim]No conversations yet. Run:  quarry ask "..."[/]')
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", justify="right")
    table.add_column("Title")
    table.add_column("Updated", style="dim")
    for conv in conversations:
        table.add_row(str(conv.id), escape(conv.title), conv.updated_at or "")
    console.print(table)


def conversation_cmd(
    conversation_id: Annotated[int, typer.Argument(help="Conversation id.")],
    db: _DbOption = None,
) -> None:
    """Show one conversation with its messages and citations."""
    cfg = load_runtime_config(db)

    async def _get(ctx: AppContext) -> ConversationThread | None:
        return await ctx.engine.get_conversation(conversation_id)

    thread = run_in_context(cfg, _get)
    if thread is None:
        console.print(err_conversation_not_found(conversation_id))
        raise typer.Exit(1)

    console.print(
        f"[bold]Conversation {thread.conversation.id}:[/] {escape(thread.conversation.title)}\n"
    )
    for message in thread.messages:
        speaker = "[cyan]You[/]" if message.role == "user" else "[green]quarry[/]"
        console.print(f"{speaker} [dim]{message.created_at or ''}[/]")
        console.print(escape(message.content))
        if message.citations:
            console.print(format_citations(message.citations))
        console.print()
