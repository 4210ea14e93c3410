"""quarry CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from quarry.cli.ask import ask_cmd
from quarry.cli.conversations import conversation_cmd, conversations_cmd
from quarry.cli.ingest import ingest_app
from quarry.cli.init import init_cmd
from quarry.cli.items import items_cmd


def _version() -> str:
    try:
        return importlib.metadata.version("quarry")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"quarry {_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="quarry",
    help=(
        "quarry — ingest notes and web pages, ask cited questions over them.\n\n"
        "  quarry ingest  Add notes or URLs to the knowledge base.\n"
        "  quarry ask     Answer a question with citations."
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
    """quarry — ingest notes and web pages, ask cited questions over them."""


app.command("init")(init_cmd)
app.add_typer(ingest_app, name="ingest")
app.command("items")(items_cmd)
app.command("ask")(ask_cmd)
app.command("conversations")(conversations_cmd)
app.command("conversation")(conversation_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed quarry version."""
    typer.echo(f"quarry {_version()}")


if __name__ == "__main__":
    app()
