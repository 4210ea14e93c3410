"""quarry rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from quarry.cli.errors import err_no_api_key
    console.print(err_no_api_key("openai"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from rich.markup import escape

_ENV_MAP = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "azure": "AZURE_API_KEY",
    "groq": "GROQ_API_KEY",
}


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_var = _ENV_MAP.get(provider.lower(), f"{provider.upper()}_API_KEY")
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_config(message: str) -> str:
    """Config file could not be loaded."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {escape(message)}\n"
        "  Fix quarry.yaml or ~/.quarry/config.yaml and retry."
    )


def err_no_input() -> str:
    """`quarry ingest note` got neither TEXT nor --file."""
    return (
        "[red]Error:[/] No note text given.\n"
        "  Run:  quarry ingest note \"your text\"  or  quarry ingest note --file notes.txt"
    )


def err_file_not_found(path: str) -> str:
    return (
        f"[red]Error:[/] File not found: '{escape(path)}'\n"
        "  Check the path and retry."
    )


def err_ingest_failed(target: str, message: str) -> str:
    """Ingestion returned a failure result."""
    return (
        f"[red]Error:[/] Could not ingest {escape(target)}.\n"
        f"  Reason: {escape(message)}"
    )


def err_conversation_not_found(conversation_id: int) -> str:
    """No conversation with this id."""
    return (
        f"[red]Error:[/] Conversation {conversation_id} not found.\n"
        "  Run:  quarry conversations  to list existing conversations."
    )


def err_ask_failed(message: str, conversation_id: int | None = None) -> str:
    """Answering failed (provider or storage error)."""
    hint = (
        f"  Retry with:  quarry ask \"...\" --conversation {conversation_id}"
        if conversation_id is not None
        else "  Check your API key and model settings, then retry."
    )
    return f"[red]Error:[/] Could not answer the question.\n  Reason: {escape(message)}\n{hint}"


def warn_nothing_ingested() -> str:
    """Shown by `quarry items` when the knowledge base is empty."""
    return (
        "[yellow]No content ingested yet.[/]\n"
        "  Run:  quarry ingest note \"...\"  or  quarry ingest url <url>"
    )
