"""Shared command plumbing: config + logging setup, AppContext lifecycle."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Awaitable, Callable, TypeVar

import typer
from rich.console import Console

from quarry.cli.errors import err_config, err_no_api_key
from quarry.config import ConfigError, QuarryConfig, load_config
from quarry.context import AppContext
from quarry.log import setup_logging
from quarry.rag.llm_client import validate_api_key

T = TypeVar("T")

console = Console()


def load_runtime_config(db: Path | None) -> QuarryConfig:
    """Load config, apply the --db override and configure logging.

    Exits with code 1 on an invalid config.
    """
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc

    if db is not None:
        cfg.database.path = str(db)
    setup_logging(cfg.logging.level, cfg.logging.file)
    return cfg


def require_api_keys(*models: str) -> None:
    """Exit with an actionable message if a model's provider key is missing."""
    for model in models:
        try:
            validate_api_key(model)
        except EnvironmentError as exc:
            provider = model.split("/")[0] if "/" in model else "openai"
            console.print(err_no_api_key(provider))
            raise typer.Exit(1) from exc


def make_context(cfg: QuarryConfig) -> AppContext:
    """Build the AppContext for one command run."""
    return AppContext(cfg)


def run_in_context(cfg: QuarryConfig, fn: Callable[[AppContext], Awaitable[T]]) -> T:
    """Open an AppContext, await ``fn(ctx)`` and close the context."""

    async def _main() -> T:
        async with make_context(cfg) as ctx:
            return await fn(ctx)

    return asyncio.run(_main())
