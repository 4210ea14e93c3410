"""quarry init — create the knowledge base and a starter quarry.yaml.

Creates:
  .quarry.db              — database with schema + vector table for the embedding model
  quarry.yaml             — project config with the default sections (kept if present)
  ~/.quarry/config.yaml   — global model config (created once, mode 0o600)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from quarry.config import ConfigError, ensure_global_config, load_config
from quarry.cli.errors import err_config
from quarry.db.connection import Database
from quarry.db.schema import initialize
from quarry.db.vectors import ensure_vec_table, model_to_slug

console = Console()

_PROJECT_YAML = """\
# quarry project configuration. API keys belong in environment variables.

retrieval:
  top_k: 7
  distance_threshold: 0.7     # cosine distance; hits at or above are dropped
  max_context_chunks: 5

chunking:
  max_tokens: 500

scraping:
  static_timeout: 8
  render_timeout: 30
  fallback_threshold: 500     # cleaned chars below this trigger browser rendering
  min_content_chars: 100
  concurrency: 4

logging:
  level: INFO
"""


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = Path("."),
) -> None:
    """Initialize a quarry knowledge base in PROJECT_DIR."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)

    try:
        cfg = load_config(project_dir)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc

    db_path = Path(cfg.database.path)
    if not db_path.is_absolute():
        db_path = project_dir / db_path
    existed = db_path.exists()

    conn = Database(db_path).connect()
    try:
        initialize(conn)
        table = ensure_vec_table(
            conn, model_to_slug(cfg.embedding.model), cfg.embedding.dimensions
        )
    finally:
        conn.close()
    state = "up to date" if existed else "created"
    console.print(f"  [green]✓[/] {db_path.name} ({state}, vector table {table})")

    yaml_path = project_dir / "quarry.yaml"
    if yaml_path.exists():
        console.print("  [dim]-[/] quarry.yaml (kept)")
    else:
        yaml_path.write_text(_PROJECT_YAML, encoding="utf-8")
        console.print("  [green]✓[/] quarry.yaml")

    cfg_path = ensure_global_config()
    console.print(f"  [green]✓[/] {cfg_path} (global config)")

    console.print("\n[bold green]✓ quarry initialized.[/]")
    console.print("\nNext steps:")
    console.print('  1. quarry ingest note "..."   or   quarry ingest url <url>')
    console.print('  2. quarry ask "your question"')
