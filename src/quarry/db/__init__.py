"""quarry database layer."""

from quarry.db.connection import AsyncConnection, Database
from quarry.db.migrations import MIGRATIONS, run_migrations
from quarry.db.repository import Repository
from quarry.db.schema import initialize
from quarry.db.vectors import (
    SqliteVecIndex,
    VectorIndex,
    VectorQueryResult,
    ensure_vec_table,
    model_to_slug,
    vec_table_name,
)

__all__ = [
    "AsyncConnection",
    "Database",
    "Repository",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "SqliteVecIndex",
    "VectorIndex",
    "VectorQueryResult",
    "ensure_vec_table",
    "model_to_slug",
    "vec_table_name",
]
