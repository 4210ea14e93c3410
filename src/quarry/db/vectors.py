"""Vector index over sqlite-vec: per-model vec0 tables plus chunk entries.

Each chunk is stored twice under the same integer key:
  chunk_entries(pk, id, text, metadata)       — text + JSON metadata
  vec_chunks_<model_slug>(rowid, embedding)   — cosine-distance vec0 table
"""

from __future__ import annotations

import json
import re
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Protocol

from quarry.db.connection import AsyncConnection


def model_to_slug(model: str) -> str:
    """Convert a provider/model string to a valid table name suffix.

    Examples:
        "openai/text-embedding-3-small" -> "openai_text_embedding_3_small"
    """
    return re.sub(r"[^a-z0-9]", "_", model.lower())


def vec_table_name(model_slug: str) -> str:
    """Return the full vec table name for a model slug."""
    return f"vec_chunks_{model_slug}"


def ensure_vec_table(conn: sqlite3.Connection, model_slug: str, dimensions: int) -> str:
    """Create vec_chunks_{model_slug} virtual table if it doesn't already exist.

    Args:
        conn: Active database connection (sqlite-vec must be loaded).
        model_slug: Sanitized model identifier (use model_to_slug() to generate).
        dimensions: Embedding vector dimensions (e.g. 1536 for text-embedding-3-small).

    Returns:
        The table name (vec_chunks_{model_slug}).
    """
    if not re.fullmatch(r"[a-z0-9_]+", model_slug):
        raise ValueError(
            f"Invalid model_slug '{model_slug}' — use model_to_slug() to sanitize."
        )
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    table = vec_table_name(model_slug)
    existing = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()

    if existing is None:
        conn.execute(
            f"CREATE VIRTUAL TABLE {table} USING vec0("
            f"embedding float[{dimensions}] distance_metric=cosine)"
        )
        conn.commit()

    return table


@dataclass
class VectorQueryResult:
    """Nearest-neighbour hits as parallel arrays, nearest first."""

    ids: list[str] = field(default_factory=list)
    texts: list[str] = field(default_factory=list)
    metadatas: list[dict[str, Any]] = field(default_factory=list)
    distances: list[float | None] = field(default_factory=list)


class VectorIndex(Protocol):
    async def upsert(
        self, id: str, vector: list[float], text: str, metadata: dict[str, Any]
    ) -> None: ...

    async def query(self, vector: list[float], top_k: int) -> VectorQueryResult: ...

    async def delete_document(self, document_id: int) -> int: ...


class SqliteVecIndex:
    """VectorIndex backed by a sqlite-vec table in the project database."""

    def __init__(self, db: AsyncConnection, table: str) -> None:
        self._db = db
        self._table = table

    async def upsert(
        self, id: str, vector: list[float], text: str, metadata: dict[str, Any]
    ) -> None:
        """Insert or replace the entry *id* with its embedding."""
        table = self._table

        def _write(conn: sqlite3.Connection) -> None:
            row = conn.execute("SELECT pk FROM chunk_entries WHERE id = ?", (id,)).fetchone()
            if row is None:
                cur = conn.execute(
                    "INSERT INTO chunk_entries (id, text, metadata) VALUES (?, ?, ?)",
                    (id, text, json.dumps(metadata)),
                )
                pk = cur.lastrowid
            else:
                pk = row["pk"]
                conn.execute(
                    "UPDATE chunk_entries SET text = ?, metadata = ? WHERE pk = ?",
                    (text, json.dumps(metadata), pk),
                )
                conn.execute(f"DELETE FROM {table} WHERE rowid = ?", (pk,))
            conn.execute(
                f"INSERT INTO {table}(rowid, embedding) VALUES (?, ?)",
                (pk, json.dumps(vector)),
            )
            conn.commit()

        await self._db.run(_write)

    async def query(self, vector: list[float], top_k: int) -> VectorQueryResult:
        """Return the *top_k* nearest entries sorted by ascending distance."""
        table = self._table

        def _search(conn: sqlite3.Connection) -> VectorQueryResult:
            rows = conn.execute(
                f"""
                SELECT e.id, e.text, e.metadata, v.distance
                FROM (
                    SELECT rowid, distance FROM {table}
                    WHERE embedding MATCH ? ORDER BY distance LIMIT ?
                ) AS v
                JOIN chunk_entries AS e ON e.pk = v.rowid
                ORDER BY v.distance
                """,
                (json.dumps(vector), top_k),
            ).fetchall()
            result = VectorQueryResult()
            for row in rows:
                result.ids.append(row["id"])
                result.texts.append(row["text"])
                result.metadatas.append(json.loads(row["metadata"]))
                result.distances.append(row["distance"])
            return result

        return await self._db.run(_search)

    async def delete_document(self, document_id: int) -> int:
        """Delete every entry whose metadata names *document_id*. Returns the count."""
        table = self._table

        def _delete(conn: sqlite3.Connection) -> int:
            pks = [
                (row["pk"],)
                for row in conn.execute(
                    "SELECT pk FROM chunk_entries "
                    "WHERE json_extract(metadata, '$.document_id') = ?",
                    (document_id,),
                )
            ]
            conn.executemany(f"DELETE FROM {table} WHERE rowid = ?", pks)
            conn.executemany("DELETE FROM chunk_entries WHERE pk = ?", pks)
            conn.commit()
            return len(pks)

        return await self._db.run(_delete)

    async def count(self) -> int:
        """Return the number of stored entries."""
        return await self._db.run(
            lambda conn: conn.execute("SELECT COUNT(*) FROM chunk_entries").fetchone()[0]
        )
