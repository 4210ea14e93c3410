"""Embedding writer — chunk a document, embed each chunk, upsert into the index.

Writing happens in two steps so a provider failure never leaves rows behind:

- ``embed(text)`` chunks and embeds every non-blank chunk, touching nothing
  in the database;
- ``store(document, chunks)`` upserts the embedded chunks under fresh uuid4
  ids with metadata ``{document_id, source_type, chunk_index, title, url}``.

``chunk_index`` counts only the chunks actually written, so siblings are
numbered ``0..n-1`` without gaps. ``discard(document_id)`` removes whatever
``store`` managed to write for a document.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

from loguru import logger

from quarry.db.models import Document
from quarry.db.vectors import VectorIndex
from quarry.ingest.chunker import TokenChunker
from quarry.rag.llm_client import Embedder


@dataclass(frozen=True)
class EmbeddedChunk:
    text: str
    vector: list[float]


class EmbeddingWriter:
    """Write a document's chunks to the vector index.

    Args:
        chunker: Token-budgeted chunker.
        embedder: Embedding provider client.
        index:    Vector index receiving the chunks.
    """

    def __init__(self, chunker: TokenChunker, embedder: Embedder, index: VectorIndex) -> None:
        self._chunker = chunker
        self._embedder = embedder
        self._index = index

    async def embed(self, text: str) -> list[EmbeddedChunk]:
        """Chunk and embed *text*. Blank chunks are skipped."""
        chunks: list[EmbeddedChunk] = []
        for chunk_text in self._chunker.chunk(text):
            if not chunk_text.strip():
                continue
            chunks.append(EmbeddedChunk(chunk_text, await self._embedder.embed(chunk_text)))
        return chunks

    async def store(self, document: Document, chunks: list[EmbeddedChunk]) -> int:
        """Upsert *chunks* as children of *document*. Returns the number written."""
        for chunk_index, chunk in enumerate(chunks):
            await self._index.upsert(
                str(uuid.uuid4()),
                chunk.vector,
                chunk.text,
                chunk_metadata(document, chunk_index),
            )

        logger.debug("Wrote {} chunks for document {}", len(chunks), document.id)
        return len(chunks)

    async def discard(self, document_id: int) -> int:
        """Remove every indexed chunk of *document_id*."""
        return await self._index.delete_document(document_id)


def chunk_metadata(document: Document, chunk_index: int) -> dict[str, Any]:
    """Return the vector-index metadata for chunk *chunk_index* of *document*."""
    return {
        "document_id": document.id,
        "source_type": document.source.value,
        "chunk_index": chunk_index,
        "title": document.title,
        "url": document.url,
    }
