"""Dense retriever: embed the question, query the vector index, filter by distance.

Filtering:
  - hits are paired with their text, metadata and distance by index;
  - a hit with a missing distance, or a distance >= ``distance_threshold``
    (cosine distance, lower = more similar), is dropped;
  - survivors are capped at ``max_context_chunks`` in the index's ranking order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence, TypeVar

from loguru import logger

from quarry.db.vectors import VectorIndex, VectorQueryResult
from quarry.rag.llm_client import Embedder

T = TypeVar("T")


@dataclass
class RetrievedChunk:
    """A chunk that survived distance filtering.

    Attributes:
        id: Vector-index entry id.
        text: Chunk text.
        metadata: ``{document_id, source_type, chunk_index, title, url}``.
        distance: Cosine distance to the question (lower = more relevant).
    """

    id: str
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)
    distance: float = 0.0


class Retriever:
    """Retrieve context chunks for a question.

    Args:
        embedder: Embedding client; must use the same model as ingestion.
        index: Vector index to query.
        top_k: Number of nearest neighbours requested.
        distance_threshold: Hits at or above this distance are discarded.
        max_context_chunks: Cap on surviving hits.
    """

    def __init__(
        self,
        embedder: Embedder,
        index: VectorIndex,
        top_k: int = 7,
        distance_threshold: float = 0.7,
        max_context_chunks: int = 5,
    ) -> None:
        self._embedder = embedder
        self._index = index
        self.top_k = top_k
        self.distance_threshold = distance_threshold
        self.max_context_chunks = max_context_chunks

    async def retrieve(self, question: str) -> list[RetrievedChunk]:
        """Return the filtered chunks for *question*, best first."""
        vector = await self._embedder.embed(question)
        result = await self._index.query(vector, self.top_k)
        chunks = filter_hits(result, self.distance_threshold, self.max_context_chunks)
        logger.info(
            "Retrieved {} hits, {} below distance {}",
            len(result.ids),
            len(chunks),
            self.distance_threshold,
        )
        return chunks


def filter_hits(
    result: VectorQueryResult,
    distance_threshold: float,
    limit: int,
) -> list[RetrievedChunk]:
    """Pair the parallel arrays of *result* and keep hits closer than the threshold."""
    kept: list[RetrievedChunk] = []
    for i, chunk_id in enumerate(result.ids):
        distance = _at(result.distances, i)
        text = _at(result.texts, i)
        if distance is None or text is None:
            continue
        if distance >= distance_threshold:
            continue
        kept.append(
            RetrievedChunk(
                id=chunk_id,
                text=text,
                metadata=_at(result.metadatas, i) or {},
                distance=distance,
            )
        )
        if len(kept) >= limit:
            break
    return kept


def _at(values: Sequence[T], index: int) -> T | None:
    return values[index] if index < len(values) else None
