"""Citation extraction from model output.

Best-effort: the model may cite numbers out of range, repeat them, or cite
nothing. Invalid numbers are dropped silently; extraction never raises.

Policy:
  1. Collect every ``[n]`` (also ``[n, m]``) in the answer. Numbers longer
     than six digits are not markers.
  2. Keep numbers within ``1..len(chunks)``.
  3. Visit them in ascending numeric order, each once.
  4. Deduplicate by source: the chunk's url, or its document id when it has
     no url. The first (lowest) number wins.
  5. Renumber the survivors ``1..k``.

``renumber_markers`` rewrites the markers in the answer text to the same
``1..k`` numbering, so ``[n]`` in the stored answer names the n-th source.
"""

from __future__ import annotations

import re

from quarry.db.models import Citation
from quarry.rag.retriever import RetrievedChunk

_CITATION_RE = re.compile(r"\[\s*(\d{1,6}(?:\s*,\s*\d{1,6})*)\s*\]")


def cited_numbers(answer: str, chunk_count: int) -> list[int]:
    """Return the distinct in-range citation numbers in *answer*, ascending."""
    numbers: set[int] = set()
    for group in _CITATION_RE.findall(answer or ""):
        for part in group.split(","):
            n = int(part)
            if 1 <= n <= chunk_count:
                numbers.add(n)
    return sorted(numbers)


def extract_citations(answer: str, chunks: list[RetrievedChunk]) -> list[Citation]:
    """Map the citation markers in *answer* to renumbered Citation records."""
    return _number_sources(answer, chunks)[0]


def renumber_markers(answer: str, chunks: list[RetrievedChunk]) -> str:
    """Rewrite the in-range markers of *answer* to the renumbered citations.

    Markers citing nothing valid are left as written.
    """
    _, renumbered = _number_sources(answer, chunks)
    if not renumbered:
        return answer

    def _replace(match: re.Match) -> str:
        numbers = [int(part) for part in match.group(1).split(",")]
        if not any(n in renumbered for n in numbers):
            return match.group(0)
        new_numbers: list[int] = []
        for n in numbers:
            n = renumbered.get(n, n)
            if n not in new_numbers:
                new_numbers.append(n)
        return "[" + ", ".join(str(n) for n in new_numbers) + "]"

    return _CITATION_RE.sub(_replace, answer)


def _number_sources(
    answer: str, chunks: list[RetrievedChunk]
) -> tuple[list[Citation], dict[int, int]]:
    """Return the citations and a map from each cited chunk number to its citation number."""
    citations: list[Citation] = []
    by_source: dict[str, int] = {}
    renumbered: dict[int, int] = {}
    for n in cited_numbers(answer, len(chunks)):
        chunk = chunks[n - 1]
        key = _source_key(chunk.metadata, chunk.id)
        if key not in by_source:
            citations.append(
                Citation(
                    number=len(citations) + 1,
                    title=str(chunk.metadata.get("title") or "Untitled"),
                    url=chunk.metadata.get("url"),
                    source_type=str(chunk.metadata.get("source_type", "")),
                )
            )
            by_source[key] = len(citations)
        renumbered[n] = by_source[key]
    return citations, renumbered


def _source_key(metadata: dict, chunk_id: str) -> str:
    if metadata.get("url"):
        return f"url:{metadata['url']}"
    if metadata.get("document_id") is not None:
        return f"doc:{metadata['document_id']}"
    return f"chunk:{chunk_id}"
