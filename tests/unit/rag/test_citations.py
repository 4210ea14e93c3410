"""Tests for citation extraction."""

from __future__ import annotations

import pytest

from quarry.db.models import Citation
from quarry.rag.citations import cited_numbers, extract_citations, renumber_markers
from quarry.rag.retriever import RetrievedChunk


def _chunk(i: int, title: str, url: str | None = None, document_id: int | None = None) -> RetrievedChunk:
    metadata = {
        "document_id": document_id if document_id is not None else i,
        "source_type": "URL" if url else "NOTE",
        "chunk_index": 0,
        "title": title,
        "url": url,
    }
    return RetrievedChunk(id=f"c{i}", text=f"text {i}", metadata=metadata, distance=0.1)


CHUNKS = [
    _chunk(1, "Page A", url="https://a.example"),
    _chunk(2, "Page B", url="https://b.example"),
    _chunk(3, "Page C", url="https://c.example"),
]


# ------------------------------------------------------------------
# cited_numbers
# ------------------------------------------------------------------


def test_repeated_numbers_collected_once_ascending():
    assert cited_numbers("[3] first, then [1], and [3] again.", 3) == [1, 3]


def test_grouped_numbers():
    assert cited_numbers("See [1, 2] and [ 3 ].", 3) == [1, 2, 3]


def test_out_of_range_numbers_dropped():
    assert cited_numbers("[0] [4] [2] [99]", 3) == [2]


def test_oversized_number_is_not_a_marker():
    huge = "9" * 5000
    assert cited_numbers(f"See [1] and [{huge}] and [1, {huge}].", 3) == [1]
    assert extract_citations(f"See [1] and [{huge}].", CHUNKS[:1]) == [
        Citation(number=1, title="Page A", url="https://a.example", source_type="URL")
    ]


@pytest.mark.parametrize("answer", ["", "No citations here.", "[a] [] [1.5]", None])
def test_no_valid_markers(answer):
    assert cited_numbers(answer, 3) == []


# ------------------------------------------------------------------
# extract_citations
# ------------------------------------------------------------------


def test_cited_sources_renumbered_in_order():
    citations = extract_citations("[1] and [3] confirm this, [1] again.", CHUNKS)

    assert citations == [
        Citation(number=1, title="Page A", url="https://a.example", source_type="URL"),
        Citation(number=2, title="Page C", url="https://c.example", source_type="URL"),
    ]


def test_same_url_cited_twice_kept_once():
    chunks = [
        _chunk(1, "Page A", url="https://a.example"),
        _chunk(2, "Page A", url="https://a.example"),
        _chunk(3, "Page B", url="https://b.example"),
    ]
    citations = extract_citations("[2] [1] [3]", chunks)
    assert [(c.number, c.url) for c in citations] == [(1, "https://a.example"), (2, "https://b.example")]


def test_notes_deduplicated_by_document_id():
    chunks = [
        _chunk(1, "Note one", document_id=10),
        _chunk(2, "Note one", document_id=10),
        _chunk(3, "Note two", document_id=11),
    ]
    citations = extract_citations("[1][2][3]", chunks)
    assert [(c.number, c.title, c.url, c.source_type) for c in citations] == [
        (1, "Note one", None, "NOTE"),
        (2, "Note two", None, "NOTE"),
    ]


def test_chunk_without_source_falls_back_to_chunk_id():
    chunks = [RetrievedChunk(id="x"), RetrievedChunk(id="y")]
    citations = extract_citations("[1] [2]", chunks)
    assert [c.title for c in citations] == ["Untitled", "Untitled"]
    assert [c.number for c in citations] == [1, 2]


def test_uncited_answer_has_no_citations():
    assert extract_citations("The answer, with no markers.", CHUNKS) == []


def test_out_of_range_only_gives_no_citations():
    assert extract_citations("As shown in [7].", CHUNKS) == []


def test_no_chunks():
    assert extract_citations("[1]", []) == []


# ------------------------------------------------------------------
# renumber_markers
# ------------------------------------------------------------------


def test_markers_follow_citation_numbers():
    answer = "[1] and [3] confirm this, [1] again."
    assert renumber_markers(answer, CHUNKS) == "[1] and [2] confirm this, [1] again."


def test_duplicate_source_markers_collapse():
    chunks = [
        _chunk(1, "Page A", url="https://a.example"),
        _chunk(2, "Page A", url="https://a.example"),
        _chunk(3, "Page B", url="https://b.example"),
    ]
    assert renumber_markers("See [1, 2] and [3].", chunks) == "See [1] and [2]."


def test_invalid_markers_left_as_written():
    huge = "9" * 5000
    answer = f"Known [2], unknown [ 7 ], huge [{huge}]."
    assert renumber_markers(answer, CHUNKS) == f"Known [1], unknown [ 7 ], huge [{huge}]."


def test_answer_without_valid_markers_unchanged():
    assert renumber_markers("Nothing cited [0].", CHUNKS) == "Nothing cited [0]."
