"""Tests for IngestionPipeline — notes, URLs and batch ingest."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from quarry.db.models import SourceKind
from quarry.ingest.pipeline import (
    EMPTY_NOTE_MESSAGE,
    IngestionPipeline,
    IngestResult,
    Note,
    Url,
    note_title,
)

GARDEN_URL = "https://example.com/garden"


# ------------------------------------------------------------------
# Notes
# ------------------------------------------------------------------


async def test_short_note_becomes_one_document_and_one_chunk(app):
    text = "Hello world. This is a test."

    result = await app.pipeline.ingest(Note(text))

    assert result.success is True
    assert result.chunk_count == 1
    assert "1 chunks" in result.message

    docs = await app.repo.list_documents()
    assert len(docs) == 1
    assert docs[0].id == result.document_id
    assert docs[0].source is SourceKind.NOTE
    assert docs[0].title == text
    assert docs[0].url is None
    assert docs[0].content == text
    assert await app.index.count() == 1


async def test_note_title_is_first_line(app):
    result = await app.pipeline.ingest(Note("Shopping list\n\nmilk, eggs and bread for the week"))

    doc = await app.repo.get_document(result.document_id)
    assert doc.title == "Shopping list"


def test_note_title_capped():
    assert note_title("x" * 200) == "x" * 80
    assert note_title("  first  \nsecond") == "first"


async def test_note_is_normalized_before_storing(app):
    result = await app.pipeline.ingest(Note("  Hello\u200b   world  \r\n\r\n\r\n\r\nBye  "))

    doc = await app.repo.get_document(result.document_id)
    assert doc.content == "Hello world\n\nBye"


@pytest.mark.parametrize("text", ["", "   \n\n   ", "   \n\t  ", "\u200b\u200b", "-- !! --"])
async def test_empty_note_rejected_without_writes(app, embedder, text):
    result = await app.pipeline.ingest(Note(text))

    assert result.success is False
    assert result.message == EMPTY_NOTE_MESSAGE
    assert "empty after cleaning" in result.message
    assert result.document_id is None
    assert await app.repo.list_documents() == []
    assert await app.index.count() == 0
    assert embedder.calls == []


async def test_long_note_is_split_into_several_chunks(app):
    paragraphs = [" ".join(["python"] * 40) for _ in range(3)]

    result = await app.pipeline.ingest(Note("\n\n".join(paragraphs)))

    assert result.success is True
    assert result.chunk_count == 3
    assert await app.index.count() == 3


async def test_embedding_failure_becomes_failed_result(app, embedder):
    embedder.fail = True

    result = await app.pipeline.ingest(Note("A note that cannot be embedded."))

    assert result.success is False
    assert "embedding provider unavailable" in result.message
    assert result.document_id is None
    assert await app.repo.list_documents() == []
    assert await app.index.count() == 0


async def test_embedding_failure_on_later_chunk_leaves_nothing(app, embedder):
    embedder.fail_after = 1
    paragraphs = [" ".join(["python"] * 40) for _ in range(3)]

    result = await app.pipeline.ingest(Note("\n\n".join(paragraphs)))

    assert result.success is False
    assert len(embedder.calls) == 2
    assert await app.repo.list_documents() == []
    assert await app.index.count() == 0


async def test_index_failure_on_later_chunk_removes_document_and_chunks(app, monkeypatch):
    upsert = app.index.upsert
    stored = 0

    async def flaky_upsert(id, vector, text, metadata):
        nonlocal stored
        if stored == 1:
            raise RuntimeError("disk full")
        await upsert(id, vector, text, metadata)
        stored += 1

    monkeypatch.setattr(app.index, "upsert", flaky_upsert)
    paragraphs = [" ".join(["python"] * 40) for _ in range(3)]

    result = await app.pipeline.ingest(Note("\n\n".join(paragraphs)))

    assert result.success is False
    assert result.message == "disk full"
    assert stored == 1
    assert await app.repo.list_documents() == []
    assert await app.index.count() == 0


async def test_failed_ingest_keeps_earlier_documents(app, embedder):
    first = await app.pipeline.ingest(Note("A note about python."))
    embedder.fail = True

    await app.pipeline.ingest(Note("A second note about music."))

    docs = await app.repo.list_documents()
    assert [d.id for d in docs] == [first.document_id]
    assert await app.index.count() == first.chunk_count


async def test_unsupported_content_type(app):
    result = await app.pipeline.ingest("just a string")  # type: ignore[arg-type]

    assert result.success is False
    assert result.message == "Unsupported content type: str"


# ------------------------------------------------------------------
# URLs
# ------------------------------------------------------------------


async def test_url_ingest_stores_scraped_page(app, renderer):
    result = await app.pipeline.ingest(Url(GARDEN_URL))

    assert result.success is True
    assert result.message.startswith("Page ingested: Planning a Vegetable Garden")
    assert result.chunk_count >= 1

    doc = await app.repo.get_document(result.document_id)
    assert doc.source is SourceKind.URL
    assert doc.url == GARDEN_URL
    assert doc.title == "Planning a Vegetable Garden"
    assert "Raised beds warm up earlier" in doc.content
    assert await app.index.count() == result.chunk_count
    assert renderer.calls == []


async def test_url_chunks_carry_page_metadata(app):
    await app.pipeline.ingest(Url(GARDEN_URL))

    hits = await app.index.query([0.0, 1.0, 0.0, 0.01], top_k=10)
    assert hits.metadatas
    for meta in hits.metadatas:
        assert meta["source_type"] == "URL"
        assert meta["url"] == GARDEN_URL
        assert meta["title"] == "Planning a Vegetable Garden"


async def test_scrape_failure_message_passed_through(app, renderer):
    result = await app.pipeline.ingest(Url("https://example.com/missing"))

    assert result.success is False
    assert "HTTP 404" in result.message
    assert "navigation failed" in result.message
    assert renderer.calls == ["https://example.com/missing"]
    assert await app.repo.list_documents() == []


async def test_invalid_url_fails_without_document(app):
    result = await app.pipeline.ingest(Url("not a url"))

    assert result.success is False
    assert result.message.startswith("Invalid URL format")
    assert await app.repo.list_documents() == []


async def test_short_page_rejected(app):
    pipeline = IngestionPipeline(
        app.repo, app.pipeline._scraper, app.pipeline._writer, min_content_chars=10_000
    )

    result = await pipeline.ingest(Url(GARDEN_URL))

    assert result.success is False
    assert result.message.startswith("Scraped content too short (")
    assert "minimum 10000" in result.message
    assert await app.repo.list_documents() == []
    assert await app.index.count() == 0


# ------------------------------------------------------------------
# Batch
# ------------------------------------------------------------------


async def test_ingest_many_keeps_order_and_isolates_failures(app):
    results = await app.pipeline.ingest_many(
        [
            Note("First note about music."),
            Url("https://example.com/missing"),
            Note(""),
            Url(GARDEN_URL),
        ]
    )

    assert [r.success for r in results] == [True, False, False, True]
    assert results[2].message == EMPTY_NOTE_MESSAGE
    docs = await app.repo.list_documents()
    assert len(docs) == 2


async def test_ingest_many_empty_input(app):
    assert await app.pipeline.ingest_many([]) == []


async def test_ingest_many_respects_concurrency_limit():
    pipeline = IngestionPipeline(MagicMock(), MagicMock(), MagicMock(), concurrency=2)
    active = 0
    peak = 0

    async def fake_ingest(content):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        return IngestResult(success=True, message=content.text)

    pipeline.ingest = fake_ingest  # type: ignore[method-assign]

    results = await pipeline.ingest_many([Note(str(i)) for i in range(6)])

    assert peak == 2
    assert [r.message for r in results] == [str(i) for i in range(6)]


# ------------------------------------------------------------------
# Listing
# ------------------------------------------------------------------


async def test_list_documents_filters_by_source(app):
    await app.pipeline.ingest(Note("A note about python."))
    await app.pipeline.ingest(Url(GARDEN_URL))

    assert len(await app.pipeline.list_documents()) == 2
    notes = await app.pipeline.list_documents(SourceKind.NOTE)
    urls = await app.pipeline.list_documents(SourceKind.URL)
    assert [d.title for d in notes] == ["A note about python."]
    assert [d.url for d in urls] == [GARDEN_URL]
