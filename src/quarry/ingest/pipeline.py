"""Ingestion pipeline — notes and URLs into documents and indexed chunks.

Note path:
  normalize → reject empty → title from first line → chunk and embed →
  persist Document → upsert.

URL path:
  scrape → propagate scrape failure → reject short content → chunk and
  embed → persist Document (scraped title/url/text) → upsert.

No Document is created when a check or an embedding call fails, and a
Document whose chunks cannot all be stored is deleted again. Every exception
is turned into ``IngestResult(success=False)``; nothing propagates to the
caller.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Iterable, Union

from loguru import logger

from quarry.db.models import Document, SourceKind
from quarry.db.repository import Repository
from quarry.ingest.embedding_writer import EmbeddingWriter
from quarry.ingest.normalizer import normalize
from quarry.ingest.scraper import ResilientScraper

NOTE_TITLE_LENGTH = 80
EMPTY_NOTE_MESSAGE = "Content is empty after cleaning"


@dataclass(frozen=True)
class Note:
    """User-authored text."""

    text: str


@dataclass(frozen=True)
class Url:
    """A web page to scrape."""

    url: str


Content = Union[Note, Url]


@dataclass
class IngestResult:
    success: bool
    message: str
    document_id: int | None = None
    chunk_count: int = 0


class IngestionPipeline:
    """Turn notes and URLs into persisted documents and vector-index chunks.

    Args:
        repo:              Relational persistence.
        scraper:           Scraper used for ``Url`` content.
        writer:            Chunk/embed/upsert stage.
        min_content_chars: Minimum cleaned length for a scraped page.
        concurrency:       Maximum concurrent ingests in ``ingest_many()``.
    """

    def __init__(
        self,
        repo: Repository,
        scraper: ResilientScraper,
        writer: EmbeddingWriter,
        min_content_chars: int = 100,
        concurrency: int = 4,
    ) -> None:
        self._repo = repo
        self._scraper = scraper
        self._writer = writer
        self._min_content_chars = min_content_chars
        self._concurrency = concurrency

    async def ingest(self, content: Content) -> IngestResult:
        """Ingest one note or URL. Never raises."""
        try:
            if isinstance(content, Note):
                return await self._ingest_note(content)
            if isinstance(content, Url):
                return await self._ingest_url(content)
            raise TypeError(f"Unsupported content type: {type(content).__name__}")
        except Exception as exc:
            logger.exception("Ingestion failed")
            return IngestResult(success=False, message=str(exc) or exc.__class__.__name__)

    async def ingest_many(self, contents: Iterable[Content]) -> list[IngestResult]:
        """Ingest *contents* concurrently; results keep input order.

        One failing item never affects the others.
        """
        semaphore = asyncio.Semaphore(self._concurrency)

        async def _bounded(content: Content) -> IngestResult:
            async with semaphore:
                return await self.ingest(content)

        results = await asyncio.gather(*(_bounded(c) for c in contents))
        succeeded = sum(1 for r in results if r.success)
        logger.info("Batch ingest finished: {}/{} succeeded", succeeded, len(results))
        return list(results)

    async def list_documents(self, source: SourceKind | None = None) -> list[Document]:
        """Return ingested documents, newest first, optionally filtered by source."""
        return await self._repo.list_documents(source)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    async def _ingest_note(self, note: Note) -> IngestResult:
        text = normalize(note.text)
        if not text:
            logger.info("Rejected note: empty after cleaning")
            return IngestResult(success=False, message=EMPTY_NOTE_MESSAGE)

        document, chunk_count = await self._persist(SourceKind.NOTE, note_title(text), None, text)
        logger.info("Ingested note {} ({} chunks)", document.id, chunk_count)
        return IngestResult(
            success=True,
            message=f"Note ingested ({chunk_count} chunks)",
            document_id=document.id,
            chunk_count=chunk_count,
        )

    async def _ingest_url(self, url: Url) -> IngestResult:
        scraped = await self._scraper.scrape(url.url)
        if not scraped.success:
            return IngestResult(success=False, message=scraped.error or "Failed to scrape URL")

        if len(scraped.cleaned_text) < self._min_content_chars:
            logger.info(
                "Rejected {}: {} chars < {}",
                scraped.url,
                len(scraped.cleaned_text),
                self._min_content_chars,
            )
            return IngestResult(
                success=False,
                message=(
                    f"Scraped content too short ({len(scraped.cleaned_text)} chars, "
                    f"minimum {self._min_content_chars})"
                ),
            )

        document, chunk_count = await self._persist(
            SourceKind.URL, scraped.title, scraped.url, scraped.cleaned_text
        )
        logger.info(
            "Ingested {} as document {} ({} chunks, {})",
            scraped.url,
            document.id,
            chunk_count,
            scraped.method,
        )
        return IngestResult(
            success=True,
            message=f"Page ingested: {scraped.title} ({chunk_count} chunks)",
            document_id=document.id,
            chunk_count=chunk_count,
        )

    async def _persist(
        self, source: SourceKind, title: str, url: str | None, text: str
    ) -> tuple[Document, int]:
        """Embed *text*, then store the Document and its chunks.

        Every chunk is embedded before anything is written. If storing the
        chunks fails, the Document and any chunks already written are removed
        before the error propagates.
        """
        chunks = await self._writer.embed(text)
        document = await self._repo.add_document(source, title, url, text)
        try:
            chunk_count = await self._writer.store(document, chunks)
        except Exception:
            logger.warning("Rolling back document {} after index failure", document.id)
            await self._writer.discard(document.id)
            await self._repo.delete_document(document.id)
            raise
        return document, chunk_count


def note_title(text: str) -> str:
    """Return the first line of *text*, capped at NOTE_TITLE_LENGTH characters."""
    first_line = text.split("\n", 1)[0].strip()
    return first_line[:NOTE_TITLE_LENGTH]
