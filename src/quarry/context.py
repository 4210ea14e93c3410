"""Application context — owns the database, vector index and provider clients.

One AppContext per process run::

    async with AppContext(cfg) as ctx:
        await ctx.pipeline.ingest(Note("..."))
        await ctx.engine.answer_question("...")

Providers default to the LiteLLM / tiktoken / Playwright implementations;
tests inject fakes through the keyword arguments.
"""

from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path

import httpx
from loguru import logger

from quarry.config import QuarryConfig
from quarry.db.connection import AsyncConnection, Database
from quarry.db.repository import Repository
from quarry.db.schema import initialize
from quarry.db.vectors import SqliteVecIndex, VectorIndex, ensure_vec_table, model_to_slug
from quarry.ingest.chunker import TokenChunker
from quarry.ingest.embedding_writer import EmbeddingWriter
from quarry.ingest.pipeline import IngestionPipeline
from quarry.ingest.renderer import PageRenderer
from quarry.ingest.scraper import ResilientScraper
from quarry.ingest.tokenizer import TiktokenCounter, TokenCounter
from quarry.rag.engine import AnswerEngine
from quarry.rag.llm_client import Completer, Embedder, LiteLLMCompleter, LiteLLMEmbedder
from quarry.rag.retriever import Retriever


class AppContext:
    """Explicit lifecycle for quarry's shared resources.

    Args:
        config:    Merged configuration.
        db_path:   Override ``config.database.path``.
        embedder:  Embedding client (default: LiteLLMEmbedder).
        completer: Completion client (default: LiteLLMCompleter).
        counter:   Token oracle (default: TiktokenCounter).
        renderer:  Headless renderer (default: PlaywrightRenderer).
        transport: httpx transport for the static fetch.
    """

    def __init__(
        self,
        config: QuarryConfig,
        *,
        db_path: Path | str | None = None,
        embedder: Embedder | None = None,
        completer: Completer | None = None,
        counter: TokenCounter | None = None,
        renderer: PageRenderer | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.db_path = Path(db_path if db_path is not None else config.database.path)
        self._embedder = embedder
        self._completer = completer
        self._counter = counter
        self._renderer = renderer
        self._transport = transport

        self._db: AsyncConnection | None = None
        self._repo: Repository | None = None
        self._index: VectorIndex | None = None
        self._pipeline: IngestionPipeline | None = None
        self._engine: AnswerEngine | None = None

    async def open(self) -> AppContext:
        """Open the database (migrating it if needed) and wire every component."""
        if self._db is not None:
            return self

        cfg = self.config
        conn, table = await asyncio.to_thread(self._connect)
        self._db = AsyncConnection(conn)
        self._repo = Repository(self._db)
        self._index = SqliteVecIndex(self._db, table)

        embedder = self._embedder or LiteLLMEmbedder(
            cfg.embedding.model, num_retries=cfg.generation.num_retries
        )
        completer = self._completer or LiteLLMCompleter(
            cfg.generation.model,
            max_tokens=cfg.generation.max_tokens,
            temperature=cfg.generation.temperature,
            num_retries=cfg.generation.num_retries,
        )
        counter = self._counter or TiktokenCounter(cfg.chunking.encoding)

        writer = EmbeddingWriter(
            TokenChunker(counter, max_tokens=cfg.chunking.max_tokens), embedder, self._index
        )
        scraper = ResilientScraper(
            cfg.scraping, renderer=self._renderer, transport=self._transport
        )
        self._pipeline = IngestionPipeline(
            self._repo,
            scraper,
            writer,
            min_content_chars=cfg.scraping.min_content_chars,
            concurrency=cfg.scraping.concurrency,
        )
        retriever = Retriever(
            embedder,
            self._index,
            top_k=cfg.retrieval.top_k,
            distance_threshold=cfg.retrieval.distance_threshold,
            max_context_chunks=cfg.retrieval.max_context_chunks,
        )
        self._engine = AnswerEngine(self._repo, retriever, completer)

        logger.debug("Opened {} (vector table {})", self.db_path, table)
        return self

    async def close(self) -> None:
        """Close the database connection. Safe to call twice."""
        if self._db is None:
            return
        self._db.close()
        self._db = None
        self._repo = self._index = self._pipeline = self._engine = None
        logger.debug("Closed {}", self.db_path)

    async def __aenter__(self) -> AppContext:
        return await self.open()

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    @property
    def repo(self) -> Repository:
        return self._require(self._repo)

    @property
    def index(self) -> VectorIndex:
        return self._require(self._index)

    @property
    def pipeline(self) -> IngestionPipeline:
        return self._require(self._pipeline)

    @property
    def engine(self) -> AnswerEngine:
        return self._require(self._engine)

    @staticmethod
    def _require(component):
        if component is None:
            raise RuntimeError("AppContext is not open; call open() first")
        return component

    def _connect(self) -> tuple[sqlite3.Connection, str]:
        conn = Database(self.db_path).connect()
        try:
            initialize(conn)
            table = ensure_vec_table(
                conn,
                model_to_slug(self.config.embedding.model),
                self.config.embedding.dimensions,
            )
        except Exception:
            conn.close()
            raise
        return conn, table
