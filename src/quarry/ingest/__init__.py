"""quarry ingest pipeline — normalizer, chunker, scraper, embedding writer."""

from quarry.ingest.chunker import MAX_CHUNK_TOKENS, TokenChunker
from quarry.ingest.embedding_writer import EmbeddingWriter
from quarry.ingest.normalizer import MIN_TEXT_LENGTH, normalize
from quarry.ingest.pipeline import Content, IngestionPipeline, IngestResult, Note, Url
from quarry.ingest.scraper import ResilientScraper, ScrapeResult
from quarry.ingest.tokenizer import TiktokenCounter, TokenCounter

__all__ = [
    "MAX_CHUNK_TOKENS",
    "MIN_TEXT_LENGTH",
    "Content",
    "EmbeddingWriter",
    "IngestResult",
    "IngestionPipeline",
    "Note",
    "ResilientScraper",
    "ScrapeResult",
    "TiktokenCounter",
    "TokenChunker",
    "TokenCounter",
    "Url",
    "normalize",
]
