"""Shared pytest fixtures and provider fakes."""

from __future__ import annotations

from typing import Sequence

import httpx
import pytest

from quarry.config import QuarryConfig
from quarry.context import AppContext
from quarry.db.connection import AsyncConnection, Database
from quarry.db.repository import Repository
from quarry.db.schema import initialize
from quarry.ingest.renderer import RenderError

# Vocabulary of the keyword embedder; the last dimension is a small bias so
# no vector is all-zero.
KEYWORDS = ("python", "garden", "music")
EMBEDDING_DIMS = len(KEYWORDS) + 1


class CharCounter:
    """One token per character; decode(encode(x)) == x."""

    def count(self, text: str) -> int:
        return len(text)

    def encode(self, text: str) -> list[int]:
        return [ord(c) for c in text]

    def decode(self, tokens: Sequence[int]) -> str:
        return "".join(chr(t) for t in tokens)


class WordCounter(CharCounter):
    """Counts whitespace-separated words; hard split still works per character."""

    def count(self, text: str) -> int:
        return len(text.split())


class KeywordEmbedder:
    """Embeds text as keyword counts, so cosine distance tracks topic overlap.

    Raises on every call when *fail* is set, or on every call after the
    first *fail_after* calls.
    """

    def __init__(self, fail: bool = False, fail_after: int | None = None) -> None:
        self.calls: list[str] = []
        self.fail = fail
        self.fail_after = fail_after

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail or (self.fail_after is not None and len(self.calls) > self.fail_after):
            raise RuntimeError("embedding provider unavailable")
        lowered = text.lower()
        return [float(lowered.count(word)) for word in KEYWORDS] + [0.01]


class ScriptedCompleter:
    """Returns a fixed reply (or raises it, if it is an exception)."""

    def __init__(self, reply: str | None | Exception = "Answer [1].") -> None:
        self.reply = reply
        self.calls: list[tuple[str, str]] = []

    async def complete(self, system_prompt: str, user_prompt: str) -> str | None:
        self.calls.append((system_prompt, user_prompt))
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


class ScriptedRenderer:
    """Returns fixed HTML, or raises RenderError when *error* is set."""

    def __init__(self, html: str = "", error: str | None = None) -> None:
        self.html = html
        self.error = error
        self.calls: list[str] = []

    async def render(self, url: str) -> str:
        self.calls.append(url)
        if self.error is not None:
            raise RenderError(self.error)
        return self.html


def article_html(title: str, paragraphs: list[str], description: str | None = None) -> str:
    """Build a small article page readability can extract."""
    meta = f'<meta name="description" content="{description}">' if description else ""
    body = "".join(f"<p>{p}</p>" for p in paragraphs)
    return (
        f"<html><head><title>{title}</title>{meta}</head>"
        f"<body><nav><a href='/'>Home</a></nav>"
        f"<article><h1>{title}</h1>{body}</article>"
        f"<script>var tracking = 1;</script></body></html>"
    )


GARDEN_HTML = article_html(
    "Planning a Vegetable Garden",
    [
        "A vegetable garden needs a sunny spot, because most crops need at least six hours "
        "of direct light every day to produce a good harvest.",
        "Raised beds warm up earlier in spring and drain well, which makes the garden easier "
        "to manage on heavy clay soil or in wet climates.",
        "Rotate the garden crops every year so that pests and diseases do not build up in the "
        "soil where the same plant family grew the season before.",
    ],
    description="How to plan a vegetable garden.",
)


def static_transport(routes: dict[str, tuple[int, str]]) -> httpx.MockTransport:
    """MockTransport serving ``{path: (status, html)}``; unknown paths are 404."""

    def handler(request: httpx.Request) -> httpx.Response:
        status, html = routes.get(request.url.path, (404, "<html></html>"))
        return httpx.Response(status, headers={"content-type": "text/html"}, text=html)

    return httpx.MockTransport(handler)


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".quarry.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def adb(tmp_db):
    return AsyncConnection(tmp_db)


@pytest.fixture
def repo(adb):
    return Repository(adb)


@pytest.fixture
def test_config(tmp_path) -> QuarryConfig:
    cfg = QuarryConfig()
    cfg.database.path = str(tmp_path / ".quarry.db")
    cfg.embedding.model = "test/keyword-embedder"
    cfg.embedding.dimensions = EMBEDDING_DIMS
    cfg.chunking.max_tokens = 60
    cfg.scraping.settle_delay = 0.0
    cfg.scraping.block_private_addresses = False
    cfg.scraping.fallback_threshold = 200
    cfg.scraping.min_content_chars = 50
    return cfg


@pytest.fixture
def embedder():
    return KeywordEmbedder()


@pytest.fixture
def completer():
    return ScriptedCompleter()


@pytest.fixture
def renderer():
    return ScriptedRenderer(error="navigation failed")


@pytest.fixture
async def app(test_config, embedder, completer, renderer):
    """Open AppContext wired to fakes; only /garden is served by the static fetch."""
    ctx = AppContext(
        test_config,
        embedder=embedder,
        completer=completer,
        counter=WordCounter(),
        renderer=renderer,
        transport=static_transport({"/garden": (200, GARDEN_HTML)}),
    )
    await ctx.open()
    yield ctx
    await ctx.close()


_CLI_PROJECT_YAML = """\
embedding:
  model: test/keyword-embedder
  dimensions: 4
chunking:
  max_tokens: 60
scraping:
  settle_delay: 0
  fallback_threshold: 200
  min_content_chars: 50
  block_private_addresses: false
"""


@pytest.fixture
def cli_project(tmp_path, monkeypatch, embedder, completer, renderer):
    """Run CLI commands inside tmp_path with fake providers behind AppContext."""
    (tmp_path / "quarry.yaml").write_text(_CLI_PROJECT_YAML, encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr("quarry.config._GLOBAL_CONFIG_PATH", tmp_path / "global" / "config.yaml")
    monkeypatch.setattr("quarry.cli.runtime.setup_logging", lambda *args, **kwargs: None)

    def _make_context(cfg):
        return AppContext(
            cfg,
            embedder=embedder,
            completer=completer,
            counter=WordCounter(),
            renderer=renderer,
            transport=static_transport({"/garden": (200, GARDEN_HTML)}),
        )

    monkeypatch.setattr("quarry.cli.runtime.make_context", _make_context)
    return tmp_path
