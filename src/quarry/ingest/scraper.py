"""Resilient scraper — static fetch first, headless rendering as fallback.

Protocol:
  1. Validate the URL (http/https, hostname) and, optionally, block hosts
     that resolve to private/reserved addresses before any connection.
  2. Static phase: httpx GET with a browser-like User-Agent and a short
     timeout; 2xx and text/html required.
  3. Extract the main article (readability), drop script/style/noscript/
     iframe/form, convert to text (html2text), normalize, drop numeric-only
     lines, join lines as paragraphs.
  4. If the static phase failed or its content is insufficient, render the
     page in a headless browser and extract again. The rendered result is
     returned even if still insufficient; only hard errors fail the scrape.

``ResilientScraper.scrape()`` never raises.

Security requirements:
- Allowed URL schemes: https:// and http:// only.
- Max response body: 5 MB.
- Max redirects: 3.
"""

from __future__ import annotations

import asyncio
import ipaddress
import socket
import urllib.parse
from dataclasses import dataclass

import html2text
import httpx
from bs4 import BeautifulSoup
from loguru import logger
from lxml.etree import LxmlError
from readability import Document as ReadabilityDocument
from readability.readability import Unparseable

from quarry.config import ScrapingCfg
from quarry.ingest.normalizer import normalize
from quarry.ingest.renderer import PageRenderer, PlaywrightRenderer

_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
_HEADERS = {
    "User-Agent": _USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_MAX_REDIRECTS = 3
_ALLOWED_SCHEMES = {"https", "http"}
_STRIPPED_TAGS = ["script", "style", "noscript", "iframe", "form"]
_MIN_TITLE_LENGTH = 3
_EXCERPT_LENGTH = 200
_ERROR_TITLE_MARKERS = (
    "404",
    "not found",
    "forbidden",
    "access denied",
    "401",
    "403",
    "500",
    "502",
    "503",
)


class ScrapeError(Exception):
    """Base class for scrape failures."""


class InvalidUrlError(ScrapeError):
    """The URL is malformed or uses an unsupported scheme."""


class SsrfError(ScrapeError):
    """The URL resolves to a private or reserved address."""


class FetchError(ScrapeError):
    """The static fetch failed (timeout, HTTP status, content type, size)."""


class ExtractionError(ScrapeError):
    """No readable article could be extracted from the markup."""


@dataclass
class ScrapeResult:
    url: str
    title: str
    cleaned_text: str
    success: bool
    excerpt: str = ""
    error: str | None = None
    method: str | None = None  # static | dynamic

    @classmethod
    def failure(cls, url: str, error: str) -> ScrapeResult:
        return cls(url=url, title="Failed to scrape", cleaned_text="", success=False, error=error)


@dataclass
class Extraction:
    """Readable content pulled out of one HTML document."""

    title: str
    excerpt: str
    text: str


class ResilientScraper:
    """Fetch a URL's readable text with a static → dynamic fallback.

    Args:
        config: Scraping configuration (timeouts, thresholds).
        renderer: Headless renderer for the dynamic phase. Defaults to a
            PlaywrightRenderer built from *config*.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        config: ScrapingCfg | None = None,
        renderer: PageRenderer | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or ScrapingCfg()
        self._renderer = renderer or PlaywrightRenderer(
            timeout=self._config.render_timeout,
            settle_delay=self._config.settle_delay,
            selector_timeout=self._config.selector_timeout,
        )
        self._transport = transport

    async def scrape(self, url: str) -> ScrapeResult:
        """Scrape *url*. Failures are reported in the result, never raised."""
        url = url.strip()
        logger.info("Scraping {}", url)
        try:
            return await self._scrape(url)
        except ScrapeError as exc:
            logger.warning("Failed to scrape {}: {}", url, exc)
            return ScrapeResult.failure(url, str(exc))
        except Exception as exc:
            logger.exception("Unexpected error while scraping {}", url)
            return ScrapeResult.failure(url, str(exc) or exc.__class__.__name__)

    async def _scrape(self, url: str) -> ScrapeResult:
        self.validate_url(url)
        if self._config.block_private_addresses:
            await self._check_ssrf(url)

        static_error: str | None = None
        try:
            html = await self._fetch_static(url)
            extraction = self.extract(html, url)
            reason = self.insufficiency_reason(extraction)
            if reason is None:
                logger.info("Static scrape succeeded for {} ({} chars)", url, len(extraction.text))
                return self._to_result(url, extraction, method="static")
            logger.info("Static content insufficient for {} ({}), rendering page", url, reason)
        except ScrapeError as exc:
            static_error = str(exc)
            logger.info("Static scrape failed for {}: {}, rendering page", url, exc)

        try:
            html = await self._renderer.render(url)
            extraction = self.extract(html, url)
        except Exception as exc:
            message = f"Dynamic rendering failed: {exc}"
            if static_error:
                message = f"Static fetch failed: {static_error}; {message}"
            raise ScrapeError(message) from exc

        reason = self.insufficiency_reason(extraction)
        if reason is None:
            logger.info("Rendered scrape succeeded for {} ({} chars)", url, len(extraction.text))
        else:
            logger.warning("Rendered content for {} is still insufficient ({})", url, reason)
        return self._to_result(url, extraction, method="dynamic")

    # ------------------------------------------------------------------
    # URL validation
    # ------------------------------------------------------------------

    @staticmethod
    def validate_url(url: str) -> None:
        """Raise InvalidUrlError unless *url* is an absolute http(s) URL."""
        try:
            parsed = urllib.parse.urlparse(url)
            hostname = parsed.hostname
        except ValueError as exc:
            raise InvalidUrlError(f"Invalid URL format: {url}") from exc
        if parsed.scheme not in _ALLOWED_SCHEMES:
            raise InvalidUrlError(
                f"Invalid URL format: {url} (only https:// and http:// are allowed)"
            )
        if not hostname:
            raise InvalidUrlError(f"Invalid URL format: {url} (no hostname)")

    @staticmethod
    async def _check_ssrf(url: str) -> None:
        """Resolve the hostname and block private/reserved IP ranges.

        Unresolvable hosts pass; the fetch phases report them.
        """
        hostname = urllib.parse.urlparse(url).hostname or ""
        try:
            addresses = await _resolve(hostname)
        except socket.gaierror:
            return

        for addr in addresses:
            try:
                ip = ipaddress.ip_address(addr)
            except ValueError:
                continue
            if (
                ip.is_private
                or ip.is_loopback
                or ip.is_link_local
                or ip.is_reserved
                or ip.is_multicast
                or ip.is_unspecified
            ):
                raise SsrfError(
                    f"URL resolves to private address ({ip}). "
                    "Access to internal network addresses is not allowed."
                )

    # ------------------------------------------------------------------
    # Static phase
    # ------------------------------------------------------------------

    async def _fetch_static(self, url: str) -> str:
        """GET *url* and return its HTML body.

        The body is streamed and the read stops once it passes _MAX_BYTES.
        """
        async with httpx.AsyncClient(
            headers=_HEADERS,
            timeout=self._config.static_timeout,
            follow_redirects=True,
            max_redirects=_MAX_REDIRECTS,
            transport=self._transport,
        ) as client:
            try:
                async with client.stream("GET", url) as response:
                    if not response.is_success:
                        raise FetchError(
                            f"HTTP {response.status_code}: {response.reason_phrase}"
                        )

                    content_type = response.headers.get("content-type", "")
                    if "text/html" not in content_type.lower():
                        raise FetchError(f"Invalid content type: {content_type or 'missing'}")

                    body = bytearray()
                    async for piece in response.aiter_bytes():
                        body.extend(piece)
                        if len(body) > _MAX_BYTES:
                            raise FetchError(
                                f"Response body exceeds {_MAX_BYTES // (1024 * 1024)} MB limit"
                            )
                    encoding = response.charset_encoding or "utf-8"
            except httpx.TimeoutException as exc:
                raise FetchError("Request timed out") from exc
            except httpx.HTTPError as exc:
                raise FetchError(f"Request failed: {exc}") from exc

        try:
            return bytes(body).decode(encoding, errors="replace")
        except LookupError:
            return bytes(body).decode("utf-8", errors="replace")

    # ------------------------------------------------------------------
    # Extraction + cleaning
    # ------------------------------------------------------------------

    @staticmethod
    def extract(html: str, url: str) -> Extraction:
        """Pull the main article out of *html* and clean it.

        Raises:
            ExtractionError: If no article or no text can be extracted.
        """
        try:
            doc = ReadabilityDocument(html, url=url)
            article_html = doc.summary(html_partial=True)
            title = doc.short_title() or ""
        except (Unparseable, LxmlError) as exc:
            raise ExtractionError(f"Could not extract readable content from page: {exc}") from exc

        if not article_html or not article_html.strip():
            raise ExtractionError("Could not extract readable content from page")

        raw_text = _html_to_text(article_html)
        if not raw_text.strip():
            raise ExtractionError("Page contains no readable text content")

        text = clean_page_text(raw_text)
        if title == "[no-title]":
            title = ""
        excerpt = _meta_description(html) or text[:_EXCERPT_LENGTH]
        return Extraction(title=title.strip(), excerpt=excerpt.strip(), text=text)

    def insufficiency_reason(self, extraction: Extraction) -> str | None:
        """Return why *extraction* is too poor to keep, or None if it is fine."""
        if len(extraction.text) < self._config.fallback_threshold:
            return f"{len(extraction.text)} chars < {self._config.fallback_threshold}"
        if len(extraction.title) < _MIN_TITLE_LENGTH:
            return "missing title"
        lowered = extraction.title.lower()
        for marker in _ERROR_TITLE_MARKERS:
            if marker in lowered:
                return f"error page title '{extraction.title}'"
        return None

    @staticmethod
    def _to_result(url: str, extraction: Extraction, method: str) -> ScrapeResult:
        return ScrapeResult(
            url=url,
            title=extraction.title or "Untitled",
            excerpt=extraction.excerpt,
            cleaned_text=extraction.text,
            success=True,
            method=method,
        )


def clean_page_text(raw: str) -> str:
    """Normalize page text, drop numeric-only lines, join lines as paragraphs."""
    lines = [line.strip() for line in normalize(raw).split("\n")]
    kept = [line for line in lines if line and not line.isdigit()]
    return "\n\n".join(kept).strip()


async def _resolve(hostname: str) -> list[str]:
    """Return the IP addresses *hostname* resolves to."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(hostname, None)
    return [info[4][0] for info in infos]


def _html_to_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(_STRIPPED_TAGS):
        tag.decompose()
    converter = html2text.HTML2Text()
    converter.ignore_links = True
    converter.ignore_images = True
    converter.ignore_emphasis = True
    converter.body_width = 0
    return converter.handle(str(soup)).strip()


def _meta_description(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for attrs in ({"name": "description"}, {"property": "og:description"}):
        tag = soup.find("meta", attrs=attrs)
        if tag and tag.get("content"):
            return str(tag["content"])
    return ""
