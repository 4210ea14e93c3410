"""Headless-browser page renderer (Playwright) for script-heavy pages."""

from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack
from typing import Protocol

from loguru import logger
from playwright.async_api import Browser
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
_BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
    "--window-size=1920,1080",
]
_MAIN_CONTENT_SELECTOR = 'main, #root, #app, [role="main"], article, .content'


class RenderError(RuntimeError):
    """Raised when the browser cannot launch, navigate, or load the page."""


class PageRenderer(Protocol):
    async def render(self, url: str) -> str:
        """Return the fully rendered HTML of *url*."""
        ...


class PlaywrightRenderer:
    """Render pages in headless Chromium.

    A fresh browser is launched per call and closed on every exit path.

    Args:
        timeout: Navigation timeout in seconds.
        settle_delay: Seconds to wait after network idle before reading the DOM.
        selector_timeout: Seconds to wait for a main-content element (best effort).
    """

    def __init__(
        self,
        timeout: float = 30.0,
        settle_delay: float = 2.0,
        selector_timeout: float = 5.0,
    ) -> None:
        self.timeout = timeout
        self.settle_delay = settle_delay
        self.selector_timeout = selector_timeout

    async def render(self, url: str) -> str:
        logger.info("Rendering {} in headless browser", url)
        async with AsyncExitStack() as stack:
            try:
                pw = await stack.enter_async_context(async_playwright())
            except (PlaywrightError, OSError) as exc:
                raise RenderError(
                    f"Browser launch failed: could not start Playwright: {exc}"
                ) from exc
            try:
                browser = await pw.chromium.launch(headless=True, args=_BROWSER_ARGS)
            except PlaywrightError as exc:
                raise RenderError(f"Browser launch failed: {exc}") from exc
            try:
                try:
                    return await self._render_page(browser, url)
                finally:
                    await browser.close()
            except PlaywrightTimeoutError as exc:
                raise RenderError(f"Navigation timed out after {self.timeout:g}s") from exc
            except PlaywrightError as exc:
                raise RenderError(f"Navigation failed: {exc}") from exc

    async def _render_page(self, browser: Browser, url: str) -> str:
        page = await browser.new_page(
            user_agent=_USER_AGENT,
            viewport={"width": 1920, "height": 1080},
        )
        response = await page.goto(url, wait_until="networkidle", timeout=self.timeout * 1000)
        if response is None:
            raise RenderError("Failed to get response from page")
        if response.status >= 400:
            raise RenderError(f"HTTP {response.status}: {response.status_text}")

        await asyncio.sleep(self.settle_delay)

        try:
            await page.wait_for_selector(
                _MAIN_CONTENT_SELECTOR, timeout=self.selector_timeout * 1000
            )
        except PlaywrightTimeoutError:
            logger.debug("No main content element on {}, using full page", url)

        return await page.content()
