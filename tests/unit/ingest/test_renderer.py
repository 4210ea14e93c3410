"""Tests for PlaywrightRenderer — browser lifecycle is mocked."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from quarry.ingest.renderer import PlaywrightRenderer, RenderError

URL = "https://example.com/app"


def _mock_playwright(status: int = 200, html: str = "<html><main>ok</main></html>"):
    """Return (async_playwright mock, browser, page)."""
    page = AsyncMock()
    response = MagicMock()
    response.status = status
    response.status_text = "Server Error" if status >= 400 else "OK"
    page.goto.return_value = response
    page.content.return_value = html

    browser = AsyncMock()
    browser.new_page.return_value = page

    pw = MagicMock()
    pw.chromium.launch = AsyncMock(return_value=browser)

    manager = MagicMock()
    manager.__aenter__ = AsyncMock(return_value=pw)
    manager.__aexit__ = AsyncMock(return_value=False)

    return MagicMock(return_value=manager), browser, page


@pytest.fixture
def renderer():
    return PlaywrightRenderer(timeout=5.0, settle_delay=0.0, selector_timeout=0.1)


async def test_render_returns_page_content(renderer):
    factory, browser, page = _mock_playwright()
    with patch("quarry.ingest.renderer.async_playwright", factory):
        html = await renderer.render(URL)

    assert html == "<html><main>ok</main></html>"
    page.goto.assert_awaited_once_with(URL, wait_until="networkidle", timeout=5000.0)
    browser.close.assert_awaited_once()


async def test_missing_content_selector_is_not_fatal(renderer):
    factory, browser, page = _mock_playwright()
    page.wait_for_selector.side_effect = PlaywrightTimeoutError("no selector")
    with patch("quarry.ingest.renderer.async_playwright", factory):
        html = await renderer.render(URL)

    assert "ok" in html
    browser.close.assert_awaited_once()


async def test_http_error_status_raises_and_closes_browser(renderer):
    factory, browser, _ = _mock_playwright(status=500)
    with patch("quarry.ingest.renderer.async_playwright", factory):
        with pytest.raises(RenderError, match="HTTP 500"):
            await renderer.render(URL)

    browser.close.assert_awaited_once()


async def test_navigation_error_raises_and_closes_browser(renderer):
    factory, browser, page = _mock_playwright()
    page.goto.side_effect = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")
    with patch("quarry.ingest.renderer.async_playwright", factory):
        with pytest.raises(RenderError, match="Navigation failed"):
            await renderer.render(URL)

    browser.close.assert_awaited_once()


async def test_navigation_timeout_raises_and_closes_browser(renderer):
    factory, browser, page = _mock_playwright()
    page.goto.side_effect = PlaywrightTimeoutError("Timeout 5000ms exceeded")
    with patch("quarry.ingest.renderer.async_playwright", factory):
        with pytest.raises(RenderError, match="timed out"):
            await renderer.render(URL)

    browser.close.assert_awaited_once()


async def test_missing_response_raises(renderer):
    factory, browser, page = _mock_playwright()
    page.goto.return_value = None
    with patch("quarry.ingest.renderer.async_playwright", factory):
        with pytest.raises(RenderError, match="Failed to get response"):
            await renderer.render(URL)

    browser.close.assert_awaited_once()


async def test_launch_failure_raises(renderer):
    factory, browser, _ = _mock_playwright()
    pw = factory.return_value.__aenter__.return_value
    pw.chromium.launch.side_effect = PlaywrightError("Executable doesn't exist")
    with patch("quarry.ingest.renderer.async_playwright", factory):
        with pytest.raises(RenderError, match="Browser launch failed"):
            await renderer.render(URL)

    browser.close.assert_not_awaited()


@pytest.mark.parametrize(
    "error",
    [PlaywrightError("Driver crashed on start"), FileNotFoundError("playwright driver not found")],
)
async def test_playwright_startup_failure_is_a_launch_failure(renderer, error):
    factory, browser, _ = _mock_playwright()
    factory.return_value.__aenter__.side_effect = error
    with patch("quarry.ingest.renderer.async_playwright", factory):
        with pytest.raises(RenderError, match="Browser launch failed: could not start Playwright"):
            await renderer.render(URL)

    browser.close.assert_not_awaited()
