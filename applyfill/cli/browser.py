"""Playwright session shared by the CLI commands."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from playwright.async_api import async_playwright

from ..config import Settings, get_settings


@asynccontextmanager
async def open_page(url: str, *, headless: Optional[bool] = None, settings: Settings | None = None) -> AsyncIterator[Any]:
    """Launch the configured browser, open ``url`` and yield the page."""

    settings = settings or get_settings()
    async with async_playwright() as p:
        launcher = getattr(p, settings.playwright_browser, p.chromium)
        browser = await launcher.launch(headless=settings.playwright_headless if headless is None else headless)
        try:
            page = await browser.new_page()
            await page.goto(url, wait_until="domcontentloaded")
            yield page
        finally:
            await browser.close()
