# tracker_ingest/scraper/session.py
"""
Headless-browser transport for tracker.gg API pages.

Used instead of the scraping proxy when TRACKER_SCRAPE_TRANSPORT=browser.
Chromium renders a JSON response inside a <pre> block, which the response
unwrapper already understands, so this transport just returns page HTML.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)

try:
    from playwright.sync_api import sync_playwright, TimeoutError as PlaywrightTimeout
    PLAYWRIGHT_AVAILABLE = True
except ImportError:
    PLAYWRIGHT_AVAILABLE = False
    sync_playwright = None
    PlaywrightTimeout = None


class BrowserTransport:
    """Fetch API URLs by loading them in a Playwright-driven Chromium page."""

    USER_AGENT = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    )

    def __init__(self, timeout_seconds: float = 60.0, headless: bool = True):
        self.timeout_seconds = timeout_seconds
        self.headless = headless
        self._playwright = None
        self.browser = None
        self.context = None

    def _launch_browser(self) -> None:
        if self.browser:
            return
        if not PLAYWRIGHT_AVAILABLE:
            raise ImportError(
                "Playwright is not installed. Install with: pip install playwright; playwright install chromium"
            )

        self._playwright = sync_playwright().start()
        self.browser = self._playwright.chromium.launch(headless=self.headless)
        self.context = self.browser.new_context(user_agent=self.USER_AGENT, locale="en-US")

    def close(self) -> None:
        """Release browser resources. Safe to call more than once."""
        for resource in (self.context, self.browser):
            if resource is None:
                continue
            try:
                resource.close()
            except Exception as exc:
                logger.debug("Ignoring browser close error: %s", exc)
        if self._playwright:
            try:
                self._playwright.stop()
            except Exception as exc:
                logger.debug("Ignoring playwright stop error: %s", exc)

        self._playwright = None
        self.browser = None
        self.context = None

    def __call__(self, target_url: str) -> Any:
        self._launch_browser()
        # sync Playwright objects are bound to the launching thread and
        # pipeline runs hop between worker threads
        try:
            page = self.context.new_page()
            try:
                try:
                    response = page.goto(
                        target_url,
                        wait_until="domcontentloaded",
                        timeout=int(self.timeout_seconds * 1000),
                    )
                except PlaywrightTimeout as exc:
                    raise TimeoutError(f"Browser timed out loading {target_url}") from exc

                status: Optional[int] = response.status if response is not None else None
                if status is not None and status >= 400:
                    raise BrowserHTTPError(status, page.content())
                return page.content()
            finally:
                page.close()
        finally:
            self.close()


class BrowserHTTPError(Exception):
    """Non-2xx status observed by the browser transport."""

    def __init__(self, code: int, body: str = ""):
        self.code = code
        self.body = body
        super().__init__(f"Browser received HTTP {code}")
