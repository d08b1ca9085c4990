"""
Browser Fetcher - Render pages in a remote browser using Playwright.

Handles:
- JavaScript-heavy sites (SPAs, client-side rendering)
- Connecting once to a browser over the Chrome DevTools Protocol
- Closing the page used for each fetch on every exit path

Requires a running Chromium reachable over CDP, e.g. browserless on
ws://localhost:3000.
"""

import asyncio
import logging
from typing import Optional

from playwright.async_api import (
    Browser,
    Error as PlaywrightError,
    Playwright,
    TimeoutError as PlaywrightTimeout,
    async_playwright,
)

from .exceptions import BrowserUnavailableError, NavigationError, NavigationTimeoutError
from .fetcher import RetrievalStrategy
from .models import RetrievalResult

logger = logging.getLogger(__name__)


class BrowserFetch(RetrievalStrategy):
    """
    Fetches fully rendered pages through a browser.

    Uses either an already connected Browser or connects lazily to a CDP
    endpoint; the connection is made once and shared by every fetch.
    """

    name = "browser"

    def __init__(
        self,
        endpoint: str | None = None,
        browser: Optional[Browser] = None,
        timeout: float = 60.0,
        user_agent: str | None = None,
    ):
        """
        Args:
            endpoint: CDP websocket/http URL of the browser
            browser: Connected browser to use instead of the endpoint
            timeout: Navigation timeout in seconds
            user_agent: User-Agent for the page context, browser default if None
        """
        self.endpoint = endpoint
        self.timeout = timeout
        self.user_agent = user_agent

        self._browser: Optional[Browser] = browser
        self._owns_browser = browser is None
        self._playwright: Optional[Playwright] = None
        self._lock = asyncio.Lock()

    @property
    def is_configured(self) -> bool:
        return self._browser is not None or bool(self.endpoint)

    async def _get_browser(self, url: str) -> Browser:
        if self._browser is not None:
            return self._browser
        if not self.endpoint:
            raise BrowserUnavailableError(url, "No browser configured")

        async with self._lock:
            if self._browser is None:
                playwright = await async_playwright().start()
                try:
                    self._browser = await playwright.chromium.connect_over_cdp(
                        self.endpoint, timeout=self.timeout * 1000
                    )
                except PlaywrightError as e:
                    await playwright.stop()
                    logger.error(f"Could not connect to browser at {self.endpoint}: {e}")
                    raise BrowserUnavailableError(
                        url, f"Could not connect to browser at {self.endpoint}: {e}"
                    ) from e
                self._playwright = playwright
                logger.info(f"Connected to browser at {self.endpoint}")
        return self._browser

    async def fetch(self, url: str) -> RetrievalResult:
        browser = await self._get_browser(url)
        timeout_ms = self.timeout * 1000

        context = page = None
        try:
            context = await browser.new_context(user_agent=self.user_agent)
            page = await context.new_page()
            response = await page.goto(url, timeout=timeout_ms, wait_until="load")
            html = await page.content()
            final_url = page.url
        except PlaywrightTimeout as e:
            logger.warning(f"Timeout rendering {url}")
            raise NavigationTimeoutError(
                url, f"Page did not finish loading within {self.timeout:g}s"
            ) from e
        except PlaywrightError as e:
            logger.warning(f"Error rendering {url}: {e}")
            raise NavigationError(url, f"Navigation failed: {e}") from e
        finally:
            await self._close_page(url, page, context)

        logger.info(f"Rendered {url} in browser ({len(html)} chars)")
        return RetrievalResult(
            url=url,
            html=html,
            strategy=self.name,
            status_code=response.status if response else None,
            final_url=final_url,
        )

    async def _close_page(self, url: str, page, context) -> None:
        # Closing the context also closes its pages; close the page first so
        # it is released even if the context is already gone.
        for target in (page, context):
            if target is None:
                continue
            try:
                await target.close()
            except PlaywrightError as e:
                logger.debug(f"Ignoring close error for {url}: {e}")

    async def close(self) -> None:
        """Disconnect from the browser if this fetcher opened the connection."""
        async with self._lock:
            if self._owns_browser and self._browser is not None:
                await self._browser.close()
                self._browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None
                logger.info("Disconnected from browser")
