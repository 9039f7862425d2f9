"""Headless browser ownership for rendered-page scraping.

Each scrape strategy receives its own ``BrowserHandle``. The browser is
launched on first use and relaunched whenever it is found disconnected,
so a crash during one page load never leaves later calls holding a dead
handle.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from playwright.async_api import Browser, Error as PlaywrightError, Page, Playwright, async_playwright

logger = logging.getLogger(__name__)

DEFAULT_BROWSER_ARGS = [
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-accelerated-2d-canvas',
    '--no-first-run',
    '--no-zygote',
    '--disable-gpu',
]


class BrowserHandle:
    def __init__(self, name: str, extra_args: Optional[List[str]] = None, headless: bool = True):
        self.name = name
        self.args = DEFAULT_BROWSER_ARGS + list(extra_args or [])
        self.headless = headless
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def acquire(self) -> Browser:
        """Return a connected browser, launching or relaunching it if needed"""
        async with self._lock:
            if self.is_open:
                return self._browser

            if self._browser is not None:
                logger.warning(f"[{self.name}] Browser disconnected, relaunching")
                await self._discard_browser()

            if self._playwright is None:
                self._playwright = await async_playwright().start()

            self._browser = await self._playwright.chromium.launch(headless=self.headless, args=self.args)
            logger.info(f"[{self.name}] Browser launched")
            return self._browser

    @asynccontextmanager
    async def page(self, user_agent: str, viewport: Optional[dict] = None):
        """Yield a fresh page in its own context, closed afterwards"""
        browser = await self.acquire()
        context = await browser.new_context(
            user_agent=user_agent,
            viewport=viewport or {'width': 1920, 'height': 1080},
            locale='en-US',
        )
        try:
            page: Page = await context.new_page()
            yield page
        except PlaywrightError:
            if not browser.is_connected():
                await self.invalidate(browser)
            raise
        finally:
            try:
                await context.close()
            except PlaywrightError as e:
                logger.debug(f"[{self.name}] Error closing browser context: {e}")

    async def invalidate(self, browser: Browser) -> None:
        """Forget a browser that crashed so the next call relaunches it"""
        async with self._lock:
            if self._browser is browser:
                await self._discard_browser()

    async def close(self) -> None:
        async with self._lock:
            await self._discard_browser()
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None
                logger.info(f"[{self.name}] Browser closed")

    async def _discard_browser(self) -> None:
        browser, self._browser = self._browser, None
        if browser is None:
            return
        try:
            await browser.close()
        except PlaywrightError as e:
            logger.debug(f"[{self.name}] Error closing browser: {e}")
