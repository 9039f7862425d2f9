import asyncio
import logging
import re
from typing import Optional, Sequence, Tuple
from urllib.parse import urljoin

import aiohttp
from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from interfaces.platform_interface import IStreamPlatform
from models import Platform, ProbeOutcome, ProbeResult, StatusSnapshot
from platforms.browser import BrowserHandle
from services.errors import AccountNotFoundError, TransientPlatformError

logger = logging.getLogger(__name__)

DESKTOP_USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36'
)

# (css selector, attribute to read or None for element text)
FieldSelector = Tuple[str, Optional[str]]
# (css selector, text the element must contain or None if presence is enough)
LiveSelector = Tuple[str, Optional[str]]

VIDEO_PLAYING_JS = """
() => Array.from(document.querySelectorAll('video')).some(
    v => !v.paused && v.readyState > 2
)
"""

_COUNT_RE = re.compile(r'(\d[\d,.\s]*)\s*([kKmM])?')


def parse_viewer_count(text: Optional[str]) -> Optional[int]:
    """Parse counts such as '1,234', '1.2K viewers' or '3M'"""
    if not text:
        return None
    match = _COUNT_RE.search(text)
    if not match:
        return None
    number, suffix = match.group(1).replace(',', '').replace(' ', ''), match.group(2)
    try:
        value = float(number)
    except ValueError:
        return None
    if suffix:
        value *= 1000 if suffix.lower() == 'k' else 1_000_000
    return int(value)


class BaseScraperPlatform(IStreamPlatform):
    """Status strategy for platforms without an official API.

    Two techniques are tried in order. The lightweight HTTP fetch is cheap
    but may come back inconclusive (network error, block page); only then is
    the page rendered in a headless browser, which always gives a definite
    live or offline answer.
    """

    platform: Platform
    base_url: str = ''
    user_agent: str = DESKTOP_USER_AGENT
    lightweight_user_agent: str = DESKTOP_USER_AGENT
    lightweight_headers: dict = {}
    http_timeout: float = 10.0
    settle_delay: float = 3.0
    time_budget_share: float = 0.85

    live_selectors: Sequence[LiveSelector] = ()
    live_markers: Sequence[str] = ()
    title_selectors: Sequence[FieldSelector] = ()
    viewer_selectors: Sequence[FieldSelector] = ()
    thumbnail_selectors: Sequence[FieldSelector] = ()
    category_selectors: Sequence[FieldSelector] = ()
    ignored_title_pattern: Optional[str] = None
    blocked_markers: Sequence[str] = (
        'cf-challenge',
        'challenge-platform',
        'Just a moment...',
        'captcha-verify',
        'Access Denied',
    )

    def __init__(self, browser: BrowserHandle, timeout: float = 30.0, settle_delay: Optional[float] = None):
        self.browser = browser
        self.session: Optional[aiohttp.ClientSession] = None
        if settle_delay is not None:
            self.settle_delay = settle_delay
        # http fetch, navigation and settle together stay within this share of the per-attempt timeout
        budget = timeout * self.time_budget_share
        self.http_timeout = min(self.http_timeout, budget * 0.3)
        self.settle_delay = min(self.settle_delay, budget * 0.1)
        self.navigation_timeout = budget - self.http_timeout - self.settle_delay

    def page_url(self, handle: str) -> str:
        return f"{self.base_url}/{handle}"

    def lightweight_url(self, handle: str) -> str:
        return self.page_url(handle)

    async def ensure_session(self):
        """Ensures aiohttp session exists"""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()

    async def close(self):
        """Close the aiohttp session"""
        if self.session and not self.session.closed:
            await self.session.close()

    async def fetch_status(self, handle: str) -> StatusSnapshot:
        probe = await self.check_via_http(handle)
        if not probe.is_conclusive:
            logger.info(f"[{self.platform.display_name}] HTTP check inconclusive for {handle} "
                        f"({probe.reason}), falling back to browser")
            probe = await self.check_via_browser(handle)
        return self._to_snapshot(handle, probe)

    async def check_via_http(self, handle: str) -> ProbeResult:
        """Plain GET of the public page.

        Raises AccountNotFoundError on 404. Any other failure is reported as
        an inconclusive result, never as offline.
        """
        url = self.lightweight_url(handle)
        headers = {
            'User-Agent': self.lightweight_user_agent,
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
            'Accept-Language': 'en-US,en;q=0.5',
            **self.lightweight_headers,
        }
        try:
            await self.ensure_session()
            async with self.session.get(url, headers=headers,
                                        timeout=aiohttp.ClientTimeout(total=self.http_timeout)) as response:
                if response.status == 404:
                    raise AccountNotFoundError(handle, self.platform.value)
                if response.status != 200:
                    return ProbeResult.inconclusive(f"HTTP {response.status}")
                markup = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            return ProbeResult.inconclusive(f"{type(e).__name__}: {e}")

        probe = self.parse_markup(markup, self.page_url(handle))
        if probe.outcome is ProbeOutcome.OFFLINE and self._looks_blocked(markup):
            return ProbeResult.inconclusive("anti-bot page")

        logger.info(f"[{self.platform.display_name}] HTTP check for {handle}: {probe.outcome.value.upper()}")
        return probe

    async def check_via_browser(self, handle: str) -> ProbeResult:
        """Render the page in the shared headless browser and inspect the DOM"""
        url = self.page_url(handle)
        try:
            async with self.browser.page(self.user_agent) as page:
                await self.prepare_page(page)
                try:
                    await page.goto(url, wait_until='networkidle', timeout=self.navigation_timeout * 1000)
                except PlaywrightTimeoutError:
                    # live players keep the network busy; use what has loaded so far
                    if page.url in ('', 'about:blank'):
                        raise
                    logger.debug(f"[{self.platform.display_name}] Network never went idle for {handle}")
                await asyncio.sleep(self.settle_delay)
                markup = await page.content()
                video_playing = await page.evaluate(VIDEO_PLAYING_JS)
        except PlaywrightError as e:
            raise TransientPlatformError(f"Browser check failed for {handle}: {e}", self.platform.value) from e

        probe = self.parse_markup(markup, url)
        if probe.outcome is ProbeOutcome.OFFLINE and video_playing:
            probe = self._extract_fields(BeautifulSoup(markup, 'html.parser'), url)

        logger.info(f"[{self.platform.display_name}] Browser check for {handle}: {probe.outcome.value.upper()}")
        return probe

    async def prepare_page(self, page) -> None:
        """Hook for platform specific page setup before navigation"""
        pass

    def parse_markup(self, markup: str, page_url: str) -> ProbeResult:
        """Apply the live-indicator heuristics to page markup"""
        soup = BeautifulSoup(markup, 'html.parser')
        if not self.detect_live(soup, markup):
            return ProbeResult(outcome=ProbeOutcome.OFFLINE)
        return self._extract_fields(soup, page_url)

    def detect_live(self, soup: BeautifulSoup, markup: str) -> bool:
        for selector, text in self.live_selectors:
            element = soup.select_one(selector)
            if element is None:
                continue
            if text is None or text.lower() in element.get_text(' ', strip=True).lower():
                return True

        return any(re.search(marker, markup) for marker in self.live_markers)

    def _extract_fields(self, soup: BeautifulSoup, page_url: str) -> ProbeResult:
        title = self._first_value(soup, self.title_selectors, self._is_real_title)
        viewers = self._first_value(soup, self.viewer_selectors, lambda v: parse_viewer_count(v) is not None)
        thumbnail = self._first_value(soup, self.thumbnail_selectors)
        category = self._first_value(soup, self.category_selectors)
        return ProbeResult(
            outcome=ProbeOutcome.LIVE,
            title=title,
            viewer_count=parse_viewer_count(viewers),
            thumbnail_url=urljoin(page_url, thumbnail) if thumbnail else None,
            category=category,
        )

    @staticmethod
    def _first_value(soup: BeautifulSoup, selectors: Sequence[FieldSelector], accept=None) -> Optional[str]:
        """First non-empty value across ordered selectors"""
        for selector, attribute in selectors:
            for element in soup.select(selector):
                if attribute:
                    value = element.get(attribute)
                else:
                    value = element.get_text(' ', strip=True)
                if isinstance(value, list):
                    value = ' '.join(value)
                value = value.strip() if value else None
                if value and (accept is None or accept(value)):
                    return value
        return None

    def _is_real_title(self, title: str) -> bool:
        if self.ignored_title_pattern and re.search(self.ignored_title_pattern, title, re.IGNORECASE):
            return False
        return True

    def _looks_blocked(self, markup: str) -> bool:
        return any(marker in markup for marker in self.blocked_markers)

    def _to_snapshot(self, handle: str, probe: ProbeResult) -> StatusSnapshot:
        is_live = probe.outcome is ProbeOutcome.LIVE
        return StatusSnapshot(
            platform=self.platform,
            native_id=handle,
            is_live=is_live,
            title=probe.title if is_live else None,
            stream_url=self.platform.profile_url(handle),
            thumbnail_url=probe.thumbnail_url if is_live else None,
            viewer_count=probe.viewer_count if is_live else None,
            category=probe.category if is_live else None,
        )
