"""Tests for BrowserHandle: lazy launch, relaunch, crash invalidation and shutdown."""

import pytest
from playwright.async_api import Error as PlaywrightError

import platforms.browser as browser_module
from platforms.browser import BrowserHandle


class FakeContext:
    def __init__(self):
        self.closed = False
        self.pages = []

    async def new_page(self):
        page = object()
        self.pages.append(page)
        return page

    async def close(self):
        self.closed = True


class FakeChromiumBrowser:
    def __init__(self):
        self.connected = True
        self.closed = False
        self.contexts = []

    def is_connected(self):
        return self.connected

    async def new_context(self, **kwargs):
        context = FakeContext()
        self.contexts.append(context)
        return context

    async def close(self):
        self.closed = True
        self.connected = False


class FakeChromium:
    def __init__(self):
        self.launched = []

    async def launch(self, headless=True, args=None):
        browser = FakeChromiumBrowser()
        self.launched.append(browser)
        return browser


class FakePlaywright:
    def __init__(self):
        self.chromium = FakeChromium()
        self.stop_calls = 0

    async def stop(self):
        self.stop_calls += 1


class FakePlaywrightStarter:
    """Stands in for the object returned by ``async_playwright()``."""

    def __init__(self, driver: FakePlaywright):
        self.driver = driver
        self.start_calls = 0

    async def start(self):
        self.start_calls += 1
        return self.driver


@pytest.fixture
def driver(monkeypatch):
    driver = FakePlaywright()
    starter = FakePlaywrightStarter(driver)
    monkeypatch.setattr(browser_module, "async_playwright", lambda: starter)
    driver.starter = starter
    return driver


class TestAcquire:
    @pytest.mark.asyncio
    async def test_launch_is_lazy_and_reused(self, driver):
        handle = BrowserHandle("kick")

        assert driver.chromium.launched == []
        assert handle.is_open is False

        first = await handle.acquire()
        second = await handle.acquire()

        assert first is second
        assert len(driver.chromium.launched) == 1
        assert driver.starter.start_calls == 1
        assert handle.is_open is True

    @pytest.mark.asyncio
    async def test_disconnected_browser_is_relaunched(self, driver):
        handle = BrowserHandle("kick")
        first = await handle.acquire()

        first.connected = False
        second = await handle.acquire()

        assert second is not first
        assert len(driver.chromium.launched) == 2
        assert first.closed is True
        assert driver.starter.start_calls == 1


class TestPage:
    @pytest.mark.asyncio
    async def test_context_closed_after_use(self, driver):
        handle = BrowserHandle("kick")

        async with handle.page("agent") as page:
            assert page is not None

        context = driver.chromium.launched[0].contexts[0]
        assert context.closed is True

    @pytest.mark.asyncio
    async def test_crash_inside_page_invalidates_browser(self, driver):
        handle = BrowserHandle("kick")

        with pytest.raises(PlaywrightError):
            async with handle.page("agent"):
                driver.chromium.launched[0].connected = False
                raise PlaywrightError("Target page, context or browser has been closed")

        assert handle.is_open is False
        relaunched = await handle.acquire()
        assert relaunched is driver.chromium.launched[1]

    @pytest.mark.asyncio
    async def test_page_error_on_live_browser_keeps_it(self, driver):
        handle = BrowserHandle("kick")

        with pytest.raises(PlaywrightError):
            async with handle.page("agent"):
                raise PlaywrightError("net::ERR_NAME_NOT_RESOLVED")

        assert handle.is_open is True
        assert len(driver.chromium.launched) == 1


class TestClose:
    @pytest.mark.asyncio
    async def test_close_twice_is_safe(self, driver):
        handle = BrowserHandle("kick")
        browser = await handle.acquire()

        await handle.close()
        await handle.close()

        assert browser.closed is True
        assert driver.stop_calls == 1
        assert handle.is_open is False

    @pytest.mark.asyncio
    async def test_close_without_launch(self, driver):
        handle = BrowserHandle("kick")

        await handle.close()

        assert driver.stop_calls == 0
        assert driver.starter.start_calls == 0

    @pytest.mark.asyncio
    async def test_acquire_after_close_starts_again(self, driver):
        handle = BrowserHandle("kick")
        await handle.acquire()
        await handle.close()

        await handle.acquire()

        assert driver.starter.start_calls == 2
        assert len(driver.chromium.launched) == 2
