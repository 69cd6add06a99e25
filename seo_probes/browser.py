"""Process-wide headless Chromium used to render JavaScript-heavy pages.

The browser is launched on first use and kept until close_browser() is called
at worker shutdown. Every page opened through BrowserResource.page() is closed
when the block exits, whether or not rendering succeeded.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from playwright.async_api import async_playwright, Browser, Page, Playwright

from seo_probes.base import USER_AGENT

logger = logging.getLogger(__name__)

VIEWPORT = {'width': 1920, 'height': 1080}
LAUNCH_ARGS = [
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-gpu',
]


class BrowserResource:
    def __init__(self):
        self.playwright_instance: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self._lock: Optional[asyncio.Lock] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def _get_lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._lock is None or self._loop is not loop:
            if self._loop is not None and self._loop is not loop:
                # Playwright objects are bound to the loop that created them
                logger.warning("Event loop changed, discarding the previous browser")
                self.browser = None
                self.playwright_instance = None
            self._lock = asyncio.Lock()
            self._loop = loop
        return self._lock

    async def get_browser(self) -> Browser:
        async with self._get_lock():
            if self.playwright_instance is None:
                self.playwright_instance = await async_playwright().start()
                logger.info("Playwright started")
            if self.browser is None or not self.browser.is_connected():
                logger.info("Launching headless browser")
                self.browser = await self.playwright_instance.chromium.launch(headless=True, args=LAUNCH_ARGS)
            return self.browser

    @asynccontextmanager
    async def page(self):
        browser = await self.get_browser()
        page: Page = await browser.new_page(viewport=VIEWPORT, user_agent=USER_AGENT)
        try:
            yield page
        finally:
            await page.close()

    async def close(self) -> None:
        if self.browser is not None:
            try:
                await self.browser.close()
            except Exception as e:
                logger.warning(f"Error closing browser: {e}")
            self.browser = None
            logger.info("Browser closed")
        if self.playwright_instance is not None:
            try:
                await self.playwright_instance.stop()
            except Exception as e:
                logger.warning(f"Error stopping Playwright: {e}")
            self.playwright_instance = None


_browser_resource: Optional[BrowserResource] = None


def get_browser_resource() -> BrowserResource:
    global _browser_resource
    if _browser_resource is None:
        _browser_resource = BrowserResource()
    return _browser_resource


async def close_browser() -> None:
    """Release the shared browser; safe to call when it was never launched."""
    global _browser_resource
    if _browser_resource is not None:
        await _browser_resource.close()
        _browser_resource = None
