import re
import asyncio
from dataclasses import dataclass
from typing import Optional

import aiohttp
from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError

from seo_probes.base import BaseProbe, USER_AGENT
from seo_probes.browser import BrowserResource, get_browser_resource

FETCH_TIMEOUT = 10
RENDER_TIMEOUT_MS = 30000
RENDER_SETTLE_MS = 2000
MIN_TEXT_LENGTH = 500
MAX_TEXT_LENGTH = 50000

INNER_TEXT_SCRIPT = """() => {
    document.querySelectorAll('script, style, noscript').forEach(el => el.remove());
    return document.body ? (document.body.innerText || document.body.textContent || '') : '';
}"""


@dataclass
class PageContent:
    """HTML and visible text of the scanned page"""
    url: str
    html: str
    text: str
    rendered: bool = False


def extract_visible_text(html: str) -> str:
    soup = BeautifulSoup(html, 'html.parser')
    for element in soup(['script', 'style', 'noscript']):
        element.extract()
    text = soup.get_text(separator=' ', strip=True)
    return re.sub(r'\s+', ' ', text).strip()


class HtmlFetcher(BaseProbe):
    """Plain GET first; pages that come back (nearly) empty are rendered in the browser."""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None,
                 browser: Optional[BrowserResource] = None, timeout: float = FETCH_TIMEOUT):
        super().__init__(session=session, timeout=timeout)
        self.browser = browser

    async def fetch(self, url: str) -> Optional[PageContent]:
        self.logger.info(f"Fetching page content for analysis: {url}")
        html = await self._fetch_static(url)
        static_page = None
        if html is not None:
            text = extract_visible_text(html)
            static_page = PageContent(url=url, html=html, text=text[:MAX_TEXT_LENGTH])
            if len(text) >= MIN_TEXT_LENGTH:
                return static_page
            self.logger.info("Content too short, rendering JavaScript in the browser")
        rendered = await self._fetch_rendered(url)
        # Rendering failed: keep the thin static page if there was one
        return rendered or static_page

    async def _fetch_static(self, url: str) -> Optional[str]:
        session = await self._ensure_session()
        try:
            async with session.get(url, headers={'User-Agent': USER_AGENT},
                                   timeout=self.client_timeout(self.timeout)) as response:
                if response.status != 200:
                    self.logger.warning(f"Simple fetch of {url} returned HTTP {response.status}")
                    return None
                return await response.text(errors='replace')
        except (aiohttp.ClientError, asyncio.TimeoutError, UnicodeDecodeError) as e:
            self.logger.warning(f"Simple fetch failed: {e}. Trying the browser")
            return None

    async def _fetch_rendered(self, url: str) -> Optional[PageContent]:
        browser = self.browser or get_browser_resource()
        try:
            async with browser.page() as page:
                await page.goto(url, wait_until='networkidle', timeout=RENDER_TIMEOUT_MS)
                await page.wait_for_timeout(RENDER_SETTLE_MS)
                html = await page.content()
                text = await page.evaluate(INNER_TEXT_SCRIPT)
        except (PlaywrightError, asyncio.TimeoutError) as e:
            self.logger.error(f"Browser fetch failed for {url}: {e}")
            return None

        text = re.sub(r'\s+', ' ', text or '').strip()
        self.logger.info(f"Browser rendered page ({len(text)} chars)")
        return PageContent(url=url, html=html, text=text[:MAX_TEXT_LENGTH], rendered=True)
