import logging
from typing import Optional

import aiohttp

USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)


class BaseProbe:
    """Shared aiohttp session handling for probe clients.

    A probe either borrows a session owned by the caller (one per scan) or
    opens its own when used as an async context manager.
    """

    def __init__(self, session: Optional[aiohttp.ClientSession] = None, timeout: float = 10):
        self.timeout = timeout
        self.session = session
        self._owns_session = session is None
        self.logger = logging.getLogger(self.__class__.__module__)

    async def __aenter__(self):
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure we have an active session"""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
            self._owns_session = True
        return self.session

    async def close(self) -> None:
        if self._owns_session and self.session and not self.session.closed:
            await self.session.close()
        if self._owns_session:
            self.session = None

    @staticmethod
    def client_timeout(seconds: float) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=seconds)
