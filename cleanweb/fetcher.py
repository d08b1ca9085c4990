"""
Content Fetcher - Retrieve raw page markup.

Handles:
- The RetrievalStrategy interface shared with the browser fetcher
- Direct HTTP fetching through curl_cffi with a browser TLS fingerprint
- One shared HTTP session per fetcher, created lazily on first use
"""

import asyncio
import logging
from abc import ABC, abstractmethod

from curl_cffi import CurlError
from curl_cffi.requests import AsyncSession

from .exceptions import HTTPStatusError, NetworkError
from .models import RetrievalResult

logger = logging.getLogger(__name__)


class RetrievalStrategy(ABC):
    """Obtains raw markup for a target URL."""

    name: str = ""

    @abstractmethod
    async def fetch(self, url: str) -> RetrievalResult:
        """
        Fetch the raw markup for url.

        Raises:
            RetrievalError: If the markup could not be obtained
        """
        pass

    async def close(self) -> None:
        """Release shared resources held by the strategy."""
        pass


class DirectFetch(RetrievalStrategy):
    """
    Fetches pages with a plain GET that negotiates TLS like a real browser.

    The curl_cffi session impersonates the configured browser profile, so
    the handshake fingerprint and default headers (User-Agent included)
    match that browser.
    """

    name = "direct"

    def __init__(
        self,
        timeout: float = 60.0,
        impersonate: str = "chrome",
        user_agent: str | None = None,
        reject_error_status: bool = False,
    ):
        """
        Args:
            timeout: Total request timeout in seconds
            impersonate: curl_cffi browser profile ("chrome", "safari", ...)
            user_agent: Override for the profile's User-Agent header
            reject_error_status: Raise HTTPStatusError on non-2xx responses
        """
        self.timeout = timeout
        self.impersonate = impersonate
        self.user_agent = user_agent
        self.reject_error_status = reject_error_status

        self._session: AsyncSession | None = None
        self._lock = asyncio.Lock()

    async def _get_session(self) -> AsyncSession:
        if self._session is not None:
            return self._session

        async with self._lock:
            if self._session is None:
                headers = {"User-Agent": self.user_agent} if self.user_agent else None
                self._session = AsyncSession(
                    impersonate=self.impersonate,
                    headers=headers,
                    timeout=self.timeout,
                )
                logger.debug(f"Created HTTP session (impersonate={self.impersonate})")
        return self._session

    async def fetch(self, url: str) -> RetrievalResult:
        session = await self._get_session()

        try:
            resp = await session.get(url, timeout=self.timeout, allow_redirects=True)
        except CurlError as e:
            logger.warning(f"Direct fetch failed for {url}: {e}")
            raise NetworkError(url, f"Request failed: {e}") from e

        status_code = resp.status_code
        if not 200 <= status_code < 300:
            if self.reject_error_status:
                raise HTTPStatusError(url, status_code)
            logger.warning(f"Direct fetch of {url} returned HTTP {status_code}, passing body through")

        html = resp.text
        logger.info(f"Fetched {url} directly ({status_code}, {len(html)} chars)")
        return RetrievalResult(
            url=url,
            html=html,
            strategy=self.name,
            status_code=status_code,
            final_url=str(resp.url) if resp.url else url,
        )

    async def close(self) -> None:
        async with self._lock:
            if self._session is not None:
                await self._session.close()
                self._session = None
                logger.debug("Closed HTTP session")
