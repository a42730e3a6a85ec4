"""
Static HTML fetcher for listing pages.

Pages are either fetched over HTTP(S) with httpx or read from disk. Bare page
names such as "quick-rent.html" resolve against the bundled pages directory.
"""

import asyncio
import os
import re
from pathlib import Path
from typing import Optional, Dict, Any, Union
import httpx
import logging

from ..errors import FetchError

logger = logging.getLogger(__name__)

HTTP_URL_PATTERN = re.compile(r'^https?://', re.IGNORECASE)


def is_http_url(locator: str) -> bool:
    return bool(HTTP_URL_PATTERN.match(locator))


def coerce_markup(payload: Any) -> str:
    """Normalize a fetched payload to text. None becomes an empty string."""
    if payload is None:
        return ''
    if isinstance(payload, str):
        return payload
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload).decode('utf-8', errors='replace')
    return str(payload)


class StaticCrawler:
    """
    Fetches raw markup for a page locator.

    Uses a reusable httpx.AsyncClient for network pages (connection pooling,
    retries with exponential backoff) and plain file reads for local pages.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        max_retries: int = 3,
        headers: Optional[Dict[str, str]] = None,
        pages_dir: Optional[Union[str, Path]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the static crawler.

        Args:
            timeout: Request timeout in seconds
            max_retries: Number of attempts per network fetch
            headers: Custom HTTP headers
            pages_dir: Base directory for bare page names
            transport: Optional httpx transport (used by tests)
        """
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.headers = headers or {
            'User-Agent': 'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Accept-Language': 'en-US,en;q=0.9',
        }
        self.pages_dir = Path(pages_dir) if pages_dir else None
        self._transport = transport
        # Reusable HTTP client with connection pooling
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings, **kwargs) -> 'StaticCrawler':
        """Build a crawler from application settings."""
        return cls(
            timeout=settings.scraper_timeout,
            max_retries=settings.scraper_max_retries,
            headers={'User-Agent': settings.scraper_user_agent},
            pages_dir=settings.pages_dir,
            **kwargs,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create reusable HTTP client with connection pooling."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                follow_redirects=True,
                timeout=self.timeout,
                headers=self.headers,
                transport=self._transport,
                limits=httpx.Limits(
                    max_keepalive_connections=5,
                    max_connections=10,
                    keepalive_expiry=30.0
                )
            )
        return self._client

    async def close(self):
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    def resolve_path(self, locator: str) -> Path:
        """
        Map a local locator to a file path.

        Absolute paths and paths containing a separator are used as given;
        bare names resolve against pages_dir.
        """
        path = Path(locator)
        if path.is_absolute() or os.sep in locator or '/' in locator:
            return path
        if self.pages_dir is None:
            return path
        return self.pages_dir / locator

    async def fetch(self, locator: str) -> str:
        """
        Fetch a page and return its markup as text.

        Args:
            locator: HTTP(S) URL, file path, or bare page name

        Returns:
            Markup as string (empty string for an empty payload)

        Raises:
            FetchError: On network or read failure, or a malformed locator
        """
        try:
            if is_http_url(locator):
                payload = await self._fetch_url(locator)
            else:
                payload = await self._read_local(locator)
        except (httpx.HTTPError, httpx.InvalidURL, OSError, ValueError) as e:
            logger.error(f"Fetch failed for {locator}: {e}")
            raise FetchError(locator, e) from e

        return coerce_markup(payload)

    async def _fetch_url(self, url: str) -> str:
        logger.debug(f"StaticCrawler fetching: {url}")
        last_error = None
        client = await self._get_client()

        for attempt in range(self.max_retries):
            try:
                response = await client.get(url)
                response.raise_for_status()
                return response.text

            except httpx.HTTPError as e:
                last_error = e
                logger.warning(f"Attempt {attempt + 1}/{self.max_retries} failed for {url}: {e}")
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(2 ** attempt)  # Exponential backoff

        raise last_error

    async def _read_local(self, locator: str) -> bytes:
        path = self.resolve_path(locator)
        logger.debug(f"StaticCrawler reading: {path}")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, path.read_bytes)
