"""
Web page fetcher implementation turning a URL into a Page.
"""

import asyncio
import aiohttp
import logging
import time
from typing import Optional, Dict
from dataclasses import dataclass
from aiohttp import ClientSession, ClientTimeout, ClientError

from .page import Page
from .parser import ContentParser


class CrawlerError(Exception):
    """Base exception for crawl failures."""
    pass


class FetchError(CrawlerError):
    """Network or parse failure for a single URL."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason


@dataclass
class FetchResult:
    """Result of a fetch operation."""
    url: str
    status_code: int
    content: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    error: Optional[str] = None
    fetch_time: float = 0.0
    content_type: Optional[str] = None
    encoding: Optional[str] = None


class PageFetcher:
    """Abstract base class for page fetchers."""

    async def fetch_page(self, url: str) -> Page:
        """Fetch a URL and return its Page, raising FetchError on failure."""
        raise NotImplementedError

    async def start(self):
        """Acquire any resources the fetcher needs."""

    async def close(self):
        """Release fetcher resources."""


class WebFetcher(PageFetcher):
    """
    Fetches web pages over HTTP and extracts their title and links.
    """

    TEXT_TYPES = (
        'text/html',
        'text/plain',
        'text/xml',
        'application/xml',
        'application/xhtml+xml'
    )

    def __init__(self, user_agent: str, request_timeout: Optional[float] = None,
                 max_concurrent_requests: int = 10,
                 max_content_size: Optional[int] = None,
                 parser: Optional[ContentParser] = None):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.max_concurrent_requests = max_concurrent_requests
        self.max_content_size = max_content_size
        self.parser = parser or ContentParser()

        self.logger = logging.getLogger(__name__)
        self.session: Optional[ClientSession] = None

        # Statistics
        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
            'total_bytes_downloaded': 0
        }

    async def __aenter__(self):
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def start(self):
        """Initialize the fetcher session."""
        if self.session is None:
            timeout = ClientTimeout(total=self.request_timeout)
            headers = {'User-Agent': self.user_agent}

            self.session = aiohttp.ClientSession(
                timeout=timeout,
                headers=headers,
                connector=aiohttp.TCPConnector(
                    limit=self.max_concurrent_requests * 2,
                    ttl_dns_cache=300,
                    use_dns_cache=True
                )
            )
            self.logger.info("WebFetcher session started")

    async def close(self):
        """Close the fetcher session."""
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.info("WebFetcher session closed")

    async def fetch(self, url: str) -> FetchResult:
        """
        Fetch a single URL.

        Args:
            url: The URL to fetch

        Returns:
            FetchResult object containing the response data or error information
        """
        if self.session is None:
            await self.start()

        start_time = time.time()
        self.stats['total_requests'] += 1

        try:
            async with self.session.get(url) as response:
                headers = dict(response.headers)
                content_type = response.headers.get('content-type', '').lower()

                if not self._is_text_content(content_type):
                    self.logger.debug(f"Skipping non-text content: {url} ({content_type})")
                    self.stats['successful_requests'] += 1
                    return FetchResult(
                        url=url,
                        status_code=response.status,
                        headers=headers,
                        content_type=content_type,
                        fetch_time=time.time() - start_time
                    )

                content = await self._read_content(response)
                if content is None:
                    self.stats['failed_requests'] += 1
                    return FetchResult(
                        url=url,
                        status_code=response.status,
                        headers=headers,
                        content_type=content_type,
                        error="Content exceeds size limit",
                        fetch_time=time.time() - start_time
                    )

                self.stats['total_bytes_downloaded'] += len(content)
                self.stats['successful_requests'] += 1

                self.logger.debug(f"Fetched {url}: {response.status} ({len(content)} chars)")
                return FetchResult(
                    url=url,
                    status_code=response.status,
                    content=content,
                    headers=headers,
                    content_type=content_type,
                    encoding=response.charset,
                    fetch_time=time.time() - start_time
                )

        except asyncio.TimeoutError:
            error_msg = "Request timeout"
            self.logger.warning(f"Timeout fetching {url}")

        except ClientError as e:
            error_msg = f"Client error: {e}"
            self.logger.warning(f"Client error fetching {url}: {e}")

        except ValueError as e:
            error_msg = f"Invalid URL: {e}"
            self.logger.warning(f"Invalid URL {url}: {e}")

        self.stats['failed_requests'] += 1
        return FetchResult(
            url=url,
            status_code=0,
            error=error_msg,
            fetch_time=time.time() - start_time
        )

    async def fetch_page(self, url: str) -> Page:
        """
        Fetch a URL and parse it into a Page.

        HTTP error statuses are not failures: their body is parsed like any
        other page. Non-text responses become a Page without title or links.

        Raises:
            FetchError: on transport failure, oversized content or parse failure
        """
        result = await self.fetch(url)
        if result.error:
            raise FetchError(url, result.error)

        if result.content is None:
            return Page(url=url)

        try:
            parsed = self.parser.parse(url, result.content)
        except Exception as e:
            raise FetchError(url, f"Parse error: {e}") from e

        return Page(
            url=url,
            title=parsed.title or "",
            outgoing_links=tuple(parsed.links)
        )

    def _is_text_content(self, content_type: str) -> bool:
        """Check if content type is text-based."""
        return any(text_type in content_type for text_type in self.TEXT_TYPES)

    async def _read_content(self, response) -> Optional[str]:
        """
        Read response content with a size limit.

        Returns:
            Content string, or None if the body exceeds max_content_size
            (no limit when max_content_size is None)
        """
        limit = self.max_content_size
        content_length = response.headers.get('content-length')
        if limit is not None and content_length and content_length.isdigit() and int(content_length) > limit:
            self.logger.warning(f"Content too large ({content_length} bytes): {response.url}")
            return None

        content_bytes = b''
        async for chunk in response.content.iter_chunked(8192):
            content_bytes += chunk
            if limit is not None and len(content_bytes) > limit:
                self.logger.warning(f"Content exceeded size limit during reading: {response.url}")
                return None

        encoding = response.charset or 'utf-8'
        try:
            return content_bytes.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            return content_bytes.decode('utf-8', errors='ignore')

    def get_stats(self) -> Dict[str, int]:
        """Get fetcher statistics."""
        return self.stats.copy()

    def reset_stats(self):
        """Reset statistics counters."""
        for key in self.stats:
            self.stats[key] = 0
