"""
URL Frontier implementation for managing URLs to crawl.
Implements deduplication and suspension-based backpressure for workers.
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Set


def dedup_key(url: str) -> str:
    """
    Derive the deduplication key of a URL.

    Everything from the last '#' is dropped, then a single trailing slash.
    Two URLs differing only by fragment or trailing slash map to the same key.
    """
    hash_index = url.rfind('#')
    if hash_index != -1:
        url = url[:hash_index]
    if url.endswith('/'):
        url = url[:-1]
    return url


class URLFrontier:
    """
    Manages URLs to be crawled and parks idle workers until there is work.

    All state lives on one asyncio event loop and no operation awaits while
    mutating it, so the loop is the only serialization point. Workers that find
    the frontier empty while other URLs are still in flight suspend on a future
    and are woken by add_urls() or by mark_done() reaching the terminal state.
    """

    def __init__(self, cancel_event: Optional[asyncio.Event] = None):
        self.logger = logging.getLogger(__name__)
        self.cancel_event = cancel_event or asyncio.Event()

        self._pending: Dict[str, str] = {}
        self._in_flight: Set[str] = set()
        self._seen: Set[str] = set()
        self._waiters: List[asyncio.Future] = []

    async def add_url(self, url: str) -> bool:
        """
        Add a URL to the frontier.
        Returns True if URL was added, False if already seen.
        """
        return await self.add_urls([url]) == 1

    async def add_urls(self, urls: Iterable[str]) -> int:
        """Add multiple URLs to the frontier. Returns count of added URLs."""
        added_count = 0
        for url in urls:
            key = dedup_key(url)
            if key in self._seen:
                continue
            self._seen.add(key)
            self._pending[key] = url
            added_count += 1

        if added_count:
            self.logger.debug(f"Added {added_count} URLs to frontier")

        self._wake_waiters()
        return added_count

    async def dequeue_or_suspend(self) -> Optional[str]:
        """
        Get the next URL to crawl, suspending while none is ready.

        Returns None once the crawl is done (nothing pending, nothing in flight)
        or has been cancelled. A woken caller re-checks the state from the top,
        so spurious wakeups only cost one retry.
        """
        while True:
            if self.cancel_event.is_set():
                return None

            if self._pending:
                key = next(iter(self._pending))
                url = self._pending.pop(key)
                self._in_flight.add(key)
                self.logger.debug(f"Retrieved URL from frontier: {url}")
                return url

            if self.is_done():
                return None

            waiter = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            try:
                await waiter
            finally:
                if waiter in self._waiters:
                    self._waiters.remove(waiter)

    async def mark_done(self, url: str):
        """Mark an in-flight URL as finished."""
        self._in_flight.discard(dedup_key(url))
        if self.is_done():
            self.logger.debug("Frontier drained, waking idle workers")
            self._wake_waiters()

    def force_wake_all(self):
        """Wake every suspended worker so it can observe cancellation."""
        if self._waiters:
            self.logger.debug(f"Force-waking {len(self._waiters)} suspended workers")
        self._wake_waiters()

    def _wake_waiters(self):
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)

    def is_done(self) -> bool:
        """True when nothing is pending and nothing is in flight."""
        return not self._pending and not self._in_flight

    async def is_empty(self) -> bool:
        """Check if the frontier has no pending URLs."""
        return not self._pending

    def get_stats(self) -> Dict[str, int]:
        """Get frontier statistics."""
        return {
            'pending': len(self._pending),
            'in_flight': len(self._in_flight),
            'seen': len(self._seen),
            'waiters': len(self._waiters)
        }
