"""
Streaming interface delivering crawled pages to a consumer as they arrive.
"""

import asyncio
import logging
import weakref
from typing import Optional

from .fetcher import PageFetcher
from .page import Page
from .scheduler import CrawlerScheduler
from ..utils.config import Config
from ..utils.monitoring import CrawlerMonitor


logger = logging.getLogger(__name__)


class _StreamEnd:
    """End-of-stream marker carrying the crawl's error, if any."""

    def __init__(self, error: Optional[BaseException] = None):
        self.error = error


class _CrawlProducer:
    """
    Background task running one crawl and pushing its pages onto a queue.

    Holds no reference to the CrawlStream consuming it, so an abandoned
    stream can be collected while the crawl is still running.
    """

    def __init__(self, scheduler: CrawlerScheduler):
        self.scheduler = scheduler
        self.queue: asyncio.Queue = asyncio.Queue()
        self.task: Optional[asyncio.Task] = None
        self.closed = False

    def start(self):
        if self.task is None and not self.closed:
            self.task = asyncio.create_task(self._produce())

    async def _produce(self):
        """Run the crawl and push its outcome onto the queue."""
        try:
            await self.scheduler.initialize()
            try:
                await self.scheduler.start_crawling(self.emit)
            finally:
                await self.scheduler.close()
        except asyncio.CancelledError:
            logger.info("Producer task terminated by consumer cancellation")
            raise
        except Exception as e:
            logger.error(f"Crawl finished with an error: {e}")
            self.queue.put_nowait(_StreamEnd(e))
        else:
            self.queue.put_nowait(_StreamEnd())

    def emit(self, page: Page):
        if not self.closed:
            self.queue.put_nowait(page)

    def cancel(self):
        """Stop the crawl without waiting for it to unwind."""
        self.closed = True
        if self.task is None or self.task.done() or self.task.get_loop().is_closed():
            return
        self.scheduler.cancel()
        self.task.cancel()

    async def stop(self):
        """Stop the crawl and wait until every worker has exited."""
        self.cancel()
        if self.task is None or self.task.done():
            return
        try:
            await self.task
        except asyncio.CancelledError:
            pass


class CrawlStream:
    """
    Async iterator over the pages of one crawl.

    The crawl runs as a background producer task started on first use. Pages
    are pushed onto an unbounded queue so a slow consumer never blocks the
    workers. The stream ends cleanly when the crawl completes, or raises the
    crawl's first FetchError after the pages fetched before it.

    Closing the stream early (aclose() or leaving an ``async with`` block)
    cancels the producer and wakes every suspended worker. A stream that is
    simply dropped, e.g. after ``break`` in a bare ``async for``, cancels the
    crawl when it is garbage collected. Once closed no further pages or errors
    are observed.
    """

    def __init__(self, scheduler: CrawlerScheduler):
        self.scheduler = scheduler
        self.pages_received = 0

        self._producer = _CrawlProducer(scheduler)
        self._finalizer = weakref.finalize(self, self._producer.cancel)

    @property
    def finished(self) -> bool:
        """True once the producer task has exited (or was never started)."""
        task = self._producer.task
        return task is None or task.done()

    def __aiter__(self) -> 'CrawlStream':
        return self

    async def __anext__(self) -> Page:
        if self._producer.closed:
            raise StopAsyncIteration

        self._producer.start()
        item = await self._producer.queue.get()

        if isinstance(item, _StreamEnd):
            self._producer.closed = True
            if item.error is not None:
                raise item.error
            raise StopAsyncIteration

        self.pages_received += 1
        return item

    async def aclose(self):
        """Abandon the stream, cancelling the crawl if it is still running."""
        await self._producer.stop()

    async def __aenter__(self) -> 'CrawlStream':
        self._producer.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()


def crawl(root_url: str, worker_count: int = 4, *,
          fetcher: Optional[PageFetcher] = None,
          config: Optional[Config] = None,
          monitor: Optional[CrawlerMonitor] = None) -> CrawlStream:
    """
    Crawl every page reachable from root_url whose URL starts with root_url.

    Args:
        root_url: URL to start from; also the prefix every crawled URL must share
        worker_count: number of concurrent workers (at least 1)
        fetcher: page fetcher to use; defaults to an aiohttp WebFetcher
        config: full configuration; overrides root_url and worker_count when given
        monitor: optional metrics sink

    Returns:
        CrawlStream yielding pages in arrival order
    """
    if config is None:
        config = Config.for_root(root_url, worker_count)
    scheduler = CrawlerScheduler(config, fetcher=fetcher, monitor=monitor)
    return CrawlStream(scheduler)
