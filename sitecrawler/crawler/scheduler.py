"""
Crawler scheduler that runs the worker pool and owns one crawl end to end.
"""

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional
from dataclasses import dataclass

from .url_frontier import URLFrontier
from .fetcher import FetchError, PageFetcher, WebFetcher
from .page import Page
from ..utils.config import Config
from ..utils.logger import CrawlerLogAdapter, get_crawler_logger
from ..utils.monitoring import CrawlerMonitor


PageCallback = Callable[[Page], None]


@dataclass
class CrawlStats:
    """Statistics for crawl operations."""
    start_time: float
    pages_crawled: int = 0
    links_discovered: int = 0
    errors: int = 0
    average_fetch_time: float = 0.0

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time

    @property
    def pages_per_minute(self) -> float:
        elapsed_minutes = self.elapsed_time / 60
        return self.pages_crawled / elapsed_minutes if elapsed_minutes > 0 else 0


class CrawlerScheduler:
    """
    Seeds the frontier with the root URL and drives N workers against it.

    Workers loop dequeue -> fetch -> filter -> enqueue -> emit -> mark done.
    The crawl succeeds once every worker has drained out through the
    frontier's terminal state. The first fetch failure cancels the crawl:
    sibling workers are cancelled, suspended ones woken, and the error is
    re-raised from start_crawling().
    """

    def __init__(self, config: Config, fetcher: Optional[PageFetcher] = None,
                 monitor: Optional[CrawlerMonitor] = None):
        self.config = config
        self.logger = logging.getLogger(__name__)

        self.root_url = config.crawler.root_url
        self.base_prefix = config.crawler.base_prefix
        self.worker_count = config.crawler.worker_count

        self.fetcher = fetcher
        self._owns_fetcher = fetcher is None
        self.monitor = monitor

        self.cancel_event = asyncio.Event()
        self.url_frontier = URLFrontier(self.cancel_event)

        # Crawl state
        self.stats = CrawlStats(start_time=time.time())
        self.is_running = False
        self.workers: List[asyncio.Task] = []
        self._started = False
        self._error: Optional[BaseException] = None

    async def initialize(self):
        """Create and start the fetcher if none was supplied."""
        if self._owns_fetcher and self.fetcher is None:
            crawler_config = self.config.crawler
            self.fetcher = WebFetcher(
                user_agent=crawler_config.user_agent,
                request_timeout=crawler_config.request_timeout,
                max_concurrent_requests=self.worker_count,
                max_content_size=crawler_config.max_content_size
            )
            await self.fetcher.start()
        self.logger.debug("Crawler scheduler initialized")

    async def start_crawling(self, emit: PageCallback):
        """
        Run the crawl to completion.

        Args:
            emit: called with every fetched Page, before the page is marked done

        Raises:
            FetchError: the first fetch failure of any worker
        """
        if self._started:
            raise RuntimeError("A scheduler runs a single crawl")
        self._started = True

        if self.fetcher is None:
            await self.initialize()

        self.is_running = True
        self.stats = CrawlStats(start_time=time.time())
        await self.url_frontier.add_urls([self.root_url])

        self.workers = [
            asyncio.create_task(self._worker(f"worker-{i}", emit))
            for i in range(self.worker_count)
        ]
        stats_task = asyncio.create_task(self._stats_reporter())
        self.logger.info(f"Started crawling {self.root_url} with {self.worker_count} workers")

        try:
            done, _ = await asyncio.wait(self.workers, return_when=asyncio.FIRST_EXCEPTION)
            for task in done:
                if not task.cancelled() and task.exception() is not None:
                    self._fail(task.exception())

            if self._error is not None:
                raise self._error

            self._log_final_stats()

        finally:
            self.is_running = False
            stats_task.cancel()
            if any(not worker.done() for worker in self.workers):
                self.cancel()
            await self._cleanup_workers()
            await asyncio.gather(stats_task, return_exceptions=True)

    async def _worker(self, worker_id: str, emit: PageCallback):
        """
        Worker coroutine that processes URLs from the frontier until it is drained.
        """
        log = get_crawler_logger(__name__, worker_id=worker_id)
        number_of_jobs = 0
        if self.monitor:
            self.monitor.worker_started()

        try:
            while True:
                url = await self.url_frontier.dequeue_or_suspend()
                if url is None:
                    break

                number_of_jobs += 1
                await self._process_url(url, emit, log)
        finally:
            if self.monitor:
                self.monitor.worker_finished()
            log.info(f"Worker did {number_of_jobs} jobs")

    async def _process_url(self, url: str, emit: PageCallback, log: CrawlerLogAdapter):
        """Process a single URL."""
        start_time = time.time()

        try:
            page = await self.fetcher.fetch_page(url)
        except FetchError as e:
            self.stats.errors += 1
            if self.monitor:
                self.monitor.record_error('fetch')
            log.log_url_event(logging.WARNING, url, f"Fetch failed: {e.reason}")
            self._fail(e)
            raise

        if self.cancel_event.is_set():
            log.debug(f"Discarding {url}, crawl cancelled")
            await self.url_frontier.mark_done(url)
            return

        new_links = [link for link in page.outgoing_links if link.startswith(self.base_prefix)]
        added_count = await self.url_frontier.add_urls(new_links)

        fetch_time = time.time() - start_time
        self._update_stats(added_count, fetch_time)
        if self.monitor:
            self.monitor.record_page_fetched(url, fetch_time)
            self.monitor.record_links_discovered(added_count)

        emit(page)
        await self.url_frontier.mark_done(url)

        log.debug(f"Processed {url} in {fetch_time:.2f}s, queued {added_count} new URLs")

    def _update_stats(self, added_count: int, fetch_time: float):
        self.stats.pages_crawled += 1
        self.stats.links_discovered += added_count
        self.stats.average_fetch_time = (
            (self.stats.average_fetch_time * (self.stats.pages_crawled - 1) + fetch_time)
            / self.stats.pages_crawled
        )

    def _fail(self, error: BaseException):
        """Record the first error and cancel the crawl."""
        if self._error is None:
            self._error = error
            self.logger.error(f"Crawl of {self.root_url} failed: {error}")
        self.cancel()

    def cancel(self):
        """Cancel the crawl and wake every suspended worker."""
        if not self.cancel_event.is_set():
            self.logger.info("Cancelling crawl")
        self.cancel_event.set()
        self.url_frontier.force_wake_all()

    async def _stats_reporter(self):
        """Periodically log crawl statistics."""
        while self.is_running:
            await asyncio.sleep(self.config.crawler.stats_interval)
            self._log_current_stats()

    def _log_current_stats(self):
        """Log current crawl statistics."""
        frontier_stats = self.url_frontier.get_stats()
        if self.monitor:
            self.monitor.update_frontier(frontier_stats)

        self.logger.info(
            f"Crawl Progress: "
            f"Crawled={self.stats.pages_crawled}, "
            f"Pending={frontier_stats['pending']}, "
            f"InFlight={frontier_stats['in_flight']}, "
            f"Idle={frontier_stats['waiters']}, "
            f"Rate={self.stats.pages_per_minute:.1f} pages/min"
        )

    def _log_final_stats(self):
        """Log final crawl statistics."""
        frontier_stats = self.url_frontier.get_stats()
        if self.monitor:
            self.monitor.update_frontier(frontier_stats)

        self.logger.info("=== CRAWL COMPLETED ===")
        self.logger.info(f"Total pages crawled: {self.stats.pages_crawled}")
        self.logger.info(f"Unique URLs seen: {frontier_stats['seen']}")
        self.logger.info(f"Total time: {self.stats.elapsed_time:.2f} seconds")
        self.logger.info(f"Average rate: {self.stats.pages_per_minute:.1f} pages/min")
        self.logger.info(f"Average fetch time: {self.stats.average_fetch_time:.2f}s")
        if isinstance(self.fetcher, WebFetcher):
            self.logger.info(f"Fetcher stats: {self.fetcher.get_stats()}")

    async def _cleanup_workers(self):
        """Cancel and cleanup worker tasks."""
        if self.workers:
            for worker in self.workers:
                if not worker.done():
                    worker.cancel()

            await asyncio.gather(*self.workers, return_exceptions=True)
            self.workers.clear()

    async def close(self):
        """Close the fetcher if this scheduler created it."""
        if self._owns_fetcher and self.fetcher is not None:
            await self.fetcher.close()
        self.logger.debug("Crawler scheduler closed")

    def get_stats(self) -> Dict:
        """Get current crawl statistics."""
        stats = {
            'pages_crawled': self.stats.pages_crawled,
            'links_discovered': self.stats.links_discovered,
            'errors': self.stats.errors,
            'elapsed_time': self.stats.elapsed_time,
            'pages_per_minute': self.stats.pages_per_minute,
            'average_fetch_time': self.stats.average_fetch_time,
            'is_running': self.is_running,
            'cancelled': self.cancel_event.is_set()
        }
        stats.update(self.url_frontier.get_stats())
        return stats
