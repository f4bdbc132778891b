"""Shared fixtures for crawler tests."""

import asyncio
from typing import Dict, Iterable, List, Optional

import pytest

from sitecrawler.crawler.fetcher import FetchError, PageFetcher
from sitecrawler.crawler.page import Page
from sitecrawler.utils.config import Config


class GraphFetcher(PageFetcher):
    """In-memory fetcher serving pages from a link graph."""

    def __init__(self, graph: Dict[str, List[str]], failing: Iterable[str] = (),
                 blocking: Iterable[str] = (), delay: float = 0.0):
        self.graph = graph
        self.failing = set(failing)
        self.blocking = set(blocking)
        self.delay = delay
        self.fetched: List[str] = []
        self.release = asyncio.Event()

    async def fetch_page(self, url: str) -> Page:
        self.fetched.append(url)
        await asyncio.sleep(self.delay)

        if url in self.blocking:
            await self.release.wait()
        if url in self.failing:
            raise FetchError(url, "simulated failure")
        if url not in self.graph:
            raise FetchError(url, "not found")

        return Page(url=url, title=f"Title of {url}", outgoing_links=tuple(self.graph[url]))


@pytest.fixture
def make_config():
    """Build a crawl configuration for a root URL."""
    def _make(root_url: str = "https://x/", worker_count: int = 4,
              stats_interval: Optional[float] = None) -> Config:
        config = Config.for_root(root_url, worker_count)
        if stats_interval is not None:
            config.crawler.stats_interval = stats_interval
        return config
    return _make


@pytest.fixture
def graph_fetcher():
    """Factory for GraphFetcher instances."""
    return GraphFetcher
