"""
Web crawler core components.
"""

from .page import Page
from .url_frontier import URLFrontier, dedup_key
from .fetcher import PageFetcher, WebFetcher, FetchResult, FetchError, CrawlerError
from .parser import ContentParser, ParsedContent
from .scheduler import CrawlerScheduler, CrawlStats
from .stream import CrawlStream, crawl

__all__ = [
    'Page',
    'URLFrontier', 'dedup_key',
    'PageFetcher', 'WebFetcher', 'FetchResult', 'FetchError', 'CrawlerError',
    'ContentParser', 'ParsedContent',
    'CrawlerScheduler', 'CrawlStats',
    'CrawlStream', 'crawl'
]
