"""
Site Crawler

A concurrent same-site web crawler streaming pages as they are fetched.
"""

__version__ = "1.0.0"
__description__ = "A concurrent same-prefix web crawler with a streaming result interface"

from .crawler import crawl, CrawlStream, Page, FetchError, CrawlerError

__all__ = ['crawl', 'CrawlStream', 'Page', 'FetchError', 'CrawlerError']
