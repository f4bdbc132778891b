"""
Web page parser for extracting the title and outgoing links.
"""

import re
import logging
from typing import List, Optional
from urllib.parse import urljoin, urlparse, urlunparse
from dataclasses import dataclass, field
from bs4 import BeautifulSoup


@dataclass
class ParsedContent:
    """Container for parsed web page content."""
    url: str
    title: Optional[str] = None
    links: List[str] = field(default_factory=list)


class ContentParser:
    """
    Parses HTML content to extract the page title and links.
    """

    SKIP_EXTENSIONS = (
        '.jpg', '.jpeg', '.png', '.gif', '.bmp', '.svg', '.webp',
        '.pdf', '.doc', '.docx', '.xls', '.xlsx', '.ppt', '.pptx',
        '.zip', '.rar', '.tar', '.gz', '.exe', '.dmg', '.iso',
        '.mp3', '.mp4', '.avi', '.mov', '.wmv', '.flv',
        '.css', '.js', '.ico', '.woff', '.woff2', '.ttf', '.eot'
    )

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.whitespace_pattern = re.compile(r'\s+')

    def parse(self, url: str, html_content: str) -> ParsedContent:
        """
        Parse HTML content and extract the title and links.

        Args:
            url: The URL of the page, used to resolve relative links
            html_content: Raw HTML content

        Returns:
            ParsedContent object with extracted data
        """
        soup = BeautifulSoup(html_content, 'lxml')

        parsed_content = ParsedContent(url=url)
        self._extract_title(soup, parsed_content)
        self._extract_links(soup, parsed_content, url)

        self.logger.debug(f"Parsed content from {url}: {len(parsed_content.links)} links")
        return parsed_content

    def _extract_title(self, soup: BeautifulSoup, parsed_content: ParsedContent):
        """Extract page title."""
        title_tag = soup.find('title')
        if title_tag:
            parsed_content.title = self._clean_text(title_tag.get_text())

    def _extract_links(self, soup: BeautifulSoup, parsed_content: ParsedContent, base_url: str):
        """Extract and normalize links, keeping document order."""
        links = {}

        for link in soup.find_all('a', href=True):
            href = link['href'].strip()
            if not href or href.startswith('#'):
                continue

            absolute_url = urljoin(base_url, href)
            normalized_url = self._normalize_url(absolute_url)

            if self._is_valid_url(normalized_url):
                links[normalized_url] = None

        parsed_content.links = list(links)

    def _normalize_url(self, url: str) -> str:
        """Normalize URL by removing the fragment and lowercasing the host."""
        try:
            parsed = urlparse(url)
            return urlunparse((
                parsed.scheme,
                parsed.netloc.lower(),
                parsed.path,
                parsed.params,
                parsed.query,
                ''
            ))
        except ValueError:
            return url

    def _is_valid_url(self, url: str) -> bool:
        """Check if URL is valid for crawling."""
        try:
            parsed = urlparse(url)
        except ValueError:
            return False

        if not parsed.scheme or not parsed.netloc:
            return False

        if parsed.scheme not in ('http', 'https'):
            return False

        path = parsed.path.lower()
        return not path.endswith(self.SKIP_EXTENSIONS)

    def _clean_text(self, text: str) -> str:
        """Collapse whitespace."""
        if not text:
            return ""
        return self.whitespace_pattern.sub(' ', text.strip())
