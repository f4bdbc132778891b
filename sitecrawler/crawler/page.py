"""
Page value type produced by the fetcher and delivered to consumers.
"""

from dataclasses import dataclass, field
from typing import Tuple


@dataclass(frozen=True)
class Page:
    """A fetched page with its title and outgoing links."""
    url: str
    title: str = ""
    outgoing_links: Tuple[str, ...] = field(default_factory=tuple)
