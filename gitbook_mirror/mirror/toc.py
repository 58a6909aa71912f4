"""
Table-of-contents extractor.

Reads the navigation tree of a GitBook landing page and flattens it into
an ordered list of entries.
"""

from dataclasses import dataclass
from typing import List

from bs4 import Tag

from .extractor import parse_html
from ..utils.log import get_logger
from ..utils.constants import TOC_SELECTOR


# Ancestors that count toward an entry's nesting depth
LIST_TAGS = ('ul', 'li')


@dataclass
class TocEntry:
    """A navigable page of the site."""

    title: str
    path: str
    level: int = 1


def nesting_level(link: Tag, container: Tag) -> int:
    """
    Compute the outline level of a TOC link.

    Every list item sits inside both a ``ul`` and an ``li``, so the raw
    depth counts two per level and is halved.

    Args:
        link: The anchor element
        container: The TOC container (not counted)

    Returns:
        Level, at least 1
    """
    depth = 1
    for parent in link.parents:
        if parent is container:
            break
        if parent.name in LIST_TAGS:
            depth += 1
    return max(1, depth // 2)


def is_internal_href(href: str) -> bool:
    """True for site-relative links that name a page."""
    return bool(href) and not href.startswith('http') and href != '#'


class TocExtractor:
    """
    Extracts TOC entries from a rendered landing page.
    """

    def __init__(self):
        self.logger = get_logger("toc")

    def extract(self, html: str) -> List[TocEntry]:
        """
        Extract the site outline in document order.

        Args:
            html: Rendered landing page HTML

        Returns:
            List of TocEntry; empty if no TOC container exists
        """
        soup = parse_html(html)

        container = soup.select_one(TOC_SELECTOR)
        if container is None:
            self.logger.warning("No table of contents found")
            return []

        entries: List[TocEntry] = []
        for link in container.find_all('a', href=True):
            href = link['href'].strip()
            if not is_internal_href(href):
                continue
            entries.append(TocEntry(
                title=link.get_text().strip(),
                path=href,
                level=nesting_level(link, container),
            ))

        self.logger.debug(f"Found {len(entries)} TOC entries")
        return entries

    async def extract_from_page(self, renderer, page) -> List[TocEntry]:
        """Extract the TOC from a page currently open in the renderer."""
        html = await renderer.content(page)
        return self.extract(html)
