"""
Content extractor for isolating a page's document body.

Uses BeautifulSoup to pull the title, subtitle, and prose region out of a
rendered GitBook page, leaving navigation chrome behind.
"""

import html as html_lib
from dataclasses import dataclass

from bs4 import BeautifulSoup

from ..utils.log import get_logger
from ..utils.constants import (
    BODY_SELECTOR,
    MAIN_SELECTOR,
    SUBTITLE_SELECTOR,
    TITLE_SELECTOR,
)


def parse_html(html: str) -> BeautifulSoup:
    """Parse markup with lxml, falling back to the builtin parser."""
    try:
        return BeautifulSoup(html, 'lxml')
    except Exception:
        return BeautifulSoup(html, 'html.parser')


@dataclass
class ExtractedContent:
    """Raw markup fragments making up a document."""

    title_html: str = ""
    subtitle_html: str = ""
    body_html: str = ""

    @property
    def is_empty(self) -> bool:
        """True when no fragment carries any markup."""
        return not (
            self.title_html.strip()
            or self.subtitle_html.strip()
            or self.body_html.strip()
        )

    def to_html(self) -> str:
        """Join the fragments into one markup string for conversion."""
        return f"{self.title_html}\n{self.subtitle_html}\n{self.body_html}"


class ContentExtractor:
    """
    Extracts the document body from rendered page HTML.

    The primary landmark is the ``main`` element. Inside it the actual
    prose lives in a pre-wrapped text region; everything else in ``main``
    is chrome.
    """

    def __init__(self):
        self.logger = get_logger("extractor")

    def extract(self, html: str) -> ExtractedContent:
        """
        Extract title, subtitle, and body markup.

        Args:
            html: Rendered page HTML

        Returns:
            ExtractedContent; all fields empty if the page has no main region
        """
        soup = parse_html(html)

        main = soup.select_one(MAIN_SELECTOR)
        if main is None:
            self.logger.debug("No main content region found")
            return ExtractedContent()

        title = soup.select_one(TITLE_SELECTOR)
        title_html = str(title) if title else ""

        subtitle = soup.select_one(SUBTITLE_SELECTOR)
        subtitle_html = ""
        if subtitle:
            text = html_lib.escape(subtitle.get_text())
            subtitle_html = f'<p class="subtitle">{text}</p>'

        body = main.select_one(BODY_SELECTOR)
        body_html = body.decode_contents() if body else ""

        return ExtractedContent(
            title_html=title_html,
            subtitle_html=subtitle_html,
            body_html=body_html,
        )

    async def extract_from_page(self, renderer, page) -> ExtractedContent:
        """Extract content from a page currently open in the renderer."""
        html = await renderer.content(page)
        return self.extract(html)
