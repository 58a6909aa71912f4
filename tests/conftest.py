import asyncio
import base64
from typing import Dict, List, Optional, Set

import pytest

from gitbook_mirror.mirror.renderer import NavigationError


class FakePage:
    def __init__(self, number: int):
        self.number = number
        self.url: Optional[str] = None
        self.closed = False


class FakeRenderer:
    """In-memory stand-in for PageRenderer serving canned pages and images."""

    def __init__(
        self,
        pages: Optional[Dict[str, str]] = None,
        images: Optional[Dict[str, Optional[bytes]]] = None,
        failing: Optional[Set[str]] = None,
        title: str = "Example Docs",
        login_form: bool = False,
        fetch_delay: float = 0.0
    ):
        self.pages = pages or {}
        self.images = images or {}
        self.failing = failing or set()
        self.page_title = title
        self.login_form = login_form
        self.fetch_delay = fetch_delay

        self.started = False
        self.stopped = False
        self.visited: List[str] = []
        self.fetched: List[str] = []
        self.typed: List[tuple] = []
        self.clicked: List[str] = []

        self._page_count = 0
        self.open_pages = 0
        self.max_open = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def start(self):
        self.started = True

    async def stop(self):
        self.stopped = True

    async def open_page(self):
        self._page_count += 1
        self.open_pages += 1
        self.max_open = max(self.max_open, self.open_pages)
        return FakePage(self._page_count)

    async def close_page(self, page):
        page.closed = True
        self.open_pages -= 1

    async def navigate(self, page, url, wait_until=None):
        if url in self.failing:
            raise NavigationError(url, "timed out")
        page.url = url
        self.visited.append(url)

    async def wait_for_selector(self, page, selector, timeout=None):
        if selector == 'input[type="email"]':
            return self.login_form
        return True

    async def evaluate(self, page, script, arg=None):
        self.fetched.append(arg)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.fetch_delay)
        finally:
            self.in_flight -= 1
        data = self.images.get(arg)
        if data is None:
            return None
        return "data:image/png;base64," + base64.b64encode(data).decode("ascii")

    async def type_into(self, page, selector, text):
        self.typed.append((selector, text))

    async def click(self, page, selector, wait_for_navigation=False):
        self.clicked.append(selector)

    async def content(self, page):
        return self.pages.get(page.url, "<html><body></body></html>")

    async def title(self, page):
        return self.page_title


def doc_page(body: str, title: str = "Page") -> str:
    """Wrap body markup in the page structure GitBook renders."""
    return (
        "<html><body><nav>Menu</nav><main>"
        f"<header><h1>{title}</h1></header>"
        f'<div class="whitespace-pre-wrap">{body}</div>'
        "</main></body></html>"
    )


@pytest.fixture
def make_renderer():
    return FakeRenderer


@pytest.fixture
def make_page():
    return doc_page
