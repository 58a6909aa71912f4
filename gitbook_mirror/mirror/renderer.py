"""
Page renderer using Playwright for JavaScript rendering.

Wraps a headless browser session and exposes the small set of page
operations the mirror needs: navigation, element waits, in-page script
evaluation, and form interaction.
"""

from typing import Any, Optional

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    TimeoutError as PlaywrightTimeout,
)

from ..utils.log import get_logger
from ..utils.constants import (
    DEFAULT_PAGE_TIMEOUT,
    DEFAULT_USER_AGENT,
    DEFAULT_VIEWPORT,
    DEFAULT_WAIT_UNTIL,
)


class RendererError(Exception):
    """Raised when the browser cannot be started or used."""


class NavigationError(RendererError):
    """Raised when a page cannot be loaded."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to load {url}: {reason}")
        self.url = url
        self.reason = reason


class PageRenderer:
    """
    Renders web pages using a Playwright headless browser.

    A single browser context is shared by every page opened through the
    renderer, so cookies set during login apply to all later pages.
    """

    def __init__(
        self,
        timeout: int = DEFAULT_PAGE_TIMEOUT,
        wait_until: str = DEFAULT_WAIT_UNTIL,
        headless: bool = True,
        user_agent: str = DEFAULT_USER_AGENT
    ):
        """
        Initialize the page renderer.

        Args:
            timeout: Page load timeout in milliseconds
            wait_until: Event to wait for ('load', 'domcontentloaded', 'networkidle')
            headless: Run browser in headless mode
            user_agent: User agent for the browser context
        """
        self.timeout = timeout
        self.wait_until = wait_until
        self.headless = headless
        self.user_agent = user_agent
        self.logger = get_logger("renderer")

        self._playwright = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None

    async def start(self) -> None:
        """
        Start the Playwright browser instance.

        Raises:
            RendererError: If the browser cannot be launched
        """
        if self._browser:
            return
        self.logger.info("Starting Playwright browser...")
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=[
                    '--disable-blink-features=AutomationControlled',
                    '--no-sandbox',
                    '--disable-setuid-sandbox',
                    '--disable-dev-shm-usage',
                ]
            )
            self._context = await self._browser.new_context(
                user_agent=self.user_agent,
                viewport=DEFAULT_VIEWPORT,
                ignore_https_errors=True,
            )
        except PlaywrightError as e:
            await self.stop()
            raise RendererError(f"Could not launch browser: {e}") from e
        self.logger.info("Browser started successfully")

    async def stop(self) -> None:
        """
        Stop the Playwright browser instance.
        """
        if self._context:
            await self._context.close()
            self._context = None
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
        self.logger.info("Browser stopped")

    async def open_page(self) -> Page:
        """
        Open a new page in the shared browser context.

        Returns:
            Playwright page; the caller must close it with close_page()
        """
        if not self._context:
            await self.start()
        page = await self._context.new_page()
        page.set_default_timeout(self.timeout)
        page.on("requestfailed", self._log_failed_request)
        return page

    def _log_failed_request(self, request) -> None:
        self.logger.debug(f"Request failed: {request.url}")

    async def navigate(
        self,
        page: Page,
        url: str,
        wait_until: Optional[str] = None
    ) -> None:
        """
        Navigate a page to a URL and wait for it to settle.

        Args:
            page: Page to navigate
            url: Target URL
            wait_until: Load state to wait for (defaults to the renderer's)

        Raises:
            NavigationError: On timeout, network failure, or HTTP error status
        """
        self.logger.debug(f"Rendering: {url}")
        try:
            response = await page.goto(
                url,
                wait_until=wait_until or self.wait_until,
                timeout=self.timeout
            )
        except PlaywrightTimeout as e:
            raise NavigationError(url, "timed out") from e
        except PlaywrightError as e:
            raise NavigationError(url, str(e)) from e

        if response is not None and response.status >= 400:
            raise NavigationError(url, f"HTTP {response.status}")

    async def wait_for_selector(
        self,
        page: Page,
        selector: str,
        timeout: Optional[int] = None
    ) -> bool:
        """
        Wait for an element to appear.

        Args:
            page: Page to query
            selector: CSS selector
            timeout: Maximum wait in milliseconds

        Returns:
            True if the element appeared, False if the wait timed out
        """
        try:
            await page.wait_for_selector(
                selector,
                timeout=timeout if timeout is not None else self.timeout
            )
            return True
        except PlaywrightTimeout:
            self.logger.debug(f"Selector not found: {selector}")
            return False

    async def evaluate(self, page: Page, script: str, arg: Any = None) -> Any:
        """
        Run a JavaScript function in the page context.

        Args:
            page: Page to run in
            script: JavaScript function source
            arg: Optional argument passed to the function

        Returns:
            The JSON-serializable value returned by the script
        """
        return await page.evaluate(script, arg)

    async def type_into(self, page: Page, selector: str, text: str) -> None:
        """Type text into the element matching a selector."""
        await page.type(selector, text)

    async def click(
        self,
        page: Page,
        selector: str,
        wait_for_navigation: bool = False
    ) -> None:
        """
        Click an element, optionally waiting for the resulting navigation.

        Raises:
            NavigationError: If the expected navigation does not happen
        """
        if not wait_for_navigation:
            await page.click(selector)
            return
        try:
            async with page.expect_navigation(
                wait_until=self.wait_until,
                timeout=self.timeout
            ):
                await page.click(selector)
        except PlaywrightTimeout as e:
            raise NavigationError(page.url, "navigation after click timed out") from e

    async def content(self, page: Page) -> str:
        """Return the rendered DOM as HTML."""
        return await page.content()

    async def title(self, page: Page) -> str:
        """Return the document title."""
        return await page.title()

    async def close_page(self, page: Page) -> None:
        """Close a page opened with open_page()."""
        await page.close()

    async def __aenter__(self):
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.stop()
