"""
Main mirroring module.

Orchestrates the mirroring process: optional login, table-of-contents
discovery, and per-page extraction, conversion, image download, and
writing.
"""

import os
import posixpath
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional
from urllib.parse import urljoin, urlparse

from .converter import MarkdownTransformer
from .extractor import ContentExtractor
from .images import ImageContext, ImagePipeline, restore_remote_links
from .renderer import NavigationError, PageRenderer
from .toc import TocEntry, TocExtractor
from ..utils.log import get_logger
from ..utils.constants import (
    CONTENT_WAIT_TIMEOUT,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_PAGE_TIMEOUT,
    EMAIL_INPUT_SELECTOR,
    INDEX_FILENAME,
    LOGIN_PROBE_TIMEOUT,
    MAIN_SELECTOR,
    PASSWORD_INPUT_SELECTOR,
    SUBMIT_SELECTOR,
)
from ..utils.paths import (
    ensure_dir,
    entry_markdown_path,
    get_domain,
    has_page_path,
    page_filename,
    write_text,
)


@dataclass
class MirrorResult:
    """Results of a mirroring run."""

    mode: str = "page"
    pages_written: int = 0
    pages_skipped: int = 0
    images_downloaded: int = 0
    images_failed: int = 0
    toc_entries: int = 0
    output_files: List[str] = field(default_factory=list)
    errors: List[Dict] = field(default_factory=list)
    duration_seconds: float = 0.0


def build_index(title: str, entries: List[TocEntry], domain: str) -> str:
    """
    Render the README index as a nested link list.

    Args:
        title: Site title
        entries: TOC entries in document order
        domain: Host name, used to name the root page's file

    Returns:
        Markdown text of the index
    """
    lines = [f"# {title}", "", "## Contents", ""]
    for entry in entries:
        indent = "  " * (entry.level - 1)
        link = entry_markdown_path(entry.path, domain)
        lines.append(f"{indent}- [{entry.title}]({link})")
    return "\n".join(lines) + "\n"


class GitbookMirror:
    """
    Mirrors a GitBook site, or a single page of it, into Markdown files.
    """

    def __init__(
        self,
        url: str,
        output_dir: str = DEFAULT_OUTPUT_DIR,
        download_images: bool = True,
        force_all: bool = False,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: int = DEFAULT_PAGE_TIMEOUT,
        headless: bool = True,
        renderer=None,
        on_status: Optional[Callable[[str], None]] = None
    ):
        """
        Initialize the mirror.

        Args:
            url: Site or page URL
            output_dir: Directory to write Markdown into
            download_images: Download referenced images
            force_all: Mirror the whole site even if the URL names a page
            username: Login email for private sites
            password: Login password for private sites
            timeout: Page load timeout in milliseconds
            headless: Run browser in headless mode
            renderer: Rendering collaborator (defaults to a PageRenderer)
            on_status: Callback receiving short progress messages
        """
        self.url = url
        self.output_dir = os.path.abspath(output_dir)
        self.download_images = download_images
        self.force_all = force_all
        self.username = username
        self.password = password
        self.domain = get_domain(url)
        self.on_status = on_status

        self.logger = get_logger("mirror")

        self.renderer = renderer or PageRenderer(timeout=timeout, headless=headless)
        self.content_extractor = ContentExtractor()
        self.toc_extractor = TocExtractor()
        self.transformer = MarkdownTransformer()
        self.image_pipeline = ImagePipeline(self.renderer, self.output_dir)

        self._result = MirrorResult()

    @property
    def full_site(self) -> bool:
        """True when the whole site is mirrored rather than one page."""
        return self.force_all or not has_page_path(self.url)

    def _status(self, message: str) -> None:
        self.logger.debug(message)
        if self.on_status:
            self.on_status(message)

    async def run(self) -> MirrorResult:
        """
        Run the mirror.

        Returns:
            MirrorResult with statistics

        Raises:
            NavigationError: If the start URL cannot be loaded
            RendererError: If the browser cannot be started
            OSError: If the output directory cannot be written
        """
        start_time = time.time()
        self._result = MirrorResult(mode="site" if self.full_site else "page")

        ensure_dir(self.output_dir)

        self._status("Starting browser...")
        await self.renderer.start()
        try:
            page = await self.renderer.open_page()
            try:
                if self.username and self.password:
                    self._status("Authenticating...")
                    await self._authenticate(page)

                self._status("Opening document...")
                await self.renderer.navigate(page, self.url)
                await self.renderer.wait_for_selector(page, "body")

                if self.full_site:
                    entries = await self._write_index(page)
                else:
                    await self._mirror_page(page)
                    entries = []
            finally:
                await self.renderer.close_page(page)

            for index, entry in enumerate(entries, start=1):
                self._status(f"Processing page ({index}/{len(entries)}): {entry.title}")
                await self._mirror_entry(entry)
        finally:
            await self.renderer.stop()

        self._result.images_downloaded = self.image_pipeline.downloaded_count
        self._result.images_failed = len(self.image_pipeline.failed)
        self._result.duration_seconds = time.time() - start_time

        self.logger.info(
            f"Mirror complete: {self._result.pages_written} pages, "
            f"{self._result.images_downloaded} images, "
            f"{len(self._result.errors)} errors"
        )
        return self._result

    async def _authenticate(self, page) -> bool:
        """
        Log in if the site presents a login form.

        Returns:
            True if a login form was found and submitted
        """
        await self.renderer.navigate(page, self.url)

        has_form = await self.renderer.wait_for_selector(
            page,
            EMAIL_INPUT_SELECTOR,
            timeout=LOGIN_PROBE_TIMEOUT
        )
        if not has_form:
            self.logger.info("No login form found, continuing without authentication")
            return False

        await self.renderer.type_into(page, EMAIL_INPUT_SELECTOR, self.username)
        await self.renderer.type_into(page, PASSWORD_INPUT_SELECTOR, self.password)
        await self.renderer.click(page, SUBMIT_SELECTOR, wait_for_navigation=True)
        self.logger.info("Submitted login form")
        return True

    async def _convert_page(
        self,
        page,
        page_path: str,
        page_url: str,
        markdown_dir: str
    ) -> str:
        """
        Extract, convert, and localize images of an open page.

        Returns:
            Markdown text ('' if the page has no content)
        """
        content = await self.content_extractor.extract_from_page(self.renderer, page)
        if content.is_empty:
            return ""

        images = ImageContext()
        markdown = self.transformer.transform(content.to_html(), images)

        if self.download_images:
            markdown = await self.image_pipeline.process_images(
                page,
                markdown,
                page_path,
                context=images,
                base_url=page_url,
                markdown_dir=markdown_dir
            )
        else:
            markdown = restore_remote_links(markdown, images)

        return markdown

    def _write_markdown(self, relative_path: str, markdown: str) -> None:
        file_path = os.path.join(self.output_dir, relative_path)
        write_text(file_path, markdown.strip() + "\n")
        self._result.pages_written += 1
        self._result.output_files.append(relative_path)
        self.logger.info(f"Saved {relative_path}")

    async def _mirror_page(self, page) -> None:
        """Mirror the single page the start URL points at."""
        self._status("Downloading single page...")
        filename = page_filename(self.url)
        markdown = await self._convert_page(
            page,
            urlparse(self.url).path,
            self.url,
            markdown_dir=""
        )
        if not markdown.strip():
            self.logger.warning(f"No content found at {self.url}")
            self._result.pages_skipped += 1
            return
        self._write_markdown(filename, markdown)

    async def _write_index(self, page) -> List[TocEntry]:
        """Read the site outline and write the README index."""
        self._status("Reading table of contents...")
        title = await self.renderer.title(page)
        entries = await self.toc_extractor.extract_from_page(self.renderer, page)
        self._result.toc_entries = len(entries)

        write_text(
            os.path.join(self.output_dir, INDEX_FILENAME),
            build_index(title, entries, self.domain)
        )
        self._result.output_files.append(INDEX_FILENAME)
        self.logger.info(f"Wrote index with {len(entries)} entries")
        return entries

    async def _mirror_entry(self, entry: TocEntry) -> None:
        """
        Mirror one TOC entry in its own page.

        Navigation failures are recorded and the entry is skipped.
        """
        page_url = urljoin(self.url, entry.path)
        relative_path = entry_markdown_path(entry.path, self.domain)
        markdown_dir = posixpath.dirname(relative_path)

        page = await self.renderer.open_page()
        try:
            await self.renderer.navigate(page, page_url)
            await self.renderer.wait_for_selector(
                page,
                MAIN_SELECTOR,
                timeout=CONTENT_WAIT_TIMEOUT
            )
            markdown = await self._convert_page(page, entry.path, page_url, markdown_dir)
        except NavigationError as e:
            self.logger.error(f"Skipping {entry.title}: {e}")
            self._result.errors.append({
                'url': page_url,
                'error': str(e),
                'type': 'navigation_error'
            })
            return
        finally:
            await self.renderer.close_page(page)

        if not markdown.strip():
            self.logger.info(f"Skipping empty page: {entry.title}")
            self._result.pages_skipped += 1
            return

        self._write_markdown(relative_path, markdown)
