"""
Image pipeline for downloading the images a converted page references.

Images are fetched from inside the rendered page so the site's cookies
and session apply. All downloads for one page run concurrently and are
joined before any Markdown is rewritten.
"""

import asyncio
import base64
import binascii
import os
import posixpath
import random
import re
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple
from urllib.parse import urljoin, urlparse

from playwright.async_api import Error as PlaywrightError

from ..utils.log import get_logger
from ..utils.constants import IMAGES_DIRNAME
from ..utils.paths import ensure_dir, relative_link, strip_leading_slash, write_bytes


# Optional image title; quotes inside it are backslash-escaped
TITLE_PATTERN = r'(\s+"(?:[^"\\]|\\.)*")?'

# Markdown image syntax: ![alt](src "optional title")
IMAGE_PATTERN = re.compile(r'!\[(.*?)\]\((\S+?)' + TITLE_PATTERN + r'\)')

# Characters that would end or split a Markdown link destination
URL_ESCAPES = {' ': '%20', '"': '%22', '(': '%28', ')': '%29'}

DEFAULT_IMAGE_EXT = '.png'

# Runs in the page; resolves to a data: URL or null
FETCH_AS_DATA_URL = """
async (src) => {
    try {
        const response = await fetch(src);
        if (!response.ok) return null;
        const blob = await response.blob();
        return await new Promise((resolve) => {
            const reader = new FileReader();
            reader.onloadend = () => resolve(reader.result);
            reader.onerror = () => resolve(null);
            reader.readAsDataURL(blob);
        });
    } catch (error) {
        return null;
    }
}
"""


@dataclass
class ImageReference:
    """An image referenced by a page's Markdown."""

    original_src: str
    local_path: str = ""
    downloaded: bool = False


@dataclass
class ImageContext:
    """
    Image references of a single page, keyed by the src written in Markdown.

    Created per page and discarded once the page is written.
    """

    references: Dict[str, ImageReference] = field(default_factory=dict)

    def register(self, written_src: str, original_src: str) -> ImageReference:
        """Record that ``written_src`` in the Markdown stands for ``original_src``."""
        reference = ImageReference(original_src=original_src, local_path=written_src)
        self.references[written_src] = reference
        return reference

    def get(self, written_src: str) -> Optional[ImageReference]:
        return self.references.get(written_src)

    def __len__(self) -> int:
        return len(self.references)


def markdown_url(url: str) -> str:
    """Percent-encode the characters a Markdown link destination cannot hold."""
    return ''.join(URL_ESCAPES.get(char, char) for char in url)


def markdown_title(title: str) -> str:
    """Quote an image title, escaping embedded quotes."""
    escaped = title.replace('\\', '\\\\').replace('"', '\\"')
    return f'"{escaped}"'


def image_markdown(alt: str, src: str, title: str = '') -> str:
    """Render ``![alt](src "title")``; ``src`` must already be link-safe."""
    title_part = f' {markdown_title(title)}' if title else ''
    return f"![{alt}]({src}{title_part})"


def find_image_sources(markdown: str) -> List[str]:
    """
    List distinct image sources in a Markdown document.

    ``data:`` URIs are embedded images and are never returned.

    Args:
        markdown: Markdown text

    Returns:
        Sources in order of first appearance
    """
    sources: List[str] = []
    seen: Set[str] = set()
    for match in IMAGE_PATTERN.finditer(markdown):
        src = match.group(2)
        if src.startswith('data:') or src in seen:
            continue
        seen.add(src)
        sources.append(src)
    return sources


def replace_image_source(markdown: str, src: str, new_src: str) -> str:
    """
    Point every image whose source is exactly ``src`` at ``new_src``.

    Alt text and titles are kept.
    """
    pattern = re.compile(r'!\[(.*?)\]\(' + re.escape(src) + TITLE_PATTERN + r'\)')

    def _replace(match: re.Match) -> str:
        return f"![{match.group(1)}]({new_src}{match.group(2) or ''})"

    return pattern.sub(_replace, markdown)


def restore_remote_links(markdown: str, context: Optional[ImageContext]) -> str:
    """
    Point converted image paths back at their remote originals.

    Used when images are not downloaded, so the Markdown never references
    files that do not exist.
    """
    if not context:
        return markdown
    for written_src, reference in context.references.items():
        if written_src != reference.original_src:
            markdown = replace_image_source(
                markdown, written_src, markdown_url(reference.original_src)
            )
    return markdown


def image_extension(url: str) -> str:
    """Return the file extension of a URL path, '.png' if it has none."""
    ext = posixpath.splitext(urlparse(url).path)[1]
    return ext or DEFAULT_IMAGE_EXT


def decode_data_url(data_url: Optional[str]) -> bytes:
    """
    Decode the payload of a base64 data URL.

    Returns:
        The decoded bytes (empty if there is no payload)
    """
    if not data_url or ',' not in data_url:
        return b""
    return base64.b64decode(data_url.split(',', 1)[1])


class ImagePipeline:
    """
    Downloads page images through the renderer and rewrites references.
    """

    def __init__(self, renderer, output_dir: str):
        """
        Initialize the image pipeline.

        Args:
            renderer: Rendering collaborator used for in-page fetches
            output_dir: Root of the mirror; images go under <output_dir>/images
        """
        self.renderer = renderer
        self.output_dir = output_dir
        self.images_dir = os.path.join(output_dir, IMAGES_DIRNAME)
        self.logger = get_logger("images")

        self.downloaded_count = 0
        self.failed: List[str] = []

    def _unique_filename(self, directory: str, ext: str, used: Set[str]) -> str:
        """
        Build an ``image_<ms>_<n><ext>`` name free in ``directory``.

        ``used`` holds the names handed out for downloads not yet written.
        """
        while True:
            name = f"image_{int(time.time() * 1000)}_{random.randint(0, 999)}{ext}"
            if name in used:
                continue
            if os.path.exists(os.path.join(self.images_dir, directory, name)):
                continue
            used.add(name)
            return name

    async def _download(self, page, url: str, file_path: str) -> bool:
        """
        Fetch one image in page context and save it.

        Returns:
            True if the image was saved, False on any failure
        """
        try:
            data_url = await self.renderer.evaluate(page, FETCH_AS_DATA_URL, url)
            data = decode_data_url(data_url)
        except (PlaywrightError, binascii.Error, ValueError) as e:
            self.logger.warning(f"Failed to fetch image {url}: {e}")
            return False

        if not data:
            self.logger.warning(f"Failed to fetch image {url}: empty response")
            return False

        try:
            write_bytes(file_path, data)
        except OSError as e:
            self.logger.warning(f"Failed to write image {file_path}: {e}")
            return False

        self.logger.debug(f"Downloaded: {url} -> {file_path}")
        return True

    async def process_images(
        self,
        page,
        markdown: str,
        page_path: str,
        context: Optional[ImageContext] = None,
        base_url: Optional[str] = None,
        markdown_dir: Optional[str] = None
    ) -> str:
        """
        Download every image a page references and rewrite the Markdown.

        Args:
            page: Open page whose session performs the fetches
            markdown: Converted Markdown of the page
            page_path: Site-relative path of the page (decides the image subdirectory)
            context: Image references registered during conversion
            base_url: URL used to resolve relative image sources
            markdown_dir: Directory of the Markdown file relative to the
                output root (defaults to the page path's directory)

        Returns:
            Markdown with downloaded images pointing at local files
        """
        context = context if context is not None else ImageContext()

        # Converted images are looked up by their exact written path; only
        # images the converter did not produce are found by parsing.
        sources = [
            written_src for written_src in context.references
            if f"]({written_src}" in markdown
        ]
        sources += [src for src in find_image_sources(markdown) if context.get(src) is None]
        if not sources:
            return markdown

        relative_page = strip_leading_slash(page_path)
        image_subdir = posixpath.dirname(relative_page)
        if markdown_dir is None:
            markdown_dir = image_subdir
        ensure_dir(os.path.join(self.images_dir, image_subdir))

        used_names: Set[str] = set()
        jobs: List[Tuple[str, ImageReference, str, str, str]] = []
        for src in sources:
            reference = context.get(src)
            if reference is None:
                reference = context.register(src, src)
            url = reference.original_src
            if base_url:
                url = urljoin(base_url, url)

            filename = self._unique_filename(image_subdir, image_extension(url), used_names)
            file_path = os.path.join(self.images_dir, image_subdir, filename)
            link = relative_link(
                posixpath.join(IMAGES_DIRNAME, image_subdir, filename),
                markdown_dir
            )
            jobs.append((src, reference, url, file_path, link))

        self.logger.debug(f"Downloading {len(jobs)} images for {page_path}")
        results = await asyncio.gather(*(
            self._download(page, url, file_path)
            for _, _, url, file_path, _ in jobs
        ))

        for (src, reference, _, _, link), ok in zip(jobs, results):
            if ok:
                reference.local_path = link
                reference.downloaded = True
                self.downloaded_count += 1
                markdown = replace_image_source(markdown, src, link)
            else:
                self.failed.append(reference.original_src)
                if src != reference.original_src:
                    markdown = replace_image_source(
                        markdown, src, markdown_url(reference.original_src)
                    )

        return markdown
