"""
Path and URL utilities for the GitBook mirror.

Provides URL inspection, output path generation, and file writing helpers
that always create parent directories first.
"""

import os
import posixpath
from typing import Union
from urllib.parse import urlparse, unquote


PathLike = Union[str, "os.PathLike[str]"]


def get_domain(url: str) -> str:
    """
    Extract the host name from a URL.

    Args:
        url: URL to extract the host from

    Returns:
        Host name string (e.g., 'docs.example.com')
    """
    return (urlparse(url).hostname or "").lower()


def has_page_path(url: str) -> bool:
    """
    Check whether a URL points below the site root.

    Args:
        url: URL to check

    Returns:
        True if the URL carries a non-root path
    """
    path = urlparse(url).path
    return path not in ("", "/")


def strip_leading_slash(path: str) -> str:
    """Return a site path relative to the site root."""
    return path.lstrip("/")


def page_filename(url: str, default_name: str = "index") -> str:
    """
    Build the Markdown filename for a single mirrored page.

    Args:
        url: Page URL
        default_name: Name used when the path has no final segment

    Returns:
        Filename ending in .md
    """
    path = unquote(urlparse(url).path).rstrip("/")
    name = posixpath.basename(path) or default_name
    return f"{name}.md"


def entry_markdown_path(entry_path: str, domain: str) -> str:
    """
    Map a TOC entry path to a relative Markdown file path.

    The directory structure of the entry path is preserved. The site root
    entry (empty path) is named after the domain so it does not collide
    with the README index.

    Args:
        entry_path: Site-relative entry path (leading slash optional)
        domain: Host name of the mirrored site

    Returns:
        Relative POSIX path of the Markdown file
    """
    relative = strip_leading_slash(unquote(entry_path)).rstrip("/")
    if not relative:
        return f"{domain}.md"
    directory = posixpath.dirname(relative)
    filename = posixpath.basename(relative) + ".md"
    return posixpath.join(directory, filename) if directory else filename


def relative_link(target: str, from_dir: str) -> str:
    """
    Calculate a POSIX link from a directory to a target path.

    Both arguments are relative to the same output root.

    Args:
        target: Target path
        from_dir: Directory of the linking document ('' for the root)

    Returns:
        Relative link using forward slashes
    """
    return posixpath.relpath(target, from_dir or ".")


def ensure_dir(path: PathLike) -> None:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists
    """
    os.makedirs(path, exist_ok=True)


def ensure_parent_dir(file_path: PathLike) -> None:
    """
    Ensure the parent directory of a file exists.

    Args:
        file_path: File path whose parent directory should exist
    """
    parent = os.path.dirname(os.fspath(file_path))
    if parent:
        ensure_dir(parent)


def write_text(file_path: PathLike, content: str) -> None:
    """Write UTF-8 text, creating parent directories first."""
    ensure_parent_dir(file_path)
    with open(file_path, "w", encoding="utf-8") as f:
        f.write(content)


def write_bytes(file_path: PathLike, data: bytes) -> None:
    """Write binary data, creating parent directories first."""
    ensure_parent_dir(file_path)
    with open(file_path, "wb") as f:
        f.write(data)
