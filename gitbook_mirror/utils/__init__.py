"""
Utility modules for the GitBook mirror.

Contains logging, path handling utilities, and constants.
"""

from .log import setup_logger, get_logger
from .paths import ensure_dir, write_text, write_bytes, get_domain
from .constants import (
    DEFAULT_USER_AGENT,
    DEFAULT_PAGE_TIMEOUT,
    DEFAULT_OUTPUT_DIR,
    INDEX_FILENAME,
)

__all__ = [
    "setup_logger",
    "get_logger",
    "ensure_dir",
    "write_text",
    "write_bytes",
    "get_domain",
    "DEFAULT_USER_AGENT",
    "DEFAULT_PAGE_TIMEOUT",
    "DEFAULT_OUTPUT_DIR",
    "INDEX_FILENAME",
]
