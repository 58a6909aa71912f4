"""
GitBook Mirror - Download GitBook documentation as local Markdown.

This package renders GitBook sites with Playwright, converts their pages
to Markdown, downloads images, and writes a mirrored directory tree.
"""

__version__ = "1.0.0"
__author__ = "GitBook Mirror Team"
