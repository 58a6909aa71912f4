#!/usr/bin/env python3
"""
GitBook Mirror - Download GitBook documentation as local Markdown.

Renders GitBook pages with Playwright, converts them to Markdown, and
downloads their images so the documentation can be read offline.

Usage:
    gitbook-mirror https://docs.example.com --output ./docs

Features:
    - Mirrors a whole site from its table of contents, or a single page
    - Keeps callouts, task lists, numbered steps, code blocks and tables
    - Downloads images through the browser session
    - Supports email/password login for private sites
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional
from urllib.parse import urlparse

from gitbook_mirror import __version__
from gitbook_mirror.mirror import GitbookMirror, MirrorResult
from gitbook_mirror.utils.constants import DEFAULT_OUTPUT_DIR, DEFAULT_PAGE_TIMEOUT
from gitbook_mirror.utils.log import (
    create_status,
    setup_logger,
    print_error,
    print_info,
    print_success,
    print_warning,
)


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Args:
        argv: Argument list (defaults to sys.argv)

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog='gitbook-mirror',
        description='Download GitBook documentation as local Markdown files',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    %(prog)s https://docs.example.com
    %(prog)s https://docs.example.com/guide/setup -o ./setup
    %(prog)s https://docs.example.com/guide --all --no-images
    %(prog)s https://private.example.com -u me@example.com -p secret
        """
    )

    parser.add_argument(
        'url',
        type=str,
        help='URL of the GitBook site or page'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--all', '-a',
        action='store_true',
        dest='force_all',
        help='Mirror the whole site even if the URL points at a page'
    )

    parser.add_argument(
        '--output', '-o',
        type=str,
        default=DEFAULT_OUTPUT_DIR,
        help=f'Output directory (default: {DEFAULT_OUTPUT_DIR})'
    )

    parser.add_argument(
        '--no-images',
        action='store_true',
        help='Keep remote image links instead of downloading images'
    )

    parser.add_argument(
        '--username', '-u',
        type=str,
        help='Login email for private documentation'
    )

    parser.add_argument(
        '--password', '-p',
        type=str,
        help='Login password for private documentation'
    )

    parser.add_argument(
        '--timeout',
        type=int,
        default=DEFAULT_PAGE_TIMEOUT,
        help=f'Page load timeout in milliseconds (default: {DEFAULT_PAGE_TIMEOUT})'
    )

    parser.add_argument(
        '--no-headless',
        action='store_true',
        help='Run browser in visible mode (useful for debugging)'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Also write log output to this file'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )

    parser.add_argument(
        '--quiet', '-q',
        action='store_true',
        help='Suppress output except errors'
    )

    args = parser.parse_args(argv)

    if bool(args.username) != bool(args.password):
        parser.error('--username and --password must be given together')

    return args


def validate_url(url: str) -> str:
    """
    Validate and normalize the input URL.

    Args:
        url: URL string to validate

    Returns:
        Normalized URL string

    Raises:
        ValueError: If URL is invalid
    """
    if not url.startswith(('http://', 'https://')):
        url = 'https://' + url

    parsed = urlparse(url)

    if not parsed.netloc:
        raise ValueError(f"Invalid URL: {url}")

    return url


def print_summary(result: MirrorResult) -> None:
    """
    Print the mirror summary.

    Args:
        result: MirrorResult object
    """
    print("\n" + "=" * 60)
    print_success("MIRROR SUMMARY")
    print("=" * 60)
    print(f"  Mode:              {'full site' if result.mode == 'site' else 'single page'}")
    if result.mode == 'site':
        print(f"  TOC entries:       {result.toc_entries}")
    print(f"  Pages written:     {result.pages_written}")
    print(f"  Empty pages:       {result.pages_skipped}")
    print(f"  Images downloaded: {result.images_downloaded}")
    print(f"  Images failed:     {result.images_failed}")
    print(f"  Errors:            {len(result.errors)}")
    print(f"  Duration:          {result.duration_seconds:.1f} seconds")
    print("=" * 60 + "\n")

    for error in result.errors:
        print_warning(f"{error['url']}: {error['error']}")


async def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the GitBook mirror.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_arguments(argv)

    log_level = logging.DEBUG if args.verbose else (logging.WARNING if args.quiet else logging.INFO)
    setup_logger(level=log_level, log_file=args.log_file)

    try:
        url = validate_url(args.url)

        if not args.quiet:
            print_info(f"Target URL: {url}")
            print_info(f"Output: {args.output}")

        with create_status("Preparing download...") as status:
            mirror = GitbookMirror(
                url=url,
                output_dir=args.output,
                download_images=not args.no_images,
                force_all=args.force_all,
                username=args.username,
                password=args.password,
                timeout=args.timeout,
                headless=not args.no_headless,
                on_status=status.update
            )
            result = await mirror.run()

        if not args.quiet:
            print_summary(result)

        print_success(f"Documentation saved to: {os.path.abspath(args.output)}")

        return 0

    except KeyboardInterrupt:
        print_error("\nDownload interrupted by user")
        return 1
    except ValueError as e:
        print_error(f"Invalid input: {e}")
        return 1
    except Exception as e:
        print_error(f"Download failed: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


def run() -> None:
    """Entry point wrapper for running as module."""
    sys.exit(asyncio.run(main()))


if __name__ == '__main__':
    run()
