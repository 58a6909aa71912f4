"""
Logging utilities for the GitBook mirror.

Provides colorful CLI logging using the rich library.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.status import Status


# Global console instance
console = Console()

# Logger instances cache
_loggers: dict = {}

ROOT_LOGGER = "gitbook_mirror"


def setup_logger(
    name: str = ROOT_LOGGER,
    level: int = logging.INFO,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Set up and configure a logger with rich formatting.

    Args:
        name: Logger name
        level: Logging level (default: INFO)
        log_file: Optional file path to write logs

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Clear existing handlers
    logger.handlers.clear()

    console_handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True
    )
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    # File handler if specified
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    _loggers[name] = logger
    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """
    Get a component logger.

    Component loggers are children of the package logger so a single
    ``setup_logger()`` call configures all of them.

    Args:
        name: Component name (e.g. 'renderer')

    Returns:
        Logger instance
    """
    if name not in _loggers:
        full_name = name if name == ROOT_LOGGER else f"{ROOT_LOGGER}.{name}"
        _loggers[name] = logging.getLogger(full_name)
    return _loggers[name]


def create_status(message: str) -> Status:
    """
    Create a rich spinner for long running steps.

    Args:
        message: Initial spinner text

    Returns:
        Status instance (use as a context manager)
    """
    return console.status(message, spinner="dots")


def print_status(message: str, style: str = "bold blue") -> None:
    """
    Print a styled status message.

    Args:
        message: Message to print
        style: Rich style string
    """
    console.print(f"[{style}]{escape(message)}[/{style}]")


def print_error(message: str) -> None:
    """Print an error message."""
    print_status(f"❌ {message}", "bold red")


def print_success(message: str) -> None:
    """Print a success message."""
    print_status(f"✅ {message}", "bold green")


def print_warning(message: str) -> None:
    """Print a warning message."""
    print_status(f"⚠️ {message}", "bold yellow")


def print_info(message: str) -> None:
    """Print an info message."""
    print_status(f"ℹ️ {message}", "bold cyan")
