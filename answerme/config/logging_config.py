"""Logging setup for command line runs."""

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: str = "INFO", console: Console | None = None) -> None:
    """
    Route log records through a rich handler.

    Library modules only create loggers with ``logging.getLogger(__name__)``;
    handlers are attached here, once, by the entry point.

    Args:
        level: Log level name (DEBUG, INFO, ...)
        console: Console shared with the CLI output
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))
