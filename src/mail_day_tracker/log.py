"""Logging setup - routes the standard logging module through Rich."""

from __future__ import annotations

import logging

from rich.logging import RichHandler

from .display import console


def setup_logging(level: str = "info") -> None:
    """Install a RichHandler on the root logger.

    Unknown level names fall back to INFO.
    """
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO

    logging.basicConfig(
        level=numeric,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=numeric <= logging.DEBUG)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(numeric, logging.WARNING))
