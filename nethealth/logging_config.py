"""Logging configuration for nethealth."""

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def configure_logging(verbose: bool = False) -> None:
    """Configure application-wide logging to stderr.

    ``verbose`` forces DEBUG; otherwise the NETHEALTH_LOG_LEVEL environment
    variable is used (default INFO). Unknown level names fall back to INFO.

        $ NETHEALTH_LOG_LEVEL=WARNING nethealth monitor
    """
    if verbose:
        level = logging.DEBUG
    else:
        level = _LEVELS.get(os.environ.get("NETHEALTH_LOG_LEVEL", "INFO").upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%Y-%m-%d %H:%M:%S]",
        handlers=[
            RichHandler(
                console=Console(stderr=True),
                show_path=verbose,
                rich_tracebacks=True,
            )
        ],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    logging.getLogger(__name__).debug("Logging configured: level=%s", logging.getLevelName(level))
