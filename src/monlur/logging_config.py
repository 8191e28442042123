"""Logging configuration for the service and the CLI."""

import logging
import sys
from typing import TextIO

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | int = "INFO", stream: TextIO | None = None) -> None:
    """Install a single handler on the root logger.

    Args:
        level: Root log level.
        stream: Where records go; defaults to stdout. The CLI passes stderr
            because stdout carries the obfuscated code.
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper() if isinstance(level, str) else level)

    # uvicorn access logs duplicate what the routes already log
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
