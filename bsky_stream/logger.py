"""Logging configuration for bsky_stream."""

import logging
import sys
from typing import TextIO


def setup_logger(
    name: str = "bsky_stream", level: str = "INFO", stream: TextIO | None = None
) -> logging.Logger:
    """Set up and return a configured logger.

    Args:
        name: Logger name (default: bsky_stream)
        level: Logging level (default: INFO)
        stream: Stream log lines are written to (default: stdout). Passing a
            stream for an already configured logger redirects its handlers.

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding duplicate handlers
    if logger.handlers:
        if stream is not None:
            for handler in logger.handlers:
                if isinstance(handler, logging.StreamHandler):
                    handler.setStream(stream)
        return logger

    logger.setLevel(getattr(logging, level.upper()))

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    )
    logger.addHandler(handler)

    return logger
