"""Logging setup for the felixmart API.

All modules log through `get_logger(__name__)`. Handlers and format are configured once
at startup by `setup_logging()`.
"""

from __future__ import annotations

import logging
import os
import sys

_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def setup_logging() -> None:
    """Configure the root logger.

    Level comes from FELIXMART_LOG_LEVEL (default INFO). Output goes to stdout so it is
    picked up by the container runtime.
    """

    level = os.getenv("FELIXMART_LOG_LEVEL", "INFO").strip().upper()

    logging.basicConfig(
        level=level,
        format=_LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Request lines from the gateway client are noisy at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
