"""Logging configuration for the application."""

import logging
import sys

from dealflow.core.config import settings


def setup_logging(level: str | None = None) -> None:
    """Configure application-wide logging to stdout.

    Args:
        level: Level name; defaults to settings.LOG_LEVEL
    """
    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
