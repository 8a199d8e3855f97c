"""Logging configuration helpers for the Growth Academy service."""

import logging
from logging import Logger

from growth_academy.config import settings


def configure_logging() -> Logger:
    """Configure basic logging for the application and return its logger."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    return logging.getLogger("growth_academy")
