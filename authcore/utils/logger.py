"""
Logging helpers.

Every module grabs its logger with get_logger(__name__); the host
application calls setup_logging() once at startup.
"""
import logging
from typing import Optional

from authcore.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a module logger under the authcore hierarchy."""
    return logging.getLogger(name)


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure the authcore logger.

    Args:
        level: Log level name; defaults to settings.log_level,
            or DEBUG when settings.debug is on
    """
    settings = get_settings()
    if level is None:
        level = "DEBUG" if settings.debug else settings.log_level

    logger = logging.getLogger("authcore")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
