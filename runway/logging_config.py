"""Logging setup for the runway engine."""

import logging
from typing import Optional

from .config import Settings, get_global_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """
    Configure the ``runway`` logger from settings.

    Args:
        settings: Settings to read the level from; the global settings are used
            when omitted

    Returns:
        The configured package logger
    """
    settings = settings or get_global_settings()
    logging.basicConfig(format=LOG_FORMAT)
    logger = logging.getLogger("runway")
    logger.setLevel(settings.log_level)
    return logger
