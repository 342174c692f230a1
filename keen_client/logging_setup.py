"""
Opt-in log output for host applications.

The library only creates loggers; nothing is printed until the host calls
configure_logging() or sets up logging itself.
"""

import logging
from typing import Optional, Union

from core.models.config import GlobalSettings

LOGGER_NAMESPACES = ("core", "config", "keen_client")
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_handler: Optional[logging.Handler] = None


def configure_logging(level: Optional[Union[int, str]] = None) -> logging.Handler:
    """
    Send client log records to stderr.

    Args:
        level: Log level; defaults to GlobalSettings().log_level (KEEN_LOG_LEVEL)

    Returns:
        The installed handler (installed once, reused on later calls)
    """
    global _handler

    if level is None:
        level = GlobalSettings().log_level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    if _handler is None:
        _handler = logging.StreamHandler()
        _handler.setFormatter(logging.Formatter(LOG_FORMAT))

    for name in LOGGER_NAMESPACES:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        if _handler not in logger.handlers:
            logger.addHandler(_handler)

    return _handler


def disable_logging() -> None:
    """Remove the handler installed by configure_logging()"""
    global _handler

    if _handler is None:
        return
    for name in LOGGER_NAMESPACES:
        logger = logging.getLogger(name)
        logger.removeHandler(_handler)
        logger.setLevel(logging.NOTSET)
    _handler = None
