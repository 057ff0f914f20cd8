"""
Logging utilities for the rental system.
"""
import logging
from typing import Optional, Union


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for the given name.

    Los handlers y el nivel se configuran una sola vez en el root logger
    mediante configure_logging().
    """
    return logging.getLogger(name)


def configure_logging(level: Union[int, str] = logging.INFO, format_string: Optional[str] = None):
    """
    Configure the root logger.

    Args:
        level: Logging level, numeric or by name ("INFO", "DEBUG", ...)
        format_string: Custom format string
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    if format_string is None:
        format_string = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    logging.basicConfig(
        level=level,
        format=format_string,
        datefmt='%Y-%m-%d %H:%M:%S'
    )
