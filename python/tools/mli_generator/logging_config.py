#!/usr/bin/env python3
"""
Logging configuration for the interface generator.
"""

import sys
from typing import Optional

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def level_for_verbosity(verbose: int = 0, quiet: bool = False) -> str:
    """Map -v/-q command line flags to a log level."""
    if quiet:
        return "WARNING"
    if verbose >= 1:
        return "DEBUG"
    return "INFO"


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Set up logging configuration using loguru.

    Args:
        log_level: The logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path of a persistent log file
    """
    logger.remove()

    # Logs go to stderr; stdout carries the generated path or interface.
    logger.add(sys.stderr, format=LOG_FORMAT, level=log_level)

    if log_file:
        logger.add(
            log_file,
            rotation="10 MB",
            retention="1 week",
            level=log_level,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        )
