"""
Logging utilities for the krylov_engine package.

Library modules log through ``get_logger(__name__)``. Nothing is printed
unless an application (for example the command line tool) calls
``setup_logger``.
"""

import logging
import os
import sys
from typing import Optional, Union

PACKAGE_LOGGER = "krylov_engine"
DEFAULT_FORMAT = "[%(asctime)s] %(levelname)-8s - %(message)s"

logging.getLogger(PACKAGE_LOGGER).addHandler(logging.NullHandler())


def setup_logger(
    name: str = PACKAGE_LOGGER,
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
    log_to_console: bool = True,
    log_format: Optional[str] = None,
) -> logging.Logger:
    """
    Set up and configure a logger with the specified parameters.

    Parameters
    ----------
    name : str
        Name of the logger.
    level : int or str
        Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    log_file : str, optional
        Path to the log file. If None, no file logging is performed.
    log_to_console : bool
        Whether to also log to the console.
    log_format : str, optional
        Custom log format. If None, a default format is used.

    Returns
    -------
    logging.Logger
        Configured logger instance.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level.upper() if isinstance(level, str) else level)

    # Drop handlers from a previous call so messages are not duplicated
    for handler in logger.handlers[:]:
        if not isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)

    formatter = logging.Formatter(log_format or DEFAULT_FORMAT)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger with the specified name.

    Parameters
    ----------
    name : str, optional
        Name of the logger. If None, the package logger is returned.
    """
    return logging.getLogger(name or PACKAGE_LOGGER)


def set_log_level(level: Union[int, str]) -> None:
    """Set the log level for the package logger."""
    get_logger().setLevel(level.upper() if isinstance(level, str) else level)
