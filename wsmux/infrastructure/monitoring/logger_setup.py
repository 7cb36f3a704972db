"""Centralized logging configuration for wsmux.

Sets up standard Python logging with a console handler and an optional
rotating file handler.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional, Union

DEFAULT_LOG_LEVEL = logging.INFO
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_LOG_FILE = None
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 3


def resolve_log_level(level: Union[int, str, None]) -> int:
    """Accepts a logging level number or name ('debug', 'INFO', ...)."""
    if isinstance(level, int):
        return level
    if level is None:
        return DEFAULT_LOG_LEVEL
    return getattr(logging, str(level).upper(), DEFAULT_LOG_LEVEL)


def setup_logging(
    log_level: Union[int, str] = DEFAULT_LOG_LEVEL,
    log_format: str = DEFAULT_LOG_FORMAT,
    log_file: Optional[str] = DEFAULT_LOG_FILE
) -> None:
    """Configures the root logger for the application.

    Args:
        log_level: The minimum logging level (e.g., logging.DEBUG, "INFO").
        log_format: The format string for log messages.
        log_file: Optional path to a file for logging output.
    """
    level = resolve_log_level(log_level)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(log_format)

    # Console goes to stderr so stdout stays clean for results
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = RotatingFileHandler(
                log_file, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS, encoding='utf-8'
            )
        except OSError as e:
            logging.error(f"Failed to set up file logging to {log_file}: {e}")
        else:
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
            logging.info(f"Logging to file: {log_file}")

    logging.debug(f"Logging configured. Level={logging.getLevelName(level)}")
