"""
Logging configuration for the subtitle extraction application.

This module provides centralized logging setup with colored output,
different log levels, and proper formatting for both console and file output.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
from .constants import DEFAULT_LOG_FORMAT, DEFAULT_LOG_DATE_FORMAT

ROOT_LOGGER_NAME = "srt_extractor"

# Top-level packages whose module loggers share the application handlers
_PACKAGE_LOGGERS = ("core", "processors", "third_party", "ui", "utils")


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for different log levels."""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m', # Magenta
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record with colors.

        Args:
            record: Log record to format

        Returns:
            Formatted log message with colors
        """
        original = record.levelname
        log_color = self.COLORS.get(original, self.RESET)
        record.levelname = f"{log_color}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    use_colors: bool = True,
    logger_name: str = ROOT_LOGGER_NAME
) -> logging.Logger:
    """
    Set up logging with appropriate level and formatting.

    The handlers are attached to the application logger and to the loggers
    of each top-level package, so ``get_logger(__name__)`` in any module
    writes through the same console/file handlers.

    Args:
        level: Logging level (e.g., logging.DEBUG, logging.INFO)
        log_file: Optional path to log file for file output
        use_colors: Whether to use colored output for console
        logger_name: Name for the logger instance

    Returns:
        Configured logger instance

    Example:
        >>> logger = setup_logging(logging.DEBUG, Path("srtx.log"))
        >>> logger.info("Application started")
    """
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    # Choose formatter based on terminal capability and user preference
    if use_colors and sys.stdout.isatty():
        console_formatter = ColoredFormatter(
            DEFAULT_LOG_FORMAT,
            datefmt=DEFAULT_LOG_DATE_FORMAT
        )
    else:
        console_formatter = logging.Formatter(
            DEFAULT_LOG_FORMAT,
            datefmt=DEFAULT_LOG_DATE_FORMAT
        )
    console_handler.setFormatter(console_formatter)
    handlers = [console_handler]

    # Add file handler if log file specified
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(
            DEFAULT_LOG_FORMAT,
            datefmt=DEFAULT_LOG_DATE_FORMAT
        ))
        handlers.append(file_handler)

    for name in (logger_name,) + _PACKAGE_LOGGERS:
        target = logging.getLogger(name)
        target.setLevel(level)
        # Remove existing handlers to avoid duplicates
        for handler in target.handlers[:]:
            target.removeHandler(handler)
        for handler in handlers:
            target.addHandler(handler)
        target.propagate = False

    return logging.getLogger(logger_name)


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Args:
        name: Logger name

    Returns:
        Logger instance

    Note:
        This assumes setup_logging() has already been called.
    """
    return logging.getLogger(name)
