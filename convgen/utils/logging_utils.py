"""Logging helpers shared by the generator, the pipeline and the CLI."""

import logging
import sys
from pathlib import Path

ROOT_LOGGER_NAME = "convgen"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: str = "INFO",
    log_file: str | None = None,
    format_string: str | None = None,
    stream=None,
) -> logging.Logger:
    """
    Configure a logger with a console handler and an optional file handler.

    Calling this twice replaces the previous handlers, so the CLI can
    reconfigure the logger once the configuration file has been read.

    Args:
        name: Logger name
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
        format_string: Optional custom format string
        stream: Stream for the console handler (defaults to stderr)

    Returns:
        Configured logger instance
    """
    numeric_level = getattr(logging, level.upper())
    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)
    logger.handlers = []

    formatter = logging.Formatter(format_string or DEFAULT_FORMAT)

    console_handler = logging.StreamHandler(stream or sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger nested under the ``convgen`` hierarchy.

    Class names and module names both end up below the root logger, so a
    single ``setup_logger()`` call controls every component.

    Args:
        name: Logger name (class or module name)

    Returns:
        Logger instance
    """
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
