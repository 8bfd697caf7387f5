"""Logging utility.

One application logger ("agentdesk") writes to the console and,
optionally, to a size-rotated file.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

APP_LOGGER_NAME = "agentdesk"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(
    name: str,
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Set up a logger with console and optional rotating file output.

    Handlers are only attached the first time; later calls just adjust
    the level.

    Args:
        name: Logger name
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file
        max_bytes: Rotate the log file once it reaches this size
        backup_count: Rotated files to keep

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    level = getattr(logging, log_level.upper(), logging.INFO)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def mask_secret(value: Optional[str]) -> str:
    """Mask a credential for display, keeping only its edges."""
    if not value:
        return "Not set"
    if len(value) > 12:
        return value[:8] + "..." + value[-4:]
    return "***"


# Application logger instance
app_logger: Optional[logging.Logger] = None


def init_app_logger(settings) -> logging.Logger:
    """
    Initialize the application logger from settings.

    Args:
        settings: Application settings instance

    Returns:
        Configured application logger
    """
    global app_logger

    app_logger = setup_logger(
        name=APP_LOGGER_NAME,
        log_level=settings.log_level,
        log_file=settings.log_file,
        max_bytes=settings.log_max_bytes,
        backup_count=settings.log_backup_count,
    )

    return app_logger


def get_app_logger() -> logging.Logger:
    """Application logger, falling back to a console-only one before init."""
    if app_logger is None:
        return setup_logger(APP_LOGGER_NAME)

    return app_logger
