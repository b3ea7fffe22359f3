"""
Logging setup for vecstore.

Handlers are attached to the ``vecstore`` package logger only, so an
application embedding the library keeps control of its root logger.
Records still propagate to the root logger.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


PACKAGE_LOGGER = "vecstore"
LOG_FILE_NAME = "vecstore.log"

_logger_initialized = False


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    logs_directory: Path = None,
    max_file_size_mb: int = 10,
    backup_count: int = 5
) -> logging.Logger:
    """
    Configure the package logger once.

    Args:
        log_level: Level name; unknown names fall back to INFO.
        log_format: Format string shared by all handlers.
        logs_directory: Directory for ``vecstore.log``. None disables the file.
        max_file_size_mb: Size at which the log file rotates.
        backup_count: Rotated files kept.

    Returns:
        The package logger.
    """
    global _logger_initialized

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if _logger_initialized:
        return package_logger

    package_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    formatter = logging.Formatter(log_format)

    handlers = [logging.StreamHandler(sys.stderr)]
    if logs_directory:
        logs_directory = Path(logs_directory)
        logs_directory.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            logs_directory / LOG_FILE_NAME,
            maxBytes=max_file_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding="utf-8"
        ))

    for handler in handlers:
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)

    _logger_initialized = True
    return package_logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger, configuring the package logger from config on first use.

    Without a config file, console logging at INFO level is used.
    """
    if not _logger_initialized:
        from .config_loader import get_config
        from .exceptions import ConfigurationError

        try:
            logging_config = get_config()
        except ConfigurationError:
            setup_logging()
        else:
            setup_logging(
                log_level=logging_config.logging.level,
                log_format=logging_config.logging.format,
                logs_directory=logging_config.paths.logs_directory,
                max_file_size_mb=logging_config.logging.max_file_size_mb,
                backup_count=logging_config.logging.backup_count
            )

    return logging.getLogger(name)
