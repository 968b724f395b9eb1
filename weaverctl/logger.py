"""Logging setup for weaverctl."""
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Libraries that are too chatty at DEBUG/INFO
NOISY_LOGGERS = ('urllib3', 'requests')


def setup_logger(name: Optional[str] = None, level: str = "INFO") -> logging.Logger:
    """Set up and return a configured logger instance.

    Args:
        name: Name for the logger (usually __name__)
        level: Logging level name

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Only configure if not already configured
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(level.upper())
    return logger


def configure_logging(config=None, debug: bool = False) -> logging.Logger:
    """Configure the root logger from a LoggingConfig.

    Adds a console handler and, when ``config.file`` is set, a rotating
    file handler.
    """
    level = "DEBUG" if debug else (config.level if config else "INFO")
    root = setup_logger(None, level)

    if config is not None and config.file:
        log_file = os.path.expanduser(config.file)
        already = any(
            isinstance(h, RotatingFileHandler) and h.baseFilename == os.path.abspath(log_file)
            for h in root.handlers
        )
        if not already:
            os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=config.max_size_mb * 1024 * 1024,
                backupCount=config.backup_count,
            )
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            root.addHandler(file_handler)

    # Disable debug logging for noisy libraries
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)

    if debug:
        logging.debug("Debug mode enabled")
    return root
