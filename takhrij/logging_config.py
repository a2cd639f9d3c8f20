"""
Logging Configuration for Takhrij
=================================

Sets up console logging and an optional rotating log file, and reduces
noise from HTTP libraries while preserving useful application-level logs.

Usage:
    from takhrij.logging_config import setup_logging

    setup_logging()

Modules get their logger with the standard ``logging.getLogger(__name__)``.
"""

import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

# Track if logging has been set up
_logging_initialized = False

NOISY_LOGGERS = ['httpx', 'httpcore', 'urllib3', 'anthropic', 'asyncio']


def get_log_file(log_dir: Union[str, Path]) -> Path:
    """Get the log file path, creating directory if needed."""
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / f"takhrij_{datetime.now().strftime('%Y%m%d')}.log"


def setup_logging(
    console_level: Union[int, str] = logging.INFO,
    log_dir: Optional[Union[str, Path]] = None,
    file_level: int = logging.DEBUG,
    silence_http_libs: bool = True,
    force: bool = False
) -> logging.Logger:
    """
    Configure logging for the application.

    Args:
        console_level: Minimum level for the console handler
        log_dir: Directory for the rotating log file (None disables the file)
        file_level: Minimum level for the file handler
        silence_http_libs: If True, silence verbose HTTP library logs
        force: Force re-initialization even if already initialized

    Returns:
        The root logger

    The file handler rotates at 10MB and keeps 5 backups.
    """
    global _logging_initialized

    root_logger = logging.getLogger()
    if _logging_initialized and not force:
        return root_logger

    if isinstance(console_level, str):
        console_level = logging.getLevelName(console_level.upper())

    root_logger.setLevel(logging.DEBUG)  # Capture all, filter at handler level
    root_logger.handlers.clear()

    file_formatter = logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_formatter = logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
        datefmt='%H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    log_file = None
    if log_dir is not None:
        try:
            log_file = get_log_file(log_dir)
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,  # 10 MB
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setLevel(file_level)
            file_handler.setFormatter(file_formatter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            root_logger.warning(f"Could not create log file handler: {e}")
            log_file = None

    if silence_http_libs:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info("=" * 60)
    root_logger.info("TAKHRIJ - Logging initialized")
    if log_file:
        root_logger.info(f"Log file: {log_file}")
    root_logger.info(f"Console level: {logging.getLevelName(console_level)}")
    root_logger.info("=" * 60)

    _logging_initialized = True
    return root_logger


def is_initialized() -> bool:
    """Check if logging has been initialized."""
    return _logging_initialized
