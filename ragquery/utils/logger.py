"""Logging configuration using loguru."""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from ragquery.utils.config import Settings, get_settings


def setup_logger(settings: Optional[Settings] = None):
    """Configure application logging using loguru.

    Sets up console logging and, when ``log_file_path`` is configured,
    a rotating file handler.
    """
    settings = settings or get_settings()

    # Remove default handler
    logger.remove()

    # Console handler
    console_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
        "<level>{message}</level>"
    )

    logger.add(
        sys.stdout,
        format=console_format,
        level=settings.log_level,
        colorize=True,
    )

    if not settings.log_file_path:
        logger.info(f"Logger initialized with level: {settings.log_level}")
        return logger

    # File handler
    log_path = Path(settings.log_file_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    if settings.log_format == "json":
        logger.add(
            log_path,
            format="{message}",
            level=settings.log_level,
            rotation=f"{settings.log_max_size_mb} MB",
            retention=settings.log_backup_count,
            serialize=True,  # JSON output
        )
    else:
        file_format = (
            "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | "
            "{name}:{function}:{line} - {message}"
        )
        logger.add(
            log_path,
            format=file_format,
            level=settings.log_level,
            rotation=f"{settings.log_max_size_mb} MB",
            retention=settings.log_backup_count,
        )

    logger.info(f"Logger initialized with level: {settings.log_level}")
    logger.info(f"Logging to file: {log_path}")

    return logger


def get_logger():
    """Get the configured logger instance."""
    return logger
