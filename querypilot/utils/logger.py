"""
Logging utility with loguru.
Provides structured logging with file rotation.
"""

import sys
from typing import Optional

from loguru import logger

from querypilot.config.settings import settings


def setup_logger(level: Optional[str] = None, log_to_file: Optional[bool] = None):
    """
    Configure loguru logger with console and optional file outputs.
    """
    level = (level or settings.log_level).upper()
    log_to_file = settings.log_to_file if log_to_file is None else log_to_file

    # Remove default handler
    logger.remove()

    logger.add(
        sys.stderr,
        colorize=True,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=level,
    )

    if log_to_file:
        log_dir = settings.resolve_path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_dir / "querypilot.log",
            rotation="10 MB",
            retention="1 week",
            compression="zip",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level="DEBUG",
        )

    logger.debug(f"Logger initialized (level={level}, file={log_to_file})")
    return logger
