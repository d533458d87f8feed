"""Centralized logging configuration using loguru."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

# Remove default handler
logger.remove()

# Add console handler with INFO level
_console_handler_id = logger.add(
    sys.stderr,
    level="INFO",
    format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    colorize=True,
)

_file_handler_ids: List[int] = []


def configure_file_logging(log_dir: Path, level: str = "DEBUG") -> Path:
    """Add rotating file sinks under ``log_dir``.

    Safe to call more than once; previously added file sinks are replaced.

    Args:
        log_dir: Directory that receives the log files
        level: Minimum level for the main log file

    Returns:
        The resolved log directory
    """
    for handler_id in _file_handler_ids:
        logger.remove(handler_id)
    _file_handler_ids.clear()

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    _file_handler_ids.append(logger.add(
        log_dir / "rematch_coach_{time}.log",
        rotation="50 MB",
        retention="10 days",
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
        enqueue=True,  # Thread-safe logging
    ))

    # Add error-specific log file
    _file_handler_ids.append(logger.add(
        log_dir / "errors_{time}.log",
        rotation="10 MB",
        retention="30 days",
        level="ERROR",
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
        enqueue=True,
    ))
    return log_dir


def set_console_level(level: str) -> None:
    """Replace the console sink with one at ``level`` (e.g. ``"DEBUG"`` for --verbose)."""
    global _console_handler_id
    logger.remove(_console_handler_id)
    _console_handler_id = logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        colorize=True,
    )


def get_logger(name: Optional[str] = None):
    """Get a logger instance with the given name.

    Args:
        name: Module name for the logger (usually __name__)

    Returns:
        Configured logger instance
    """
    if name:
        return logger.bind(name=name)
    return logger


__all__ = ["logger", "get_logger", "configure_file_logging", "set_console_level"]
