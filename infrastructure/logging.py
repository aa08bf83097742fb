"""Logging initialization utilities using loguru."""

from __future__ import annotations

from pathlib import Path
import sys

from loguru import logger


def get_log_directory() -> str:
    """Get the main log directory path."""
    return str(Path.home() / ".exif_viewer" / "logs")


def init_logging(log_dir: str | None = None, level: str = "INFO", console: bool = False) -> Path:
    """Initialize rotating file logging under the given directory.

    Returns the log directory in use.
    """
    if log_dir is None:
        log_dir = get_log_directory()
    log_path = Path(log_dir).expanduser()
    log_path.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(
        str(log_path / "app_{time:YYYYMMDD}.log"),
        rotation="10 MB",
        retention="10 days",
        compression="zip",
        enqueue=True,
        backtrace=False,
        diagnose=False,
        level=level,
    )
    if console:
        logger.add(sys.stderr, level=level, format="{time:HH:mm:ss} | {level:<7} | {message}")
    return log_path
