"""Logging initialization using loguru."""

import sys
from pathlib import Path

from loguru import logger


def init_logging(level: str = "INFO", log_dir: str | None = None) -> None:
    """Log to stderr at `level`; also to a rotating file when `log_dir` is given."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <7}</level> | {message}",
        backtrace=False,
        diagnose=False,
    )
    if log_dir is None:
        return
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    logger.add(
        str(log_path / "organize_{time:YYYYMMDD}.log"),
        rotation="10 MB",
        retention="10 days",
        enqueue=True,
        backtrace=False,
        diagnose=False,
        level="DEBUG",
    )
