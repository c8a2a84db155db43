from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

HUMAN_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level:<7}</level> | {name} | {message}"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level:<7} | {name} | {message}"


def configure_logging(*, level: str, json_logs: bool, log_file: Path | str | None = None) -> None:
    log_level = level.strip().upper() or "INFO"

    # Remove default stderr handler (and any sink from a previous call).
    logger.remove()
    if json_logs:
        logger.add(sys.stderr, level=log_level, serialize=True)
    else:
        logger.add(sys.stderr, level=log_level, format=HUMAN_FORMAT)

    if log_file:
        logger.add(
            str(log_file),
            level="DEBUG",
            rotation="5 MB",
            retention="3 days",
            format=FILE_FORMAT,
        )
