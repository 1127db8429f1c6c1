from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{module}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {module}:{line} | {message}"


def configure_logging(level: str = "INFO", *, log_file: Path | None = None) -> list[int]:
    """Replace loguru's default handler with a stderr sink at ``level``.

    An optional rotating file sink records everything from DEBUG up. Returns
    the handler ids so callers can remove them again.
    """

    logger.remove()
    ids = [logger.add(sys.stderr, level=level.upper(), format=CONSOLE_FORMAT, colorize=True)]
    if log_file is not None:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        ids.append(
            logger.add(
                log_file,
                level="DEBUG",
                format=FILE_FORMAT,
                rotation="10 MB",
                retention="7 days",
            )
        )
    return ids
