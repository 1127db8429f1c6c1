from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from .grid_game import GridGameConfig
from .recorder import HISTORY_LIMIT

DATA_PATH_ENV = "STRABPLAY_DATA_PATH"
LOG_LEVEL_ENV = "STRABPLAY_LOG_LEVEL"
HISTORY_LIMIT_ENV = "STRABPLAY_HISTORY_LIMIT"

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


def default_data_path() -> Path:
    return Path.home() / ".strabplay" / "strabplay.sqlite3"


@dataclass(frozen=True, slots=True)
class AppConfig:
    data_path: Path = field(default_factory=default_data_path)
    log_level: str = "INFO"
    history_limit: int = HISTORY_LIMIT
    grid_game: GridGameConfig = field(default_factory=GridGameConfig)

    def __post_init__(self) -> None:
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        if self.history_limit <= 0:
            raise ValueError("history_limit must be > 0")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AppConfig":
        """Build a config from ``STRABPLAY_*`` variables.

        Unset or blank variables keep their defaults. Values that do not parse
        are logged and ignored rather than stopping the app from opening.
        """

        env = os.environ if environ is None else environ
        kwargs: dict[str, object] = {}

        raw_path = env.get(DATA_PATH_ENV, "").strip()
        if raw_path:
            kwargs["data_path"] = Path(raw_path).expanduser()

        raw_level = env.get(LOG_LEVEL_ENV, "").strip().upper()
        if raw_level:
            if raw_level in LOG_LEVELS:
                kwargs["log_level"] = raw_level
            else:
                logger.warning("Ignoring {}={!r}", LOG_LEVEL_ENV, raw_level)

        raw_limit = env.get(HISTORY_LIMIT_ENV, "").strip()
        if raw_limit:
            try:
                limit = int(raw_limit)
            except ValueError:
                limit = 0
            if limit > 0:
                kwargs["history_limit"] = limit
            else:
                logger.warning("Ignoring {}={!r}", HISTORY_LIMIT_ENV, raw_limit)

        return cls(**kwargs)  # type: ignore[arg-type]
