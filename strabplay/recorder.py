from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from loguru import logger

from .clock import Clock
from .storage import KeyValueStore, load_json, save_json

HISTORY_LIMIT = 1000
PROGRESS_KEY_PREFIX = "progress/"


def _finite(value: object) -> float:
    number = float(value)  # type: ignore[arg-type]
    if not math.isfinite(number):
        raise ValueError(f"non-finite number: {value!r}")
    return number


class Category(StrEnum):
    AMBLYO = "amblyo"
    STRAB = "strab"
    PERCEP = "percep"


@dataclass(frozen=True, slots=True)
class OutcomeDetails:
    """Per-run detail the recorder turns into a history entry."""

    score: float
    incorrect: int
    category: Category
    duration_s: int = 0
    contrast: float | None = None
    size: float | None = None


@dataclass(frozen=True, slots=True)
class LevelOutcome:
    level_id: str
    stars: int
    score: float
    incorrect: int
    timestamp_ms: int
    duration_s: int
    category: Category
    user_id: str
    contrast: float | None = None
    size: float | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "levelId": self.level_id,
            "stars": int(self.stars),
            "score": self.score,
            "incorrect": int(self.incorrect),
            "timestamp": int(self.timestamp_ms),
            "duration": int(self.duration_s),
            "category": str(self.category),
            "userId": self.user_id,
        }
        if self.contrast is not None:
            data["contrast"] = float(self.contrast)
        if self.size is not None:
            data["size"] = float(self.size)
        return data

    @classmethod
    def from_dict(cls, data: object) -> "LevelOutcome | None":
        if not isinstance(data, dict):
            return None
        try:
            level_id = str(data["levelId"])
            stars = max(0, min(3, int(_finite(data.get("stars", 0)))))
            score = _finite(data.get("score", 0.0))
            incorrect = max(0, int(_finite(data.get("incorrect", 0))))
            timestamp_ms = int(_finite(data["timestamp"]))
            duration_s = max(0, int(_finite(data.get("duration", 0))))
            category = Category(str(data.get("category", Category.AMBLYO)))
            user_id = str(data.get("userId", ""))
            raw_contrast = data.get("contrast")
            raw_size = data.get("size")
            contrast = None if raw_contrast is None else _finite(raw_contrast)
            size = None if raw_size is None else _finite(raw_size)
        except (KeyError, TypeError, ValueError, OverflowError):
            return None
        return cls(
            level_id=level_id,
            stars=stars,
            score=score,
            incorrect=incorrect,
            timestamp_ms=timestamp_ms,
            duration_s=duration_s,
            category=category,
            user_id=user_id,
            contrast=contrast,
            size=size,
        )


@dataclass(slots=True)
class ProgressRecord:
    levels: dict[str, int] = field(default_factory=dict)
    history: list[LevelOutcome] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "levels": {k: int(v) for k, v in self.levels.items()},
            "history": [o.to_dict() for o in self.history],
        }

    @classmethod
    def from_dict(cls, data: object) -> "ProgressRecord":
        if not isinstance(data, dict):
            return cls()
        levels: dict[str, int] = {}
        raw_levels = data.get("levels")
        if isinstance(raw_levels, dict):
            for level_id, stars in raw_levels.items():
                # Older records stored a completion flag instead of stars.
                if isinstance(stars, bool):
                    stars = 1 if stars else 0
                if not isinstance(stars, (int, float)):
                    continue
                try:
                    levels[str(level_id)] = max(0, min(3, int(_finite(stars))))
                except (ValueError, OverflowError):
                    continue
        history: list[LevelOutcome] = []
        raw_history = data.get("history")
        if isinstance(raw_history, list):
            for item in raw_history:
                outcome = LevelOutcome.from_dict(item)
                if outcome is not None:
                    history.append(outcome)
        return cls(levels=levels, history=history)


def progress_key(user_id: str) -> str:
    return f"{PROGRESS_KEY_PREFIX}{user_id}"


class CompletionRecorder:
    """Single write path for finished runs.

    Read-modify-writes the user's whole ProgressRecord: best stars per level
    only ever go up, history is newest-first and capped.
    """

    def __init__(self, store: KeyValueStore, clock: Clock, *, history_limit: int = HISTORY_LIMIT) -> None:
        if history_limit <= 0:
            raise ValueError("history_limit must be > 0")
        self._store = store
        self._clock = clock
        self._history_limit = int(history_limit)

    @property
    def history_limit(self) -> int:
        return self._history_limit

    def load(self, user_id: str) -> ProgressRecord:
        return ProgressRecord.from_dict(load_json(self._store, progress_key(user_id), None))

    def best_stars(self, user_id: str) -> dict[str, int]:
        return dict(self.load(user_id).levels)

    def record(
        self,
        user_id: str,
        level_id: str,
        stars: int,
        details: OutcomeDetails | None = None,
    ) -> ProgressRecord:
        if isinstance(stars, bool) or not isinstance(stars, int) or not (0 <= stars <= 3):
            raise ValueError("stars must be an int in [0, 3]")

        progress = self.load(user_id)
        progress.levels[level_id] = max(progress.levels.get(level_id, 0), stars)

        if details is not None:
            outcome = LevelOutcome(
                level_id=level_id,
                stars=stars,
                score=float(details.score),
                incorrect=max(0, int(details.incorrect)),
                timestamp_ms=int(self._clock.now_ms()),
                duration_s=max(0, int(details.duration_s)),
                category=details.category,
                user_id=user_id,
                contrast=details.contrast,
                size=details.size,
            )
            progress.history.insert(0, outcome)
            del progress.history[self._history_limit :]

        save_json(self._store, progress_key(user_id), progress.to_dict())
        logger.debug(
            "Recorded {} for {}: stars={} best={} history={}",
            level_id,
            user_id,
            stars,
            progress.levels[level_id],
            len(progress.history),
        )
        return progress
