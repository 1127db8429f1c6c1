from __future__ import annotations

import math
import random
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, TypeVar

T = TypeVar("T")


class RandomSource(Protocol):
    """Injected randomness: side/position draws, food placement, shuffles."""

    def randint(self, a: int, b: int) -> int:
        ...

    def random(self) -> float:
        ...

    def uniform(self, a: float, b: float) -> float:
        ...

    def choice(self, seq: Sequence[T]) -> T:
        ...

    def shuffled(self, seq: Sequence[T]) -> list[T]:
        ...


class RunState(str, Enum):
    READY = "ready"
    PLAYING = "playing"
    COUNTING = "counting"
    PAUSED = "paused"
    FINISHED = "finished"
    ABANDONED = "abandoned"


@dataclass(frozen=True, slots=True)
class RunSnapshot:
    """View model for the UI (pure data)."""

    title: str
    level_id: str
    state: RunState
    prompt: str
    correct_count: int
    incorrect_count: int
    time_remaining_s: float | None
    payload: object | None = None
    stars: int | None = None
    saved: bool = False


class SeededRng:
    """Simple seeded RNG wrapper to keep deterministic streams explicit."""

    def __init__(self, seed: int) -> None:
        self._rng = random.Random(int(seed))

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def random(self) -> float:
        return self._rng.random()

    def uniform(self, a: float, b: float) -> float:
        return self._rng.uniform(a, b)

    def choice(self, seq: Sequence[T]) -> T:
        return self._rng.choice(seq)

    def shuffled(self, seq: Sequence[T]) -> list[T]:
        items = list(seq)
        self._rng.shuffle(items)
        return items


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * clamp01(t)


def clamp01(x: float) -> float:
    return 0.0 if x <= 0.0 else 1.0 if x >= 1.0 else float(x)


def round_half_up(x: float) -> int:
    # Halves round up (reported seconds), not to even.
    return int(math.floor(x + 0.5))
