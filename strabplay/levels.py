from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from .clock import Clock
from .countdown import CountdownConfig, CountdownRun
from .discrete import ChoiceLevelConfig, ChoiceTrialRun, TargetHuntConfig, TargetHuntRun
from .grid_game import GridGameConfig, GridGameRun
from .level_run import LevelRun
from .recorder import Category, CompletionRecorder
from .scheduler import StimulusCurve
from .scoring import RatingPolicy
from .therapy_core import RandomSource
from .vigilance import VigilanceConfig, VigilanceRun

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"

EMOJI_PAIRS_L3: tuple[tuple[str, str], ...] = (
    ("😀", "😁"), ("😂", "🤣"), ("😍", "😘"), ("😎", "🥸"), ("🤔", "🤨"),
    ("😇", "😊"), ("🥳", "🤩"), ("😭", "😢"), ("🤯", "😳"), ("😴", "😪"),
    ("👍", "👎"), ("❤️", "💔"), ("☀️", "🌙"), ("🔥", "💧"), ("⚽️", "🏀"),
)

EMOJI_GRID_L4: tuple[str, ...] = (
    "🚀", "🎉", "💡", "🍇", "⚽", "⚾", "🎾", "🏉", "🏸", "🚎",
    "💻", "⌨️", "🐠", "☀️", "⚙️", "⚛️", "⚜️", "🕸️", "🦠", "🧬",
)

LEVEL2_MAX_NUMBER = 101
LEVEL2_SLOTS = ("top-left", "top-right", "bottom-left", "bottom-right")

LEVEL1 = ChoiceLevelConfig(
    level_id="level1",
    title="Level 01",
    stimuli=tuple(ALPHABET),
    choice_count=2,
    contrast=StimulusCurve(1.0, 0.2),
    size=StimulusCurve(120.0, 24.0),
    policy=RatingPolicy.STRICT,
)

# Numbers 1..100; the curve spans 101 steps so the last number sits just
# above the end bound.
LEVEL2 = ChoiceLevelConfig(
    level_id="level2",
    title="Level 02",
    stimuli=tuple(str(n) for n in range(1, LEVEL2_MAX_NUMBER)),
    choice_count=4,
    contrast=StimulusCurve(1.0, 0.2),
    size=StimulusCurve(100.0, 12.0),
    policy=RatingPolicy.GRADUATED,
    curve_trials=LEVEL2_MAX_NUMBER,
    layout_slots=LEVEL2_SLOTS,
)

LEVEL3 = ChoiceLevelConfig(
    level_id="level3",
    title="Level 03",
    stimuli=tuple(pair[0] for pair in EMOJI_PAIRS_L3),
    choice_count=2,
    contrast=StimulusCurve(1.0, 0.2),
    size=StimulusCurve(120.0, 30.0),
    policy=RatingPolicy.STRICT,
)

LEVEL4 = TargetHuntConfig(
    level_id="level4",
    title="Level 04",
    symbols=EMOJI_GRID_L4,
    contrast=StimulusCurve(1.0, 0.3),
    size=StimulusCurve(60.0, 16.0),
    cell_count=100,
    target_correct=100,
)


@dataclass(frozen=True, slots=True)
class LevelInfo:
    level_id: str
    title: str
    category: Category
    builder: Callable[..., LevelRun]


def _choice(cfg: ChoiceLevelConfig) -> Callable[..., LevelRun]:
    def build(*, config: object = None, **kwargs: object) -> LevelRun:
        return ChoiceTrialRun(config=config or cfg, **kwargs)  # type: ignore[arg-type]

    return build


def _hunt(cfg: TargetHuntConfig) -> Callable[..., LevelRun]:
    def build(*, config: object = None, **kwargs: object) -> LevelRun:
        return TargetHuntRun(config=config or cfg, **kwargs)  # type: ignore[arg-type]

    return build


def _vigilance(*, config: object = None, **kwargs: object) -> LevelRun:
    return VigilanceRun(config=config or VigilanceConfig(), **kwargs)  # type: ignore[arg-type]


def _grid(*, config: object = None, **kwargs: object) -> LevelRun:
    return GridGameRun(config=config or GridGameConfig(), **kwargs)  # type: ignore[arg-type]


def _countdown(*, config: object = None, **kwargs: object) -> LevelRun:
    return CountdownRun(config=config or CountdownConfig(), **kwargs)  # type: ignore[arg-type]


LEVELS: tuple[LevelInfo, ...] = (
    LevelInfo("level1", "Level 01 - Letters", Category.AMBLYO, _choice(LEVEL1)),
    LevelInfo("level2", "Level 02 - Numbers", Category.AMBLYO, _choice(LEVEL2)),
    LevelInfo("level3", "Level 03 - Faces", Category.AMBLYO, _choice(LEVEL3)),
    LevelInfo("level4", "Level 04 - Hunt", Category.AMBLYO, _hunt(LEVEL4)),
    LevelInfo("level5", "Level 05 - Vigilance", Category.AMBLYO, _vigilance),
    LevelInfo("level6", "Level 06 - Snake", Category.AMBLYO, _grid),
    LevelInfo("percep1", "Perceptual Discrimination", Category.PERCEP, _countdown),
)

LEVELS_BY_ID: dict[str, LevelInfo] = {info.level_id: info for info in LEVELS}


def build_level(
    level_id: str,
    *,
    clock: Clock,
    rng: RandomSource,
    recorder: CompletionRecorder | None = None,
    user_id: str | None = None,
    config: object | None = None,
) -> LevelRun:
    """Construct a fresh run for ``level_id``; ``config`` replaces the catalog default."""

    try:
        info = LEVELS_BY_ID[level_id]
    except KeyError:
        raise ValueError(f"unknown level: {level_id!r}") from None
    return info.builder(config=config, clock=clock, rng=rng, recorder=recorder, user_id=user_id)


def levels_in(category: Category) -> tuple[LevelInfo, ...]:
    return tuple(info for info in LEVELS if info.category is category)
