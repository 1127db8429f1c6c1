from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from .clock import Clock
from .level_run import LevelRun
from .recorder import Category, CompletionRecorder
from .scoring import RatingPolicy, RunResult, rate
from .therapy_core import RandomSource, RunSnapshot, RunState
from .timers import ScheduledTask


@dataclass(frozen=True, slots=True)
class VigilanceConfig:
    click_lives: int = 3
    quiz_lives: int = 3

    contrast_start: float = 1.0
    contrast_floor: float = 0.1
    contrast_decay_per_s: float = 0.005

    patch_count: int = 8
    target_size: float = 45.0
    distractor_sizes: tuple[float, ...] = (20.0, 25.0, 30.0, 35.0, 22.0, 28.0, 32.0, 18.0, 38.0)
    trace_length: int = 400  # anchor points along the scrolling trace

    side_patch_interval_s: float = 1.0
    patch_refresh_s: float = 5.0
    quiz_min_s: float = 30.0
    quiz_max_s: float = 90.0
    quiz_points: int = 10


@dataclass(frozen=True, slots=True)
class TracePatch:
    patch_id: int
    anchor: int
    size: float
    is_target: bool


@dataclass(frozen=True, slots=True)
class SidePatch:
    is_gabor: bool
    position: str  # "top" | "bottom"
    size: float


@dataclass(frozen=True, slots=True)
class VigilancePayload:
    patches: tuple[TracePatch, ...]
    side_patch: SidePatch | None
    contrast: float
    score: int
    click_lives: int
    quiz_lives: int
    quiz_open: bool
    trace_length: int


class VigilanceRun(LevelRun):
    """Sustained-attention level with two independent life pools.

    Central task: click the one large patch among distractors on the trace.
    Peripheral task: silently count patterned side patches, then report the
    count when a quiz interrupts play. Contrast decays every second.
    """

    def __init__(
        self,
        *,
        clock: Clock,
        rng: RandomSource,
        config: VigilanceConfig | None = None,
        level_id: str = "level5",
        title: str = "Level 05",
        category: Category = Category.AMBLYO,
        recorder: CompletionRecorder | None = None,
        user_id: str | None = None,
    ) -> None:
        cfg = config or VigilanceConfig()
        if cfg.click_lives <= 0 or cfg.quiz_lives <= 0:
            raise ValueError("life pools must be > 0")
        if cfg.patch_count < 2 or cfg.patch_count > cfg.trace_length:
            raise ValueError("patch_count must be in [2, trace_length]")
        if not cfg.distractor_sizes:
            raise ValueError("distractor_sizes must not be empty")
        if cfg.quiz_min_s <= 0.0 or cfg.quiz_max_s < cfg.quiz_min_s:
            raise ValueError("quiz window must satisfy 0 < min <= max")

        super().__init__(
            level_id=level_id,
            category=category,
            clock=clock,
            rng=rng,
            recorder=recorder,
            user_id=user_id,
        )
        self.title = title
        self._cfg = cfg

        self._score = 0
        self._hits = 0
        self._misses = 0
        self._click_lives = cfg.click_lives
        self._quiz_lives = cfg.quiz_lives
        self._contrast = cfg.contrast_start
        self._gabor_count = 0
        self._side_patch: SidePatch | None = None
        self._patches: tuple[TracePatch, ...] = ()
        self._next_patch_id = 1
        self._quiz_open = False

        self._tick_task: ScheduledTask | None = None
        self._refresh_task: ScheduledTask | None = None
        self._quiz_task: ScheduledTask | None = None

        self._new_patches()
        self._new_side_patch()
        self._start_timers()
        logger.info("Run {} started", self.level_id)

    @property
    def score(self) -> int:
        return self._score

    @property
    def contrast(self) -> float:
        return self._contrast

    @property
    def patches(self) -> tuple[TracePatch, ...]:
        return self._patches

    @property
    def gabor_count(self) -> int:
        return self._gabor_count

    @property
    def click_lives(self) -> int:
        return self._click_lives

    @property
    def quiz_lives(self) -> int:
        return self._quiz_lives

    @property
    def quiz_open(self) -> bool:
        return self._quiz_open

    def click_patch(self, patch_id: int) -> bool:
        if self.state is not RunState.PLAYING:
            return False
        patch = next((p for p in self._patches if p.patch_id == patch_id), None)
        if patch is None:
            return False

        if patch.is_target:
            self._score += 1
            self._hits += 1
            self._new_patches()
            return True

        self._misses += 1
        self._click_lives -= 1
        if self._click_lives <= 0:
            self._game_over("clicks")
        return True

    def open_quiz(self) -> bool:
        if self.state is not RunState.PLAYING:
            return False
        self._stop_timers()
        self._quiz_open = True
        self._state = RunState.PAUSED
        return True

    def answer_quiz(self, count: int) -> bool:
        if self.state is not RunState.PAUSED or not self._quiz_open:
            return False

        try:
            answer = int(count)
        except (TypeError, ValueError):
            return False

        if answer == self._gabor_count:
            self._score += self._cfg.quiz_points
            self._hits += 1
        else:
            self._misses += 1
            self._quiz_lives -= 1
            if self._quiz_lives <= 0:
                self._quiz_open = False
                self._game_over("quiz")
                return True

        self._quiz_open = False
        self._gabor_count = 0
        self._state = RunState.PLAYING
        self._start_timers()
        return True

    def snapshot(self) -> RunSnapshot:
        payload = None
        if self.state in (RunState.PLAYING, RunState.PAUSED):
            payload = VigilancePayload(
                patches=self._patches,
                side_patch=self._side_patch,
                contrast=self._contrast,
                score=self._score,
                click_lives=self._click_lives,
                quiz_lives=self._quiz_lives,
                quiz_open=self._quiz_open,
                trace_length=self._cfg.trace_length,
            )
        prompt = self._prompt()
        if self._quiz_open:
            prompt = "How many patterned patches appeared on the side?"
        return RunSnapshot(
            title=self.title,
            level_id=self.level_id,
            state=self.state,
            prompt=prompt,
            correct_count=self._hits,
            incorrect_count=self._misses,
            time_remaining_s=None,
            payload=payload,
            stars=None if self.result is None else self.result.stars,
            saved=self.saved,
        )

    def _start_timers(self) -> None:
        self._stop_timers()
        self._tick_task = self._tasks.call_every(self._cfg.side_patch_interval_s, self._on_second, name="vigilance-tick")
        self._refresh_task = self._tasks.call_every(self._cfg.patch_refresh_s, self._new_patches, name="patch-refresh")
        delay = self._rng.uniform(self._cfg.quiz_min_s, self._cfg.quiz_max_s)
        self._quiz_task = self._tasks.call_later(delay, self.open_quiz, name="quiz")

    def _stop_timers(self) -> None:
        for task in (self._tick_task, self._refresh_task, self._quiz_task):
            if task is not None:
                task.cancel()
        self._tick_task = self._refresh_task = self._quiz_task = None

    def _on_second(self) -> None:
        self._contrast = max(self._cfg.contrast_floor, self._contrast - self._cfg.contrast_decay_per_s)
        self._new_side_patch()

    def _new_patches(self) -> None:
        cfg = self._cfg
        anchors = self._rng.shuffled(range(cfg.trace_length))[: cfg.patch_count]
        target_slot = int(self._rng.randint(0, cfg.patch_count - 1))
        patches: list[TracePatch] = []
        for slot, anchor in enumerate(anchors):
            is_target = slot == target_slot
            size = cfg.target_size if is_target else float(self._rng.choice(cfg.distractor_sizes))
            patches.append(TracePatch(patch_id=self._next_patch_id, anchor=int(anchor), size=size, is_target=is_target))
            self._next_patch_id += 1
        self._patches = tuple(patches)

    def _new_side_patch(self) -> None:
        is_gabor = self._rng.random() > 0.5
        position = "top" if self._rng.random() > 0.5 else "bottom"
        size = self._rng.uniform(40.0, 90.0)
        if is_gabor:
            self._gabor_count += 1
        self._side_patch = SidePatch(is_gabor=is_gabor, position=position, size=size)

    def _game_over(self, reason: str) -> None:
        self._stop_timers()
        logger.info("Run {} over: out of {} lives", self.level_id, reason)
        stars = rate(RatingPolicy.ANY_SCORE, correct=self._hits, incorrect=self._misses, total=1, score=self._score)
        self._finalize(
            RunResult(
                correct_count=self._hits,
                incorrect_count=self._misses,
                stars=stars,
                success=self._misses == 0,
                score=float(self._score),
            ),
            contrast=self._contrast,
        )
