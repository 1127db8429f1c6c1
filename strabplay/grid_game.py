from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from loguru import logger

from .clock import Clock
from .level_run import LevelRun
from .recorder import Category, CompletionRecorder
from .scheduler import StimulusCurve, eased_stimulus
from .scoring import RatingPolicy, RunResult, rate
from .therapy_core import RandomSource, RunSnapshot, RunState
from .timers import ScheduledTask

Cell = tuple[int, int]


class Direction(StrEnum):
    UP = "UP"
    DOWN = "DOWN"
    LEFT = "LEFT"
    RIGHT = "RIGHT"


_DELTAS: dict[Direction, Cell] = {
    Direction.UP: (0, -1),
    Direction.DOWN: (0, 1),
    Direction.LEFT: (-1, 0),
    Direction.RIGHT: (1, 0),
}

_OPPOSITE: dict[Direction, Direction] = {
    Direction.UP: Direction.DOWN,
    Direction.DOWN: Direction.UP,
    Direction.LEFT: Direction.RIGHT,
    Direction.RIGHT: Direction.LEFT,
}


@dataclass(frozen=True, slots=True)
class GridGameConfig:
    grid_size: int = 20
    start: Cell = (10, 10)
    initial_period_ms: int = 200
    min_period_ms: int = 50
    period_decrement_ms: int = 5
    points_per_speedup: int = 2

    # Food fades on an eased curve as the score climbs towards target_score.
    target_score: int = 100
    food_contrast: StimulusCurve = StimulusCurve(1.0, 0.3)
    food_size: StimulusCurve = StimulusCurve(1.0, 0.6)  # fraction of a cell


@dataclass(frozen=True, slots=True)
class GridGamePayload:
    grid_size: int
    snake: tuple[Cell, ...]  # head first
    food: Cell | None
    direction: Direction | None
    score: int
    best_score: int
    period_ms: int
    food_contrast: float
    food_size: float
    paused: bool


def tick_period_ms(score: int, cfg: GridGameConfig) -> int:
    steps = max(0, int(score)) // cfg.points_per_speedup
    return max(cfg.min_period_ms, cfg.initial_period_ms - steps * cfg.period_decrement_ms)


class GridGameRun(LevelRun):
    """Real-time snake on an N x N grid.

    A fixed-period tick moves the head one cell. Eating food grows the body
    and may shorten the period; hitting a wall or the body ends the run on
    that same tick. Pausing cancels the tick and keeps the board intact.
    """

    def __init__(
        self,
        *,
        clock: Clock,
        rng: RandomSource,
        config: GridGameConfig | None = None,
        level_id: str = "level6",
        title: str = "Level 06",
        category: Category = Category.AMBLYO,
        recorder: CompletionRecorder | None = None,
        user_id: str | None = None,
    ) -> None:
        cfg = config or GridGameConfig()
        if cfg.grid_size < 2:
            raise ValueError("grid_size must be >= 2")
        if not all(0 <= c < cfg.grid_size for c in cfg.start):
            raise ValueError("start must lie on the grid")
        if cfg.min_period_ms <= 0 or cfg.initial_period_ms < cfg.min_period_ms:
            raise ValueError("tick periods must satisfy 0 < min <= initial")
        if cfg.points_per_speedup <= 0:
            raise ValueError("points_per_speedup must be > 0")
        if cfg.target_score < 2:
            raise ValueError("target_score must be >= 2")

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
        self._best_score = 0
        self._tick_task: ScheduledTask | None = None
        self._resume_state = RunState.READY
        self._reset_board()

    @property
    def snake(self) -> tuple[Cell, ...]:
        return tuple(self._snake)

    @property
    def food(self) -> Cell | None:
        return self._food

    @property
    def score(self) -> int:
        return self._score

    @property
    def best_score(self) -> int:
        return self._best_score

    @property
    def direction(self) -> Direction | None:
        return self._pending

    def period_ms(self) -> int:
        return tick_period_ms(self._score, self._cfg)

    def set_direction(self, direction: Direction) -> bool:
        """Queue a turn for the next tick. The first turn starts the game."""

        if self.state not in (RunState.READY, RunState.PLAYING):
            return False
        if self._moving is not None and direction is _OPPOSITE[self._moving]:
            return False
        self._pending = direction
        if self.state is RunState.READY:
            self._state = RunState.PLAYING
            self._schedule_tick()
            logger.info("Run {} started", self.level_id)
        return True

    def step(self) -> bool:
        """Advance one tick. Returns False when nothing moved."""

        if self.state is not RunState.PLAYING or self._pending is None:
            return False

        self._moving = self._pending
        dx, dy = _DELTAS[self._moving]
        hx, hy = self._snake[0]
        head = (hx + dx, hy + dy)

        n = self._cfg.grid_size
        out_of_bounds = not (0 <= head[0] < n and 0 <= head[1] < n)
        if out_of_bounds or head in self._snake:
            self._game_over()
            return True

        self._snake.insert(0, head)
        if head == self._food:
            period_before = self.period_ms()
            self._score += 1
            self._food = self._place_food()
            if self._food is None:
                # Board full; nothing left to eat.
                self._game_over()
                return True
            if self.period_ms() != period_before:
                self._schedule_tick()
        else:
            self._snake.pop()
        return True

    def pause(self) -> bool:
        if self.state not in (RunState.READY, RunState.PLAYING):
            return False
        self._resume_state = self.state
        self._state = RunState.PAUSED
        self._cancel_tick()
        return True

    def resume(self) -> bool:
        if self.state is not RunState.PAUSED:
            return False
        self._state = self._resume_state
        if self._state is RunState.PLAYING:
            self._schedule_tick()
        return True

    def restart(self) -> bool:
        if self.state is not RunState.FINISHED:
            return False
        self._restart_session()
        self._reset_board()
        return True

    def snapshot(self) -> RunSnapshot:
        return RunSnapshot(
            title=self.title,
            level_id=self.level_id,
            state=self.state,
            prompt=self._grid_prompt(),
            correct_count=self._score,
            incorrect_count=0,
            time_remaining_s=None,
            payload=GridGamePayload(
                grid_size=self._cfg.grid_size,
                snake=tuple(self._snake),
                food=self._food,
                direction=self._pending,
                score=self._score,
                best_score=self._best_score,
                period_ms=self.period_ms(),
                food_contrast=self._food_contrast(),
                food_size=self._food_size(),
                paused=self.state is RunState.PAUSED,
            ),
            stars=None if self.result is None else self.result.stars,
            saved=self.saved,
        )

    def _grid_prompt(self) -> str:
        if self.state is RunState.READY:
            return "Press an arrow key to start."
        if self.state is RunState.PAUSED:
            return "Paused. Exit to the menu? (Y/N)"
        if self.state is RunState.FINISHED:
            return f"Game Over\n\nScore: {self._score}\nBest:  {self._best_score}"
        return ""

    def _reset_board(self) -> None:
        self._snake: list[Cell] = [self._cfg.start]
        self._pending: Direction | None = None
        self._moving: Direction | None = None
        self._score = 0
        self._food = self._place_food()
        self._state = RunState.READY
        self._resume_state = RunState.READY

    def _place_food(self) -> Cell | None:
        n = self._cfg.grid_size
        occupied = set(self._snake)
        if len(occupied) >= n * n:
            return None
        for _ in range(n * n * 4):
            cell = (int(self._rng.randint(0, n - 1)), int(self._rng.randint(0, n - 1)))
            if cell not in occupied:
                return cell
        free = [(x, y) for y in range(n) for x in range(n) if (x, y) not in occupied]
        return free[0] if len(free) == 1 else self._rng.choice(free)

    def _food_contrast(self) -> float:
        c = self._cfg.food_contrast
        return eased_stimulus(self._score, self._cfg.target_score, c.start, c.end)

    def _food_size(self) -> float:
        s = self._cfg.food_size
        return eased_stimulus(self._score, self._cfg.target_score, s.start, s.end)

    def _schedule_tick(self) -> None:
        self._cancel_tick()
        self._tick_task = self._tasks.call_every(self.period_ms() / 1000.0, self.step, name="grid-tick")

    def _cancel_tick(self) -> None:
        if self._tick_task is not None:
            self._tick_task.cancel()
            self._tick_task = None

    def _game_over(self) -> None:
        self._cancel_tick()
        self._best_score = max(self._best_score, self._score)
        stars = rate(RatingPolicy.ANY_SCORE, correct=self._score, incorrect=1, total=self._cfg.target_score)
        self._finalize(
            RunResult(
                correct_count=self._score,
                incorrect_count=1,
                stars=stars,
                success=False,
                score=float(self._score),
            ),
            contrast=self._food_contrast(),
            size=self._food_size(),
        )
