from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from loguru import logger

from .clock import Clock
from .level_run import LevelRun
from .recorder import Category, CompletionRecorder
from .scoring import PERCEPTUAL_ITEM_COUNT, RatingPolicy, ScoringEngine
from .therapy_core import RandomSource, RunSnapshot, RunState, clamp01, lerp
from .timers import ScheduledTask


class DiscriminationKind(StrEnum):
    SIZE = "size"
    CONTRAST = "contrast"


@dataclass(frozen=True, slots=True)
class CountdownConfig:
    item_count: int = PERCEPTUAL_ITEM_COUNT
    item_time_s: int = 15
    option_count: int = 3
    difficulty: float = 0.5


@dataclass(frozen=True, slots=True)
class DiscriminationItem:
    kind: DiscriminationKind
    prompt: str
    options: tuple[float, ...]  # size (abstract units) or contrast per option
    answer: int


@dataclass(frozen=True, slots=True)
class CountdownPayload:
    item: DiscriminationItem
    item_index: int
    item_count: int
    remaining_s: int
    selected: int | None


class DiscriminationItemGenerator:
    """Odd-one-out items: every option matches except one larger/fainter one."""

    def __init__(self, rng: RandomSource, *, option_count: int = 3) -> None:
        if option_count < 2:
            raise ValueError("option_count must be >= 2")
        self._rng = rng
        self._option_count = int(option_count)

    def next_item(self, *, difficulty: float) -> DiscriminationItem:
        d = clamp01(difficulty)
        kind = self._rng.choice(tuple(DiscriminationKind))
        answer = int(self._rng.randint(0, self._option_count - 1))
        delta = lerp(0.35, 0.10, d)

        if kind is DiscriminationKind.SIZE:
            base = round(self._rng.uniform(40.0, 80.0), 1)
            odd = round(base * (1.0 + delta), 1)
            prompt = "Which shape is larger?"
        else:
            base = round(self._rng.uniform(0.5, 0.9), 3)
            odd = round(base * (1.0 - delta), 3)
            prompt = "Which shape is fainter?"

        options = tuple(odd if i == answer else base for i in range(self._option_count))
        return DiscriminationItem(kind=kind, prompt=prompt, options=options, answer=answer)


class CountdownRun(LevelRun):
    """Fixed list of timed items; silence at expiry counts as a miss.

    A 1-second repeating task drains the per-item clock. Submitting cancels
    it; the next item gets a fresh task. Responses tagged with an item index
    that has already moved on are ignored.
    """

    def __init__(
        self,
        *,
        clock: Clock,
        rng: RandomSource,
        config: CountdownConfig | None = None,
        level_id: str = "percep1",
        title: str = "Perceptual Discrimination",
        category: Category = Category.PERCEP,
        recorder: CompletionRecorder | None = None,
        user_id: str | None = None,
    ) -> None:
        cfg = config or CountdownConfig()
        if cfg.item_count < 2:
            raise ValueError("item_count must be >= 2")
        if cfg.item_time_s <= 0:
            raise ValueError("item_time_s must be > 0")
        if not (0.0 <= cfg.difficulty <= 1.0):
            raise ValueError("difficulty must be in [0.0, 1.0]")

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
        gen = DiscriminationItemGenerator(rng, option_count=cfg.option_count)
        items = [gen.next_item(difficulty=cfg.difficulty) for _ in range(cfg.item_count)]
        self._items: list[DiscriminationItem] = rng.shuffled(items)
        self._scoring = ScoringEngine(policy=RatingPolicy.PERCENTAGE, total=cfg.item_count)

        self._index = 0
        self._selected: int | None = None
        self._remaining_s = cfg.item_time_s
        self._countdown: ScheduledTask | None = None
        self._begin_item()
        logger.info("Run {} started ({} items)", self.level_id, cfg.item_count)

    @property
    def items(self) -> tuple[DiscriminationItem, ...]:
        return tuple(self._items)

    @property
    def item_index(self) -> int:
        return self._index

    @property
    def current_item(self) -> DiscriminationItem:
        return self._items[self._index]

    @property
    def remaining_s(self) -> int:
        return self._remaining_s

    @property
    def selected(self) -> int | None:
        return self._selected

    @property
    def correct_count(self) -> int:
        return self._scoring.correct_count

    @property
    def incorrect_count(self) -> int:
        return self._scoring.incorrect_count

    def select(self, option: int, *, item_index: int | None = None) -> bool:
        if not self._accepting(item_index):
            return False
        if not (0 <= option < len(self.current_item.options)):
            return False
        self._selected = int(option)
        return True

    def submit(self, *, item_index: int | None = None) -> bool:
        if not self._accepting(item_index) or self._selected is None:
            return False
        self._cancel_countdown()
        self._score_and_advance(self._selected)
        return True

    def respond(self, option: int, *, item_index: int | None = None) -> bool:
        if not self.select(option, item_index=item_index):
            return False
        return self.submit(item_index=item_index)

    def snapshot(self) -> RunSnapshot:
        payload = None
        if self.state is RunState.COUNTING:
            payload = CountdownPayload(
                item=self.current_item,
                item_index=self._index,
                item_count=self._cfg.item_count,
                remaining_s=self._remaining_s,
                selected=self._selected,
            )
        prompt = self._prompt()
        if not prompt and self.state is RunState.COUNTING:
            prompt = self.current_item.prompt
        return RunSnapshot(
            title=self.title,
            level_id=self.level_id,
            state=self.state,
            prompt=prompt,
            correct_count=self._scoring.correct_count,
            incorrect_count=self._scoring.incorrect_count,
            time_remaining_s=float(self._remaining_s) if self.state is RunState.COUNTING else None,
            payload=payload,
            stars=None if self.result is None else self.result.stars,
            saved=self.saved,
        )

    def _accepting(self, item_index: int | None) -> bool:
        if self.state is not RunState.COUNTING:
            return False
        return item_index is None or item_index == self._index

    def _begin_item(self) -> None:
        self._state = RunState.COUNTING
        self._selected = None
        self._remaining_s = self._cfg.item_time_s
        self._cancel_countdown()
        self._countdown = self._tasks.call_every(1.0, self._on_second, name="item-countdown")

    def _on_second(self) -> None:
        if self.state is not RunState.COUNTING:
            return
        self._remaining_s = max(0, self._remaining_s - 1)
        if self._remaining_s > 0:
            return
        self._cancel_countdown()
        # Expiry: a pending selection still counts, silence is a miss.
        self._score_and_advance(self._selected)

    def _score_and_advance(self, choice: int | None) -> None:
        item = self.current_item
        self._scoring.record(choice is not None and choice == item.answer)

        if self._index < len(self._items) - 1:
            self._index += 1
            self._begin_item()
            return

        self._finalize(self._scoring.result(score=float(self._scoring.correct_count)))

    def _cancel_countdown(self) -> None:
        if self._countdown is not None:
            self._countdown.cancel()
            self._countdown = None
