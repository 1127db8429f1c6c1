from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from .clock import Clock
from .level_run import LevelRun
from .recorder import Category, CompletionRecorder
from .scheduler import CurveKind, StimulusCurve, TrialScheduler, TrialSpec
from .scoring import RatingPolicy, ScoringEngine
from .therapy_core import RandomSource, RunSnapshot, RunState


@dataclass(frozen=True, slots=True)
class ChoiceLevelConfig:
    level_id: str
    title: str
    stimuli: tuple[str, ...]  # one label per trial, in presentation order
    choice_count: int
    contrast: StimulusCurve
    size: StimulusCurve
    policy: RatingPolicy
    category: Category = Category.AMBLYO
    # Curve denominator when it differs from the trial count.
    curve_trials: int | None = None
    # Screen slots shuffled every trial; empty means fixed left-to-right.
    layout_slots: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ChoiceTrialPayload:
    spec: TrialSpec
    label: str
    choice_count: int
    correct_choice: int
    layout: tuple[str, ...]
    total_trials: int
    progress_pct: float
    provisional_stars: int


@dataclass(frozen=True, slots=True)
class TargetHuntConfig:
    level_id: str
    title: str
    symbols: tuple[str, ...]
    contrast: StimulusCurve
    size: StimulusCurve
    cell_count: int = 100
    target_correct: int = 100
    policy: RatingPolicy = RatingPolicy.GRADUATED
    category: Category = Category.AMBLYO


@dataclass(frozen=True, slots=True)
class TargetHuntPayload:
    spec: TrialSpec
    symbol: str
    cell_count: int
    target_cell: int
    target_correct: int
    provisional_stars: int


class ChoiceTrialRun(LevelRun):
    """Pick the patched stimulus among ``choice_count`` look-alikes.

    Every response, right or wrong, moves to the next trial; the run
    finalizes after the last one. Stimuli fade and shrink linearly.
    """

    def __init__(
        self,
        *,
        config: ChoiceLevelConfig,
        clock: Clock,
        rng: RandomSource,
        recorder: CompletionRecorder | None = None,
        user_id: str | None = None,
    ) -> None:
        total = len(config.stimuli)
        if total < 2:
            raise ValueError("a choice level needs at least 2 trials")
        if config.choice_count < 2:
            raise ValueError("choice_count must be >= 2")
        if config.layout_slots and len(config.layout_slots) != config.choice_count:
            raise ValueError("layout_slots must match choice_count")

        super().__init__(
            level_id=config.level_id,
            category=config.category,
            clock=clock,
            rng=rng,
            recorder=recorder,
            user_id=user_id,
        )
        self.title = config.title
        self._cfg = config
        self._total = total
        self._scheduler = TrialScheduler(
            contrast=config.contrast,
            size=config.size,
            total_trials=config.curve_trials or total,
            kind=CurveKind.LINEAR,
        )
        self._scoring = ScoringEngine(policy=config.policy, total=total)

        self._index = 0
        self._spec = self._scheduler.spec_for(0)
        self._correct_choice = 0
        self._layout: tuple[str, ...] = ()
        self._deal()
        logger.info("Run {} started ({} trials)", self.level_id, total)

    @property
    def index(self) -> int:
        return self._index

    @property
    def total_trials(self) -> int:
        return self._total

    @property
    def current_spec(self) -> TrialSpec:
        return self._spec

    @property
    def correct_choice(self) -> int:
        return self._correct_choice

    @property
    def correct_count(self) -> int:
        return self._scoring.correct_count

    @property
    def incorrect_count(self) -> int:
        return self._scoring.incorrect_count

    def respond(self, choice: int, *, trial_index: int | None = None) -> bool:
        """Score ``choice`` for the current trial. Returns True if accepted."""

        if self.state is not RunState.PLAYING:
            return False
        if trial_index is not None and trial_index != self._index:
            return False
        if not (0 <= choice < self._cfg.choice_count):
            return False

        self._scoring.record(choice == self._correct_choice)

        if self._index < self._total - 1:
            self._index += 1
            self._deal()
            return True

        self._finalize(
            self._scoring.result(),
            contrast=self._spec.contrast,
            size=self._spec.size,
        )
        return True

    def snapshot(self) -> RunSnapshot:
        payload = None
        if self.state is RunState.PLAYING:
            payload = ChoiceTrialPayload(
                spec=self._spec,
                label=self._cfg.stimuli[self._index],
                choice_count=self._cfg.choice_count,
                correct_choice=self._correct_choice,
                layout=self._layout,
                total_trials=self._total,
                progress_pct=self._scoring.accuracy(),
                provisional_stars=self._scoring.provisional_stars(),
            )
        return RunSnapshot(
            title=self.title,
            level_id=self.level_id,
            state=self.state,
            prompt=self._prompt() or "Click the patterned stimulus.",
            correct_count=self._scoring.correct_count,
            incorrect_count=self._scoring.incorrect_count,
            time_remaining_s=None,
            payload=payload,
            stars=None if self.result is None else self.result.stars,
            saved=self.saved,
        )

    def _deal(self) -> None:
        self._spec = self._scheduler.spec_for(self._index)
        if self._cfg.layout_slots:
            self._layout = tuple(self._rng.shuffled(self._cfg.layout_slots))
        self._correct_choice = int(self._rng.randint(0, self._cfg.choice_count - 1))


class TargetHuntRun(LevelRun):
    """Find the single patched cell on a board of identical symbols.

    Only correct finds advance the round; misses are counted against the
    rating. The stimulus follows an eased curve on the correct count.
    """

    def __init__(
        self,
        *,
        config: TargetHuntConfig,
        clock: Clock,
        rng: RandomSource,
        recorder: CompletionRecorder | None = None,
        user_id: str | None = None,
    ) -> None:
        if config.cell_count < 2:
            raise ValueError("cell_count must be >= 2")
        if config.target_correct < 2:
            raise ValueError("target_correct must be >= 2")
        if not config.symbols:
            raise ValueError("symbols must not be empty")

        super().__init__(
            level_id=config.level_id,
            category=config.category,
            clock=clock,
            rng=rng,
            recorder=recorder,
            user_id=user_id,
        )
        self.title = config.title
        self._cfg = config
        self._scheduler = TrialScheduler(
            contrast=config.contrast,
            size=config.size,
            total_trials=config.target_correct,
            kind=CurveKind.EASED,
        )
        self._scoring = ScoringEngine(policy=config.policy, total=config.target_correct)

        self._round = 0
        self._spec = self._scheduler.spec_for(0, correct_so_far=0)
        self._symbol = config.symbols[0]
        self._target_cell = 0
        self._deal()
        logger.info("Run {} started (target {})", self.level_id, config.target_correct)

    @property
    def round_index(self) -> int:
        return self._round

    @property
    def target_cell(self) -> int:
        return self._target_cell

    @property
    def current_spec(self) -> TrialSpec:
        return self._spec

    @property
    def correct_count(self) -> int:
        return self._scoring.correct_count

    @property
    def incorrect_count(self) -> int:
        return self._scoring.incorrect_count

    def respond(self, cell: int, *, round_index: int | None = None) -> bool:
        if self.state is not RunState.PLAYING:
            return False
        if round_index is not None and round_index != self._round:
            return False
        if not (0 <= cell < self._cfg.cell_count):
            return False

        if cell != self._target_cell:
            self._scoring.record(False)
            return True

        self._scoring.record(True)
        if self._scoring.correct_count >= self._cfg.target_correct:
            self._finalize(
                self._scoring.result(),
                contrast=self._spec.contrast,
                size=self._spec.size,
            )
            return True

        self._round += 1
        self._deal()
        return True

    def snapshot(self) -> RunSnapshot:
        payload = None
        if self.state is RunState.PLAYING:
            payload = TargetHuntPayload(
                spec=self._spec,
                symbol=self._symbol,
                cell_count=self._cfg.cell_count,
                target_cell=self._target_cell,
                target_correct=self._cfg.target_correct,
                provisional_stars=self._scoring.provisional_stars(),
            )
        return RunSnapshot(
            title=self.title,
            level_id=self.level_id,
            state=self.state,
            prompt=self._prompt() or "Find the patterned symbol.",
            correct_count=self._scoring.correct_count,
            incorrect_count=self._scoring.incorrect_count,
            time_remaining_s=None,
            payload=payload,
            stars=None if self.result is None else self.result.stars,
            saved=self.saved,
        )

    def _deal(self) -> None:
        self._spec = self._scheduler.spec_for(self._round, correct_so_far=self._scoring.correct_count)
        self._symbol = str(self._rng.choice(self._cfg.symbols))
        self._target_cell = int(self._rng.randint(0, self._cfg.cell_count - 1))
