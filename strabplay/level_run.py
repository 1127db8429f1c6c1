from __future__ import annotations

from loguru import logger

from .clock import Clock
from .recorder import Category, CompletionRecorder, OutcomeDetails
from .scoring import RunResult
from .session import SessionTimer
from .therapy_core import RandomSource, RunSnapshot, RunState
from .timers import TaskScheduler


class LevelRun:
    """Lifecycle shared by every level variant.

    - Session timing starts when the run is built (level entry).
    - Timers are owned per run and all cancelled on finish or ``stop``.
    - ``_finalize`` records at most once; later calls are no-ops.
    """

    title = "Level"

    def __init__(
        self,
        *,
        level_id: str,
        category: Category,
        clock: Clock,
        rng: RandomSource,
        recorder: CompletionRecorder | None = None,
        user_id: str | None = None,
    ) -> None:
        self._level_id = str(level_id)
        self._category = category
        self._clock = clock
        self._rng = rng
        self._recorder = recorder
        self._user_id = user_id

        self._tasks = TaskScheduler(clock)
        self._timer = SessionTimer(clock)
        self._timer.start()

        self._state = RunState.PLAYING
        self._result: RunResult | None = None
        self._duration_s: int | None = None
        self._saved = False

    @property
    def level_id(self) -> str:
        return self._level_id

    @property
    def category(self) -> Category:
        return self._category

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def result(self) -> RunResult | None:
        return self._result

    @property
    def duration_s(self) -> int | None:
        return self._duration_s

    @property
    def saved(self) -> bool:
        return self._saved

    @property
    def is_active(self) -> bool:
        return self._state not in (RunState.FINISHED, RunState.ABANDONED)

    def pending_timers(self) -> int:
        return self._tasks.pending()

    def update(self) -> None:
        if not self.is_active:
            return
        self._tasks.run_due()

    def stop(self) -> None:
        """Tear down: cancel timers, drop in-flight state, persist nothing."""

        self._tasks.cancel_all()
        if self.is_active:
            self._state = RunState.ABANDONED
            self._timer.discard()
            logger.info("Run {} abandoned", self._level_id)

    def snapshot(self) -> RunSnapshot:
        return RunSnapshot(
            title=self.title,
            level_id=self._level_id,
            state=self._state,
            prompt=self._prompt(),
            correct_count=0,
            incorrect_count=0,
            time_remaining_s=None,
            stars=None if self._result is None else self._result.stars,
            saved=self._saved,
        )

    def _prompt(self) -> str:
        if self._state is RunState.FINISHED and self._result is not None:
            headline = "Level Complete!" if self._result.success else "Try Again"
            return "\n".join(
                [
                    headline,
                    "",
                    f"Correct:   {self._result.correct_count}",
                    f"Incorrect: {self._result.incorrect_count}",
                    f"Stars:     {self._result.stars}",
                ]
            )
        return ""

    def _finalize(
        self,
        result: RunResult,
        *,
        contrast: float | None = None,
        size: float | None = None,
    ) -> bool:
        if self._state in (RunState.FINISHED, RunState.ABANDONED):
            return False

        self._state = RunState.FINISHED
        self._result = result
        self._tasks.cancel_all()
        self._duration_s = self._timer.finish()
        logger.info(
            "Run {} finished: stars={} correct={} incorrect={} duration={}s",
            self._level_id,
            result.stars,
            result.correct_count,
            result.incorrect_count,
            self._duration_s,
        )

        if self._recorder is not None and self._user_id is not None:
            self._recorder.record(
                self._user_id,
                self._level_id,
                result.stars,
                OutcomeDetails(
                    score=result.score,
                    incorrect=result.incorrect_count,
                    category=self._category,
                    duration_s=self._duration_s,
                    contrast=contrast,
                    size=size,
                ),
            )
            self._saved = True
        return True

    def _restart_session(self) -> None:
        self._tasks.cancel_all()
        self._timer.restart()
        self._state = RunState.PLAYING
        self._result = None
        self._duration_s = None
        self._saved = False
