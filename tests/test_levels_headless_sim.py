from __future__ import annotations

from dataclasses import dataclass
from datetime import timezone

from strabplay.analytics import last_n_days, outcome_day
from strabplay.discrete import ChoiceTrialPayload, TargetHuntPayload
from strabplay.levels import build_level
from strabplay.recorder import Category, CompletionRecorder
from strabplay.storage import MemoryStore
from strabplay.therapy_core import RunState, SeededRng


@dataclass
class FakeClock:
    t: float = 0.0
    epoch_ms: int = 1_700_000_000_000

    def now(self) -> float:
        return self.t

    def now_ms(self) -> int:
        return self.epoch_ms + int(round(self.t * 1000))

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def _play_choice_level(level_id: str, *, seed: int, miss_every: int, clock: FakeClock, recorder: CompletionRecorder):
    run = build_level(level_id, clock=clock, rng=SeededRng(seed), recorder=recorder, user_id="sim")
    picks: list[int] = []
    i = 0
    while run.state is not RunState.FINISHED:
        payload = run.snapshot().payload
        assert isinstance(payload, ChoiceTrialPayload)
        choice = payload.correct_choice
        if miss_every and i % miss_every == miss_every - 1:
            choice = (choice + 1) % payload.choice_count
        picks.append(payload.correct_choice)
        clock.advance(1.5)
        assert run.respond(choice, trial_index=payload.spec.index) is True
        i += 1
    return run, picks


def test_headless_sim_numbers_level_is_deterministic_per_seed() -> None:
    results = []
    for _ in range(2):
        clock = FakeClock()
        recorder = CompletionRecorder(MemoryStore(), clock)
        run, picks = _play_choice_level("level2", seed=41, miss_every=4, clock=clock, recorder=recorder)
        results.append((picks, run.result))

    (picks_a, result_a), (picks_b, result_b) = results
    assert picks_a == picks_b
    assert result_a == result_b
    assert result_a is not None
    assert result_a.correct_count == 75
    assert result_a.incorrect_count == 25
    assert result_a.stars == 2


def test_headless_sim_session_feeds_performance_and_time_report() -> None:
    clock = FakeClock()
    recorder = CompletionRecorder(MemoryStore(), clock)

    _play_choice_level("level1", seed=3, miss_every=0, clock=clock, recorder=recorder)
    _play_choice_level("level3", seed=3, miss_every=5, clock=clock, recorder=recorder)

    run = build_level("level4", clock=clock, rng=SeededRng(8), recorder=recorder, user_id="sim")
    while run.state is not RunState.FINISHED:
        payload = run.snapshot().payload
        assert isinstance(payload, TargetHuntPayload)
        clock.advance(0.6)
        run.respond(payload.target_cell, round_index=run.round_index)  # type: ignore[attr-defined]

    progress = recorder.load("sim")
    assert progress.levels == {"level1": 3, "level3": 0, "level4": 3}
    assert [o.level_id for o in progress.history] == ["level4", "level3", "level1"]
    assert all(o.category is Category.AMBLYO for o in progress.history)

    day = outcome_day(progress.history[0], timezone.utc)
    report = last_n_days(progress.history, day, 7, tz=timezone.utc)
    assert report.days_tracked >= 1
    assert sum(b.session_count for b in report.buckets) == 3
