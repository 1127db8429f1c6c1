from __future__ import annotations

from dataclasses import dataclass

import pytest

from strabplay.recorder import CompletionRecorder
from strabplay.storage import MemoryStore
from strabplay.therapy_core import RunState, SeededRng
from strabplay.vigilance import VigilanceConfig, VigilancePayload, VigilanceRun


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


def _no_quiz() -> VigilanceConfig:
    return VigilanceConfig(quiz_min_s=10_000.0, quiz_max_s=10_000.0)


def test_exactly_one_target_patch() -> None:
    run = VigilanceRun(clock=FakeClock(), rng=SeededRng(5))
    assert len(run.patches) == 8
    assert sum(1 for p in run.patches if p.is_target) == 1
    target = next(p for p in run.patches if p.is_target)
    assert target.size == pytest.approx(45.0)
    assert all(p.size < 45.0 for p in run.patches if not p.is_target)


def test_hitting_the_target_scores_and_refreshes_patches() -> None:
    run = VigilanceRun(clock=FakeClock(), rng=SeededRng(5))
    old_ids = {p.patch_id for p in run.patches}
    target = next(p for p in run.patches if p.is_target)

    assert run.click_patch(target.patch_id) is True
    assert run.score == 1
    assert old_ids.isdisjoint({p.patch_id for p in run.patches})
    assert run.click_patch(target.patch_id) is False


def test_three_misses_end_the_run() -> None:
    clock = FakeClock()
    recorder = CompletionRecorder(MemoryStore(), clock)
    run = VigilanceRun(clock=clock, rng=SeededRng(7), recorder=recorder, user_id="u1")
    distractor = next(p for p in run.patches if not p.is_target)

    run.click_patch(distractor.patch_id)
    run.click_patch(distractor.patch_id)
    assert run.click_lives == 1
    assert run.state is RunState.PLAYING

    run.click_patch(distractor.patch_id)
    assert run.state is RunState.FINISHED
    assert run.result is not None
    assert run.result.stars == 0
    assert run.pending_timers() == 0
    assert recorder.best_stars("u1") == {"level5": 0}


def test_contrast_decays_each_second_to_the_floor() -> None:
    clock = FakeClock()
    run = VigilanceRun(clock=clock, rng=SeededRng(3), config=_no_quiz())
    for _ in range(10):
        clock.advance(1.0)
        run.update()
    assert run.contrast == pytest.approx(0.95)

    for _ in range(300):
        clock.advance(1.0)
        run.update()
    assert run.contrast == pytest.approx(0.1)


def test_patches_refresh_every_five_seconds() -> None:
    clock = FakeClock()
    run = VigilanceRun(clock=clock, rng=SeededRng(3), config=_no_quiz())
    first = run.patches
    clock.advance(4.0)
    run.update()
    assert run.patches == first
    clock.advance(1.0)
    run.update()
    assert run.patches != first


def test_quiz_opens_within_its_window_and_pauses_play() -> None:
    clock = FakeClock()
    run = VigilanceRun(clock=clock, rng=SeededRng(12))
    for _ in range(91):
        clock.advance(1.0)
        run.update()

    assert run.quiz_open is True
    assert run.state is RunState.PAUSED
    assert run.pending_timers() == 0
    snap = run.snapshot()
    assert isinstance(snap.payload, VigilancePayload)
    assert snap.payload.quiz_open
    assert "How many" in snap.prompt

    target = next(p for p in run.patches if p.is_target)
    assert run.click_patch(target.patch_id) is False


def test_correct_quiz_answer_adds_points_and_resumes() -> None:
    clock = FakeClock()
    run = VigilanceRun(clock=clock, rng=SeededRng(2), config=_no_quiz())
    for _ in range(6):
        clock.advance(1.0)
        run.update()

    assert run.open_quiz() is True
    assert run.answer_quiz(run.gabor_count) is True
    assert run.score == 10
    assert run.gabor_count == 0
    assert run.state is RunState.PLAYING
    assert run.pending_timers() == 3


def test_three_wrong_quiz_answers_end_the_run() -> None:
    run = VigilanceRun(clock=FakeClock(), rng=SeededRng(2), config=_no_quiz())
    for lives_left in (2, 1):
        run.open_quiz()
        run.answer_quiz(run.gabor_count + 1)
        assert run.quiz_lives == lives_left
        assert run.state is RunState.PLAYING

    run.open_quiz()
    run.answer_quiz(run.gabor_count + 1)
    assert run.state is RunState.FINISHED
    assert run.quiz_open is False
    assert run.answer_quiz(0) is False


def test_answer_without_open_quiz_is_rejected() -> None:
    run = VigilanceRun(clock=FakeClock(), rng=SeededRng(2))
    assert run.answer_quiz(0) is False


def test_vigilance_rejects_bad_configs() -> None:
    with pytest.raises(ValueError):
        VigilanceRun(clock=FakeClock(), rng=SeededRng(1), config=VigilanceConfig(click_lives=0))
    with pytest.raises(ValueError):
        VigilanceRun(clock=FakeClock(), rng=SeededRng(1), config=VigilanceConfig(quiz_min_s=50.0, quiz_max_s=40.0))


@pytest.mark.parametrize("count", ["", "three", None, "2.5"])
def test_unparseable_quiz_answer_is_rejected_without_costing_a_life(count: object) -> None:
    run = VigilanceRun(clock=FakeClock(), rng=SeededRng(2), config=_no_quiz())
    run.open_quiz()

    assert run.answer_quiz(count) is False  # type: ignore[arg-type]
    assert run.quiz_open is True
    assert run.quiz_lives == 3
    assert run.state is RunState.PAUSED
    assert run.answer_quiz(run.gabor_count) is True
