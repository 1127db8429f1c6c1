from __future__ import annotations

import pytest

from strabplay.scheduler import (
    CurveKind,
    StimulusCurve,
    TrialScheduler,
    eased_stimulus,
    linear_stimulus,
)


def test_linear_curve_hits_both_bounds_and_midpoint() -> None:
    assert linear_stimulus(0, 26, 120.0, 24.0) == pytest.approx(120.0)
    assert linear_stimulus(25, 26, 120.0, 24.0) == pytest.approx(24.0)
    assert linear_stimulus(12, 26, 120.0, 24.0) == pytest.approx(120.0 - 12 * (96.0 / 25.0))
    assert linear_stimulus(12, 26, 120.0, 24.0) == pytest.approx(73.92)


@pytest.mark.parametrize("index", [26, 27, 100, 10_000])
def test_linear_curve_clamps_past_the_last_trial(index: int) -> None:
    assert linear_stimulus(index, 26, 120.0, 24.0) == 24.0
    assert linear_stimulus(index, 26, 1.0, 0.2) == 0.2


def test_linear_curve_works_for_increasing_bounds() -> None:
    values = [linear_stimulus(i, 5, 0.2, 1.0) for i in range(8)]
    assert values == sorted(values)
    assert values[-1] == 1.0
    assert all(0.2 <= v <= 1.0 for v in values)


def test_linear_curve_rejects_bad_arguments() -> None:
    with pytest.raises(ValueError):
        linear_stimulus(0, 1, 1.0, 0.2)
    with pytest.raises(ValueError):
        linear_stimulus(-1, 26, 1.0, 0.2)


def test_eased_curve_is_slow_early_and_reaches_end_at_target() -> None:
    start, end = 60.0, 16.0
    values = [eased_stimulus(c, 100, start, end) for c in range(100)]

    assert values[0] == pytest.approx(start)
    assert values[99] == pytest.approx(end)
    assert all(a >= b for a, b in zip(values, values[1:]))
    # Ease-in: the first half of the run covers less than half the range.
    assert (start - values[50]) < (start - end) / 2
    assert eased_stimulus(500, 100, start, end) == pytest.approx(end)


def test_eased_curve_matches_power_law() -> None:
    progress = 1 / 2
    expected = 1.0 - (1.0 - 0.3) * progress**1.5
    assert eased_stimulus(1, 3, 1.0, 0.3) == pytest.approx(expected)


def test_scheduler_linear_and_eased_specs() -> None:
    linear = TrialScheduler(
        contrast=StimulusCurve(1.0, 0.2),
        size=StimulusCurve(120.0, 24.0),
        total_trials=26,
    )
    spec = linear.spec_for(12)
    assert spec.index == 12
    assert spec.size == pytest.approx(73.92)
    assert spec.contrast == pytest.approx(1.0 - 12 * (0.8 / 25.0))

    eased = TrialScheduler(
        contrast=StimulusCurve(1.0, 0.3),
        size=StimulusCurve(60.0, 16.0),
        total_trials=100,
        kind=CurveKind.EASED,
    )
    assert eased.spec_for(0, correct_so_far=0).size == pytest.approx(60.0)
    assert eased.spec_for(40, correct_so_far=99).contrast == pytest.approx(0.3)


def test_scheduler_validates_bounds() -> None:
    with pytest.raises(ValueError):
        TrialScheduler(contrast=StimulusCurve(1.2, 0.2), size=StimulusCurve(10.0, 5.0), total_trials=10)
    with pytest.raises(ValueError):
        TrialScheduler(contrast=StimulusCurve(1.0, 0.2), size=StimulusCurve(10.0, 0.0), total_trials=10)
    with pytest.raises(ValueError):
        TrialScheduler(contrast=StimulusCurve(1.0, 0.2), size=StimulusCurve(10.0, 5.0), total_trials=1)
