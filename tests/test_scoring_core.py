from __future__ import annotations

import pytest

from strabplay.scoring import (
    RatingPolicy,
    ScoringEngine,
    accuracy_pct,
    graduated_stars,
    percentage_stars,
    rate,
)


@pytest.mark.parametrize(
    ("correct", "expected"),
    [(61, 2), (60, 1), (31, 1), (30, 0), (0, 0)],
)
def test_graduated_star_boundaries(correct: int, expected: int) -> None:
    assert graduated_stars(correct=correct, incorrect=100 - correct, total=100) == expected


def test_graduated_zero_errors_is_three_stars_regardless_of_accuracy() -> None:
    assert graduated_stars(correct=5, incorrect=0, total=100) == 3


def test_strict_policy_is_all_or_nothing() -> None:
    assert rate(RatingPolicy.STRICT, correct=26, incorrect=0, total=26) == 3
    assert rate(RatingPolicy.STRICT, correct=25, incorrect=1, total=26) == 0


@pytest.mark.parametrize(
    ("score", "expected"),
    [(15, 3), (14, 3), (9, 2), (5, 1), (4, 0), (0, 0)],
)
def test_percentage_policy_thresholds(score: int, expected: int) -> None:
    assert percentage_stars(score=score, total=15) == expected
    assert rate(RatingPolicy.PERCENTAGE, correct=score, incorrect=15 - score, total=15) == expected


def test_any_score_policy() -> None:
    assert rate(RatingPolicy.ANY_SCORE, correct=0, incorrect=1, total=1, score=0) == 0
    assert rate(RatingPolicy.ANY_SCORE, correct=0, incorrect=1, total=1, score=12) == 1


def test_accuracy_of_empty_total_is_zero() -> None:
    assert accuracy_pct(3, 0) == 0.0


def test_engine_tally_provisional_and_result() -> None:
    engine = ScoringEngine(policy=RatingPolicy.GRADUATED, total=10)
    for ok in (True, True, True, True, False):
        engine.record(ok)

    assert engine.answered == 5
    assert engine.accuracy() == pytest.approx(40.0)
    assert engine.provisional_stars() == 1

    engine.record(True)
    engine.record(True)
    assert engine.provisional_stars() == 1  # exactly 60% is not above the line

    engine.record(True)
    assert engine.provisional_stars() == 2

    result = engine.result()
    assert result.correct_count == 7
    assert result.incorrect_count == 1
    assert result.stars == 2
    assert result.success is False
    assert result.score == pytest.approx(7.0)


def test_engine_rejects_empty_total() -> None:
    with pytest.raises(ValueError):
        ScoringEngine(policy=RatingPolicy.STRICT, total=0)
