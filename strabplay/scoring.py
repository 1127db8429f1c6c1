from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

PERCEPTUAL_ITEM_COUNT = 15


class RatingPolicy(StrEnum):
    """Star-rating rule attached to a level.

    The levels grew different rules over time; each one is kept as its own
    variant rather than unified.
    """

    STRICT = "strict"
    GRADUATED = "graduated"
    PERCENTAGE = "percentage"
    ANY_SCORE = "any_score"


@dataclass(frozen=True, slots=True)
class RunResult:
    correct_count: int
    incorrect_count: int
    stars: int
    success: bool
    score: float = 0.0


def accuracy_pct(correct: int | float, total: int) -> float:
    if total <= 0:
        return 0.0
    return float(correct) / float(total) * 100.0


def strict_stars(*, incorrect: int) -> int:
    return 3 if incorrect == 0 else 0


def graduated_stars(*, correct: int, incorrect: int, total: int) -> int:
    if incorrect == 0:
        return 3
    accuracy = accuracy_pct(correct, total)
    if accuracy > 60.0:
        return 2
    if accuracy > 30.0:
        return 1
    return 0


def percentage_stars(*, score: int | float, total: int = PERCEPTUAL_ITEM_COUNT) -> int:
    accuracy = accuracy_pct(score, total)
    if accuracy >= 90.0:
        return 3
    if accuracy >= 60.0:
        return 2
    if accuracy >= 30.0:
        return 1
    return 0


def any_score_stars(*, score: int | float) -> int:
    return 1 if score > 0 else 0


def rate(
    policy: RatingPolicy,
    *,
    correct: int,
    incorrect: int,
    total: int,
    score: float | None = None,
) -> int:
    """Star rating in {0, 1, 2, 3} for a finished run under ``policy``."""

    points = float(correct) if score is None else float(score)
    if policy is RatingPolicy.STRICT:
        stars = strict_stars(incorrect=incorrect)
    elif policy is RatingPolicy.GRADUATED:
        stars = graduated_stars(correct=correct, incorrect=incorrect, total=total)
    elif policy is RatingPolicy.PERCENTAGE:
        stars = percentage_stars(score=points, total=total)
    else:
        stars = any_score_stars(score=points)
    return max(0, min(3, int(stars)))


class ScoringEngine:
    """Running correct/incorrect tally for one run."""

    def __init__(self, *, policy: RatingPolicy, total: int) -> None:
        if total <= 0:
            raise ValueError("total must be > 0")
        self._policy = policy
        self._total = int(total)
        self._correct = 0
        self._incorrect = 0

    @property
    def policy(self) -> RatingPolicy:
        return self._policy

    @property
    def total(self) -> int:
        return self._total

    @property
    def correct_count(self) -> int:
        return self._correct

    @property
    def incorrect_count(self) -> int:
        return self._incorrect

    @property
    def answered(self) -> int:
        return self._correct + self._incorrect

    def record(self, is_correct: bool) -> None:
        if is_correct:
            self._correct += 1
        else:
            self._incorrect += 1

    def accuracy(self) -> float:
        return accuracy_pct(self._correct, self._total)

    def provisional_stars(self) -> int:
        """Stars already earned mid-run on the accuracy ladder (never 3)."""

        accuracy = self.accuracy()
        if accuracy > 60.0:
            return 2
        if accuracy > 30.0:
            return 1
        return 0

    def result(self, *, score: float | None = None) -> RunResult:
        points = float(self._correct) if score is None else float(score)
        stars = rate(
            self._policy,
            correct=self._correct,
            incorrect=self._incorrect,
            total=self._total,
            score=points,
        )
        return RunResult(
            correct_count=self._correct,
            incorrect_count=self._incorrect,
            stars=stars,
            success=self._incorrect == 0,
            score=points,
        )
