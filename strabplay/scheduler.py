from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from .therapy_core import clamp01


class CurveKind(StrEnum):
    LINEAR = "linear"
    EASED = "eased"


@dataclass(frozen=True, slots=True)
class StimulusCurve:
    start: float
    end: float

    @property
    def lo(self) -> float:
        return min(self.start, self.end)

    @property
    def hi(self) -> float:
        return max(self.start, self.end)


@dataclass(frozen=True, slots=True)
class TrialSpec:
    index: int
    contrast: float
    size: float


def linear_stimulus(index: int, total_trials: int, start: float, end: float) -> float:
    """Step from ``start`` towards ``end`` in equal increments over the run.

    The value never leaves the interval spanned by the two bounds, so any
    index at or past the last trial yields exactly ``end``.
    """

    if total_trials < 2:
        raise ValueError("total_trials must be >= 2")
    if index < 0:
        raise ValueError("index must be >= 0")
    step = (start - end) / (total_trials - 1)
    value = start - index * step
    lo, hi = min(start, end), max(start, end)
    if value <= lo:
        return lo
    if value >= hi:
        return hi
    return float(value)


def eased_stimulus(
    correct_so_far: int,
    target: int,
    start: float,
    end: float,
    *,
    exponent: float = 1.5,
) -> float:
    """Ease-in curve: slow early change, steeper near the target."""

    if target < 2:
        raise ValueError("target must be >= 2")
    progress = clamp01(correct_so_far / (target - 1))
    eased = progress**exponent
    return float(start - (start - end) * eased)


class TrialScheduler:
    """Maps a trial index (or running correct count) to stimulus parameters.

    Contrast and size are computed independently from the same progress value.
    Deterministic; randomness for side/position lives in the state machines.
    """

    def __init__(
        self,
        *,
        contrast: StimulusCurve,
        size: StimulusCurve,
        total_trials: int,
        kind: CurveKind = CurveKind.LINEAR,
        exponent: float = 1.5,
    ) -> None:
        if total_trials < 2:
            raise ValueError("total_trials must be >= 2")
        if not (0.0 <= contrast.lo and contrast.hi <= 1.0):
            raise ValueError("contrast bounds must be in [0.0, 1.0]")
        if size.lo <= 0.0:
            raise ValueError("size bounds must be > 0")
        self._contrast = contrast
        self._size = size
        self._total_trials = int(total_trials)
        self._kind = kind
        self._exponent = float(exponent)

    @property
    def total_trials(self) -> int:
        return self._total_trials

    @property
    def kind(self) -> CurveKind:
        return self._kind

    def spec_for(self, index: int, *, correct_so_far: int = 0) -> TrialSpec:
        if self._kind is CurveKind.EASED:
            contrast = eased_stimulus(
                correct_so_far,
                self._total_trials,
                self._contrast.start,
                self._contrast.end,
                exponent=self._exponent,
            )
            size = eased_stimulus(
                correct_so_far,
                self._total_trials,
                self._size.start,
                self._size.end,
                exponent=self._exponent,
            )
        else:
            contrast = linear_stimulus(index, self._total_trials, self._contrast.start, self._contrast.end)
            size = linear_stimulus(index, self._total_trials, self._size.start, self._size.end)
        return TrialSpec(index=int(index), contrast=contrast, size=size)
