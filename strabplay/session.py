from __future__ import annotations

from dataclasses import dataclass

from .clock import Clock
from .therapy_core import round_half_up


@dataclass(slots=True)
class Session:
    started_at_ms: int
    elapsed_seconds: int | None = None

    @property
    def finished(self) -> bool:
        return self.elapsed_seconds is not None


class SessionTimer:
    """Wall-clock duration of one level visit.

    Started once on level entry, not per trial. The duration is fixed the
    first time ``finish`` is called and reported unchanged afterwards.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._session: Session | None = None

    @property
    def session(self) -> Session | None:
        return self._session

    def start(self) -> Session:
        if self._session is None:
            self._session = Session(started_at_ms=int(self._clock.now_ms()))
        return self._session

    def restart(self) -> Session:
        self._session = None
        return self.start()

    def elapsed(self) -> int:
        if self._session is None:
            return 0
        if self._session.elapsed_seconds is not None:
            return self._session.elapsed_seconds
        delta_ms = int(self._clock.now_ms()) - self._session.started_at_ms
        return max(0, round_half_up(delta_ms / 1000.0))

    def finish(self) -> int:
        if self._session is None:
            return 0
        if self._session.elapsed_seconds is None:
            self._session.elapsed_seconds = self.elapsed()
        return self._session.elapsed_seconds

    def discard(self) -> None:
        self._session = None
