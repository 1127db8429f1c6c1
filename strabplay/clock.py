from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Clock abstraction.

    Core logic depends on this interface rather than calling real time directly.
    ``now`` drives timers; ``now_ms`` stamps persisted records.
    """

    def now(self) -> float:
        """Return monotonic seconds."""

    def now_ms(self) -> int:
        """Return wall-clock epoch milliseconds."""


class RealClock:
    """Production clock backed by time.monotonic() and time.time()."""

    def now(self) -> float:
        return time.monotonic()

    def now_ms(self) -> int:
        return int(time.time() * 1000)
