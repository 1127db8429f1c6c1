from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from .clock import Clock


@dataclass(slots=True)
class ScheduledTask:
    """Handle for a pending callback. Cancel it to stop future firings."""

    name: str
    due_at_s: float
    period_s: float | None
    callback: Callable[[], None] = field(repr=False)
    seq: int = 0
    cancelled: bool = False

    @property
    def active(self) -> bool:
        return not self.cancelled

    def cancel(self) -> None:
        self.cancelled = True


class TaskScheduler:
    """Cooperative timer queue pumped from the UI loop.

    Nothing runs on its own: ``run_due`` fires every task whose deadline has
    passed on the injected clock. A periodic task that fell behind fires once
    per missed period, the same catch-up rule as a fixed-step accumulator.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._tasks: list[ScheduledTask] = []
        self._seq = 0

    def call_later(self, delay_s: float, callback: Callable[[], None], *, name: str = "") -> ScheduledTask:
        if delay_s < 0.0:
            raise ValueError("delay_s must be >= 0")
        return self._add(name=name, delay_s=float(delay_s), period_s=None, callback=callback)

    def call_every(self, period_s: float, callback: Callable[[], None], *, name: str = "") -> ScheduledTask:
        if period_s <= 0.0:
            raise ValueError("period_s must be > 0")
        return self._add(name=name, delay_s=float(period_s), period_s=float(period_s), callback=callback)

    def pending(self) -> int:
        return sum(1 for t in self._tasks if t.active)

    def cancel_all(self) -> None:
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()

    def run_due(self) -> int:
        now = self._clock.now()
        fired = 0
        while True:
            due = [t for t in self._tasks if t.active and t.due_at_s <= now]
            if not due:
                break
            task = min(due, key=lambda t: (t.due_at_s, t.seq))
            if task.period_s is None:
                task.cancel()
            else:
                task.due_at_s += task.period_s
            task.callback()
            fired += 1
        self._tasks = [t for t in self._tasks if t.active]
        return fired

    def _add(
        self,
        *,
        name: str,
        delay_s: float,
        period_s: float | None,
        callback: Callable[[], None],
    ) -> ScheduledTask:
        self._seq += 1
        task = ScheduledTask(
            name=name,
            due_at_s=self._clock.now() + delay_s,
            period_s=period_s,
            callback=callback,
            seq=self._seq,
        )
        self._tasks.append(task)
        return task
