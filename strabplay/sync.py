from __future__ import annotations

from collections.abc import Callable

from loguru import logger

from .timers import ScheduledTask, TaskScheduler

SYNC_DELAY_S = 2.0


class SyncSimulator:
    """Stand-in for a remote sync: completes after a fixed delay.

    One sync is in flight at a time; a new request while syncing is refused.
    ``cancel`` guarantees ``on_done`` never fires for the dropped request.
    """

    def __init__(
        self,
        tasks: TaskScheduler,
        *,
        delay_s: float = SYNC_DELAY_S,
        on_done: Callable[[str], None] | None = None,
    ) -> None:
        if delay_s < 0.0:
            raise ValueError("delay_s must be >= 0")
        self._tasks = tasks
        self._delay_s = float(delay_s)
        self._on_done = on_done
        self._pending: ScheduledTask | None = None
        self._target = ""
        self._completed = 0

    @property
    def syncing(self) -> bool:
        return self._pending is not None and self._pending.active

    @property
    def completed(self) -> int:
        return self._completed

    def start(self, patient_id: str | None = None) -> bool:
        if self.syncing:
            return False
        self._target = patient_id or "all patients"
        self._pending = self._tasks.call_later(self._delay_s, self._finish, name="sync")
        logger.info("Sync started for {}", self._target)
        return True

    def cancel(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _finish(self) -> None:
        self._pending = None
        self._completed += 1
        logger.info("Synced data for {}", self._target)
        if self._on_done is not None:
            self._on_done(self._target)
