from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import pytest
from loguru import logger

from strabplay.config import AppConfig
from strabplay.countdown import CountdownRun
from strabplay.discrete import ChoiceTrialRun, TargetHuntRun
from strabplay.grid_game import GridGameConfig, GridGameRun
from strabplay.levels import LEVELS, LEVELS_BY_ID, build_level, levels_in
from strabplay.logs import configure_logging
from strabplay.recorder import Category
from strabplay.sync import SyncSimulator
from strabplay.therapy_core import SeededRng
from strabplay.timers import TaskScheduler
from strabplay.vigilance import VigilanceRun


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


@pytest.mark.parametrize(
    ("level_id", "kind"),
    [
        ("level1", ChoiceTrialRun),
        ("level2", ChoiceTrialRun),
        ("level3", ChoiceTrialRun),
        ("level4", TargetHuntRun),
        ("level5", VigilanceRun),
        ("level6", GridGameRun),
        ("percep1", CountdownRun),
    ],
)
def test_build_level_returns_the_matching_variant(level_id: str, kind: type) -> None:
    run = build_level(level_id, clock=FakeClock(), rng=SeededRng(1))
    assert isinstance(run, kind)
    assert run.level_id == level_id
    assert run.category is LEVELS_BY_ID[level_id].category


def test_catalog_trial_counts() -> None:
    clock = FakeClock()
    assert build_level("level1", clock=clock, rng=SeededRng(1)).total_trials == 26  # type: ignore[attr-defined]
    assert build_level("level2", clock=clock, rng=SeededRng(1)).total_trials == 100  # type: ignore[attr-defined]
    assert build_level("level3", clock=clock, rng=SeededRng(1)).total_trials == 15  # type: ignore[attr-defined]


def test_catalog_categories() -> None:
    assert [i.level_id for i in levels_in(Category.PERCEP)] == ["percep1"]
    assert len(levels_in(Category.AMBLYO)) == 6
    assert len({i.level_id for i in LEVELS}) == len(LEVELS)


def test_build_level_honours_a_config_override() -> None:
    run = build_level(
        "level6",
        clock=FakeClock(),
        rng=SeededRng(1),
        config=GridGameConfig(grid_size=8, start=(4, 4)),
    )
    assert isinstance(run, GridGameRun)
    assert run.snake == ((4, 4),)


def test_unknown_level_raises() -> None:
    with pytest.raises(ValueError):
        build_level("level99", clock=FakeClock(), rng=SeededRng(1))


def test_config_defaults_and_env_overrides(tmp_path: Path) -> None:
    cfg = AppConfig.from_env({})
    assert cfg.log_level == "INFO"
    assert cfg.history_limit == 1000
    assert cfg.data_path.name == "strabplay.sqlite3"

    db = tmp_path / "x.sqlite3"
    cfg = AppConfig.from_env(
        {
            "STRABPLAY_DATA_PATH": str(db),
            "STRABPLAY_LOG_LEVEL": "debug",
            "STRABPLAY_HISTORY_LIMIT": "50",
        }
    )
    assert cfg.data_path == db
    assert cfg.log_level == "DEBUG"
    assert cfg.history_limit == 50


def test_config_ignores_unparseable_env_values() -> None:
    cfg = AppConfig.from_env({"STRABPLAY_LOG_LEVEL": "loud", "STRABPLAY_HISTORY_LIMIT": "-3"})
    assert cfg.log_level == "INFO"
    assert cfg.history_limit == 1000

    with pytest.raises(ValueError):
        AppConfig(history_limit=0)


def test_configure_logging_writes_to_the_log_file(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "strabplay.log"
    ids = configure_logging("warning", log_file=log_file)
    try:
        assert len(ids) == 2
        logger.debug("calibration detail")
    finally:
        for handler_id in ids:
            logger.remove(handler_id)
    assert "calibration detail" in log_file.read_text(encoding="utf-8")


def test_sync_completes_after_its_delay() -> None:
    clock = FakeClock()
    tasks = TaskScheduler(clock)
    done: list[str] = []
    sync = SyncSimulator(tasks, on_done=done.append)

    assert sync.start("patient-7") is True
    assert sync.syncing is True
    assert sync.start() is False

    clock.advance(1.9)
    tasks.run_due()
    assert done == []
    clock.advance(0.2)
    tasks.run_due()
    assert done == ["patient-7"]
    assert sync.syncing is False
    assert sync.completed == 1


def test_cancelled_sync_never_completes() -> None:
    clock = FakeClock()
    tasks = TaskScheduler(clock)
    done: list[str] = []
    sync = SyncSimulator(tasks, on_done=done.append)
    sync.start()
    sync.cancel()

    clock.advance(5.0)
    tasks.run_due()
    assert done == []
    assert sync.completed == 0
    assert sync.start() is True
