from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from strabplay.analytics import aggregate, last_n_days, outcome_day
from strabplay.recorder import Category, LevelOutcome

UTC = timezone.utc


def _outcome(when: datetime, *, duration_s: int, score: float = 0.0, level_id: str = "level1") -> LevelOutcome:
    return LevelOutcome(
        level_id=level_id,
        stars=1,
        score=score,
        incorrect=0,
        timestamp_ms=int(when.timestamp() * 1000),
        duration_s=duration_s,
        category=Category.AMBLYO,
        user_id="u1",
    )


def test_seven_day_range_always_has_seven_buckets() -> None:
    report = aggregate([], date(2024, 3, 1), date(2024, 3, 7), tz=UTC)

    assert len(report.buckets) == 7
    assert [b.date_label for b in report.buckets][0] == "2024-03-01"
    assert [b.date_label for b in report.buckets][-1] == "2024-03-07"
    assert all(b.total_minutes == 0 and b.session_count == 0 for b in report.buckets)
    assert report.grouped_by_day == ()
    assert report.range_average_minutes == 0.0
    assert report.days_tracked == 0


def test_range_average_over_three_days() -> None:
    history = [
        _outcome(datetime(2024, 3, 1, 12, tzinfo=UTC), duration_s=120),
        _outcome(datetime(2024, 3, 2, 12, tzinfo=UTC), duration_s=60),
        _outcome(datetime(2024, 3, 3, 12, tzinfo=UTC), duration_s=0),
    ]
    report = aggregate(history, date(2024, 3, 1), date(2024, 3, 3), tz=UTC)

    assert [b.total_minutes for b in report.buckets] == pytest.approx([2.0, 1.0, 0.0])
    assert report.range_average_minutes == pytest.approx(1.0)
    assert report.days_tracked == 3
    assert report.total_minutes == pytest.approx(3.0)


def test_grouped_days_are_newest_first_with_totals() -> None:
    history = [
        _outcome(datetime(2024, 3, 2, 9, tzinfo=UTC), duration_s=90, score=10),
        _outcome(datetime(2024, 3, 2, 18, tzinfo=UTC), duration_s=30, score=20),
        _outcome(datetime(2024, 3, 4, 8, tzinfo=UTC), duration_s=300, score=5),
    ]
    report = aggregate(history, date(2024, 3, 1), date(2024, 3, 7), tz=UTC)

    assert [d.date_label for d in report.grouped_by_day] == ["2024-03-04", "2024-03-02"]
    day2 = report.grouped_by_day[1]
    assert day2.session_count == 2
    assert day2.total_minutes == pytest.approx(2.0)
    assert day2.mean_score == pytest.approx(15.0)
    assert day2.outcomes[0].timestamp_ms > day2.outcomes[1].timestamp_ms
    assert report.days_tracked == 2


def test_outcomes_outside_range_are_ignored() -> None:
    history = [
        _outcome(datetime(2024, 2, 29, 23, 59, tzinfo=UTC), duration_s=600),
        _outcome(datetime(2024, 3, 1, 0, 0, tzinfo=UTC), duration_s=60),
        _outcome(datetime(2024, 3, 2, 23, 59, 59, tzinfo=UTC), duration_s=60),
        _outcome(datetime(2024, 3, 3, 0, 0, tzinfo=UTC), duration_s=600),
    ]
    report = aggregate(history, date(2024, 3, 1), date(2024, 3, 2), tz=UTC)
    assert [b.session_count for b in report.buckets] == [1, 1]
    assert report.total_minutes == pytest.approx(2.0)


def test_reversed_range_is_empty() -> None:
    history = [_outcome(datetime(2024, 3, 2, 12, tzinfo=UTC), duration_s=60)]
    report = aggregate(history, date(2024, 3, 5), date(2024, 3, 1), tz=UTC)
    assert report.buckets == ()
    assert report.grouped_by_day == ()
    assert report.range_average_minutes == 0.0
    assert report.days_tracked == 0


def test_day_boundaries_follow_the_given_timezone() -> None:
    plus_two = timezone(timedelta(hours=2))
    late = _outcome(datetime(2024, 3, 1, 23, 30, tzinfo=UTC), duration_s=60)

    assert outcome_day(late, UTC) == date(2024, 3, 1)
    assert outcome_day(late, plus_two) == date(2024, 3, 2)

    report = aggregate([late], date(2024, 3, 1), date(2024, 3, 2), tz=plus_two)
    assert [b.session_count for b in report.buckets] == [0, 1]


def test_last_n_days_ends_on_today() -> None:
    history = [_outcome(datetime(2024, 3, 7, 10, tzinfo=UTC), duration_s=180)]
    report = last_n_days(history, date(2024, 3, 7), 7, tz=UTC)

    assert len(report.buckets) == 7
    assert report.buckets[0].day == date(2024, 3, 1)
    assert report.buckets[-1].total_minutes == pytest.approx(3.0)

    with pytest.raises(ValueError):
        last_n_days(history, date(2024, 3, 7), 0)
