"""Calendar-day rollups of therapy time for the clinician views.

Everything here is pure: history comes in already loaded, reports go out as
frozen dataclasses. Day boundaries are taken in ``tz`` (local time when
omitted) so that a late-evening session lands on the day the patient saw.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo

from .recorder import LevelOutcome


@dataclass(frozen=True, slots=True)
class AnalyticsBucket:
    day: date
    date_label: str
    total_minutes: float
    session_count: int


@dataclass(frozen=True, slots=True)
class DaySummary:
    day: date
    date_label: str
    outcomes: tuple[LevelOutcome, ...]
    session_count: int
    total_minutes: float
    mean_score: float


@dataclass(frozen=True, slots=True)
class AnalyticsReport:
    buckets: tuple[AnalyticsBucket, ...]  # every day in range, ascending
    grouped_by_day: tuple[DaySummary, ...]  # active days only, newest first
    range_average_minutes: float
    days_tracked: int

    @property
    def total_minutes(self) -> float:
        return sum(b.total_minutes for b in self.buckets)


def outcome_day(outcome: LevelOutcome, tz: tzinfo | None = None) -> date:
    return _to_datetime(outcome.timestamp_ms, tz).date()


def day_label(day: date) -> str:
    return day.isoformat()


def aggregate(
    history: Iterable[LevelOutcome],
    start_date: date,
    end_date: date,
    *,
    tz: tzinfo | None = None,
) -> AnalyticsReport:
    start_day = _as_date(start_date)
    end_day = _as_date(end_date)
    if end_day < start_day:
        return AnalyticsReport(buckets=(), grouped_by_day=(), range_average_minutes=0.0, days_tracked=0)

    lo_ms = _day_start_ms(start_day, tz)
    hi_ms = _day_start_ms(end_day + timedelta(days=1), tz) - 1

    by_day: dict[date, list[LevelOutcome]] = {}
    for outcome in history:
        if not (lo_ms <= outcome.timestamp_ms <= hi_ms):
            continue
        by_day.setdefault(outcome_day(outcome, tz), []).append(outcome)

    buckets: list[AnalyticsBucket] = []
    day = start_day
    while day <= end_day:
        entries = by_day.get(day, [])
        buckets.append(
            AnalyticsBucket(
                day=day,
                date_label=day_label(day),
                total_minutes=_minutes(entries),
                session_count=len(entries),
            )
        )
        day += timedelta(days=1)

    grouped = tuple(
        DaySummary(
            day=d,
            date_label=day_label(d),
            outcomes=tuple(sorted(entries, key=lambda o: o.timestamp_ms, reverse=True)),
            session_count=len(entries),
            total_minutes=_minutes(entries),
            mean_score=sum(o.score for o in entries) / len(entries),
        )
        for d, entries in sorted(by_day.items(), key=lambda kv: kv[0], reverse=True)
    )

    average = 0.0 if not buckets else sum(b.total_minutes for b in buckets) / len(buckets)
    return AnalyticsReport(
        buckets=tuple(buckets),
        grouped_by_day=grouped,
        range_average_minutes=average,
        days_tracked=len(by_day),
    )


def last_n_days(
    history: Iterable[LevelOutcome],
    today: date,
    days: int = 7,
    *,
    tz: tzinfo | None = None,
) -> AnalyticsReport:
    if days <= 0:
        raise ValueError("days must be > 0")
    end = _as_date(today)
    return aggregate(history, end - timedelta(days=days - 1), end, tz=tz)


def _minutes(entries: list[LevelOutcome]) -> float:
    return sum(o.duration_s / 60.0 for o in entries)


def _as_date(value: date) -> date:
    return value.date() if isinstance(value, datetime) else value


def _to_datetime(ts_ms: int, tz: tzinfo | None) -> datetime:
    return datetime.fromtimestamp(ts_ms / 1000.0, tz)


def _day_start_ms(day: date, tz: tzinfo | None) -> int:
    start = datetime.combine(day, time.min)
    start = start.replace(tzinfo=tz) if tz is not None else start.astimezone()
    return int(start.timestamp() * 1000)
