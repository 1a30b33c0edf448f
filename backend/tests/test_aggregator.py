"""Unit tests for workout aggregation: windows, biometrics exclusion, per-day buckets and streaks."""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from fitpulse.core.errors import ValidationError
from fitpulse.services.aggregator import (
    Window,
    aggregate,
    active_dates,
    compute_streak,
    longest_streak,
    resolve_window,
)
from fitpulse.services.workout_records import BiometricsWorkout, CardioWorkout, LiftWorkout, RunWorkout

UTC = ZoneInfo("UTC")


def _at(y, m, d, h=12):
    return datetime(y, m, d, h, tzinfo=timezone.utc)


def _run(day, km=5.0, minutes=30.0, wid=1):
    return RunWorkout(id=wid, user_id=1, date=day, duration_min=minutes, distance_km=km)


def test_resolve_week_starts_monday():
    w = resolve_window("week", date(2024, 5, 15))
    assert w.start == date(2024, 5, 13)
    assert w.end == date(2024, 5, 19)


def test_resolve_month_handles_leap_february():
    w = resolve_window("month", date(2024, 2, 10))
    assert (w.start, w.end) == (date(2024, 2, 1), date(2024, 2, 29))


def test_resolve_year_and_all_time():
    assert resolve_window("year", date(2024, 7, 1)) == Window("year", date(2024, 1, 1), date(2024, 12, 31))
    assert resolve_window("all_time", date(2024, 7, 1)) == Window("all_time")


@pytest.mark.parametrize(
    "kind,start,end",
    [
        ("custom", None, date(2024, 1, 1)),
        ("custom", date(2024, 2, 1), date(2024, 1, 1)),
        ("fortnight", None, None),
    ],
)
def test_resolve_window_rejects_bad_input(kind, start, end):
    with pytest.raises(ValidationError) as exc:
        resolve_window(kind, date(2024, 1, 10), start, end)
    assert exc.value.field == "window"


def test_aggregate_empty_window_is_zero():
    agg = aggregate([], Window("all_time"), UTC)
    assert agg.count == 0
    assert agg.total_duration_min == 0
    assert agg.total_distance_km == 0
    assert agg.per_day == {}
    assert agg.last_activity_at is None


def test_aggregate_excludes_biometrics_by_default():
    records = [
        _run(_at(2024, 5, 13), km=5, minutes=30),
        BiometricsWorkout(id=2, user_id=1, date=_at(2024, 5, 13), duration_min=10, weight_kg=70),
        LiftWorkout(id=3, user_id=1, date=_at(2024, 5, 14), duration_min=45),
    ]
    agg = aggregate(records, Window("all_time"), UTC)
    assert agg.count == 2
    assert agg.total_duration_min == 75
    assert agg.total_distance_km == 5

    with_bio = aggregate(records, Window("all_time"), UTC, include_biometrics=True)
    assert with_bio.count == 3
    only_bio = aggregate(records, Window("all_time"), UTC, types=["biometrics"])
    assert only_bio.count == 1


def test_aggregate_window_bounds_and_buckets():
    records = [
        _run(_at(2024, 5, 12), km=3, wid=1),
        _run(_at(2024, 5, 13), km=5, wid=2),
        CardioWorkout(id=3, user_id=1, date=_at(2024, 5, 13, 18), duration_min=60, activity="cycling", distance_km=20),
        _run(_at(2024, 5, 20), km=8, wid=4),
    ]
    week = Window("week", date(2024, 5, 13), date(2024, 5, 19))
    agg = aggregate(records, week, UTC)
    assert agg.count == 2
    assert agg.total_distance_km == 25
    assert list(agg.per_day) == [date(2024, 5, 13)]
    assert agg.per_day[date(2024, 5, 13)].count == 2
    assert agg.last_activity_at == _at(2024, 5, 13, 18)


def test_aggregate_type_filter():
    records = [_run(_at(2024, 5, 13), km=5), LiftWorkout(id=2, user_id=1, date=_at(2024, 5, 13), duration_min=40)]
    agg = aggregate(records, Window("all_time"), UTC, types=["lift"])
    assert agg.count == 1
    assert agg.total_distance_km == 0


def test_local_calendar_day_depends_on_timezone():
    late = _run(datetime(2024, 5, 13, 23, 30, tzinfo=timezone.utc))
    assert active_dates([late], ZoneInfo("America/New_York")) == {date(2024, 5, 13)}
    assert active_dates([late], ZoneInfo("Asia/Tokyo")) == {date(2024, 5, 14)}


def test_streak_counts_today():
    today = date(2024, 5, 15)
    days = {today, today - timedelta(days=1), today - timedelta(days=2)}
    assert compute_streak(days, today) == 3


def test_streak_still_counts_from_yesterday():
    today = date(2024, 5, 15)
    days = {today - timedelta(days=1), today - timedelta(days=2)}
    assert compute_streak(days, today) == 2


def test_streak_broken_by_skipped_day():
    today = date(2024, 5, 15)
    assert compute_streak({today - timedelta(days=2), today - timedelta(days=3)}, today) == 0
    assert compute_streak({today, today - timedelta(days=2)}, today) == 1
    assert compute_streak(set(), today) == 0


def test_biometrics_do_not_extend_streak():
    records = [BiometricsWorkout(id=1, user_id=1, date=_at(2024, 5, 15), duration_min=0, weight_kg=70)]
    assert compute_streak(active_dates(records, UTC), date(2024, 5, 15)) == 0


def test_longest_streak_finds_best_run():
    base = date(2024, 1, 1)
    days = {base + timedelta(days=i) for i in (0, 1, 2, 5, 6, 7, 8, 12)}
    assert longest_streak(days) == 4
    assert longest_streak([]) == 0
