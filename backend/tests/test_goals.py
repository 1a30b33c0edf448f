"""Goal progress: percent clamping, status precedence, days remaining, and evaluation against stored workouts."""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from fitpulse.core.errors import InconsistentStateError, NotFoundError, ValidationError
from fitpulse.models.goal import Goal
from fitpulse.services.aggregator import Window
from fitpulse.services.goals import (
    GOAL_KINDS,
    compute_current,
    create_goal,
    days_remaining,
    evaluate_goal,
    evaluate_progress,
    goal_status,
    goal_window,
    list_goals,
    progress_percent,
)
from fitpulse.services.workout_records import RunWorkout

T0 = datetime(2025, 3, 3, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "current,target,expected",
    [(0, 5, 0), (2.5, 5, 50), (12, 5, 100), (1, 3, 33), (2, 3, 67), (1, 8, 13), (-1, 5, 0)],
)
def test_progress_percent_rounds_and_clamps(current, target, expected):
    assert progress_percent(current, target) == expected


def test_completed_checked_before_expiry():
    end = T0 - timedelta(days=1)
    assert goal_status(5, 5, T0, end) == "completed"
    assert goal_status(4, 5, T0, end) == "failed"
    assert goal_status(4, 5, T0, T0 + timedelta(days=1)) == "active"


def test_days_remaining():
    assert days_remaining(T0, T0 + timedelta(days=3)) == 3
    assert days_remaining(T0, T0 + timedelta(days=2, hours=12)) == 3
    assert days_remaining(T0, T0 - timedelta(days=1)) == 0


def test_zero_progress_scenario():
    p = evaluate_progress(0, 5, T0, T0 + timedelta(days=3))
    assert (p.current, p.progress_percent, p.status, p.days_remaining) == (0, 0, "active", 3)


def test_compute_current_streak_and_longest_run():
    tz = ZoneInfo("UTC")
    window = Window("custom", date(2025, 3, 1), date(2025, 3, 10))
    records = [
        RunWorkout(id=i, user_id=1, date=T0 - timedelta(days=i), duration_min=30, distance_km=5 + i)
        for i in range(3)
    ]
    assert compute_current(GOAL_KINDS["daily_streak"], records, window, tz, T0.date()) == 3
    assert compute_current(GOAL_KINDS["run_distance"], records, window, tz, T0.date()) == 7
    assert compute_current(GOAL_KINDS["weekly_distance"], records, window, tz, T0.date()) == 18


@pytest.mark.asyncio
async def test_create_goal_validation(make_user, session):
    user_id, _ = await make_user("goals@test.com")
    with pytest.raises(ValidationError) as exc:
        await create_goal(session, user_id, "weekly_workouts", 0, T0 + timedelta(days=3), now=T0)
    assert exc.value.field == "target"
    with pytest.raises(ValidationError) as exc:
        await create_goal(session, user_id, "weekly_workouts", 5, T0 - timedelta(days=1), now=T0)
    assert exc.value.field == "end_date"
    with pytest.raises(ValidationError) as exc:
        await create_goal(session, user_id, "bench_press", 5, T0 + timedelta(days=3), now=T0)
    assert exc.value.field == "type"


@pytest.mark.asyncio
async def test_goal_completes_after_enough_workouts_and_stays_completed(make_user, session, make_workout):
    user_id, _ = await make_user("goals@test.com")
    goal, progress = await create_goal(session, user_id, "weekly_workouts", 5, T0 + timedelta(days=3), now=T0)
    assert (progress.current, progress.progress_percent, progress.status, progress.days_remaining) == (
        0,
        0,
        "active",
        3,
    )
    for i in range(5):
        await make_workout(user_id, "run", T0 + timedelta(minutes=i), distance_km=3)
    goal, progress = await evaluate_goal(session, goal.id, user_id, now=T0 + timedelta(hours=1))
    assert progress.status == "completed"
    assert progress.progress_percent == 100
    assert goal.completed_at is not None

    _, later = await evaluate_goal(session, goal.id, user_id, now=T0 + timedelta(days=10))
    assert later.status == "completed"
    assert later.days_remaining == 0


@pytest.mark.asyncio
async def test_goal_fails_after_end_date(make_user, session, make_workout):
    user_id, _ = await make_user("goals@test.com")
    goal, _ = await create_goal(session, user_id, "weekly_distance", 20, T0 + timedelta(days=2), now=T0)
    await make_workout(user_id, "run", T0, distance_km=5)
    _, progress = await evaluate_goal(session, goal.id, user_id, now=T0 + timedelta(days=3))
    assert progress.status == "failed"
    assert progress.current == 5
    assert progress.progress_percent == 25

    # failed is terminal even if the target is reached later
    await make_workout(user_id, "run", T0 + timedelta(days=1), distance_km=20)
    _, progress = await evaluate_goal(session, goal.id, user_id, now=T0 + timedelta(days=4))
    assert progress.status == "failed"


@pytest.mark.asyncio
async def test_biometrics_do_not_count_towards_goals(make_user, session, make_workout):
    user_id, _ = await make_user("goals@test.com")
    goal, _ = await create_goal(session, user_id, "weekly_workouts", 2, T0 + timedelta(days=3), now=T0)
    await make_workout(user_id, "biometrics", T0, 0, weight_kg=72)
    await make_workout(user_id, "lift", T0, 45)
    _, progress = await evaluate_goal(session, goal.id, user_id, now=T0)
    assert progress.current == 1
    assert progress.progress_percent == 50


@pytest.mark.asyncio
async def test_goal_of_other_user_not_found(make_user, session):
    owner, _ = await make_user("owner@test.com")
    other, _ = await make_user("other@test.com")
    goal, _ = await create_goal(session, owner, "monthly_workouts", 10, T0 + timedelta(days=20), now=T0)
    with pytest.raises(NotFoundError):
        await evaluate_goal(session, goal.id, other, now=T0)


@pytest.mark.asyncio
async def test_unknown_goal_type_is_inconsistent(make_user, session):
    user_id, _ = await make_user("goals@test.com")
    legacy = Goal(
        user_id=user_id,
        type="legacy_steps",
        title="Steps",
        target=10000,
        unit="steps",
        current=0,
        start_date=T0,
        end_date=T0 + timedelta(days=7),
        status="active",
        created_at=T0,
    )
    session.add(legacy)
    await session.flush()
    with pytest.raises(InconsistentStateError):
        await evaluate_goal(session, legacy.id, user_id, now=T0)


@pytest.mark.asyncio
async def test_list_goals_filters_by_derived_status(make_user, session, make_workout):
    user_id, _ = await make_user("goals@test.com")
    done, _ = await create_goal(session, user_id, "weekly_workouts", 1, T0 + timedelta(days=3), now=T0)
    await create_goal(session, user_id, "monthly_distance", 100, T0 + timedelta(days=20), now=T0)
    await make_workout(user_id, "run", T0, distance_km=5)
    completed = await list_goals(session, user_id, "completed", now=T0)
    assert [g.id for g, _ in completed] == [done.id]
    assert len(await list_goals(session, user_id, now=T0)) == 2
    with pytest.raises(ValidationError):
        await list_goals(session, user_id, "paused", now=T0)


def test_goal_window_looks_back_over_the_period():
    start, end = date(2025, 2, 1), date(2025, 3, 31)
    weekly = goal_window(GOAL_KINDS["weekly_workouts"], start, end, date(2025, 3, 10))
    assert (weekly.start, weekly.end) == (date(2025, 3, 4), end)
    monthly = goal_window(GOAL_KINDS["monthly_distance"], start, end, date(2025, 3, 10))
    assert monthly.start == date(2025, 2, 9)
    # never before the goal's own start
    assert goal_window(GOAL_KINDS["weekly_workouts"], date(2025, 3, 8), end, date(2025, 3, 10)).start == date(2025, 3, 8)
    # after the end date the period is anchored on the end date
    assert goal_window(GOAL_KINDS["weekly_workouts"], start, date(2025, 3, 5), date(2025, 3, 20)).start == date(2025, 2, 27)
    streak = goal_window(GOAL_KINDS["daily_streak"], start, end, date(2025, 3, 10))
    assert streak.start == start


@pytest.mark.asyncio
async def test_weekly_and_monthly_goals_count_workouts_logged_before_creation(make_user, session, make_workout):
    user_id, _ = await make_user("goals@test.com")
    await make_workout(user_id, "run", T0 - timedelta(days=20), distance_km=5)
    for days_ago in range(1, 5):
        await make_workout(user_id, "run", T0 - timedelta(days=days_ago), distance_km=5)

    weekly, progress = await create_goal(session, user_id, "weekly_workouts", 5, T0 + timedelta(days=3), now=T0)
    assert progress.current == 4
    monthly, progress = await create_goal(session, user_id, "monthly_workouts", 10, T0 + timedelta(days=3), now=T0)
    assert progress.current == 5

    await make_workout(user_id, "run", T0, distance_km=5)
    _, progress = await evaluate_goal(session, weekly.id, user_id, now=T0)
    assert (progress.current, progress.status) == (5, "completed")
    _, progress = await evaluate_goal(session, monthly.id, user_id, now=T0)
    assert (progress.current, progress.status) == (6, "active")
