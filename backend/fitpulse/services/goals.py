"""
Goal progress: a fixed dispatch table maps each goal type to the aggregate it tracks
and the period it looks back over.

Status is derived, never client-set: completed when current >= target (checked
first, regardless of date), failed once the end date has passed, otherwise
active. Stored terminal statuses are kept on re-evaluation.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta, timezone
from types import MappingProxyType
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fitpulse.core.errors import InconsistentStateError, NotFoundError, ValidationError
from fitpulse.models.goal import Goal
from fitpulse.services.aggregator import Window, active_dates, aggregate, compute_streak, find_workouts, user_timezone
from fitpulse.services.dates import as_utc, local_date
from fitpulse.services.workout_records import RunWorkout, WorkoutRecord

logger = logging.getLogger(__name__)

GOAL_STATUSES = ("active", "completed", "failed")
TERMINAL_STATUSES = ("completed", "failed")


@dataclass(frozen=True)
class GoalKind:
    metric: str  # count | distance | duration | streak | longest_run
    unit: str
    title: str
    period_days: int | None = None  # rolling look-back ending today


GOAL_KINDS = MappingProxyType(
    {
        "weekly_workouts": GoalKind("count", "workouts", "Weekly Workouts", 7),
        "monthly_workouts": GoalKind("count", "workouts", "Monthly Workouts", 30),
        "weekly_distance": GoalKind("distance", "km", "Weekly Distance", 7),
        "monthly_distance": GoalKind("distance", "km", "Monthly Distance", 30),
        "weekly_duration": GoalKind("duration", "min", "Weekly Training Time", 7),
        "monthly_duration": GoalKind("duration", "min", "Monthly Training Time", 30),
        "daily_streak": GoalKind("streak", "days", "Workout Streak"),
        "run_distance": GoalKind("longest_run", "km", "Distance Milestone"),
    }
)


@dataclass(frozen=True)
class GoalProgress:
    current: float
    progress_percent: int
    status: str
    days_remaining: int


def progress_percent(current: float, target: float) -> int:
    """round(current / target * 100) clamped to [0, 100]; halves round up."""
    if target <= 0:
        return 0
    return max(0, min(100, math.floor(current / target * 100 + 0.5)))


def goal_status(current: float, target: float, now: datetime, end_date: datetime) -> str:
    if current >= target:
        return "completed"
    if as_utc(now) > as_utc(end_date):
        return "failed"
    return "active"


def days_remaining(now: datetime, end_date: datetime) -> int:
    seconds = (as_utc(end_date) - as_utc(now)).total_seconds()
    return max(0, math.ceil(seconds / 86400))


def evaluate_progress(current: float, target: float, now: datetime, end_date: datetime) -> GoalProgress:
    return GoalProgress(
        current=current,
        progress_percent=progress_percent(current, target),
        status=goal_status(current, target, now, end_date),
        days_remaining=days_remaining(now, end_date),
    )


def compute_current(
    kind: GoalKind,
    records: list[WorkoutRecord],
    window: Window,
    tz: ZoneInfo,
    as_of: date,
) -> float:
    """Current value of one goal metric over the goal's own window."""
    if kind.metric == "count":
        return float(aggregate(records, window, tz).count)
    if kind.metric == "distance":
        return aggregate(records, window, tz).total_distance_km
    if kind.metric == "duration":
        return aggregate(records, window, tz).total_duration_min
    if kind.metric == "streak":
        days = {d for d in active_dates(records, tz) if window.contains(d)}
        anchor = min(as_of, window.end) if window.end is not None else as_of
        return float(compute_streak(days, anchor))
    if kind.metric == "longest_run":
        distances = [
            r.distance_km or 0.0
            for r in records
            if isinstance(r, RunWorkout) and window.contains(local_date(r.date, tz))
        ]
        return max(distances, default=0.0)
    raise InconsistentStateError(f"Goal metric {kind.metric!r} has no aggregation")


def goal_window(kind: GoalKind, start: date, end: date, as_of: date) -> Window:
    """
    Dates a goal aggregates over. Weekly and monthly kinds look back over their
    period from today (or from the end date once it has passed), never outside
    the goal's own start/end bounds.
    """
    if kind.period_days:
        start = max(start, min(as_of, end) - timedelta(days=kind.period_days - 1))
    return Window("custom", start, end)


def _kind_for(goal: Goal) -> GoalKind:
    kind = GOAL_KINDS.get(goal.type)
    if kind is None:
        raise InconsistentStateError(f"Goal {goal.id} has unsupported type {goal.type!r}")
    return kind


async def _get_owned_goal(session: AsyncSession, goal_id: int, user_id: int) -> Goal:
    r = await session.execute(select(Goal).where(Goal.id == goal_id, Goal.user_id == user_id))
    goal = r.scalar_one_or_none()
    if not goal:
        raise NotFoundError("goal", goal_id)
    return goal


async def _evaluate(
    session: AsyncSession,
    goal: Goal,
    now: datetime,
    tz: ZoneInfo,
) -> GoalProgress:
    kind = _kind_for(goal)
    window = goal_window(kind, local_date(goal.start_date, tz), local_date(goal.end_date, tz), local_date(now, tz))
    from_dt, to_dt = window.utc_bounds(tz)
    records = await find_workouts(session, goal.user_id, from_dt=from_dt, to_dt=to_dt)
    current = compute_current(kind, records, window, tz, local_date(now, tz))
    progress = evaluate_progress(current, goal.target, now, goal.end_date)
    goal.current = current
    if goal.status in TERMINAL_STATUSES:
        progress = replace(progress, status=goal.status)
    elif progress.status != goal.status:
        logger.info("Goal %s of user %s: %s -> %s", goal.id, goal.user_id, goal.status, progress.status)
        goal.status = progress.status
        if progress.status == "completed":
            goal.completed_at = now
    return progress


async def evaluate_goal(
    session: AsyncSession,
    goal_id: int,
    user_id: int,
    *,
    now: datetime | None = None,
) -> tuple[Goal, GoalProgress]:
    """Recompute current, percent, status and days remaining for one of the user's goals."""
    now = as_utc(now or datetime.now(timezone.utc))
    goal = await _get_owned_goal(session, goal_id, user_id)
    tz = await user_timezone(session, user_id)
    progress = await _evaluate(session, goal, now, tz)
    await session.flush()
    return goal, progress


async def list_goals(
    session: AsyncSession,
    user_id: int,
    status: str | None = None,
    *,
    now: datetime | None = None,
) -> list[tuple[Goal, GoalProgress]]:
    """All of the user's goals, re-evaluated, optionally filtered by derived status. Newest first."""
    if status is not None and status not in GOAL_STATUSES:
        raise ValidationError("status", f"Unknown goal status {status!r}.")
    now = as_utc(now or datetime.now(timezone.utc))
    tz = await user_timezone(session, user_id)
    r = await session.execute(
        select(Goal).where(Goal.user_id == user_id).order_by(Goal.created_at.desc(), Goal.id.desc())
    )
    out = []
    for goal in r.scalars().all():
        progress = await _evaluate(session, goal, now, tz)
        if status is None or progress.status == status:
            out.append((goal, progress))
    await session.flush()
    return out


async def create_goal(
    session: AsyncSession,
    user_id: int,
    type_: str,
    target: float,
    end_date: datetime,
    *,
    title: str | None = None,
    start_date: datetime | None = None,
    now: datetime | None = None,
) -> tuple[Goal, GoalProgress]:
    """Validate and store a new goal, then evaluate it once."""
    kind = GOAL_KINDS.get(type_)
    if kind is None:
        raise ValidationError("type", f"Unknown goal type {type_!r}.")
    if target is None or target <= 0:
        raise ValidationError("target", "Target must be a positive number.")
    now = as_utc(now or datetime.now(timezone.utc))
    end = as_utc(end_date)
    if end <= now:
        raise ValidationError("end_date", "End date must be in the future.")
    if start_date is not None:
        start = as_utc(start_date)
    elif kind.period_days:
        start = now - timedelta(days=kind.period_days)
    else:
        start = now
    if start >= end:
        raise ValidationError("start_date", "Start date must be before the end date.")
    goal = Goal(
        user_id=user_id,
        type=type_,
        title=(title or kind.title).strip()[:100],
        target=float(target),
        unit=kind.unit,
        current=0.0,
        start_date=start,
        end_date=end,
        status="active",
        created_at=now,
    )
    session.add(goal)
    await session.flush()
    tz = await user_timezone(session, user_id)
    progress = await _evaluate(session, goal, now, tz)
    await session.flush()
    logger.info("Goal %s created for user %s: %s target=%s", goal.id, user_id, type_, target)
    return goal, progress


async def delete_goal(session: AsyncSession, goal_id: int, user_id: int) -> None:
    goal = await _get_owned_goal(session, goal_id, user_id)
    await session.delete(goal)
    await session.flush()


async def count_completed_goals(session: AsyncSession, user_id: int) -> int:
    r = await session.execute(
        select(func.count(Goal.id)).where(Goal.user_id == user_id, Goal.status == "completed")
    )
    return r.scalar() or 0
