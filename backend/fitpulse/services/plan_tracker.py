"""
Plan completion tracking: per-day completion flags and the derived plan progress.

Plans follow the same state machine as goals: active -> completed | failed,
both terminal. current_week is navigation only and never gates completion.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fitpulse.core.errors import NotFoundError, ValidationError
from fitpulse.models.training_plan import PlanWeek, TrainingPlan
from fitpulse.services.aggregator import user_timezone

logger = logging.getLogger(__name__)

PLAN_STATUSES = ("active", "completed", "failed")
TERMINAL_STATUSES = ("completed", "failed")


def progress_counts(plan: TrainingPlan) -> tuple[int, int]:
    """(completed, total) over non-rest workouts in every week."""
    total = 0
    done = 0
    for week in plan.weeks:
        for workout in week.workouts:
            if workout.type == "rest":
                continue
            total += 1
            if workout.completed:
                done += 1
    return done, total


def progress_percentage(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    return math.floor(100 * completed / total + 0.5)


def refresh_progress(plan: TrainingPlan) -> None:
    done, total = progress_counts(plan)
    plan.completed_workouts = done
    plan.total_workouts = total
    plan.progress_percentage = progress_percentage(done, total)
    if plan.status == "active" and total > 0 and done == total:
        plan.status = "completed"
        logger.info("Training plan %s completed", plan.id)


def refresh_status(plan: TrainingPlan, today: date) -> None:
    """An active plan past its end date with sessions outstanding has failed."""
    if plan.status != "active":
        return
    done, total = progress_counts(plan)
    if today >= plan.end_date and done < total:
        plan.status = "failed"
        logger.info("Training plan %s expired with %s/%s sessions done", plan.id, done, total)


def _with_schedule():
    return selectinload(TrainingPlan.weeks).selectinload(PlanWeek.workouts)


async def _get_owned_plan(session: AsyncSession, plan_id: int, user_id: int) -> TrainingPlan:
    r = await session.execute(
        select(TrainingPlan)
        .where(TrainingPlan.id == plan_id, TrainingPlan.user_id == user_id)
        .options(_with_schedule())
    )
    plan = r.scalar_one_or_none()
    if not plan:
        raise NotFoundError("training plan", plan_id)
    return plan


async def _today(session: AsyncSession, user_id: int, now: datetime | None) -> date:
    tz = await user_timezone(session, user_id)
    return (now or datetime.now(timezone.utc)).astimezone(tz).date()


async def get_plan(
    session: AsyncSession,
    plan_id: int,
    user_id: int,
    *,
    now: datetime | None = None,
) -> TrainingPlan:
    plan = await _get_owned_plan(session, plan_id, user_id)
    refresh_status(plan, await _today(session, user_id, now))
    await session.flush()
    return plan


async def list_plans(
    session: AsyncSession,
    user_id: int,
    status: str | None = None,
    *,
    now: datetime | None = None,
) -> list[TrainingPlan]:
    if status is not None and status not in PLAN_STATUSES:
        raise ValidationError("status", f"Unknown plan status {status!r}.")
    r = await session.execute(
        select(TrainingPlan)
        .where(TrainingPlan.user_id == user_id)
        .options(_with_schedule())
        .order_by(TrainingPlan.created_at.desc(), TrainingPlan.id.desc())
    )
    today = await _today(session, user_id, now)
    plans = []
    for plan in r.scalars().all():
        refresh_status(plan, today)
        if status is None or plan.status == status:
            plans.append(plan)
    await session.flush()
    return plans


async def complete_workout(
    session: AsyncSession,
    plan_id: int,
    user_id: int,
    week_number: int,
    day: int,
    *,
    now: datetime | None = None,
) -> TrainingPlan:
    """Mark one day's session done and recompute plan progress. Re-completing is a no-op."""
    plan = await _get_owned_plan(session, plan_id, user_id)
    week = next((w for w in plan.weeks if w.week_number == week_number), None)
    if week is None:
        raise NotFoundError("plan week", week_number)
    workout = next((w for w in week.workouts if w.day == day), None)
    if workout is None:
        raise NotFoundError("plan workout", f"week {week_number} day {day}")
    if workout.type == "rest":
        raise ValidationError("day", "Rest days cannot be completed.")
    refresh_status(plan, await _today(session, user_id, now))
    if plan.status == "failed":
        raise ValidationError("status", "Plan has failed; create a new plan to retry.")
    if not workout.completed:
        workout.completed = True
        workout.completed_at = now or datetime.now(timezone.utc)
        refresh_progress(plan)
        logger.info(
            "Plan %s week %s day %s completed (%s%%)", plan.id, week_number, day, plan.progress_percentage
        )
    await session.flush()
    return plan


async def set_current_week(session: AsyncSession, plan_id: int, user_id: int, week_number: int) -> TrainingPlan:
    plan = await _get_owned_plan(session, plan_id, user_id)
    if not 1 <= week_number <= plan.duration_weeks:
        raise ValidationError("week_number", f"Week must be between 1 and {plan.duration_weeks}.")
    plan.current_week = week_number
    await session.flush()
    return plan


async def delete_plan(session: AsyncSession, plan_id: int, user_id: int) -> None:
    plan = await _get_owned_plan(session, plan_id, user_id)
    await session.delete(plan)
    await session.flush()
