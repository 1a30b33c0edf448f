"""
Leaderboard ranking over a metric and a calendar period.

Ranking is a pure function of the (user, value, reached_at) snapshot: sort by
value descending, then the earliest time the value was reached, then user id.
Ranks are standard competition ranks ("1224"); users with nothing in the
period are left out rather than given a trailing rank.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fitpulse.config import settings
from fitpulse.core.errors import ValidationError
from fitpulse.models.user import Follow, User
from fitpulse.models.workout import Workout
from fitpulse.services.aggregator import (
    Window,
    qualifies,
    resolve_window,
    user_timezone,
)
from fitpulse.services.dates import as_utc, local_date
from fitpulse.services.workout_records import WorkoutRecord, distance_of, duration_of

logger = logging.getLogger(__name__)

SCOPES = ("friends", "global")
METRICS = ("workouts", "distance", "duration")
METRIC_UNITS = {"workouts": "workouts", "distance": "km", "duration": "min"}
PERIODS = {"week": "week", "month": "month", "year": "year", "all": "all_time"}


@dataclass(frozen=True)
class LeaderboardEntry:
    user_id: int
    value: float
    reached_at: datetime | None = None
    display_name: str | None = None
    rank: int = 0
    is_current_user: bool = False


def metric_value(
    records: Iterable[WorkoutRecord],
    metric: str,
    window: Window,
    tz: ZoneInfo,
) -> tuple[float, datetime | None]:
    """Metric total inside window plus the time of the last workout that increased it."""
    total = 0.0
    reached_at: datetime | None = None
    for record in records:
        if not qualifies(record) or not window.contains(local_date(record.date, tz)):
            continue
        if metric == "workouts":
            amount = 1.0
        elif metric == "distance":
            amount = distance_of(record)
        elif metric == "duration":
            amount = duration_of(record)
        else:
            raise ValidationError("metric", f"Unknown metric {metric!r}.")
        if amount <= 0:
            continue
        total += amount
        if reached_at is None or record.date > reached_at:
            reached_at = record.date
    return round(total, 2), reached_at


_NEVER = datetime.max.replace(tzinfo=timezone.utc)


def _sort_key(entry: LeaderboardEntry) -> tuple:
    return (-entry.value, entry.reached_at or _NEVER, entry.user_id)


def _contribution(metric: str):
    """(amount expression, row filter) for one metric; same rules as metric_value."""
    if metric == "workouts":
        return func.count(Workout.id), Workout.type != "biometrics"
    if metric == "duration":
        return func.sum(Workout.duration_min), (Workout.type != "biometrics") & (Workout.duration_min > 0)
    if metric == "distance":
        distance = Workout.payload["distance_km"].as_float()
        return func.sum(distance), Workout.type.in_(("run", "cardio")) & (distance > 0)
    raise ValidationError("metric", f"Unknown metric {metric!r}.")


async def metric_totals(
    session: AsyncSession,
    metric: str,
    user_ids: Iterable[int] | None,
    *,
    from_dt: datetime | None = None,
    to_dt: datetime | None = None,
) -> dict[int, tuple[float, datetime | None]]:
    """Per-user (total, last contributing workout time) in [from_dt, to_dt), grouped in the database."""
    amount, contributes = _contribution(metric)
    q = select(Workout.user_id, amount, func.max(Workout.date)).where(contributes)
    if user_ids is not None:
        ids = list(user_ids)
        if not ids:
            return {}
        q = q.where(Workout.user_id.in_(ids))
    if from_dt is not None:
        q = q.where(Workout.date >= from_dt)
    if to_dt is not None:
        q = q.where(Workout.date < to_dt)
    r = await session.execute(q.group_by(Workout.user_id))
    return {
        user_id: (round(float(total or 0), 2), as_utc(reached_at) if reached_at is not None else None)
        for user_id, total, reached_at in r.all()
    }


def rank_entries(
    entries: Iterable[LeaderboardEntry],
    current_user_id: int | None = None,
    limit: int | None = None,
) -> list[LeaderboardEntry]:
    """
    Deterministic competition ranking. Entries equal in both value and reached_at share a rank;
    user id only orders them. Zero values are dropped; limit applies after ranking.
    """
    ordered = sorted((e for e in entries if e.value > 0), key=_sort_key)
    ranked: list[LeaderboardEntry] = []
    previous: tuple | None = None
    rank = 0
    for position, entry in enumerate(ordered, start=1):
        tie = (entry.value, entry.reached_at)
        if tie != previous:
            rank = position
            previous = tie
        ranked.append(replace(entry, rank=rank, is_current_user=entry.user_id == current_user_id))
    if limit is not None:
        ranked = ranked[:limit]
    return ranked


def validate_query(scope: str, metric: str, period: str) -> None:
    if scope not in SCOPES:
        raise ValidationError("scope", f"Unknown scope {scope!r}.")
    if metric not in METRICS:
        raise ValidationError("metric", f"Unknown metric {metric!r}.")
    if period not in PERIODS:
        raise ValidationError("period", f"Unknown period {period!r}.")


async def _friend_ids(session: AsyncSession, user_id: int) -> set[int]:
    r = await session.execute(select(Follow.followee_id).where(Follow.follower_id == user_id))
    return {user_id, *r.scalars().all()}


async def get_leaderboard(
    session: AsyncSession,
    scope: str,
    metric: str,
    period: str,
    requesting_user_id: int,
    *,
    now: datetime | None = None,
    limit: int | None = None,
) -> dict:
    """Rank the scope's users on metric over period; calendar windows follow the requester's timezone."""
    validate_query(scope, metric, period)
    tz = await user_timezone(session, requesting_user_id)
    today = (now or datetime.now(timezone.utc)).astimezone(tz).date()
    window = resolve_window(PERIODS[period], today)
    from_dt, to_dt = window.utc_bounds(tz)

    candidate_ids = await _friend_ids(session, requesting_user_id) if scope == "friends" else None
    totals = await metric_totals(session, metric, candidate_ids, from_dt=from_dt, to_dt=to_dt)
    if not totals:
        return {"scope": scope, "metric": metric, "period": period, "unit": METRIC_UNITS[metric], "entries": []}

    r = await session.execute(select(User).where(User.id.in_(list(totals))))
    users = {u.id: u for u in r.scalars().all()}
    entries = []
    for user_id, (value, reached_at) in totals.items():
        user = users.get(user_id)
        if user is None:
            continue
        if scope == "global" and not user.is_public and user_id != requesting_user_id:
            continue
        entries.append(
            LeaderboardEntry(
                user_id=user_id,
                value=value,
                reached_at=reached_at,
                display_name=user.display_name or user.email.split("@")[0],
            )
        )
    ranked = rank_entries(entries, requesting_user_id, limit or settings.leaderboard_limit)
    logger.debug("Leaderboard %s/%s/%s for user %s: %s entries", scope, metric, period, requesting_user_id, len(ranked))
    return {"scope": scope, "metric": metric, "period": period, "unit": METRIC_UNITS[metric], "entries": ranked}
