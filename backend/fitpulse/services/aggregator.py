"""
Workout aggregation: windowed counts, durations, distances, per-day buckets and streaks.

Everything in the engine (goals, badges, leaderboards, challenges) reads
workout history through this module. Calendar logic runs in the user's local
timezone; biometrics entries never count as training volume unless a caller
asks for them explicitly.
"""

from __future__ import annotations

import calendar
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fitpulse.config import settings
from fitpulse.core.errors import ValidationError
from fitpulse.models.user import User
from fitpulse.models.workout import Workout
from fitpulse.services.dates import local_date, local_day_end, local_day_start, resolve_tz
from fitpulse.services.workout_records import (
    WORKOUT_TYPES,
    WorkoutRecord,
    distance_of,
    duration_of,
    from_row,
    type_of,
)

logger = logging.getLogger(__name__)

WINDOW_KINDS = ("custom", "week", "month", "year", "all_time")


@dataclass(frozen=True)
class Window:
    """Inclusive range of local calendar dates; None on a side means unbounded."""

    kind: str
    start: date | None = None
    end: date | None = None

    def contains(self, d: date) -> bool:
        if self.start is not None and d < self.start:
            return False
        if self.end is not None and d > self.end:
            return False
        return True

    def utc_bounds(self, tz: ZoneInfo) -> tuple[datetime | None, datetime | None]:
        """Half-open UTC instants [from, to) covering the window in timezone tz."""
        from_dt = local_day_start(self.start, tz) if self.start is not None else None
        to_dt = local_day_end(self.end, tz) if self.end is not None else None
        return from_dt, to_dt


def resolve_window(
    kind: str,
    today: date,
    start: date | None = None,
    end: date | None = None,
) -> Window:
    """Build a Window for a window kind relative to the local date `today`. Weeks start on Monday."""
    if kind == "week":
        first = today - timedelta(days=today.weekday())
        return Window("week", first, first + timedelta(days=6))
    if kind == "month":
        last_day = calendar.monthrange(today.year, today.month)[1]
        return Window("month", today.replace(day=1), today.replace(day=last_day))
    if kind == "year":
        return Window("year", date(today.year, 1, 1), date(today.year, 12, 31))
    if kind == "all_time":
        return Window("all_time")
    if kind == "custom":
        if start is None or end is None:
            raise ValidationError("window", "Custom window needs both start and end dates.")
        if start > end:
            raise ValidationError("window", "Window start must not be after its end.")
        return Window("custom", start, end)
    raise ValidationError("window", f"Unknown window kind {kind!r}.")


@dataclass
class DayBucket:
    count: int = 0
    duration_min: float = 0.0
    distance_km: float = 0.0


@dataclass(frozen=True)
class Aggregates:
    count: int = 0
    total_duration_min: float = 0.0
    total_distance_km: float = 0.0
    per_day: dict[date, DayBucket] = field(default_factory=dict)
    last_activity_at: datetime | None = None


def qualifies(
    record: WorkoutRecord,
    types: Iterable[str] | None = None,
    include_biometrics: bool = False,
) -> bool:
    """True if the record counts towards aggregates for this type filter."""
    kind = type_of(record)
    wanted = set(types) if types is not None else None
    if wanted is not None and kind not in wanted:
        return False
    if kind == "biometrics":
        return include_biometrics or (wanted is not None and "biometrics" in wanted)
    return True


def aggregate(
    records: Iterable[WorkoutRecord],
    window: Window,
    tz: ZoneInfo,
    *,
    types: Iterable[str] | None = None,
    include_biometrics: bool = False,
) -> Aggregates:
    """Sum qualifying records inside window. No records gives zero aggregates."""
    types = tuple(types) if types is not None else None
    count = 0
    duration = 0.0
    distance = 0.0
    per_day: dict[date, DayBucket] = {}
    last_at: datetime | None = None
    for record in records:
        if not qualifies(record, types, include_biometrics):
            continue
        day = local_date(record.date, tz)
        if not window.contains(day):
            continue
        rec_duration = duration_of(record)
        rec_distance = distance_of(record)
        count += 1
        duration += rec_duration
        distance += rec_distance
        bucket = per_day.setdefault(day, DayBucket())
        bucket.count += 1
        bucket.duration_min += rec_duration
        bucket.distance_km += rec_distance
        if last_at is None or record.date > last_at:
            last_at = record.date
    return Aggregates(
        count=count,
        total_duration_min=round(duration, 2),
        total_distance_km=round(distance, 2),
        per_day=dict(sorted(per_day.items())),
        last_activity_at=last_at,
    )


def active_dates(
    records: Iterable[WorkoutRecord],
    tz: ZoneInfo,
    *,
    types: Iterable[str] | None = None,
    include_biometrics: bool = False,
) -> set[date]:
    """Distinct local dates with at least one qualifying workout."""
    types = tuple(types) if types is not None else None
    return {
        local_date(r.date, tz)
        for r in records
        if qualifies(r, types, include_biometrics)
    }


def compute_streak(dates: Iterable[date], today: date) -> int:
    """
    Consecutive active days ending today, or ending yesterday when nothing is logged yet today.
    A single fully skipped day ends the streak.
    """
    days = set(dates)
    anchor = today if today in days else today - timedelta(days=1)
    streak = 0
    d = anchor
    while d in days:
        streak += 1
        d -= timedelta(days=1)
    return streak


def longest_streak(dates: Iterable[date]) -> int:
    """Longest run of consecutive active days anywhere in the history."""
    best = 0
    run = 0
    previous: date | None = None
    for d in sorted(set(dates)):
        if previous is not None and d - previous == timedelta(days=1):
            run += 1
        else:
            run = 1
        best = max(best, run)
        previous = d
    return best


async def user_timezone(session: AsyncSession, user_id: int) -> ZoneInfo:
    r = await session.execute(select(User.timezone).where(User.id == user_id))
    return resolve_tz(r.scalar_one_or_none())


async def find_workouts(
    session: AsyncSession,
    user_id: int,
    *,
    from_dt: datetime | None = None,
    to_dt: datetime | None = None,
    type_: str | None = None,
) -> list[WorkoutRecord]:
    """Workout store query: one user's workouts in [from_dt, to_dt), oldest first."""
    if type_ is not None and type_ not in WORKOUT_TYPES:
        raise ValidationError("type", f"Unknown workout type {type_!r}.")
    q = select(Workout).where(Workout.user_id == user_id)
    if from_dt is not None:
        q = q.where(Workout.date >= from_dt)
    if to_dt is not None:
        q = q.where(Workout.date < to_dt)
    if type_ is not None:
        q = q.where(Workout.type == type_)
    r = await session.execute(q.order_by(Workout.date.asc(), Workout.id.asc()))
    return [from_row(row) for row in r.scalars().all()]


async def aggregate_for_user(
    session: AsyncSession,
    user_id: int,
    window: Window,
    *,
    types: Iterable[str] | None = None,
    include_biometrics: bool = False,
    tz: ZoneInfo | None = None,
) -> Aggregates:
    """Query the user's workouts for the window and aggregate them."""
    tz = tz or await user_timezone(session, user_id)
    from_dt, to_dt = window.utc_bounds(tz)
    types = tuple(types) if types is not None else None
    single_type = types[0] if types is not None and len(types) == 1 else None
    records = await find_workouts(session, user_id, from_dt=from_dt, to_dt=to_dt, type_=single_type)
    logger.debug("Aggregating %s workouts for user %s over %s", len(records), user_id, window)
    return aggregate(records, window, tz, types=types, include_biometrics=include_biometrics)


async def current_streak_for_user(
    session: AsyncSession,
    user_id: int,
    *,
    today: date | None = None,
    tz: ZoneInfo | None = None,
) -> int:
    """Current streak over the configured lookback, excluding biometrics."""
    tz = tz or await user_timezone(session, user_id)
    today = today or datetime.now(tz).date()
    lookback = Window("custom", today - timedelta(days=settings.streak_lookback_days), today)
    from_dt, to_dt = lookback.utc_bounds(tz)
    records = await find_workouts(session, user_id, from_dt=from_dt, to_dt=to_dt)
    return compute_streak(active_dates(records, tz), today)
