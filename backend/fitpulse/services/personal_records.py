"""
Personal record detection.

Each committed workout yields candidate (category, record_type, value) tuples.
A candidate replaces the stored record only when it is strictly better in the
record's direction (max for distance/weight/duration, min for pace). Writes are
conditional so concurrent commits can never install a worse value:
first records use insert-or-skip on the (user, category, record_type) unique
key, later ones an UPDATE guarded by "still the value we read and still worse".
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from types import MappingProxyType

from prometheus_client import Counter
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fitpulse.config import settings
from fitpulse.core.errors import ConcurrencyConflict, NotFoundError
from fitpulse.models.personal_record import PersonalRecord
from fitpulse.services.sql import insert_for
from fitpulse.services.workout_records import (
    BiometricsWorkout,
    CardioWorkout,
    LiftWorkout,
    RunWorkout,
    WorkoutRecord,
)

logger = logging.getLogger(__name__)

RECORDS_SET = Counter("fitpulse_personal_records_total", "Personal records set or improved", ["category"])

RECORD_CATEGORIES = ("running", "cardio", "strength", "general")


@dataclass(frozen=True)
class RecordKind:
    category: str
    unit: str
    direction: str  # "max" | "min"
    label: str


RECORD_KINDS = MappingProxyType(
    {
        "fastest_1k": RecordKind("running", "min/km", "min", "Fastest 1K"),
        "fastest_5k": RecordKind("running", "min/km", "min", "Fastest 5K"),
        "fastest_10k": RecordKind("running", "min/km", "min", "Fastest 10K"),
        "fastest_half_marathon": RecordKind("running", "min/km", "min", "Fastest Half Marathon"),
        "fastest_marathon": RecordKind("running", "min/km", "min", "Fastest Marathon"),
        "longest_run": RecordKind("running", "km", "max", "Longest Run"),
        "highest_elevation_run": RecordKind("running", "m", "max", "Highest Elevation"),
        "longest_cardio": RecordKind("cardio", "min", "max", "Longest Cardio"),
        "longest_cycling": RecordKind("cardio", "km", "max", "Longest Cycling"),
        "longest_workout": RecordKind("general", "min", "max", "Longest Workout"),
    }
)
STRENGTH_KIND = RecordKind("strength", "kg", "max", "Heaviest Lift")
STRENGTH_PREFIX = "heaviest_"

# Pace records count once the run covers at least the nominal distance (km).
PACE_DISTANCES = (
    ("fastest_1k", 1.0),
    ("fastest_5k", 5.0),
    ("fastest_10k", 10.0),
    ("fastest_half_marathon", 21.0975),
    ("fastest_marathon", 42.195),
)


@dataclass(frozen=True)
class RecordCandidate:
    category: str
    record_type: str
    value: float
    unit: str
    direction: str


def kind_for(record_type: str) -> RecordKind | None:
    if record_type.startswith(STRENGTH_PREFIX):
        return STRENGTH_KIND
    return RECORD_KINDS.get(record_type)


def exercise_slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", name.strip().lower()).strip("_")


def is_better(new: float, old: float | None, direction: str) -> bool:
    if old is None:
        return True
    return new < old if direction == "min" else new > old


def improvement_percent(new: float, old: float | None, direction: str) -> float | None:
    """Relative improvement over the previous value in percent; None without a usable previous value."""
    if old is None or old == 0:
        return None
    if direction == "min":
        pct = (old - new) / old * 100
    else:
        pct = (new - old) / old * 100
    return round(pct, 1)


def _candidate(record_type: str, value: float) -> RecordCandidate:
    kind = kind_for(record_type)
    return RecordCandidate(kind.category, record_type, round(value, 3), kind.unit, kind.direction)


def candidates_for(workout: WorkoutRecord) -> list[RecordCandidate]:
    """Every record this workout could set, before comparing with stored values."""
    out: list[RecordCandidate] = []
    if isinstance(workout, RunWorkout):
        if workout.distance_km:
            out.append(_candidate("longest_run", workout.distance_km))
            pace = workout.pace
            if pace:
                for record_type, nominal in PACE_DISTANCES:
                    if workout.distance_km >= nominal:
                        out.append(_candidate(record_type, pace))
        if workout.elevation_m:
            out.append(_candidate("highest_elevation_run", workout.elevation_m))
    elif isinstance(workout, CardioWorkout):
        if workout.duration_min:
            out.append(_candidate("longest_cardio", workout.duration_min))
        if (workout.activity or "").lower() == "cycling" and workout.distance_km:
            out.append(_candidate("longest_cycling", workout.distance_km))
    elif isinstance(workout, LiftWorkout):
        best: dict[str, float] = {}
        for exercise in workout.exercises:
            slug = exercise_slug(exercise.name)
            if not slug or not exercise.weight_kg:
                continue
            best[slug] = max(best.get(slug, 0.0), exercise.weight_kg)
        for slug, weight in best.items():
            out.append(_candidate(f"{STRENGTH_PREFIX}{slug}", weight))
    elif isinstance(workout, BiometricsWorkout):
        return out
    else:
        raise TypeError(f"Unsupported workout variant {type(workout).__name__}")
    if workout.duration_min:
        out.append(_candidate("longest_workout", workout.duration_min))
    return out


async def _insert_first(
    session: AsyncSession,
    user_id: int,
    candidate: RecordCandidate,
    workout: WorkoutRecord,
    now: datetime,
) -> bool:
    """Insert-or-skip on the unique key. False if another writer holds the row already."""
    insert = insert_for(session)
    stmt = (
        insert(PersonalRecord)
        .values(
            user_id=user_id,
            category=candidate.category,
            record_type=candidate.record_type,
            value=candidate.value,
            unit=candidate.unit,
            previous_value=None,
            improvement_percent=None,
            achieved_at=workout.date,
            workout_id=workout.id,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=["user_id", "category", "record_type"])
    )
    r = await session.execute(stmt)
    return r.rowcount == 1


async def _compare_and_swap(
    session: AsyncSession,
    existing: PersonalRecord,
    candidate: RecordCandidate,
    workout: WorkoutRecord,
    now: datetime,
) -> bool:
    """Replace the value only if it is unchanged since read and still worse than the candidate."""
    observed = existing.value
    better = (
        PersonalRecord.value > candidate.value
        if candidate.direction == "min"
        else PersonalRecord.value < candidate.value
    )
    stmt = (
        update(PersonalRecord)
        .where(PersonalRecord.id == existing.id, PersonalRecord.value == observed, better)
        .values(
            value=candidate.value,
            previous_value=observed,
            improvement_percent=improvement_percent(candidate.value, observed, candidate.direction),
            achieved_at=workout.date,
            workout_id=workout.id,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    r = await session.execute(stmt)
    return r.rowcount == 1


async def _load(session: AsyncSession, user_id: int, candidate: RecordCandidate) -> PersonalRecord | None:
    r = await session.execute(
        select(PersonalRecord)
        .where(
            PersonalRecord.user_id == user_id,
            PersonalRecord.category == candidate.category,
            PersonalRecord.record_type == candidate.record_type,
        )
        .execution_options(populate_existing=True)
    )
    return r.scalar_one_or_none()


async def apply_candidate(
    session: AsyncSession,
    user_id: int,
    candidate: RecordCandidate,
    workout: WorkoutRecord,
    *,
    now: datetime | None = None,
) -> PersonalRecord | None:
    """Install candidate if it beats the stored record. Returns the updated row, or None if it does not."""
    now = now or datetime.now(timezone.utc)
    for _ in range(max(1, settings.record_cas_attempts)):
        existing = await _load(session, user_id, candidate)
        if existing is None:
            if await _insert_first(session, user_id, candidate, workout, now):
                return await _load(session, user_id, candidate)
            continue
        if not is_better(candidate.value, existing.value, candidate.direction):
            return None
        if await _compare_and_swap(session, existing, candidate, workout, now):
            return await _load(session, user_id, candidate)
    raise ConcurrencyConflict(f"Record {candidate.record_type} for user {user_id} kept changing underneath")


async def detect_records(
    session: AsyncSession,
    workout: WorkoutRecord,
    *,
    now: datetime | None = None,
) -> list[PersonalRecord]:
    """Check every candidate of a committed workout; return records newly set or improved."""
    updated: list[PersonalRecord] = []
    for candidate in candidates_for(workout):
        try:
            record = await apply_candidate(session, workout.user_id, candidate, workout, now=now)
        except ConcurrencyConflict as e:
            logger.warning("Personal record write skipped: %s", e)
            continue
        if record is None:
            continue
        RECORDS_SET.labels(category=record.category).inc()
        logger.info(
            "New PR for user %s: %s = %s %s (previous %s)",
            workout.user_id,
            record.record_type,
            record.value,
            record.unit,
            record.previous_value,
        )
        updated.append(record)
    return updated


async def list_records(session: AsyncSession, user_id: int) -> list[PersonalRecord]:
    r = await session.execute(
        select(PersonalRecord)
        .where(PersonalRecord.user_id == user_id)
        .order_by(PersonalRecord.achieved_at.desc(), PersonalRecord.id.desc())
    )
    return list(r.scalars().all())


async def get_record(session: AsyncSession, user_id: int, record_type: str) -> PersonalRecord:
    r = await session.execute(
        select(PersonalRecord).where(PersonalRecord.user_id == user_id, PersonalRecord.record_type == record_type)
    )
    record = r.scalar_one_or_none()
    if not record:
        raise NotFoundError("personal record", record_type)
    return record


async def count_records(session: AsyncSession, user_id: int) -> int:
    r = await session.execute(select(func.count(PersonalRecord.id)).where(PersonalRecord.user_id == user_id))
    return r.scalar() or 0
