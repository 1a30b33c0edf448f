"""
Typed view of stored workouts: one frozen dataclass per workout type.

Rows keep their type-specific fields in a JSON payload; everything downstream
(aggregation, personal records, badges) works on these variants instead and
dispatches over all four of them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Union

from fitpulse.core.errors import InconsistentStateError
from fitpulse.models.workout import Workout
from fitpulse.services.dates import as_utc

WORKOUT_TYPES = ("run", "lift", "cardio", "biometrics")


@dataclass(frozen=True)
class Exercise:
    name: str
    sets: int = 0
    reps: int = 0
    weight_kg: float | None = None


@dataclass(frozen=True)
class _WorkoutBase:
    id: int | None
    user_id: int
    date: datetime  # UTC
    duration_min: float


@dataclass(frozen=True)
class RunWorkout(_WorkoutBase):
    distance_km: float | None = None
    pace_min_per_km: float | None = None
    avg_heart_rate: float | None = None
    elevation_m: float | None = None
    calories: float | None = None

    @property
    def pace(self) -> float | None:
        """Average pace in min/km: logged pace, else duration / distance."""
        if self.pace_min_per_km:
            return self.pace_min_per_km
        if self.distance_km and self.duration_min:
            return self.duration_min / self.distance_km
        return None


@dataclass(frozen=True)
class LiftWorkout(_WorkoutBase):
    exercises: tuple[Exercise, ...] = field(default_factory=tuple)
    muscle_group: str | None = None


@dataclass(frozen=True)
class CardioWorkout(_WorkoutBase):
    activity: str | None = None
    distance_km: float | None = None
    avg_heart_rate: float | None = None
    calories: float | None = None


@dataclass(frozen=True)
class BiometricsWorkout(_WorkoutBase):
    weight_kg: float | None = None
    body_fat_pct: float | None = None
    sleep_hours: float | None = None
    resting_heart_rate: float | None = None
    hrv: float | None = None


WorkoutRecord = Union[RunWorkout, LiftWorkout, CardioWorkout, BiometricsWorkout]


def _num(payload: dict, key: str) -> float | None:
    value = payload.get(key)
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _exercises(payload: dict) -> tuple[Exercise, ...]:
    out = []
    for item in payload.get("exercises") or []:
        if not isinstance(item, dict) or not item.get("name"):
            continue
        out.append(
            Exercise(
                name=str(item["name"]),
                sets=int(item.get("sets") or 0),
                reps=int(item.get("reps") or 0),
                weight_kg=_num(item, "weight_kg"),
            )
        )
    return tuple(out)


def from_row(row: Workout) -> WorkoutRecord:
    """Convert a stored workout into its typed variant. Unknown types are an inconsistency, not a skip."""
    payload = row.payload or {}
    base = {
        "id": row.id,
        "user_id": row.user_id,
        "date": as_utc(row.date),
        "duration_min": float(row.duration_min or 0.0),
    }
    if row.type == "run":
        return RunWorkout(
            **base,
            distance_km=_num(payload, "distance_km"),
            pace_min_per_km=_num(payload, "pace_min_per_km"),
            avg_heart_rate=_num(payload, "avg_heart_rate"),
            elevation_m=_num(payload, "elevation_m"),
            calories=_num(payload, "calories"),
        )
    if row.type == "lift":
        return LiftWorkout(**base, exercises=_exercises(payload), muscle_group=payload.get("muscle_group"))
    if row.type == "cardio":
        return CardioWorkout(
            **base,
            activity=payload.get("activity"),
            distance_km=_num(payload, "distance_km"),
            avg_heart_rate=_num(payload, "avg_heart_rate"),
            calories=_num(payload, "calories"),
        )
    if row.type == "biometrics":
        return BiometricsWorkout(
            **base,
            weight_kg=_num(payload, "weight_kg"),
            body_fat_pct=_num(payload, "body_fat_pct"),
            sleep_hours=_num(payload, "sleep_hours"),
            resting_heart_rate=_num(payload, "resting_heart_rate"),
            hrv=_num(payload, "hrv"),
        )
    raise InconsistentStateError(f"Workout {row.id} has unknown type {row.type!r}")


def type_of(record: WorkoutRecord) -> str:
    if isinstance(record, RunWorkout):
        return "run"
    if isinstance(record, LiftWorkout):
        return "lift"
    if isinstance(record, CardioWorkout):
        return "cardio"
    if isinstance(record, BiometricsWorkout):
        return "biometrics"
    raise InconsistentStateError(f"Unsupported workout variant {type(record).__name__}")


def distance_of(record: WorkoutRecord) -> float:
    """Distance in km that counts towards volume: runs and cardio only."""
    if isinstance(record, (RunWorkout, CardioWorkout)):
        return record.distance_km or 0.0
    if isinstance(record, (LiftWorkout, BiometricsWorkout)):
        return 0.0
    raise InconsistentStateError(f"Unsupported workout variant {type(record).__name__}")


def duration_of(record: WorkoutRecord) -> float:
    return record.duration_min or 0.0
