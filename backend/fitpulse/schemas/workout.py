"""Pydantic schemas for the workouts API. Create bodies are a tagged union on `type`."""

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from fitpulse.schemas.badge import BadgeDefinitionResponse
from fitpulse.schemas.record import RecordResponse


class _WorkoutFields(BaseModel):
    title: str | None = Field(None, max_length=100)
    date: datetime
    duration_min: float | None = Field(None, ge=0, le=24 * 60)
    rpe: int | None = Field(None, ge=1, le=10)
    notes: str | None = None


class RunWorkoutCreate(_WorkoutFields):
    type: Literal["run"] = "run"
    distance_km: float | None = Field(None, ge=0, le=500)
    pace_min_per_km: float | None = Field(None, gt=0, le=60)
    avg_heart_rate: float | None = Field(None, ge=20, le=250)
    elevation_m: float | None = Field(None, ge=0)
    calories: float | None = Field(None, ge=0)


class ExerciseIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    sets: int = Field(0, ge=0, le=100)
    reps: int = Field(0, ge=0, le=1000)
    weight_kg: float | None = Field(None, ge=0, le=1000)


class LiftWorkoutCreate(_WorkoutFields):
    type: Literal["lift"] = "lift"
    exercises: list[ExerciseIn] = Field(default_factory=list)
    muscle_group: str | None = Field(None, max_length=64)


class CardioWorkoutCreate(_WorkoutFields):
    type: Literal["cardio"] = "cardio"
    activity: str | None = Field(None, max_length=64, description="cycling, rowing, swimming, ...")
    distance_km: float | None = Field(None, ge=0, le=1000)
    avg_heart_rate: float | None = Field(None, ge=20, le=250)
    calories: float | None = Field(None, ge=0)


class BiometricsWorkoutCreate(_WorkoutFields):
    type: Literal["biometrics"] = "biometrics"
    weight_kg: float | None = Field(None, ge=0, le=500)
    body_fat_pct: float | None = Field(None, ge=0, le=100)
    sleep_hours: float | None = Field(None, ge=0, le=24)
    resting_heart_rate: float | None = Field(None, ge=20, le=250)
    hrv: float | None = Field(None, ge=0)


WorkoutCreate = Annotated[
    Union[RunWorkoutCreate, LiftWorkoutCreate, CardioWorkoutCreate, BiometricsWorkoutCreate],
    Field(discriminator="type"),
]
workout_create_adapter = TypeAdapter(WorkoutCreate)

COMMON_FIELDS = frozenset({"type", "title", "date", "duration_min", "rpe", "notes"})


def payload_of(body: _WorkoutFields) -> dict:
    """Type-specific fields stored in the workout's JSON payload."""
    return body.model_dump(mode="json", exclude=set(COMMON_FIELDS))


class WorkoutUpdate(BaseModel):
    """Partial update. `details` holds type-specific fields merged into the stored payload."""

    title: str | None = Field(None, max_length=100)
    date: datetime | None = None
    duration_min: float | None = Field(None, ge=0, le=24 * 60)
    rpe: int | None = Field(None, ge=1, le=10)
    notes: str | None = None
    details: dict | None = None


class WorkoutResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    title: str
    date: datetime
    duration_min: float | None
    rpe: int | None
    notes: str | None
    payload: dict | None
    created_at: datetime | None = None


class WorkoutCommitResponse(BaseModel):
    """Created or updated workout plus whatever it unlocked."""

    workout: WorkoutResponse
    new_records: list[RecordResponse] = []
    new_badges: list[BadgeDefinitionResponse] = []
