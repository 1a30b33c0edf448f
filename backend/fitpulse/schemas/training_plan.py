from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class TrainingPlanCreate(BaseModel):
    type: str = Field(..., description="5k, 10k, half_marathon, marathon, general_fitness or strength")
    difficulty: str = "intermediate"
    duration_weeks: int
    start_date: date
    name: str | None = Field(None, max_length=100)


class CompleteWorkoutRequest(BaseModel):
    week_number: int = Field(..., ge=1)
    day: int = Field(..., ge=0, le=6, description="0=Monday .. 6=Sunday")


class CurrentWeekUpdate(BaseModel):
    week_number: int


class PlanWorkoutResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day: int
    type: str
    name: str
    description: str | None = None
    duration_min: float
    distance_km: float | None = None
    intensity: str
    completed: bool
    completed_at: datetime | None = None


class PlanWeekResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    week_number: int
    phase: str
    theme: str
    total_distance_km: float
    total_duration_min: float
    workouts: list[PlanWorkoutResponse]


class TrainingPlanSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    type: str
    difficulty: str
    duration_weeks: int
    start_date: date
    end_date: date
    current_week: int
    status: str
    progress_percentage: int
    total_workouts: int
    completed_workouts: int
    target_distance_km: float


class TrainingPlanResponse(TrainingPlanSummary):
    weeks: list[PlanWeekResponse]
