from datetime import date, datetime

from pydantic import BaseModel, ConfigDict


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    display_name: str | None = None
    timezone: str | None = None
    is_public: bool


class UserStatsResponse(BaseModel):
    workout_count: int
    total_distance_km: float
    current_streak: int
    longest_streak: int
    personal_records: int
    goals_completed: int
    badges_earned: int


class FollowResponse(BaseModel):
    followee_id: int
    following: bool


class DaySummary(BaseModel):
    day: date
    count: int
    duration_min: float
    distance_km: float


class ActivitySummaryResponse(BaseModel):
    """Windowed aggregates for the current user; dates are local to the user's timezone."""

    window: str
    start: date | None = None
    end: date | None = None
    count: int
    total_duration_min: float
    total_distance_km: float
    current_streak: int
    last_activity_at: datetime | None = None
    per_day: list[DaySummary]
