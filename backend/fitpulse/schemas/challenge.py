from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from fitpulse.schemas.leaderboard import LeaderboardEntryResponse


class ChallengeCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    metric: str = Field(..., description="workouts, distance or duration")
    target: float
    start_date: datetime
    end_date: datetime
    visibility: str = "public"


class ChallengeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    creator_id: int
    title: str
    metric: str
    target: float
    unit: str
    start_date: datetime
    end_date: datetime
    visibility: str


class ParticipantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    challenge_id: int
    user_id: int
    joined_at: datetime
    progress: float
    progress_reached_at: datetime | None = None
    last_synced_at: datetime | None = None


class ChallengeLeaderboardResponse(BaseModel):
    challenge_id: int
    title: str
    metric: str
    unit: str
    target: float
    entries: list[LeaderboardEntryResponse]
