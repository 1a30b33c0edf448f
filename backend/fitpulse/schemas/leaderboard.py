from datetime import datetime

from pydantic import BaseModel, ConfigDict


class LeaderboardEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rank: int
    user_id: int
    display_name: str | None = None
    value: float
    reached_at: datetime | None = None
    is_current_user: bool = False


class LeaderboardResponse(BaseModel):
    scope: str
    metric: str
    period: str
    unit: str
    entries: list[LeaderboardEntryResponse]
