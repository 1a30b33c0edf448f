from datetime import datetime

from pydantic import BaseModel, Field


class GoalCreate(BaseModel):
    """Body for POST /goals. Business rules (positive target, future end date) are checked by the evaluator."""

    type: str = Field(..., max_length=32)
    target: float
    end_date: datetime
    start_date: datetime | None = None
    title: str | None = Field(None, max_length=100)


class GoalResponse(BaseModel):
    id: int
    type: str
    title: str
    target: float
    unit: str
    current: float
    progress_percent: int
    status: str
    days_remaining: int
    start_date: datetime
    end_date: datetime
    completed_at: datetime | None = None
    created_at: datetime | None = None
