from datetime import datetime

from pydantic import BaseModel, ConfigDict


class RecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category: str
    record_type: str
    value: float
    unit: str
    previous_value: float | None = None
    improvement_percent: float | None = None
    achieved_at: datetime
    workout_id: int | None = None


class RecordListResponse(BaseModel):
    records: list[RecordResponse]
    by_category: dict[str, list[RecordResponse]]
