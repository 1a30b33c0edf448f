from datetime import datetime

from pydantic import BaseModel, ConfigDict


class BadgeDefinitionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str
    category: str
    rarity: str
    version: int


class BadgeItem(BadgeDefinitionResponse):
    earned: bool
    earned_at: datetime | None = None


class BadgeListResponse(BaseModel):
    all: list[BadgeItem]
    by_category: dict[str, list[BadgeItem]]
    earned: int
    total: int


class BadgeSyncResponse(BaseModel):
    new_badges: list[BadgeDefinitionResponse]
    count: int
