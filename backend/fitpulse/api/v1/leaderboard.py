"""Leaderboard API."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fitpulse.api.deps import get_current_user
from fitpulse.db.session import get_db
from fitpulse.models.user import User
from fitpulse.schemas.leaderboard import LeaderboardEntryResponse, LeaderboardResponse
from fitpulse.services.leaderboard import get_leaderboard

router = APIRouter(prefix="/leaderboard", tags=["leaderboard"])


@router.get(
    "",
    response_model=LeaderboardResponse,
    summary="Ranked leaderboard",
    responses={401: {"description": "Not authenticated"}, 400: {"description": "Unknown scope, metric or period"}},
)
async def leaderboard(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    scope: str = Query(default="global", description="friends or global"),
    metric: str = Query(default="workouts", description="workouts, distance or duration"),
    period: str = Query(default="week", description="week, month, year or all"),
) -> LeaderboardResponse:
    board = await get_leaderboard(session, scope, metric, period, user.id)
    return LeaderboardResponse(
        scope=board["scope"],
        metric=board["metric"],
        period=board["period"],
        unit=board["unit"],
        entries=[LeaderboardEntryResponse.model_validate(e) for e in board["entries"]],
    )
