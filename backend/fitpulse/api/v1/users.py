"""User endpoints: profile, timezone and visibility settings, lifetime stats, follow graph."""

from datetime import date, datetime
from typing import Annotated
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fitpulse.api.deps import get_current_user
from fitpulse.db.session import get_db
from fitpulse.models.badge import BadgeAward
from fitpulse.models.user import Follow, User
from fitpulse.schemas.user import (
    ActivitySummaryResponse,
    DaySummary,
    FollowResponse,
    UserResponse,
    UserStatsResponse,
)
from fitpulse.services.aggregator import aggregate_for_user, current_streak_for_user, resolve_window
from fitpulse.services.audit import record_action
from fitpulse.services.badges import user_stats
from fitpulse.services.dates import resolve_tz
from fitpulse.services.sql import insert_for
from fitpulse.services.workout_records import WORKOUT_TYPES

router = APIRouter(prefix="/users", tags=["users"])


class ProfileUpdate(BaseModel):
    display_name: str | None = Field(None, max_length=100)
    timezone: str | None = Field(None, max_length=64, description="IANA name, e.g. Europe/Berlin")
    is_public: bool | None = None


@router.get("/me", response_model=UserResponse, summary="Current user", responses={401: {"description": "Not authenticated"}})
async def get_me(user: Annotated[User, Depends(get_current_user)]) -> UserResponse:
    return UserResponse.model_validate(user)


@router.patch(
    "/me",
    response_model=UserResponse,
    summary="Update profile",
    responses={401: {"description": "Not authenticated"}, 400: {"description": "Unknown timezone"}},
)
async def update_me(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    body: ProfileUpdate,
) -> UserResponse:
    if body.timezone is not None:
        try:
            ZoneInfo(body.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise HTTPException(status_code=400, detail=f"Unknown timezone {body.timezone!r}.")
        user.timezone = body.timezone
    if body.display_name is not None:
        user.display_name = body.display_name.strip() or None
    if body.is_public is not None:
        user.is_public = body.is_public
    await session.flush()
    return UserResponse.model_validate(user)


@router.get(
    "/me/stats",
    response_model=UserStatsResponse,
    summary="Lifetime stats",
    responses={401: {"description": "Not authenticated"}},
)
async def get_my_stats(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> UserStatsResponse:
    stats = await user_stats(session, user.id)
    r = await session.execute(select(func.count(BadgeAward.id)).where(BadgeAward.user_id == user.id))
    return UserStatsResponse(
        workout_count=stats.workout_count,
        total_distance_km=stats.total_distance_km,
        current_streak=stats.current_streak,
        longest_streak=stats.longest_streak,
        personal_records=stats.record_count,
        goals_completed=stats.completed_goals,
        badges_earned=r.scalar() or 0,
    )


@router.get(
    "/me/summary",
    response_model=ActivitySummaryResponse,
    summary="Activity summary for a window",
    responses={401: {"description": "Not authenticated"}, 400: {"description": "Invalid window or type"}},
)
async def get_my_summary(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    window: str = Query(default="week", description="week, month, year, all_time or custom"),
    start: date | None = Query(default=None, description="custom window start (local date)"),
    end: date | None = Query(default=None, description="custom window end (local date)"),
    type: list[str] | None = Query(default=None, description="run, lift, cardio or biometrics; repeatable"),
) -> ActivitySummaryResponse:
    """Counts, duration and distance per local day. Biometrics count only when asked for by type."""
    tz = resolve_tz(user.timezone)
    today = datetime.now(tz).date()
    resolved = resolve_window(window, today, start, end)
    if type:
        unknown = [t for t in type if t not in WORKOUT_TYPES]
        if unknown:
            raise HTTPException(status_code=400, detail=f"Unknown workout type {unknown[0]!r}.")
    totals = await aggregate_for_user(session, user.id, resolved, types=type or None, tz=tz)
    streak = await current_streak_for_user(session, user.id, today=today, tz=tz)
    return ActivitySummaryResponse(
        window=resolved.kind,
        start=resolved.start,
        end=resolved.end,
        count=totals.count,
        total_duration_min=totals.total_duration_min,
        total_distance_km=totals.total_distance_km,
        current_streak=streak,
        last_activity_at=totals.last_activity_at,
        per_day=[
            DaySummary(day=d, count=b.count, duration_min=b.duration_min, distance_km=b.distance_km)
            for d, b in totals.per_day.items()
        ],
    )


@router.post(
    "/{user_id}/follow",
    response_model=FollowResponse,
    summary="Follow user",
    responses={401: {"description": "Not authenticated"}, 404: {"description": "User not found"}},
)
async def follow_user(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    user_id: int,
) -> FollowResponse:
    if user_id == user.id:
        raise HTTPException(status_code=400, detail="You cannot follow yourself.")
    if await session.get(User, user_id) is None:
        raise HTTPException(status_code=404, detail="User not found.")
    insert = insert_for(session)
    r = await session.execute(
        insert(Follow)
        .values(follower_id=user.id, followee_id=user_id)
        .on_conflict_do_nothing(index_elements=["follower_id", "followee_id"])
    )
    if r.rowcount == 1:
        await record_action(session, user_id=user.id, action="follow", entity_type="user", entity_id=user_id)
    return FollowResponse(followee_id=user_id, following=True)


@router.delete(
    "/{user_id}/follow",
    response_model=FollowResponse,
    summary="Unfollow user",
    responses={401: {"description": "Not authenticated"}},
)
async def unfollow_user(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    user_id: int,
) -> FollowResponse:
    r = await session.execute(delete(Follow).where(Follow.follower_id == user.id, Follow.followee_id == user_id))
    if r.rowcount:
        await record_action(session, user_id=user.id, action="unfollow", entity_type="user", entity_id=user_id)
    return FollowResponse(followee_id=user_id, following=False)
