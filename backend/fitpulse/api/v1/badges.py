"""Badges API: catalogue, earned state and on-demand sync."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fitpulse.api.deps import get_current_user
from fitpulse.db.session import get_db
from fitpulse.models.user import User
from fitpulse.schemas.badge import BadgeDefinitionResponse, BadgeListResponse, BadgeSyncResponse
from fitpulse.services import badges as badge_service
from fitpulse.services.user_locks import user_lock

router = APIRouter(prefix="/badges", tags=["badges"])


@router.get(
    "",
    response_model=BadgeListResponse,
    summary="List badges with earned state",
    responses={401: {"description": "Not authenticated"}},
)
async def list_badges(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> BadgeListResponse:
    return BadgeListResponse.model_validate(await badge_service.list_badges(session, user.id))


@router.get(
    "/definitions",
    response_model=list[BadgeDefinitionResponse],
    summary="Badge catalogue",
    responses={401: {"description": "Not authenticated"}},
)
async def list_definitions(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> list[BadgeDefinitionResponse]:
    return [BadgeDefinitionResponse.model_validate(d) for d in await badge_service.list_definitions(session)]


@router.post(
    "/sync",
    response_model=BadgeSyncResponse,
    summary="Award newly earned badges",
    responses={401: {"description": "Not authenticated"}},
)
async def sync_badges(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> BadgeSyncResponse:
    """Idempotent: a second call without new activity returns an empty list."""
    async with user_lock(user.id):
        awarded = await badge_service.sync_badges(session, user.id)
    return BadgeSyncResponse(
        new_badges=[BadgeDefinitionResponse.model_validate(d) for d in awarded],
        count=len(awarded),
    )
