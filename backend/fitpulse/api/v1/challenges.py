"""Challenges API."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fitpulse.api.deps import get_current_user
from fitpulse.db.session import get_db
from fitpulse.models.user import User
from fitpulse.schemas.challenge import (
    ChallengeCreate,
    ChallengeLeaderboardResponse,
    ChallengeResponse,
    ParticipantResponse,
)
from fitpulse.schemas.leaderboard import LeaderboardEntryResponse
from fitpulse.services import challenges as challenge_service
from fitpulse.services.audit import record_action
from fitpulse.services.user_locks import user_lock

router = APIRouter(prefix="/challenges", tags=["challenges"])

_NOT_FOUND = {401: {"description": "Not authenticated"}, 404: {"description": "Challenge not found"}}


@router.post(
    "",
    response_model=ChallengeResponse,
    status_code=201,
    summary="Create challenge",
    responses={401: {"description": "Not authenticated"}, 400: {"description": "Invalid challenge"}},
)
async def create_challenge(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    body: ChallengeCreate,
) -> ChallengeResponse:
    challenge = await challenge_service.create_challenge(
        session,
        user.id,
        body.title,
        body.metric,
        body.target,
        body.start_date,
        body.end_date,
        visibility=body.visibility,
    )
    await record_action(session, user_id=user.id, action="create", entity_type="challenge", entity_id=challenge.id)
    return ChallengeResponse.model_validate(challenge)


@router.post("/{challenge_id}/join", response_model=ParticipantResponse, summary="Join challenge", responses=_NOT_FOUND)
async def join_challenge(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    challenge_id: int,
) -> ParticipantResponse:
    async with user_lock(user.id):
        participant = await challenge_service.join_challenge(session, challenge_id, user.id)
    await record_action(session, user_id=user.id, action="join", entity_type="challenge", entity_id=challenge_id)
    return ParticipantResponse.model_validate(participant)


@router.post(
    "/{challenge_id}/sync",
    response_model=ParticipantResponse,
    summary="Re-sync my challenge progress",
    responses=_NOT_FOUND,
)
async def sync_progress(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    challenge_id: int,
) -> ParticipantResponse:
    async with user_lock(user.id):
        participant = await challenge_service.sync_challenge_progress(session, challenge_id, user.id)
    return ParticipantResponse.model_validate(participant)


@router.get(
    "/{challenge_id}/leaderboard",
    response_model=ChallengeLeaderboardResponse,
    summary="Challenge leaderboard",
    responses=_NOT_FOUND,
)
async def challenge_leaderboard(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    challenge_id: int,
) -> ChallengeLeaderboardResponse:
    board = await challenge_service.challenge_leaderboard(session, challenge_id, user.id)
    return ChallengeLeaderboardResponse(
        challenge_id=board["challenge_id"],
        title=board["title"],
        metric=board["metric"],
        unit=board["unit"],
        target=board["target"],
        entries=[LeaderboardEntryResponse.model_validate(e) for e in board["entries"]],
    )
