"""Goals API: progress, percent and status are derived on every read."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fitpulse.api.deps import get_current_user
from fitpulse.db.session import get_db
from fitpulse.models.goal import Goal
from fitpulse.models.user import User
from fitpulse.schemas.goal import GoalCreate, GoalResponse
from fitpulse.services import goals as goal_service
from fitpulse.services.audit import record_action
from fitpulse.services.goals import GoalProgress

router = APIRouter(prefix="/goals", tags=["goals"])


def _to_response(goal: Goal, progress: GoalProgress) -> GoalResponse:
    return GoalResponse(
        id=goal.id,
        type=goal.type,
        title=goal.title,
        target=goal.target,
        unit=goal.unit,
        current=progress.current,
        progress_percent=progress.progress_percent,
        status=progress.status,
        days_remaining=progress.days_remaining,
        start_date=goal.start_date,
        end_date=goal.end_date,
        completed_at=goal.completed_at,
        created_at=goal.created_at,
    )


@router.get(
    "",
    response_model=list[GoalResponse],
    summary="List goals",
    responses={401: {"description": "Not authenticated"}, 400: {"description": "Unknown status"}},
)
async def list_goals(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    status: str | None = Query(default=None, description="active, completed or failed"),
) -> list[GoalResponse]:
    rows = await goal_service.list_goals(session, user.id, status)
    return [_to_response(goal, progress) for goal, progress in rows]


@router.post(
    "",
    response_model=GoalResponse,
    status_code=201,
    summary="Create goal",
    responses={401: {"description": "Not authenticated"}, 400: {"description": "Invalid goal"}},
)
async def create_goal(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    body: GoalCreate,
) -> GoalResponse:
    goal, progress = await goal_service.create_goal(
        session,
        user.id,
        body.type,
        body.target,
        body.end_date,
        title=body.title,
        start_date=body.start_date,
    )
    await record_action(
        session,
        user_id=user.id,
        action="create",
        entity_type="goal",
        entity_id=goal.id,
        details={"type": goal.type, "target": goal.target},
    )
    return _to_response(goal, progress)


@router.get(
    "/{goal_id}",
    response_model=GoalResponse,
    summary="Evaluate goal",
    responses={401: {"description": "Not authenticated"}, 404: {"description": "Goal not found"}},
)
async def get_goal(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    goal_id: int,
) -> GoalResponse:
    goal, progress = await goal_service.evaluate_goal(session, goal_id, user.id)
    return _to_response(goal, progress)


@router.delete(
    "/{goal_id}",
    status_code=204,
    summary="Delete goal",
    responses={401: {"description": "Not authenticated"}, 404: {"description": "Goal not found"}},
)
async def delete_goal(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    goal_id: int,
) -> None:
    await goal_service.delete_goal(session, goal_id, user.id)
    await record_action(session, user_id=user.id, action="delete", entity_type="goal", entity_id=goal_id)
