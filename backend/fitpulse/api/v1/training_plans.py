"""Training plans API: generate, inspect and track periodized plans."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fitpulse.api.deps import get_current_user
from fitpulse.db.session import get_db
from fitpulse.models.user import User
from fitpulse.schemas.training_plan import (
    CompleteWorkoutRequest,
    CurrentWeekUpdate,
    TrainingPlanCreate,
    TrainingPlanResponse,
    TrainingPlanSummary,
)
from fitpulse.services import plan_tracker
from fitpulse.services.audit import record_action
from fitpulse.services.plan_generator import generate_plan

router = APIRouter(prefix="/training-plans", tags=["training-plans"])

_NOT_FOUND = {401: {"description": "Not authenticated"}, 404: {"description": "Training plan not found"}}


@router.post(
    "",
    response_model=TrainingPlanResponse,
    status_code=201,
    summary="Generate training plan",
    responses={401: {"description": "Not authenticated"}, 400: {"description": "Unknown type or difficulty"}},
)
async def create_plan(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    body: TrainingPlanCreate,
) -> TrainingPlanResponse:
    plan = await generate_plan(
        session,
        user.id,
        body.type,
        body.difficulty,
        body.duration_weeks,
        body.start_date,
        name=body.name,
    )
    await record_action(
        session,
        user_id=user.id,
        action="create",
        entity_type="training_plan",
        entity_id=plan.id,
        details={"type": plan.type, "difficulty": plan.difficulty, "weeks": plan.duration_weeks},
    )
    return TrainingPlanResponse.model_validate(plan)


@router.get(
    "",
    response_model=list[TrainingPlanSummary],
    summary="List training plans",
    responses={401: {"description": "Not authenticated"}},
)
async def list_plans(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    status: str | None = Query(default=None, description="active, completed or failed"),
) -> list[TrainingPlanSummary]:
    plans = await plan_tracker.list_plans(session, user.id, status)
    return [TrainingPlanSummary.model_validate(p) for p in plans]


@router.get("/{plan_id}", response_model=TrainingPlanResponse, summary="Get training plan", responses=_NOT_FOUND)
async def get_plan(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    plan_id: int,
) -> TrainingPlanResponse:
    return TrainingPlanResponse.model_validate(await plan_tracker.get_plan(session, plan_id, user.id))


@router.post(
    "/{plan_id}/complete",
    response_model=TrainingPlanResponse,
    summary="Mark a plan session as done",
    responses=_NOT_FOUND,
)
async def complete_workout(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    plan_id: int,
    body: CompleteWorkoutRequest,
) -> TrainingPlanResponse:
    plan = await plan_tracker.complete_workout(session, plan_id, user.id, body.week_number, body.day)
    return TrainingPlanResponse.model_validate(plan)


@router.patch(
    "/{plan_id}/current-week",
    response_model=TrainingPlanSummary,
    summary="Navigate to a plan week",
    responses=_NOT_FOUND,
)
async def set_current_week(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    plan_id: int,
    body: CurrentWeekUpdate,
) -> TrainingPlanSummary:
    plan = await plan_tracker.set_current_week(session, plan_id, user.id, body.week_number)
    return TrainingPlanSummary.model_validate(plan)


@router.delete("/{plan_id}", status_code=204, summary="Delete training plan", responses=_NOT_FOUND)
async def delete_plan(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    plan_id: int,
) -> None:
    await plan_tracker.delete_plan(session, plan_id, user.id)
    await record_action(session, user_id=user.id, action="delete", entity_type="training_plan", entity_id=plan_id)
