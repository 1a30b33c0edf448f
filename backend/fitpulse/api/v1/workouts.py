"""Workouts API: log, edit and delete entries; every write refreshes records, challenges and badges."""

from datetime import date, datetime, timedelta, timezone
from typing import Annotated

import pydantic
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fitpulse.api.deps import get_current_user
from fitpulse.db.session import get_db
from fitpulse.models.user import User
from fitpulse.models.workout import Workout
from fitpulse.schemas.badge import BadgeDefinitionResponse
from fitpulse.schemas.pagination import Page
from fitpulse.schemas.record import RecordResponse
from fitpulse.schemas.workout import (
    COMMON_FIELDS,
    WorkoutCommitResponse,
    WorkoutCreate,
    WorkoutResponse,
    WorkoutUpdate,
    payload_of,
    workout_create_adapter,
)
from fitpulse.services.audit import record_action
from fitpulse.services.dates import as_utc
from fitpulse.services.workout_events import CommitOutcome, on_workout_committed, on_workout_deleted
from fitpulse.services.workout_records import WORKOUT_TYPES

router = APIRouter(prefix="/workouts", tags=["workouts"])


def _commit_response(w: Workout, outcome: CommitOutcome) -> WorkoutCommitResponse:
    return WorkoutCommitResponse(
        workout=WorkoutResponse.model_validate(w),
        new_records=[RecordResponse.model_validate(r) for r in outcome.records],
        new_badges=[BadgeDefinitionResponse.model_validate(b) for b in outcome.badges],
    )


async def _get_owned_workout(session: AsyncSession, workout_id: int, user_id: int) -> Workout:
    r = await session.execute(select(Workout).where(Workout.id == workout_id, Workout.user_id == user_id))
    w = r.scalar_one_or_none()
    if not w:
        raise HTTPException(status_code=404, detail="Workout not found.")
    return w


@router.get(
    "",
    response_model=Page[WorkoutResponse],
    summary="List workouts",
    responses={401: {"description": "Not authenticated"}},
)
async def list_workouts(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    from_date: date | None = None,
    to_date: date | None = None,
    type: str | None = Query(default=None, description="run, lift, cardio or biometrics"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> Page[WorkoutResponse]:
    """List the current user's workouts, newest first (UTC date range, paginated)."""
    if type is not None and type not in WORKOUT_TYPES:
        raise HTTPException(status_code=400, detail=f"Unknown workout type {type!r}.")
    base = select(Workout).where(Workout.user_id == user.id)
    if from_date is not None:
        base = base.where(Workout.date >= datetime.combine(from_date, datetime.min.time(), tzinfo=timezone.utc))
    if to_date is not None:
        to_dt = datetime.combine(to_date + timedelta(days=1), datetime.min.time(), tzinfo=timezone.utc)
        base = base.where(Workout.date < to_dt)
    if type is not None:
        base = base.where(Workout.type == type)
    total = (await session.execute(select(func.count()).select_from(base.subquery()))).scalar() or 0
    r = await session.execute(base.order_by(Workout.date.desc(), Workout.id.desc()).offset(offset).limit(limit))
    return Page[WorkoutResponse](
        items=[WorkoutResponse.model_validate(w) for w in r.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
        has_more=(offset + limit) < total,
    )


@router.post(
    "",
    response_model=WorkoutCommitResponse,
    status_code=201,
    summary="Log workout",
    responses={401: {"description": "Not authenticated"}},
)
async def create_workout(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    body: WorkoutCreate,
) -> WorkoutCommitResponse:
    """Store a workout, then detect personal records, re-sync challenges and award badges."""
    now = datetime.now(timezone.utc)
    w = Workout(
        user_id=user.id,
        type=body.type,
        title=body.title or f"{body.type.capitalize()} workout",
        date=as_utc(body.date),
        duration_min=body.duration_min,
        rpe=body.rpe,
        notes=body.notes,
        payload=payload_of(body),
        created_at=now,
    )
    session.add(w)
    await session.flush()
    await record_action(session, user_id=user.id, action="create", entity_type="workout", entity_id=w.id)
    outcome = await on_workout_committed(session, w, now=now)
    return _commit_response(w, outcome)


@router.get(
    "/{workout_id}",
    response_model=WorkoutResponse,
    summary="Get workout",
    responses={401: {"description": "Not authenticated"}, 404: {"description": "Workout not found"}},
)
async def get_workout(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    workout_id: int,
) -> WorkoutResponse:
    return WorkoutResponse.model_validate(await _get_owned_workout(session, workout_id, user.id))


@router.patch(
    "/{workout_id}",
    response_model=WorkoutCommitResponse,
    summary="Update workout",
    responses={401: {"description": "Not authenticated"}, 404: {"description": "Workout not found"}},
)
async def update_workout(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    workout_id: int,
    body: WorkoutUpdate,
) -> WorkoutCommitResponse:
    """Update a workout. The merged entry is re-validated against its type before it is stored."""
    w = await _get_owned_workout(session, workout_id, user.id)
    merged = {
        "type": w.type,
        "title": w.title,
        "date": w.date,
        "duration_min": w.duration_min,
        "rpe": w.rpe,
        "notes": w.notes,
        **(w.payload or {}),
    }
    for key, value in (body.details or {}).items():
        if key not in COMMON_FIELDS:
            merged[key] = value
    merged.update(body.model_dump(exclude_unset=True, exclude={"details"}))
    try:
        validated = workout_create_adapter.validate_python(merged)
    except pydantic.ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
    now = datetime.now(timezone.utc)
    w.title = validated.title or w.title
    w.date = as_utc(validated.date)
    w.duration_min = validated.duration_min
    w.rpe = validated.rpe
    w.notes = validated.notes
    w.payload = payload_of(validated)
    w.updated_at = now
    await session.flush()
    await record_action(
        session,
        user_id=user.id,
        action="update",
        entity_type="workout",
        entity_id=w.id,
        details={"fields": sorted(body.model_fields_set)},
    )
    outcome = await on_workout_committed(session, w, now=now)
    return _commit_response(w, outcome)


@router.delete(
    "/{workout_id}",
    status_code=204,
    summary="Delete workout",
    responses={401: {"description": "Not authenticated"}, 404: {"description": "Workout not found"}},
)
async def delete_workout(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    workout_id: int,
) -> None:
    """Delete a workout. Personal records and badges it produced are kept."""
    w = await _get_owned_workout(session, workout_id, user.id)
    await record_action(session, user_id=user.id, action="delete", entity_type="workout", entity_id=w.id)
    await session.delete(w)
    await session.flush()
    await on_workout_deleted(session, user.id)
