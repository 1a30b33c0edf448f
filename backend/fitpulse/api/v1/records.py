"""Personal records API."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fitpulse.api.deps import get_current_user
from fitpulse.db.session import get_db
from fitpulse.models.user import User
from fitpulse.schemas.record import RecordListResponse, RecordResponse
from fitpulse.services.personal_records import RECORD_CATEGORIES, get_record, list_records

router = APIRouter(prefix="/records", tags=["records"])


@router.get(
    "",
    response_model=RecordListResponse,
    summary="List personal records",
    responses={401: {"description": "Not authenticated"}},
)
async def get_records(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> RecordListResponse:
    records = [RecordResponse.model_validate(r) for r in await list_records(session, user.id)]
    by_category: dict[str, list[RecordResponse]] = {c: [] for c in RECORD_CATEGORIES}
    for record in records:
        by_category.setdefault(record.category, []).append(record)
    return RecordListResponse(records=records, by_category=by_category)


@router.get(
    "/{record_type}",
    response_model=RecordResponse,
    summary="Get one personal record",
    responses={401: {"description": "Not authenticated"}, 404: {"description": "Record not found"}},
)
async def get_record_by_type(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    record_type: str,
) -> RecordResponse:
    return RecordResponse.model_validate(await get_record(session, user.id, record_type))
