"""
Derived-state updates after a workout is written.

A commit runs personal record detection, challenge re-sync and badge sync, in
that order, under the owner's lock so the next commit for the same user never
reads a half-updated state. An edit goes through the same path (records only
ever improve); a delete only re-syncs challenge progress. Records, badges
and goal statuses are never rolled back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from fitpulse.models.badge import BadgeDefinition
from fitpulse.models.personal_record import PersonalRecord
from fitpulse.models.workout import Workout
from fitpulse.services.badges import sync_badges
from fitpulse.services.challenges import sync_user_challenges
from fitpulse.services.personal_records import detect_records
from fitpulse.services.user_locks import user_lock
from fitpulse.services.workout_records import from_row

logger = logging.getLogger(__name__)


@dataclass
class CommitOutcome:
    records: list[PersonalRecord] = field(default_factory=list)
    badges: list[BadgeDefinition] = field(default_factory=list)
    challenges_synced: int = 0


async def on_workout_committed(
    session: AsyncSession,
    workout: Workout,
    *,
    now: datetime | None = None,
) -> CommitOutcome:
    now = now or datetime.now(timezone.utc)
    record = from_row(workout)
    async with user_lock(workout.user_id):
        outcome = CommitOutcome()
        outcome.records = await detect_records(session, record, now=now)
        await session.flush()
        outcome.challenges_synced = await sync_user_challenges(session, workout.user_id, now=now)
        outcome.badges = await sync_badges(session, workout.user_id, workout_id=workout.id, now=now)
        await session.flush()
    logger.info(
        "Workout %s committed for user %s: %s records, %s badges, %s challenges",
        workout.id,
        workout.user_id,
        len(outcome.records),
        len(outcome.badges),
        outcome.challenges_synced,
    )
    return outcome


async def on_workout_deleted(session: AsyncSession, user_id: int, *, now: datetime | None = None) -> int:
    """After a delete: re-sync challenge projections only."""
    async with user_lock(user_id):
        return await sync_user_challenges(session, user_id, now=now)
