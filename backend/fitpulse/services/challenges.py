"""Challenges: participant progress is a re-syncable projection of workouts onto the challenge metric and window."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fitpulse.config import settings
from fitpulse.core.errors import NotFoundError, ValidationError
from fitpulse.models.challenge import Challenge, ChallengeParticipant
from fitpulse.models.user import User
from fitpulse.services.aggregator import Window, find_workouts, user_timezone
from fitpulse.services.dates import as_utc, local_date
from fitpulse.services.leaderboard import METRIC_UNITS, METRICS, LeaderboardEntry, metric_value, rank_entries
from fitpulse.services.sql import insert_for

logger = logging.getLogger(__name__)

VISIBILITIES = ("public", "private")


async def _get_challenge(session: AsyncSession, challenge_id: int) -> Challenge:
    challenge = await session.get(Challenge, challenge_id)
    if not challenge:
        raise NotFoundError("challenge", challenge_id)
    return challenge


async def _get_participant(session: AsyncSession, challenge_id: int, user_id: int) -> ChallengeParticipant | None:
    r = await session.execute(
        select(ChallengeParticipant).where(
            ChallengeParticipant.challenge_id == challenge_id,
            ChallengeParticipant.user_id == user_id,
        )
    )
    return r.scalar_one_or_none()


async def _project(
    session: AsyncSession,
    challenge: Challenge,
    participant: ChallengeParticipant,
    now: datetime,
) -> ChallengeParticipant:
    tz = await user_timezone(session, participant.user_id)
    window = Window("custom", local_date(challenge.start_date, tz), local_date(challenge.end_date, tz))
    from_dt, to_dt = window.utc_bounds(tz)
    records = await find_workouts(session, participant.user_id, from_dt=from_dt, to_dt=to_dt)
    value, reached_at = metric_value(records, challenge.metric, window, tz)
    if value != participant.progress:
        logger.debug(
            "Challenge %s progress for user %s: %s -> %s", challenge.id, participant.user_id, participant.progress, value
        )
    participant.progress = value
    participant.progress_reached_at = reached_at
    participant.last_synced_at = now
    return participant


async def create_challenge(
    session: AsyncSession,
    creator_id: int,
    title: str,
    metric: str,
    target: float,
    start_date: datetime,
    end_date: datetime,
    *,
    visibility: str = "public",
    now: datetime | None = None,
) -> Challenge:
    """Create a challenge; the creator joins it straight away."""
    if not title or not title.strip():
        raise ValidationError("title", "Title is required.")
    if metric not in METRICS:
        raise ValidationError("metric", f"Unknown metric {metric!r}.")
    if target is None or target <= 0:
        raise ValidationError("target", "Target must be a positive number.")
    if visibility not in VISIBILITIES:
        raise ValidationError("visibility", f"Unknown visibility {visibility!r}.")
    now = as_utc(now or datetime.now(timezone.utc))
    start = as_utc(start_date)
    end = as_utc(end_date)
    if end <= start:
        raise ValidationError("end_date", "End date must be after the start date.")
    if end <= now:
        raise ValidationError("end_date", "End date must be in the future.")
    challenge = Challenge(
        creator_id=creator_id,
        title=title.strip()[:100],
        metric=metric,
        target=float(target),
        unit=METRIC_UNITS[metric],
        start_date=start,
        end_date=end,
        visibility=visibility,
        created_at=now,
    )
    session.add(challenge)
    await session.flush()
    await join_challenge(session, challenge.id, creator_id, now=now)
    logger.info("Challenge %s created by user %s: %s >= %s %s", challenge.id, creator_id, metric, target, challenge.unit)
    return challenge


async def join_challenge(
    session: AsyncSession,
    challenge_id: int,
    user_id: int,
    *,
    now: datetime | None = None,
) -> ChallengeParticipant:
    now = as_utc(now or datetime.now(timezone.utc))
    challenge = await _get_challenge(session, challenge_id)
    if challenge.visibility == "private" and challenge.creator_id != user_id:
        raise ValidationError("challenge_id", "This is a private challenge.")
    if as_utc(challenge.end_date) <= now:
        raise ValidationError("challenge_id", "This challenge has already ended.")
    insert = insert_for(session)
    stmt = (
        insert(ChallengeParticipant)
        .values(challenge_id=challenge_id, user_id=user_id, joined_at=now, progress=0.0)
        .on_conflict_do_nothing(index_elements=["challenge_id", "user_id"])
    )
    r = await session.execute(stmt)
    if r.rowcount != 1:
        raise ValidationError("challenge_id", "You are already participating in this challenge.")
    participant = await _get_participant(session, challenge_id, user_id)
    await _project(session, challenge, participant, now)
    await session.flush()
    return participant


async def sync_challenge_progress(
    session: AsyncSession,
    challenge_id: int,
    user_id: int,
    *,
    now: datetime | None = None,
) -> ChallengeParticipant:
    """Recompute one participant's progress from their workouts."""
    now = as_utc(now or datetime.now(timezone.utc))
    challenge = await _get_challenge(session, challenge_id)
    participant = await _get_participant(session, challenge_id, user_id)
    if participant is None:
        raise ValidationError("challenge_id", "You are not participating in this challenge.")
    await _project(session, challenge, participant, now)
    await session.flush()
    return participant


async def sync_user_challenges(session: AsyncSession, user_id: int, *, now: datetime | None = None) -> int:
    """Re-sync the user's participations in challenges that have not ended yet. Returns how many were synced."""
    now = as_utc(now or datetime.now(timezone.utc))
    r = await session.execute(
        select(ChallengeParticipant, Challenge)
        .join(Challenge, Challenge.id == ChallengeParticipant.challenge_id)
        .where(ChallengeParticipant.user_id == user_id, Challenge.end_date >= now)
    )
    rows = r.all()
    for participant, challenge in rows:
        await _project(session, challenge, participant, now)
    await session.flush()
    return len(rows)


async def challenge_leaderboard(session: AsyncSession, challenge_id: int, user_id: int) -> dict:
    challenge = await _get_challenge(session, challenge_id)
    if challenge.visibility == "private" and challenge.creator_id != user_id:
        if await _get_participant(session, challenge_id, user_id) is None:
            raise NotFoundError("challenge", challenge_id)
    r = await session.execute(
        select(ChallengeParticipant, User)
        .join(User, User.id == ChallengeParticipant.user_id)
        .where(ChallengeParticipant.challenge_id == challenge_id)
    )
    entries = [
        LeaderboardEntry(
            user_id=u.id,
            value=p.progress,
            reached_at=as_utc(p.progress_reached_at) if p.progress_reached_at else None,
            display_name=u.display_name or u.email.split("@")[0],
        )
        for p, u in r.all()
    ]
    return {
        "challenge_id": challenge.id,
        "title": challenge.title,
        "metric": challenge.metric,
        "unit": challenge.unit,
        "target": challenge.target,
        "entries": rank_entries(entries, user_id, settings.leaderboard_limit),
    }
