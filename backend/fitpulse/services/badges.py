"""
Badge eligibility.

Definitions are rows in the seeded, versioned badge_definitions table; the
conditions are a closed strategy table in code (badge id -> predicate over
BadgeStats). A sync evaluates only unearned definitions and awards through an
insert-or-skip on (user_id, badge_id), so concurrent syncs cannot double-award
and a repeated sync without new activity writes nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from types import MappingProxyType
from zoneinfo import ZoneInfo

from prometheus_client import Counter
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fitpulse.core.errors import InconsistentStateError
from fitpulse.models.badge import BadgeAward, BadgeDefinition
from fitpulse.services.aggregator import (
    Window,
    active_dates,
    aggregate,
    compute_streak,
    find_workouts,
    longest_streak,
    qualifies,
    user_timezone,
)
from fitpulse.services.dates import as_utc
from fitpulse.services.goals import count_completed_goals
from fitpulse.services.personal_records import count_records
from fitpulse.services.sql import insert_for
from fitpulse.services.workout_records import WorkoutRecord

logger = logging.getLogger(__name__)

BADGES_AWARDED = Counter("fitpulse_badges_awarded_total", "Badges awarded", ["badge_id"])

BADGE_CATEGORIES = ("milestone", "consistency", "distance", "achievement", "goals", "special")
BADGE_RARITIES = ("common", "rare", "epic", "legendary")


@dataclass(frozen=True)
class BadgeStats:
    workout_count: int = 0
    total_distance_km: float = 0.0
    current_streak: int = 0
    longest_streak: int = 0
    record_count: int = 0
    completed_goals: int = 0
    early_workout: bool = False
    late_workout: bool = False
    weekend_pair: bool = False


@dataclass(frozen=True)
class BadgeSpec:
    id: str
    name: str
    description: str
    category: str
    rarity: str
    version: int = 1


BADGE_CATALOG: tuple[BadgeSpec, ...] = (
    BadgeSpec("first_workout", "First Steps", "Complete your first workout", "milestone", "common"),
    BadgeSpec("workouts_10", "Getting Started", "Complete 10 workouts", "milestone", "common"),
    BadgeSpec("workouts_50", "Dedicated Athlete", "Complete 50 workouts", "milestone", "rare"),
    BadgeSpec("workouts_100", "Workout Centurion", "Complete 100 workouts", "milestone", "epic"),
    BadgeSpec("workouts_500", "Iron Will", "Complete 500 workouts", "milestone", "legendary"),
    BadgeSpec("streak_7", "Week Warrior", "Maintain a 7-day workout streak", "consistency", "common"),
    BadgeSpec("streak_30", "Monthly Master", "Maintain a 30-day workout streak", "consistency", "rare"),
    BadgeSpec("streak_100", "Century Champion", "Maintain a 100-day workout streak", "consistency", "legendary"),
    BadgeSpec("distance_50", "First 50K", "Cover a total of 50 kilometers", "distance", "common"),
    BadgeSpec("distance_100", "Century Runner", "Cover a total of 100 kilometers", "distance", "rare"),
    BadgeSpec("distance_500", "Long Distance Champion", "Cover a total of 500 kilometers", "distance", "epic"),
    BadgeSpec("distance_1000", "Marathon Legend", "Cover a total of 1000 kilometers", "distance", "legendary"),
    BadgeSpec("first_pr", "Personal Best", "Set your first personal record", "achievement", "common"),
    BadgeSpec("pr_5", "Record Breaker", "Set 5 personal records", "achievement", "rare"),
    BadgeSpec("pr_10", "PR Hunter", "Set 10 personal records", "achievement", "epic"),
    BadgeSpec("first_goal", "Goal Setter", "Complete your first goal", "goals", "common"),
    BadgeSpec("goals_5", "Goal Crusher", "Complete 5 goals", "goals", "rare"),
    BadgeSpec("goals_10", "Unstoppable", "Complete 10 goals", "goals", "epic"),
    BadgeSpec("early_bird", "Early Bird", "Complete a workout before 6 AM", "special", "rare"),
    BadgeSpec("night_owl", "Night Owl", "Complete a workout after 10 PM", "special", "rare"),
    BadgeSpec(
        "weekend_warrior",
        "Weekend Warrior",
        "Work out on both Saturday and Sunday in the same week",
        "special",
        "common",
    ),
)

BADGE_RULES: MappingProxyType[str, Callable[[BadgeStats], bool]] = MappingProxyType(
    {
        "first_workout": lambda s: s.workout_count >= 1,
        "workouts_10": lambda s: s.workout_count >= 10,
        "workouts_50": lambda s: s.workout_count >= 50,
        "workouts_100": lambda s: s.workout_count >= 100,
        "workouts_500": lambda s: s.workout_count >= 500,
        "streak_7": lambda s: s.longest_streak >= 7,
        "streak_30": lambda s: s.longest_streak >= 30,
        "streak_100": lambda s: s.longest_streak >= 100,
        "distance_50": lambda s: s.total_distance_km >= 50,
        "distance_100": lambda s: s.total_distance_km >= 100,
        "distance_500": lambda s: s.total_distance_km >= 500,
        "distance_1000": lambda s: s.total_distance_km >= 1000,
        "first_pr": lambda s: s.record_count >= 1,
        "pr_5": lambda s: s.record_count >= 5,
        "pr_10": lambda s: s.record_count >= 10,
        "first_goal": lambda s: s.completed_goals >= 1,
        "goals_5": lambda s: s.completed_goals >= 5,
        "goals_10": lambda s: s.completed_goals >= 10,
        "early_bird": lambda s: s.early_workout,
        "night_owl": lambda s: s.late_workout,
        "weekend_warrior": lambda s: s.weekend_pair,
    }
)


def rule_for(definition: BadgeDefinition | BadgeSpec) -> Callable[[BadgeStats], bool]:
    """Predicate for a definition; unknown category or id without a rule is an inconsistency."""
    if definition.category not in BADGE_CATEGORIES:
        raise InconsistentStateError(f"Badge {definition.id} has unknown category {definition.category!r}")
    rule = BADGE_RULES.get(definition.id)
    if rule is None:
        raise InconsistentStateError(f"Badge {definition.id} has no registered condition")
    return rule


def has_weekend_pair(days: set[date]) -> bool:
    """Saturday and the following Sunday both active (same ISO week)."""
    return any(d.weekday() == 5 and d + timedelta(days=1) in days for d in days)


def build_stats(
    records: list[WorkoutRecord],
    tz: ZoneInfo,
    today: date,
    *,
    record_count: int = 0,
    completed_goals: int = 0,
) -> BadgeStats:
    """Lifetime stats from a user's full workout history (biometrics excluded)."""
    totals = aggregate(records, Window("all_time"), tz)
    days = active_dates(records, tz)
    hours = [r.date.astimezone(tz).hour for r in records if qualifies(r)]
    return BadgeStats(
        workout_count=totals.count,
        total_distance_km=totals.total_distance_km,
        current_streak=compute_streak(days, today),
        longest_streak=longest_streak(days),
        record_count=record_count,
        completed_goals=completed_goals,
        early_workout=any(h < 6 for h in hours),
        late_workout=any(h >= 22 for h in hours),
        weekend_pair=has_weekend_pair(days),
    )


def eligible_badges(
    definitions: list[BadgeDefinition],
    stats: BadgeStats,
    earned: set[str],
) -> list[BadgeDefinition]:
    """Unearned definitions whose condition holds. Broken definitions are skipped with a warning."""
    out = []
    for definition in definitions:
        if definition.id in earned:
            continue
        try:
            rule = rule_for(definition)
        except InconsistentStateError as e:
            logger.warning("Skipping badge definition: %s", e)
            continue
        if rule(stats):
            out.append(definition)
    return out


async def seed_badge_definitions(session: AsyncSession) -> None:
    """Insert catalogue rows that are missing; existing rows are left untouched."""
    insert = insert_for(session)
    for badge in BADGE_CATALOG:
        stmt = (
            insert(BadgeDefinition)
            .values(
                id=badge.id,
                name=badge.name,
                description=badge.description,
                category=badge.category,
                rarity=badge.rarity,
                version=badge.version,
                created_at=datetime.now(timezone.utc),
            )
            .on_conflict_do_nothing(index_elements=["id"])
        )
        await session.execute(stmt)


async def list_definitions(session: AsyncSession) -> list[BadgeDefinition]:
    r = await session.execute(select(BadgeDefinition).order_by(BadgeDefinition.category, BadgeDefinition.id))
    return list(r.scalars().all())


async def _earned(session: AsyncSession, user_id: int) -> dict[str, BadgeAward]:
    r = await session.execute(select(BadgeAward).where(BadgeAward.user_id == user_id))
    return {award.badge_id: award for award in r.scalars().all()}


async def user_stats(session: AsyncSession, user_id: int, *, now: datetime | None = None) -> BadgeStats:
    tz = await user_timezone(session, user_id)
    now = now or datetime.now(timezone.utc)
    records = await find_workouts(session, user_id)
    return build_stats(
        records,
        tz,
        now.astimezone(tz).date(),
        record_count=await count_records(session, user_id),
        completed_goals=await count_completed_goals(session, user_id),
    )


async def sync_badges(
    session: AsyncSession,
    user_id: int,
    *,
    workout_id: int | None = None,
    now: datetime | None = None,
) -> list[BadgeDefinition]:
    """Award every unearned badge the user now qualifies for; returns only the newly inserted ones."""
    now = now or datetime.now(timezone.utc)
    earned = await _earned(session, user_id)
    definitions = [d for d in await list_definitions(session) if d.id not in earned]
    if not definitions:
        return []
    stats = await user_stats(session, user_id, now=now)
    insert = insert_for(session)
    awarded = []
    for definition in eligible_badges(definitions, stats, set(earned)):
        stmt = (
            insert(BadgeAward)
            .values(user_id=user_id, badge_id=definition.id, earned_at=now, workout_id=workout_id)
            .on_conflict_do_nothing(index_elements=["user_id", "badge_id"])
        )
        r = await session.execute(stmt)
        if r.rowcount != 1:
            logger.debug("Badge %s for user %s already awarded concurrently", definition.id, user_id)
            continue
        BADGES_AWARDED.labels(badge_id=definition.id).inc()
        logger.info("Badge earned by user %s: %s", user_id, definition.name)
        awarded.append(definition)
    return awarded


async def list_badges(session: AsyncSession, user_id: int) -> dict:
    """Every definition with earned state, grouped by category, plus counts."""
    definitions = await list_definitions(session)
    earned = await _earned(session, user_id)
    items = []
    by_category: dict[str, list[dict]] = {c: [] for c in BADGE_CATEGORIES}
    for d in definitions:
        award = earned.get(d.id)
        item = {
            "id": d.id,
            "name": d.name,
            "description": d.description,
            "category": d.category,
            "rarity": d.rarity,
            "version": d.version,
            "earned": award is not None,
            "earned_at": as_utc(award.earned_at) if award else None,
        }
        items.append(item)
        if d.category in by_category:
            by_category[d.category].append(item)
    return {
        "all": items,
        "by_category": by_category,
        "earned": sum(1 for i in items if i["earned"]),
        "total": len(items),
    }
