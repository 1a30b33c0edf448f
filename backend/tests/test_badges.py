"""Badge rules, stats over workout history, and award idempotence."""

import asyncio
from datetime import date, datetime, timedelta, timezone
from unittest.mock import patch
from zoneinfo import ZoneInfo

import pytest
from prometheus_client import REGISTRY
from sqlalchemy import func, select

from fitpulse.core.errors import InconsistentStateError
from fitpulse.db.session import async_session_maker
from fitpulse.models.badge import BadgeAward, BadgeDefinition
from fitpulse.models.workout import Workout
from fitpulse.services import badges as badges_service
from fitpulse.services.badges import (
    BADGE_CATALOG,
    BADGE_RULES,
    BadgeSpec,
    BadgeStats,
    build_stats,
    eligible_badges,
    has_weekend_pair,
    list_badges,
    rule_for,
    sync_badges,
)
from fitpulse.services.personal_records import detect_records
from fitpulse.services.workout_records import BiometricsWorkout, RunWorkout, from_row

UTC = ZoneInfo("UTC")
T0 = datetime(2025, 3, 3, 12, 0, tzinfo=timezone.utc)


def _definition(id_, category="milestone"):
    return BadgeDefinition(id=id_, name=id_, description="", category=category, rarity="common", version=1)


def test_every_catalog_badge_has_a_rule():
    assert {badge.id for badge in BADGE_CATALOG} == set(BADGE_RULES)
    for badge in BADGE_CATALOG:
        rule_for(badge)


def test_rule_for_rejects_unknown_category_and_missing_rule():
    with pytest.raises(InconsistentStateError):
        rule_for(BadgeSpec("first_workout", "x", "x", "seasonal", "common"))
    with pytest.raises(InconsistentStateError):
        rule_for(BadgeSpec("mystery", "x", "x", "special", "common"))


def test_weekend_pair_needs_saturday_then_sunday():
    sat, sun = date(2025, 3, 1), date(2025, 3, 2)
    assert has_weekend_pair({sat, sun})
    assert not has_weekend_pair({sun, date(2025, 3, 8)})
    assert not has_weekend_pair({sat})


def test_build_stats_hour_flags_use_user_timezone():
    dawn = RunWorkout(id=1, user_id=1, date=datetime(2025, 3, 3, 5, 30, tzinfo=timezone.utc), duration_min=30, distance_km=5)
    late = RunWorkout(id=2, user_id=1, date=datetime(2025, 3, 4, 22, 15, tzinfo=timezone.utc), duration_min=30, distance_km=5)
    stats = build_stats([dawn, late], UTC, date(2025, 3, 4), record_count=2, completed_goals=1)
    assert stats.workout_count == 2
    assert stats.total_distance_km == 10
    assert stats.early_workout and stats.late_workout
    assert stats.current_streak == 2
    assert stats.record_count == 2

    tokyo = build_stats([dawn], ZoneInfo("Asia/Tokyo"), date(2025, 3, 3))
    assert not tokyo.early_workout


def test_biometrics_never_unlock_badges():
    bio = BiometricsWorkout(id=1, user_id=1, date=datetime(2025, 3, 3, 4, 0, tzinfo=timezone.utc), duration_min=1, weight_kg=70)
    stats = build_stats([bio], UTC, date(2025, 3, 3))
    assert stats.workout_count == 0
    assert not stats.early_workout


def test_streak_badges_use_longest_streak():
    assert BADGE_RULES["streak_7"](BadgeStats(current_streak=0, longest_streak=7))
    assert not BADGE_RULES["streak_7"](BadgeStats(current_streak=6, longest_streak=6))


def test_eligible_badges_skips_earned_and_broken_definitions():
    definitions = [_definition("first_workout"), _definition("workouts_10"), _definition("mystery"), _definition("first_pr", "odd")]
    stats = BadgeStats(workout_count=12, record_count=3)
    got = eligible_badges(definitions, stats, earned={"first_workout"})
    assert [d.id for d in got] == ["workouts_10"]


@pytest.mark.asyncio
async def test_sync_awards_once(make_user, session, make_workout):
    user_id, _ = await make_user("badges@test.com")
    workout = from_row(await make_workout(user_id, "run", T0, 30, distance_km=5))
    await detect_records(session, workout, now=T0)

    awarded = await sync_badges(session, user_id, workout_id=workout.id, now=T0)
    assert {d.id for d in awarded} == {"first_workout", "first_pr"}
    assert await sync_badges(session, user_id, now=T0) == []

    listing = await list_badges(session, user_id)
    assert listing["earned"] == 2
    assert listing["total"] == len(BADGE_CATALOG)
    first = next(i for i in listing["all"] if i["id"] == "first_workout")
    assert first["earned"] and first["earned_at"] == T0
    assert len(listing["by_category"]["milestone"]) == 5


@pytest.mark.asyncio
async def test_weekend_and_distance_badges(make_user, session, make_workout):
    user_id, _ = await make_user("weekend@test.com")
    saturday = datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc)
    await make_workout(user_id, "run", saturday, 150, distance_km=30)
    await make_workout(user_id, "cardio", saturday + timedelta(days=1), 120, activity="cycling", distance_km=25)
    awarded = {d.id for d in await sync_badges(session, user_id, now=T0)}
    assert {"first_workout", "weekend_warrior", "distance_50"} <= awarded
    assert "distance_100" not in awarded


def _committed_workout(user_id):
    return Workout(
        user_id=user_id,
        type="run",
        title="run workout",
        date=T0,
        duration_min=30,
        payload={"distance_km": 5},
        created_at=T0,
    )


async def _award_rows(user_id):
    async with async_session_maker() as s:
        return await s.scalar(select(func.count()).select_from(BadgeAward).where(BadgeAward.user_id == user_id))


@pytest.mark.asyncio
async def test_award_inserted_by_another_writer_is_not_returned(make_user, session):
    user_id, _ = await make_user("racer@test.com")
    session.add(_committed_workout(user_id))
    await session.commit()

    real_earned = badges_service._earned

    async def earned_then_other_writer(s, uid):
        earned = await real_earned(s, uid)
        async with async_session_maker() as other:
            other.add(BadgeAward(user_id=uid, badge_id="first_workout", earned_at=T0))
            await other.commit()
        return earned

    with patch.object(badges_service, "_earned", earned_then_other_writer):
        awarded = await sync_badges(session, user_id, now=T0)
    await session.commit()
    assert "first_workout" not in {d.id for d in awarded}
    assert await _award_rows(user_id) == 1


@pytest.mark.asyncio
async def test_concurrent_syncs_award_each_badge_once(make_user, db):
    user_id, _ = await make_user("twins@test.com")
    async with async_session_maker() as s:
        s.add(_committed_workout(user_id))
        await s.commit()

    async def sync_in_own_session():
        async with async_session_maker() as s:
            awarded = await sync_badges(s, user_id, now=T0)
            await s.commit()
            return {d.id for d in awarded}

    first, second = await asyncio.gather(sync_in_own_session(), sync_in_own_session())
    assert first | second == {"first_workout"}
    assert not first & second
    assert await _award_rows(user_id) == 1


def test_badge_metric_registered_once():
    import fitpulse.services.workout_events  # noqa: F401

    names = [metric.name for metric in REGISTRY.collect()]
    assert names.count("fitpulse_badges_awarded") == 1
    assert names.count("fitpulse_personal_records") == 1
