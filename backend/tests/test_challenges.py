"""Challenges: creation rules, joining, progress projection and the post-commit pipeline."""

from datetime import datetime, timedelta, timezone

import pytest

from fitpulse.core.errors import NotFoundError, ValidationError
from fitpulse.services.challenges import (
    challenge_leaderboard,
    create_challenge,
    join_challenge,
    sync_challenge_progress,
    sync_user_challenges,
)
from fitpulse.services.workout_events import on_workout_committed, on_workout_deleted

T0 = datetime(2025, 3, 3, 12, 0, tzinfo=timezone.utc)
END = T0 + timedelta(days=14)


@pytest.mark.asyncio
async def test_create_validates_and_auto_joins_creator(make_user, session):
    creator, _ = await make_user("creator@test.com")
    for kwargs, field in [
        ({"title": " ", "metric": "distance", "target": 50}, "title"),
        ({"title": "Spring", "metric": "steps", "target": 50}, "metric"),
        ({"title": "Spring", "metric": "distance", "target": -1}, "target"),
    ]:
        with pytest.raises(ValidationError) as exc:
            await create_challenge(session, creator, start_date=T0, end_date=END, now=T0, **kwargs)
        assert exc.value.field == field
    with pytest.raises(ValidationError) as exc:
        await create_challenge(session, creator, "Spring", "distance", 50, T0, T0 - timedelta(days=1), now=T0)
    assert exc.value.field == "end_date"

    challenge = await create_challenge(session, creator, "Spring 50K", "distance", 50, T0, END, now=T0)
    assert challenge.unit == "km"
    board = await challenge_leaderboard(session, challenge.id, creator)
    assert board["entries"] == []  # creator joined with zero progress
    with pytest.raises(ValidationError):
        await join_challenge(session, challenge.id, creator, now=T0)


@pytest.mark.asyncio
async def test_private_and_ended_challenges_cannot_be_joined(make_user, session):
    creator, _ = await make_user("creator@test.com")
    other, _ = await make_user("other@test.com")
    private = await create_challenge(session, creator, "Secret", "workouts", 10, T0, END, visibility="private", now=T0)
    with pytest.raises(ValidationError):
        await join_challenge(session, private.id, other, now=T0)
    with pytest.raises(NotFoundError):
        await challenge_leaderboard(session, private.id, other)

    public = await create_challenge(session, creator, "Open", "workouts", 10, T0, END, now=T0)
    with pytest.raises(ValidationError):
        await join_challenge(session, public.id, other, now=END + timedelta(seconds=1))
    with pytest.raises(NotFoundError):
        await join_challenge(session, 9999, other, now=T0)


@pytest.mark.asyncio
async def test_join_projects_existing_workouts_in_window(make_user, session, make_workout):
    creator, _ = await make_user("creator@test.com")
    runner, _ = await make_user("runner@test.com")
    await make_workout(runner, "run", T0 + timedelta(days=1), 60, distance_km=12)
    await make_workout(runner, "run", T0 - timedelta(days=2), 60, distance_km=30)
    challenge = await create_challenge(session, creator, "Spring 50K", "distance", 50, T0, END, now=T0)
    participant = await join_challenge(session, challenge.id, runner, now=T0 + timedelta(days=2))
    assert participant.progress == 12


@pytest.mark.asyncio
async def test_resync_and_leaderboard(make_user, session, make_workout):
    creator, _ = await make_user("creator@test.com", display_name="Creator")
    runner, _ = await make_user("runner@test.com")
    challenge = await create_challenge(session, creator, "Volume", "duration", 300, T0, END, now=T0)
    await join_challenge(session, challenge.id, runner, now=T0)
    await make_workout(creator, "lift", T0 + timedelta(hours=2), 45)
    await make_workout(runner, "run", T0 + timedelta(hours=1), 90, distance_km=15)

    assert await sync_user_challenges(session, creator, now=T0 + timedelta(hours=3)) == 1
    await sync_challenge_progress(session, challenge.id, runner, now=T0 + timedelta(hours=3))
    board = await challenge_leaderboard(session, challenge.id, creator)
    assert [(e.user_id, e.value, e.rank) for e in board["entries"]] == [(runner, 90, 1), (creator, 45, 2)]
    assert board["entries"][1].is_current_user
    assert board["unit"] == "min"

    # ended challenges are no longer re-synced
    assert await sync_user_challenges(session, creator, now=END + timedelta(days=1)) == 0


@pytest.mark.asyncio
async def test_commit_pipeline_updates_records_challenges_badges(make_user, session, make_workout):
    user_id, _ = await make_user("pipeline@test.com")
    challenge = await create_challenge(session, user_id, "Ten", "workouts", 10, T0, END, now=T0)
    workout = await make_workout(user_id, "run", T0 + timedelta(hours=1), 30, distance_km=5)

    outcome = await on_workout_committed(session, workout, now=T0 + timedelta(hours=2))
    assert {r.record_type for r in outcome.records} >= {"longest_run", "fastest_5k"}
    assert {b.id for b in outcome.badges} == {"first_workout", "first_pr"}
    assert outcome.challenges_synced == 1

    again = await on_workout_committed(session, workout, now=T0 + timedelta(hours=2))
    assert again.records == [] and again.badges == []

    await session.delete(workout)
    await session.flush()
    assert await on_workout_deleted(session, user_id, now=T0 + timedelta(hours=3)) == 1
    board = await challenge_leaderboard(session, challenge.id, user_id)
    assert board["entries"] == []
