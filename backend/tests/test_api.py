"""End-to-end API flows: workouts -> records/badges, goals, leaderboards, training plans, challenges."""

from datetime import date, datetime, timedelta, timezone

import pytest

from fitpulse.core.auth import create_access_token


def _now():
    return datetime.now(timezone.utc)


def _run(km, minutes, when=None):
    return {
        "type": "run",
        "date": (when or _now()).isoformat(),
        "duration_min": minutes,
        "distance_km": km,
    }


@pytest.mark.asyncio
async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "version": "0.1.0"}


@pytest.mark.asyncio
async def test_requires_auth(client, db):
    r = await client.get("/api/v1/workouts")
    assert r.status_code == 401
    r = await client.get("/api/v1/workouts", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401
    r = await client.get("/api/v1/goals", headers={"Authorization": f"Bearer {create_access_token(999, 'x@test.com')}"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_log_workout_sets_records_and_badges_once(client, auth_headers):
    r = await client.post("/api/v1/workouts", json=_run(5, 30), headers=auth_headers)
    assert r.status_code == 201
    data = r.json()
    assert data["workout"]["type"] == "run"
    assert data["workout"]["payload"]["distance_km"] == 5
    assert {rec["record_type"] for rec in data["new_records"]} >= {"longest_run", "fastest_5k"}
    assert {b["id"] for b in data["new_badges"]} == {"first_workout", "first_pr"}

    r = await client.post("/api/v1/badges/sync", headers=auth_headers)
    assert r.status_code == 200
    assert r.json() == {"new_badges": [], "count": 0}

    r = await client.get("/api/v1/badges", headers=auth_headers)
    assert r.json()["earned"] == 2

    r = await client.post("/api/v1/workouts", json=_run(10, 50), headers=auth_headers)
    improved = {rec["record_type"]: rec for rec in r.json()["new_records"]}
    assert improved["longest_run"]["previous_value"] == 5
    assert improved["longest_run"]["improvement_percent"] == 100.0

    r = await client.get("/api/v1/records", headers=auth_headers)
    body = r.json()
    assert {rec["record_type"] for rec in body["by_category"]["running"]} >= {"longest_run", "fastest_10k"}
    r = await client.get("/api/v1/records/longest_run", headers=auth_headers)
    assert r.json()["value"] == 10
    r = await client.get("/api/v1/records/fastest_marathon", headers=auth_headers)
    assert r.status_code == 404

    r = await client.get("/metrics/")
    assert r.status_code == 200
    assert 'fitpulse_badges_awarded_total{badge_id="first_workout"}' in r.text
    assert 'fitpulse_personal_records_total{category="running"}' in r.text


@pytest.mark.asyncio
async def test_workout_validation(client, auth_headers):
    r = await client.post(
        "/api/v1/workouts",
        json={"type": "yoga", "date": _now().isoformat(), "duration_min": 30},
        headers=auth_headers,
    )
    assert r.status_code == 422
    r = await client.post("/api/v1/workouts", json=_run(-1, 30), headers=auth_headers)
    assert r.status_code == 422
    r = await client.get("/api/v1/workouts?type=yoga", headers=auth_headers)
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_edit_and_delete_workout(client, auth_headers):
    r = await client.post(
        "/api/v1/workouts",
        json={
            "type": "lift",
            "date": _now().isoformat(),
            "duration_min": 45,
            "exercises": [{"name": "Squat", "sets": 5, "reps": 5, "weight_kg": 100}],
        },
        headers=auth_headers,
    )
    workout_id = r.json()["workout"]["id"]

    r = await client.patch(
        f"/api/v1/workouts/{workout_id}",
        json={"details": {"exercises": [{"name": "Squat", "sets": 3, "reps": 3, "weight_kg": 120}]}},
        headers=auth_headers,
    )
    assert r.status_code == 200
    assert [rec["record_type"] for rec in r.json()["new_records"]] == ["heaviest_squat"]

    r = await client.patch(f"/api/v1/workouts/{workout_id}", json={"details": {"exercises": "heavy"}}, headers=auth_headers)
    assert r.status_code == 422

    r = await client.get("/api/v1/workouts", headers=auth_headers)
    page = r.json()
    assert page["total"] == 1 and not page["has_more"]

    r = await client.delete(f"/api/v1/workouts/{workout_id}", headers=auth_headers)
    assert r.status_code == 204
    r = await client.get(f"/api/v1/workouts/{workout_id}", headers=auth_headers)
    assert r.status_code == 404
    # records survive the delete
    r = await client.get("/api/v1/records/heaviest_squat", headers=auth_headers)
    assert r.json()["value"] == 120


@pytest.mark.asyncio
async def test_goal_progress_scenario(client, auth_headers):
    end = _now() + timedelta(days=3)
    r = await client.post(
        "/api/v1/goals",
        json={"type": "weekly_workouts", "target": 5, "end_date": end.isoformat()},
        headers=auth_headers,
    )
    assert r.status_code == 201
    goal = r.json()
    assert (goal["current"], goal["progress_percent"], goal["status"], goal["days_remaining"]) == (0, 0, "active", 3)

    for _ in range(5):
        await client.post("/api/v1/workouts", json=_run(2, 15), headers=auth_headers)

    r = await client.get(f"/api/v1/goals/{goal['id']}", headers=auth_headers)
    goal = r.json()
    assert goal["status"] == "completed"
    assert goal["progress_percent"] == 100
    r = await client.get("/api/v1/goals?status=completed", headers=auth_headers)
    assert [g["id"] for g in r.json()] == [goal["id"]]

    r = await client.get("/api/v1/users/me/stats", headers=auth_headers)
    stats = r.json()
    assert stats["workout_count"] == 5
    assert stats["goals_completed"] == 1


@pytest.mark.asyncio
async def test_goal_validation_maps_to_400(client, auth_headers):
    r = await client.post(
        "/api/v1/goals",
        json={"type": "weekly_workouts", "target": 0, "end_date": (_now() + timedelta(days=3)).isoformat()},
        headers=auth_headers,
    )
    assert r.status_code == 400
    assert r.json()["field"] == "target"
    r = await client.get("/api/v1/goals/12345", headers=auth_headers)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_leaderboard_orders_by_value(client, make_user):
    alice, alice_token = await make_user("alice@test.com", display_name="Alice")
    bob, bob_token = await make_user("bob@test.com", display_name="Bob")
    alice_h = {"Authorization": f"Bearer {alice_token}"}
    bob_h = {"Authorization": f"Bearer {bob_token}"}
    await client.post("/api/v1/workouts", json=_run(5, 30), headers=alice_h)
    await client.post("/api/v1/workouts", json=_run(12, 70), headers=bob_h)

    r = await client.get("/api/v1/leaderboard?metric=distance&period=all", headers=alice_h)
    assert r.status_code == 200
    body = r.json()
    assert body["unit"] == "km"
    assert [(e["user_id"], e["rank"], e["value"]) for e in body["entries"]] == [(bob, 1, 12), (alice, 2, 5)]
    assert body["entries"][1]["is_current_user"]

    r = await client.get("/api/v1/leaderboard?scope=friends&metric=distance&period=all", headers=alice_h)
    assert [e["user_id"] for e in r.json()["entries"]] == [alice]
    r = await client.post(f"/api/v1/users/{bob}/follow", headers=alice_h)
    assert r.json() == {"followee_id": bob, "following": True}
    r = await client.get("/api/v1/leaderboard?scope=friends&metric=distance&period=all", headers=alice_h)
    assert [e["user_id"] for e in r.json()["entries"]] == [bob, alice]

    r = await client.post(f"/api/v1/users/{alice}/follow", headers=alice_h)
    assert r.status_code == 400
    r = await client.get("/api/v1/leaderboard?period=decade", headers=alice_h)
    assert r.status_code == 400
    assert r.json()["field"] == "period"


@pytest.mark.asyncio
async def test_training_plan_flow(client, auth_headers):
    r = await client.post(
        "/api/v1/training-plans",
        json={"type": "5k", "difficulty": "beginner", "duration_weeks": 4, "start_date": date.today().isoformat()},
        headers=auth_headers,
    )
    assert r.status_code == 201
    plan = r.json()
    assert plan["total_workouts"] == 16
    assert [w["phase"] for w in plan["weeks"]] == ["base", "build", "build", "taper"]

    url = f"/api/v1/training-plans/{plan['id']}"
    r = await client.post(f"{url}/complete", json={"week_number": 1, "day": 1}, headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["progress_percentage"] == 6
    r = await client.post(f"{url}/complete", json={"week_number": 1, "day": 0}, headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["field"] == "day"
    r = await client.post(f"{url}/complete", json={"week_number": 7, "day": 1}, headers=auth_headers)
    assert r.status_code == 404
    r = await client.patch(f"{url}/current-week", json={"week_number": 2}, headers=auth_headers)
    assert r.json()["current_week"] == 2

    r = await client.get("/api/v1/training-plans?status=active", headers=auth_headers)
    assert [p["id"] for p in r.json()] == [plan["id"]]
    r = await client.post(
        "/api/v1/training-plans",
        json={"type": "ultra", "duration_weeks": 4, "start_date": date.today().isoformat()},
        headers=auth_headers,
    )
    assert r.status_code == 400
    assert r.json()["field"] == "type"


@pytest.mark.asyncio
async def test_challenge_flow(client, make_user):
    creator, creator_token = await make_user("creator@test.com")
    runner, runner_token = await make_user("runner@test.com")
    creator_h = {"Authorization": f"Bearer {creator_token}"}
    runner_h = {"Authorization": f"Bearer {runner_token}"}
    r = await client.post(
        "/api/v1/challenges",
        json={
            "title": "March Miles",
            "metric": "distance",
            "target": 20,
            "start_date": (_now() - timedelta(days=1)).isoformat(),
            "end_date": (_now() + timedelta(days=7)).isoformat(),
        },
        headers=creator_h,
    )
    assert r.status_code == 201
    challenge_id = r.json()["id"]

    r = await client.post(f"/api/v1/challenges/{challenge_id}/join", headers=runner_h)
    assert r.status_code == 200
    assert r.json()["progress"] == 0
    r = await client.post(f"/api/v1/challenges/{challenge_id}/join", headers=runner_h)
    assert r.status_code == 400

    await client.post("/api/v1/workouts", json=_run(8, 45), headers=runner_h)
    await client.post("/api/v1/workouts", json=_run(3, 20), headers=creator_h)

    r = await client.post(f"/api/v1/challenges/{challenge_id}/sync", headers=runner_h)
    assert r.json()["progress"] == 8
    r = await client.get(f"/api/v1/challenges/{challenge_id}/leaderboard", headers=creator_h)
    board = r.json()
    assert [(e["user_id"], e["value"], e["rank"]) for e in board["entries"]] == [(runner, 8, 1), (creator, 3, 2)]
    r = await client.get("/api/v1/challenges/999/leaderboard", headers=creator_h)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_profile_and_activity_summary(client, auth_headers):
    r = await client.patch("/api/v1/users/me", json={"timezone": "Mars/Olympus"}, headers=auth_headers)
    assert r.status_code == 400
    r = await client.patch("/api/v1/users/me", json={"timezone": "Europe/Berlin", "is_public": False}, headers=auth_headers)
    assert r.json()["timezone"] == "Europe/Berlin"
    assert r.json()["is_public"] is False

    await client.post("/api/v1/workouts", json=_run(6, 35), headers=auth_headers)
    await client.post(
        "/api/v1/workouts",
        json={"type": "biometrics", "date": _now().isoformat(), "weight_kg": 71.5},
        headers=auth_headers,
    )
    r = await client.get("/api/v1/users/me/summary?window=all_time", headers=auth_headers)
    assert r.status_code == 200
    summary = r.json()
    assert summary["count"] == 1
    assert summary["total_distance_km"] == 6
    assert summary["current_streak"] == 1
    assert len(summary["per_day"]) == 1

    r = await client.get("/api/v1/users/me/summary?window=all_time&type=biometrics", headers=auth_headers)
    assert r.json()["count"] == 1
    r = await client.get("/api/v1/users/me/summary?window=custom&start=2025-02-01", headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["field"] == "window"
