# tests/test_api.py
from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from api.v1.deps import get_clock, get_nutrient_lookup, get_plan_generator, get_rate_limiter
from core.nutrients import NutrientLookup, StaticTableResolver
from core.plan_generation import PlanGenerator
from core.rate_limit import RateLimiter
from main import app
from services import db as dbmod
from services.auth import create_token
from services.db import GenerationFailure, create_all, session_scope

UTC = timezone.utc
WEDNESDAY = datetime(2025, 1, 15, 12, 0, tzinfo=UTC)
SUNDAY = datetime(2025, 1, 19, 10, 0, tzinfo=UTC)

ONBOARDING = {
    "age": 30,
    "sex": "male",
    "height_cm": 180,
    "weight_kg": 90,
    "goal": "cut",
    "activity_level": "moderate",
    "body_fat_percentage": 22,
    "meals_per_day": 2,
    "split_preference": "ppl",
    "plan_duration_weeks": 8,
}

DAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


@dataclass
class FakeResponse:
    content: str | None
    finish_reason: str | None = "stop"
    usage: dict[str, Any] = field(default_factory=dict)


def _meal(title):
    return {
        "name": title,
        "recipe_title": title,
        "ingredients": [
            {"name": "Chicken breast", "amount": "200", "unit": "g", "macros": {"calories": 1}},
            {"name": "White rice", "amount": "150", "unit": "g", "macros": {"calories": 1}},
        ],
        "instructions": ["Cook."],
        "swap_options": [],
    }


GOOD_PLAN = json.dumps({"days": [{"day": d, "meals": [_meal("A"), _meal("B")]} for d in DAYS]})


class FakeLLM:
    def __init__(self) -> None:
        self.responses: list[FakeResponse] = []

    async def __call__(self, system_prompt, user_prompt, **kwargs):
        if "strength & conditioning" in system_prompt:
            return FakeResponse('{"program_name": "PPL", "weeks": [{"week": 1, "days": []}]}')
        return self.responses.pop(0) if self.responses else FakeResponse(GOOD_PLAN)


@pytest.fixture()
def env(tmp_path):
    dbmod.init_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    asyncio.run(create_all())

    clock = {"now": WEDNESDAY}
    llm = FakeLLM()
    limiter = RateLimiter(60, clock=lambda: 0.0)
    app.dependency_overrides[get_clock] = lambda: clock["now"]
    app.dependency_overrides[get_plan_generator] = lambda: PlanGenerator(llm)
    app.dependency_overrides[get_nutrient_lookup] = lambda: NutrientLookup([StaticTableResolver()])
    app.dependency_overrides[get_rate_limiter] = lambda: limiter

    yield TestClient(app), clock, llm, limiter

    app.dependency_overrides.clear()
    asyncio.run(dbmod.engine().dispose())


def _auth(user_id="client-1", role="client"):
    return {"Authorization": f"Bearer {create_token(user_id, role)}"}


def _onboard(client, user_id="client-1", **overrides):
    r = client.post("/api/v1/onboarding", json={**ONBOARDING, **overrides}, headers=_auth(user_id))
    assert r.status_code == 201, r.text
    return r.json()


# ── basics ───────────────────────────────────────────────────────────
def test_health(env):
    client, *_ = env
    assert client.get("/health").json()["status"] == "ok"


def test_requires_bearer_token(env):
    client, *_ = env
    assert client.get("/api/v1/macros").status_code == 401
    bad = {"Authorization": "Bearer not-a-jwt"}
    assert client.get("/api/v1/macros", headers=bad).status_code == 401


def test_onboarding_validation_and_versions(env):
    client, *_ = env
    r = client.post("/api/v1/onboarding", json={**ONBOARDING, "age": 12}, headers=_auth())
    assert r.status_code == 422
    assert client.get("/api/v1/onboarding", headers=_auth()).status_code == 404

    assert _onboard(client)["version"] == 1
    assert _onboard(client, weight_kg=88)["version"] == 2
    latest = client.get("/api/v1/onboarding", headers=_auth()).json()
    assert latest["weight_kg"] == 88


# ── macros ───────────────────────────────────────────────────────────
def test_macros_need_onboarding(env):
    client, *_ = env
    assert client.post("/api/v1/macros", headers=_auth()).status_code == 404


def test_macros_calculated_and_versioned(env):
    client, *_ = env
    _onboard(client)
    r = client.post("/api/v1/macros", headers=_auth())
    assert r.status_code == 201
    body = r.json()
    assert (body["calorie_target"], body["protein_g"], body["fat_g"], body["carbs_g"]) == (2338, 198, 70, 229)
    assert body["formula_used"] == "katch_mcardle"
    assert client.get("/api/v1/macros", headers=_auth()).json()["version"] == 1


def test_coach_override(env):
    client, *_ = env
    _onboard(client)
    client.post("/api/v1/macros", headers=_auth())
    override = {"user_id": "client-1", "calorie_target": 2200, "protein_g": 200, "fat_g": 60, "carbs_g": 215}

    assert client.put("/api/v1/admin/macros", json=override, headers=_auth()).status_code == 403

    r = client.put("/api/v1/admin/macros", json=override, headers=_auth("coach-1", "coach"))
    assert r.status_code == 200
    body = r.json()
    assert body["version"] == 2
    assert body["formula_used"] == "coach_override"
    assert body["bmr"] == 1886
    assert body["created_by"] == "coach-1"


# ── meal plans ───────────────────────────────────────────────────────
def test_meal_plan_generated_corrected_and_rate_limited(env):
    client, _, _, _ = env
    _onboard(client)
    client.post("/api/v1/macros", headers=_auth())

    r = client.post("/api/v1/meal-plan", headers=_auth())
    assert r.status_code == 201, r.text
    body = r.json()
    chicken = body["plan_data"]["days"][0]["meals"][0]["ingredients"][0]
    assert chicken["macros"]["calories"] != 1
    assert body["unmatched_ingredients"] == []
    assert any(g["item"].startswith("Chicken breast — ") for g in body["grocery_list"])

    again = client.post("/api/v1/meal-plan", headers=_auth())
    assert again.status_code == 429
    assert int(again.headers["Retry-After"]) == 60

    latest = client.get("/api/v1/meal-plan", headers=_auth()).json()
    assert latest["version"] == 1
    grocery = client.get("/api/v1/meal-plan/grocery-list", headers=_auth()).json()
    assert grocery["items"] == body["grocery_list"]


def test_meal_plan_needs_targets(env):
    client, *_ = env
    _onboard(client)
    assert client.post("/api/v1/meal-plan", headers=_auth()).status_code == 404


def test_generation_failure_is_502_and_logged(env):
    client, _, llm, _ = env
    _onboard(client)
    client.post("/api/v1/macros", headers=_auth())
    llm.responses.append(FakeResponse('{"days": [', finish_reason="length"))

    r = client.post("/api/v1/meal-plan", headers=_auth())
    assert r.status_code == 502
    assert "try again" in r.json()["detail"]
    assert client.get("/api/v1/meal-plan", headers=_auth()).status_code == 404

    async def failures():
        async with session_scope() as db:
            return (await db.execute(select(GenerationFailure))).scalars().all()

    rows = asyncio.run(failures())
    assert [(f.user_id, f.plan_kind, f.stage) for f in rows] == [("client-1", "meal_plan", "truncated")]


# ── training plans ───────────────────────────────────────────────────
def test_coach_generates_training_plan_for_client(env):
    client, *_ = env
    _onboard(client)

    r = client.post("/api/v1/training-plan", json={"user_id": "client-1"}, headers=_auth("client-2"))
    assert r.status_code == 403

    r = client.post(
        "/api/v1/training-plan",
        json={"user_id": "client-1", "duration_weeks": 4},
        headers=_auth("coach-1", "coach"),
    )
    assert r.status_code == 201, r.text
    assert r.json()["duration_weeks"] == 4

    mine = client.get("/api/v1/training-plan", headers=_auth()).json()
    assert mine["plan_data"]["program_name"] == "PPL"


# ── check-ins + adjustments ──────────────────────────────────────────
def test_checkin_window_rules(env):
    client, clock, _, _ = env
    _onboard(client)
    payload = {"weight_kg": 90, "adherence_rating": 8}

    # first ever check-in is accepted outside the window
    r = client.post("/api/v1/checkin", json=payload, headers=_auth())
    assert r.status_code == 201
    assert r.json()["week_number"] == 1

    closed = client.post("/api/v1/checkin", json=payload, headers=_auth())
    assert closed.status_code == 403
    assert "2025-01-18T18:00:00" in closed.json()["detail"]

    clock["now"] = SUNDAY
    r = client.post("/api/v1/checkin", json=payload, headers=_auth())
    assert r.status_code == 201
    assert r.json()["week_number"] == 2
    assert client.post("/api/v1/checkin", json=payload, headers=_auth()).status_code == 409

    listed = client.get("/api/v1/checkin", headers=_auth()).json()
    assert [c["week_number"] for c in listed] == [2, 1]

    status = client.get("/api/v1/checkin/status", headers=_auth()).json()
    assert status["within_window"] and status["checked_in_this_week"]
    assert not status["overdue"]


def test_checkin_validation(env):
    client, *_ = env
    r = client.post("/api/v1/checkin", json={"weight_kg": 20, "adherence_rating": 11}, headers=_auth())
    assert r.status_code == 422
    r = client.post(
        "/api/v1/checkin", json={"weight_kg": 80, "adherence_rating": 8, "sleep_avg": 20}, headers=_auth()
    )
    assert r.status_code == 422


def test_checkin_keeps_steps_and_sleep(env):
    client, *_ = env
    payload = {"weight_kg": 80, "adherence_rating": 8, "steps_avg": 9000, "sleep_avg": 7.5}
    r = client.post("/api/v1/checkin", json=payload, headers=_auth())
    assert r.status_code == 201, r.text
    assert (r.json()["steps_avg"], r.json()["sleep_avg"]) == (9000, 7.5)

    listed = client.get("/api/v1/checkin", headers=_auth()).json()
    assert (listed[0]["steps_avg"], listed[0]["sleep_avg"]) == (9000, 7.5)


def test_adjustment_proposed_dismissed_and_approved(env):
    client, clock, _, _ = env
    coach = _auth("coach-1", "coach")
    _onboard(client)
    client.post("/api/v1/macros", headers=_auth())

    r = client.post("/api/v1/checkin", json={"weight_kg": 80, "adherence_rating": 9}, headers=_auth())
    assert r.json()["adjustment_proposed"] is True

    clock["now"] = SUNDAY
    r = client.post("/api/v1/checkin", json={"weight_kg": 79, "adherence_rating": 9}, headers=_auth())
    assert r.json()["adjustment_proposed"] is True

    assert client.get("/api/v1/adjustments", headers=_auth()).status_code == 403
    pending = client.get("/api/v1/adjustments", params={"user_id": "client-1"}, headers=coach).json()
    assert len(pending) == 1
    assert pending[0]["new_weight_kg"] == 79
    assert pending[0]["current_calorie_target"] == 2338

    adj_id = pending[0]["id"]
    approved = client.post(f"/api/v1/adjustments/{adj_id}/approve", headers=coach)
    assert approved.status_code == 200
    assert approved.json()["version"] == 2
    assert approved.json()["calorie_target"] == pending[0]["calorie_target"]

    assert client.post(f"/api/v1/adjustments/{adj_id}/approve", headers=coach).status_code == 409
    assert client.get("/api/v1/adjustments", params={"user_id": "client-1"}, headers=coach).json() == []
    assert client.post("/api/v1/adjustments/999/dismiss", headers=coach).status_code == 404
    assert client.get("/api/v1/macros", headers=_auth()).json()["version"] == 2


def test_small_weight_change_proposes_nothing(env):
    client, *_ = env
    _onboard(client)
    client.post("/api/v1/macros", headers=_auth())
    r = client.post("/api/v1/checkin", json={"weight_kg": 90.2, "adherence_rating": 7}, headers=_auth())
    assert r.json()["adjustment_proposed"] is False
