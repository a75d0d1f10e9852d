# tests/test_scripts.py
from __future__ import annotations

import asyncio

import pytest

from core.macro_calc import ClientProfile
from core.nutrients import NutrientLookup, StaticTableResolver
from scripts.init_targets import refresh_user
from scripts.recorrect_meal_plan import recorrect
from services import db as dbmod
from services.db import (
    MacroTarget,
    MealPlan,
    OnboardingResponse,
    add_versioned,
    create_all,
    profile_columns,
    session_scope,
)

PROFILE = ClientProfile(
    age=30, sex="male", height_cm=180, weight_kg=90,
    goal="cut", activity_level="moderate", body_fat_percentage=22,
)
PLAN = {"days": [{
    "day": "Monday",
    "meals": [{
        "name": "Meal 1",
        "recipe_title": "Bowl",
        "ingredients": [
            {"name": "Chicken breast", "amount": "150", "unit": "g"},
            {"name": "Jasmine rice", "amount": "100", "unit": "g"},
        ],
    }],
}]}


@pytest.fixture()
def sqlite_db(tmp_path):
    dbmod.init_engine(f"sqlite+aiosqlite:///{tmp_path / 'scripts.db'}")
    asyncio.run(create_all())
    yield
    asyncio.run(dbmod.engine().dispose())


def test_refresh_user_stores_new_version(sqlite_db):
    async def scenario():
        async with session_scope() as db:
            skipped = await refresh_user(db, "u1")
            await add_versioned(db, OnboardingResponse, "u1", **profile_columns(PROFILE))
            first = await refresh_user(db, "u1")
            second = await refresh_user(db, "u1")
        return skipped, first, second

    skipped, first, second = asyncio.run(scenario())
    assert skipped is None
    assert (first.version, second.version) == (1, 2)
    assert first.calorie_target == second.calorie_target == 2338
    assert first.onboarding_version == 1


def test_recorrect_twice_is_stable(sqlite_db):
    lookup = NutrientLookup([StaticTableResolver()])

    async def scenario():
        async with session_scope() as db:
            await add_versioned(
                db, MacroTarget, "u1",
                bmr=1886, tdee=2923, calorie_target=2338, protein_g=198,
                fat_g=70, carbs_g=229, formula_used="katch_mcardle",
            )
            await add_versioned(db, MealPlan, "u1", plan_data=PLAN, grocery_list=[])
            first = await recorrect(db, "u1", lookup)
            second = await recorrect(db, "u1", lookup)
        return first, second

    first, second = asyncio.run(scenario())
    assert (first.version, second.version) == (2, 3)
    amounts = [
        [i["amount"] for i in p["days"][0]["meals"][0]["ingredients"]]
        for p in (first.plan_data, second.plan_data)
    ]
    assert amounts[0] == amounts[1]
    assert amounts[0][0] != "150"
    assert first.grocery_list == second.grocery_list
