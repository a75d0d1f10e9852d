"""
scripts/recorrect_meal_plan.py
────────────────────────────────────────────────────────────────────────
Re-run nutrient override + scaling over a client's latest meal plan
against their current targets, and store the result as a new version
with a rebuilt grocery list. Running it twice in a row changes nothing
the second time beyond the version number.

    python -m scripts.recorrect_meal_plan --user abc123
"""
from __future__ import annotations

import asyncio
from argparse import ArgumentParser
from dotenv import load_dotenv
load_dotenv()

from sqlalchemy.ext.asyncio import AsyncSession

from core.correction import correct_meal_plan
from core.grocery import compile_grocery_list
from core.models.plan import MealPlanData
from core.nutrients import NutrientLookup
from api.v1.deps import get_nutrient_lookup
from services.db import (
    MacroTarget,
    MealPlan,
    add_versioned,
    latest_for_user,
    session_scope,
    targets_from_row,
)


async def recorrect(
    db: AsyncSession, user_id: str, lookup: NutrientLookup
) -> MealPlan | None:
    plan_row = await latest_for_user(db, MealPlan, user_id)
    targets_row = await latest_for_user(db, MacroTarget, user_id)
    if plan_row is None or targets_row is None:
        print(f"· skip {user_id} – needs both a meal plan and macro targets")
        return None

    plan = MealPlanData.model_validate(plan_row.plan_data)
    report = await correct_meal_plan(plan, targets_from_row(targets_row), lookup)
    row = await add_versioned(
        db, MealPlan, user_id,
        plan_data=plan.model_dump(mode="json"),
        grocery_list=[g.model_dump() for g in compile_grocery_list(plan.days)],
        macro_target_version=targets_row.version,
    )
    print(
        f"✓ meal plan v{plan_row.version} → v{row.version} for {user_id} "
        f"({report.matched}/{report.total} matched, {len(report.scaled)} days scaled)"
    )
    return row


async def _async_main() -> None:
    ap = ArgumentParser()
    ap.add_argument("--user", required=True, help="client user-id")
    args = ap.parse_args()

    async with session_scope() as db:
        await recorrect(db, args.user, get_nutrient_lookup())


if __name__ == "__main__":  # pragma: no cover
    asyncio.run(_async_main())
