# api/v1/meal_plans.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.v1.deps import enforce_rate_limit, get_nutrient_lookup, get_plan_generator, get_rate_limiter
from api.v1.schemas import GroceryListOut, MealPlanCreated, MealPlanOut, PlanRequest
from core.correction import correct_meal_plan
from core.grocery import compile_grocery_list
from core.models.plan import MealPlanData
from core.nutrients import NutrientLookup
from core.plan_generation import RETRY_MESSAGE, PlanGenerator
from core.rate_limit import RateLimiter
from services.auth import CurrentUser, current_user, resolve_target_user
from services.db import (
    MacroTarget,
    MealPlan,
    OnboardingResponse,
    add_versioned,
    get_session,
    latest_for_user,
    profile_from_row,
    targets_from_row,
)
from services.gemini import log_failure_to_db

_LOG = logging.getLogger(__name__)

PLAN_KIND = "meal_plan"

router = APIRouter()


@router.post(
    "",
    response_model=MealPlanCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Generate, correct and store a new 7-day meal plan",
)
async def create_meal_plan(
    body: PlanRequest | None = None,
    user: CurrentUser = Depends(current_user),
    db: AsyncSession = Depends(get_session),
    generator: PlanGenerator = Depends(get_plan_generator),
    lookup: NutrientLookup = Depends(get_nutrient_lookup),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> MealPlanCreated:
    target = resolve_target_user(user, body.user_id if body else None)

    onboarding = await latest_for_user(db, OnboardingResponse, target)
    if onboarding is None:
        raise HTTPException(status_code=404, detail="Complete onboarding first")
    targets_row = await latest_for_user(db, MacroTarget, target)
    if targets_row is None:
        raise HTTPException(status_code=404, detail="Calculate macro targets first")

    enforce_rate_limit(limiter, target, PLAN_KIND)

    profile = profile_from_row(onboarding)
    targets = targets_from_row(targets_row)
    try:
        result = await generator.generate_meal_plan(profile, targets)
    except Exception as exc:
        _LOG.exception("meal plan generation call failed for %s", target)
        await log_failure_to_db(db, target, PLAN_KIND, "transport", str(exc))
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, detail=RETRY_MESSAGE)

    if not result.ok:
        await log_failure_to_db(db, target, PLAN_KIND, result.stage, result.reason, result.raw)
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, detail=result.user_message)

    plan: MealPlanData = result.plan
    report = await correct_meal_plan(plan, targets, lookup)
    grocery = compile_grocery_list(plan.days)

    row = await add_versioned(
        db, MealPlan, target,
        plan_data=plan.model_dump(mode="json"),
        grocery_list=[g.model_dump() for g in grocery],
        macro_target_version=targets_row.version,
    )
    _LOG.info(
        "meal plan v%d stored for %s (%d/%d ingredients matched)",
        row.version, target, report.matched, report.total,
    )
    return MealPlanCreated(
        version=row.version,
        created_at=row.created_at,
        plan_data=plan,
        grocery_list=grocery,
        macro_target_version=row.macro_target_version,
        unmatched_ingredients=report.unmatched,
    )


@router.get("", response_model=MealPlanOut, summary="Latest meal plan")
async def get_meal_plan(
    user: CurrentUser = Depends(current_user),
    db: AsyncSession = Depends(get_session),
) -> MealPlanOut:
    row = await latest_for_user(db, MealPlan, user.id)
    if row is None:
        raise HTTPException(status_code=404, detail="Meal plan not found")
    return MealPlanOut.model_validate(row, from_attributes=True)


@router.get(
    "/grocery-list",
    response_model=GroceryListOut,
    summary="Grocery list rebuilt from the latest meal plan",
)
async def get_grocery_list(
    user: CurrentUser = Depends(current_user),
    db: AsyncSession = Depends(get_session),
) -> GroceryListOut:
    row = await latest_for_user(db, MealPlan, user.id)
    if row is None:
        raise HTTPException(status_code=404, detail="Meal plan not found")
    plan = MealPlanData.model_validate(row.plan_data)
    return GroceryListOut(version=row.version, items=compile_grocery_list(plan.days))
