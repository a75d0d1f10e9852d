# api/v1/macros.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.v1.schemas import MacroOverrideIn, MacroTargetsOut
from core.macro_calc import COACH_OVERRIDE, generate_macro_targets
from services.auth import CurrentUser, current_user, require_coach
from services.db import (
    MacroTarget,
    OnboardingResponse,
    add_versioned,
    get_session,
    latest_for_user,
    profile_from_row,
    targets_columns,
)

_LOG = logging.getLogger(__name__)

router = APIRouter()
admin_router = APIRouter()


@router.post(
    "",
    response_model=MacroTargetsOut,
    status_code=status.HTTP_201_CREATED,
    summary="Calculate macro targets from the latest onboarding",
)
async def calculate_targets(
    user: CurrentUser = Depends(current_user),
    db: AsyncSession = Depends(get_session),
) -> MacroTargetsOut:
    onboarding = await latest_for_user(db, OnboardingResponse, user.id)
    if onboarding is None:
        raise HTTPException(status_code=404, detail="Complete onboarding first")

    targets = generate_macro_targets(profile_from_row(onboarding))
    row = await add_versioned(
        db, MacroTarget, user.id,
        onboarding_version=onboarding.version,
        created_by=user.id,
        **targets_columns(targets),
    )
    _LOG.info("macro targets v%d for %s: %d kcal", row.version, user.id, row.calorie_target)
    return MacroTargetsOut.model_validate(row, from_attributes=True)


@router.get("", response_model=MacroTargetsOut, summary="Current macro targets")
async def get_targets(
    user: CurrentUser = Depends(current_user),
    db: AsyncSession = Depends(get_session),
) -> MacroTargetsOut:
    row = await latest_for_user(db, MacroTarget, user.id)
    if row is None:
        raise HTTPException(status_code=404, detail="Macro targets not found")
    return MacroTargetsOut.model_validate(row, from_attributes=True)


@admin_router.put(
    "/macros",
    response_model=MacroTargetsOut,
    summary="Coach override of a client's macro targets",
)
async def override_targets(
    body: MacroOverrideIn,
    coach: CurrentUser = Depends(require_coach),
    db: AsyncSession = Depends(get_session),
) -> MacroTargetsOut:
    previous = await latest_for_user(db, MacroTarget, body.user_id)
    default_explanation = "Macros manually adjusted by your coach."
    row = await add_versioned(
        db, MacroTarget, body.user_id,
        bmr=previous.bmr if previous else 0,
        tdee=previous.tdee if previous else 0,
        calorie_target=body.calorie_target,
        protein_g=body.protein_g,
        fat_g=body.fat_g,
        carbs_g=body.carbs_g,
        formula_used=COACH_OVERRIDE,
        explanation=body.explanation or default_explanation,
        onboarding_version=previous.onboarding_version if previous else None,
        created_by=coach.id,
    )
    _LOG.info("coach %s overrode targets for %s (v%d)", coach.id, body.user_id, row.version)
    return MacroTargetsOut.model_validate(row, from_attributes=True)
