# api/v1/training_plans.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.v1.deps import enforce_rate_limit, get_plan_generator, get_rate_limiter
from api.v1.schemas import TrainingPlanOut, TrainingPlanRequest
from core.plan_generation import RETRY_MESSAGE, PlanGenerator
from core.rate_limit import RateLimiter
from services.auth import CurrentUser, current_user, resolve_target_user
from services.db import OnboardingResponse, TrainingPlan, add_versioned, get_session, latest_for_user, profile_from_row
from services.gemini import log_failure_to_db

_LOG = logging.getLogger(__name__)

PLAN_KIND = "training_plan"

router = APIRouter()


@router.post(
    "",
    response_model=TrainingPlanOut,
    status_code=status.HTTP_201_CREATED,
    summary="Generate and store a new training program",
)
async def create_training_plan(
    body: TrainingPlanRequest | None = None,
    user: CurrentUser = Depends(current_user),
    db: AsyncSession = Depends(get_session),
    generator: PlanGenerator = Depends(get_plan_generator),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> TrainingPlanOut:
    body = body or TrainingPlanRequest()
    target = resolve_target_user(user, body.user_id)

    onboarding = await latest_for_user(db, OnboardingResponse, target)
    if onboarding is None:
        raise HTTPException(status_code=404, detail="Complete onboarding first")

    enforce_rate_limit(limiter, target, PLAN_KIND)

    profile = profile_from_row(onboarding)
    weeks = body.duration_weeks or profile.plan_duration_weeks
    try:
        result = await generator.generate_training_plan(profile, weeks)
    except Exception as exc:
        _LOG.exception("training plan generation call failed for %s", target)
        await log_failure_to_db(db, target, PLAN_KIND, "transport", str(exc))
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, detail=RETRY_MESSAGE)

    if not result.ok:
        await log_failure_to_db(db, target, PLAN_KIND, result.stage, result.reason, result.raw)
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, detail=result.user_message)

    row = await add_versioned(
        db, TrainingPlan, target, plan_data=result.plan, duration_weeks=weeks
    )
    _LOG.info("training plan v%d stored for %s (%d weeks)", row.version, target, weeks)
    return TrainingPlanOut.model_validate(row, from_attributes=True)


@router.get("", response_model=TrainingPlanOut, summary="Latest training plan")
async def get_training_plan(
    user: CurrentUser = Depends(current_user),
    db: AsyncSession = Depends(get_session),
) -> TrainingPlanOut:
    row = await latest_for_user(db, TrainingPlan, user.id)
    if row is None:
        raise HTTPException(status_code=404, detail="Training plan not found")
    return TrainingPlanOut.model_validate(row, from_attributes=True)
