# api/v1/onboarding.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.v1.schemas import OnboardingIn, OnboardingOut
from services.auth import CurrentUser, current_user
from services.db import OnboardingResponse, add_versioned, get_session, latest_for_user, profile_columns

router = APIRouter()


@router.post(
    "",
    response_model=OnboardingOut,
    status_code=status.HTTP_201_CREATED,
    summary="Store a new onboarding version for the caller",
)
async def submit_onboarding(
    body: OnboardingIn,
    user: CurrentUser = Depends(current_user),
    db: AsyncSession = Depends(get_session),
) -> OnboardingOut:
    row = await add_versioned(
        db, OnboardingResponse, user.id, **profile_columns(body.to_profile())
    )
    return OnboardingOut.model_validate(row, from_attributes=True)


@router.get("", response_model=OnboardingOut, summary="Latest onboarding for the caller")
async def get_onboarding(
    user: CurrentUser = Depends(current_user),
    db: AsyncSession = Depends(get_session),
) -> OnboardingOut:
    row = await latest_for_user(db, OnboardingResponse, user.id)
    if row is None:
        raise HTTPException(status_code=404, detail="Onboarding not found")
    return OnboardingOut.model_validate(row, from_attributes=True)
