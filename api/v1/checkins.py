# api/v1/checkins.py
from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api.v1.deps import get_clock
from api.v1.schemas import CheckInCreated, CheckInIn, CheckInOut, CheckInStatus
from core.adjustments import DISMISSED, PENDING, evaluate_adjustment
from core.checkin_schedule import (
    get_current_checkin_window,
    get_next_window_opens,
    has_checked_in_this_week,
    is_client_overdue,
)
from services.auth import CurrentUser, current_user
from services.db import (
    CheckIn,
    MacroTarget,
    OnboardingResponse,
    PendingMacroAdjustment,
    add_versioned,
    get_session,
    latest_for_user,
    profile_from_row,
    targets_columns,
    targets_from_row,
)

_LOG = logging.getLogger(__name__)

router = APIRouter()


async def _last_checkin(db: AsyncSession, user_id: str) -> CheckIn | None:
    return await latest_for_user(db, CheckIn, user_id, version_field="week_number")


@router.post(
    "",
    response_model=CheckInCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Submit this week's check-in",
)
async def submit_checkin(
    body: CheckInIn,
    user: CurrentUser = Depends(current_user),
    db: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_clock),
) -> CheckInCreated:
    last = await _last_checkin(db, user.id)
    # the very first check-in is accepted whenever it arrives
    if last is not None:
        window = get_current_checkin_window(now)
        if not window.contains(now):
            opens = get_next_window_opens(now)
            raise HTTPException(
                status.HTTP_403_FORBIDDEN,
                detail=f"Check-ins are closed. The next window opens {opens.isoformat()}.",
            )
        if window.contains(last.created_at):
            raise HTTPException(status.HTTP_409_CONFLICT, detail="Already checked in this week")

    row = await add_versioned(
        db, CheckIn, user.id, version_field="week_number", created_at=now, **body.model_dump()
    )
    proposed = await _propose_adjustment(db, user.id, row, now)
    _LOG.info("check-in week %d for %s (adjustment proposed: %s)", row.week_number, user.id, proposed)
    out = CheckInOut.model_validate(row, from_attributes=True)
    return CheckInCreated(**out.model_dump(), adjustment_proposed=proposed)


async def _propose_adjustment(
    db: AsyncSession, user_id: str, checkin: CheckIn, now: datetime
) -> bool:
    onboarding = await latest_for_user(db, OnboardingResponse, user_id)
    targets_row = await latest_for_user(db, MacroTarget, user_id)
    if onboarding is None or targets_row is None:
        return False

    proposal = evaluate_adjustment(
        profile_from_row(onboarding), targets_from_row(targets_row), checkin.weight_kg
    )
    if proposal is None:
        return False

    await db.execute(
        update(PendingMacroAdjustment)
        .where(
            PendingMacroAdjustment.user_id == user_id,
            PendingMacroAdjustment.status == PENDING,
        )
        .values(status=DISMISSED, resolved_at=now)
    )
    db.add(PendingMacroAdjustment(
        user_id=user_id,
        check_in_id=checkin.id,
        status=PENDING,
        created_at=now,
        new_weight_kg=checkin.weight_kg,
        current_calorie_target=targets_row.calorie_target,
        **targets_columns(proposal),
    ))
    await db.commit()
    return True


@router.get("", response_model=list[CheckInOut], summary="All check-ins, newest first")
async def list_checkins(
    user: CurrentUser = Depends(current_user),
    db: AsyncSession = Depends(get_session),
) -> list[CheckInOut]:
    result = await db.execute(
        select(CheckIn).where(CheckIn.user_id == user.id).order_by(CheckIn.week_number.desc())
    )
    return [CheckInOut.model_validate(c, from_attributes=True) for c in result.scalars().all()]


@router.get("/status", response_model=CheckInStatus, summary="Where the caller stands this week")
async def checkin_status(
    user: CurrentUser = Depends(current_user),
    db: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_clock),
) -> CheckInStatus:
    window = get_current_checkin_window(now)
    last = await _last_checkin(db, user.id)
    last_at = last.created_at if last else None
    onboarded = await latest_for_user(db, OnboardingResponse, user.id) is not None
    return CheckInStatus(
        window_opens=window.opens,
        window_closes=window.closes,
        target_sunday=window.target_sunday,
        within_window=window.contains(now),
        checked_in_this_week=has_checked_in_this_week(last_at, now),
        overdue=is_client_overdue(last_at, onboarded, now),
        next_window_opens=get_next_window_opens(now),
    )
