# api/v1/adjustments.py
from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.v1.deps import get_clock
from api.v1.schemas import AdjustmentOut, MacroTargetsOut
from core.adjustments import APPROVED, DISMISSED, PENDING
from services.auth import CurrentUser, require_coach
from services.db import (
    MacroTarget,
    PendingMacroAdjustment,
    add_versioned,
    get_session,
    latest_for_user,
    targets_columns,
    targets_from_row,
)

_LOG = logging.getLogger(__name__)

router = APIRouter()


async def _pending_or_error(db: AsyncSession, adjustment_id: int) -> PendingMacroAdjustment:
    adj = await db.get(PendingMacroAdjustment, adjustment_id)
    if adj is None:
        raise HTTPException(status_code=404, detail="Adjustment not found")
    if adj.status != PENDING:
        raise HTTPException(status_code=409, detail=f"Adjustment already {adj.status}")
    return adj


@router.get("", response_model=list[AdjustmentOut], summary="Pending macro adjustments")
async def list_pending(
    user_id: str | None = Query(None),
    coach: CurrentUser = Depends(require_coach),
    db: AsyncSession = Depends(get_session),
) -> list[AdjustmentOut]:
    stmt = select(PendingMacroAdjustment).where(PendingMacroAdjustment.status == PENDING)
    if user_id is not None:
        stmt = stmt.where(PendingMacroAdjustment.user_id == user_id)
    result = await db.execute(stmt.order_by(PendingMacroAdjustment.created_at.desc()))
    return [AdjustmentOut.model_validate(a, from_attributes=True) for a in result.scalars().all()]


@router.post(
    "/{adjustment_id}/approve",
    response_model=MacroTargetsOut,
    summary="Adopt the proposal as the client's new macro targets",
)
async def approve(
    adjustment_id: int,
    coach: CurrentUser = Depends(require_coach),
    db: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_clock),
) -> MacroTargetsOut:
    adj = await _pending_or_error(db, adjustment_id)
    user_id = adj.user_id
    proposed = targets_columns(targets_from_row(adj))
    previous = await latest_for_user(db, MacroTarget, user_id)

    async def mark_approved() -> None:
        # re-checked on every attempt; a retry starts from a rolled-back session
        current = await _pending_or_error(db, adjustment_id)
        current.status = APPROVED
        current.resolved_at = now
        current.resolved_by = coach.id

    row = await add_versioned(
        db, MacroTarget, user_id,
        stage=mark_approved,
        onboarding_version=previous.onboarding_version if previous else None,
        created_by=coach.id,
        **proposed,
    )
    _LOG.info("adjustment %d approved by %s → targets v%d", adjustment_id, coach.id, row.version)
    return MacroTargetsOut.model_validate(row, from_attributes=True)


@router.post(
    "/{adjustment_id}/dismiss",
    response_model=AdjustmentOut,
    summary="Reject the proposal",
)
async def dismiss(
    adjustment_id: int,
    coach: CurrentUser = Depends(require_coach),
    db: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_clock),
) -> AdjustmentOut:
    adj = await _pending_or_error(db, adjustment_id)
    adj.status = DISMISSED
    adj.resolved_at = now
    adj.resolved_by = coach.id
    await db.commit()
    return AdjustmentOut.model_validate(adj, from_attributes=True)
