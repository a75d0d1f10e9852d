from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CheckInIn(BaseModel):
    weight_kg: float = Field(ge=30, le=300)
    waist_cm: float | None = Field(None, ge=40, le=200)
    adherence_rating: int = Field(ge=1, le=10)
    steps_avg: int | None = Field(None, ge=0, le=50000)
    sleep_avg: float | None = Field(None, ge=0, le=14)
    notes: str = Field("", max_length=2000)


class CheckInOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    week_number: int
    created_at: datetime
    weight_kg: float
    waist_cm: float | None = None
    adherence_rating: int
    steps_avg: int | None = None
    sleep_avg: float | None = None
    notes: str | None = None


class CheckInCreated(CheckInOut):
    adjustment_proposed: bool = False


class CheckInStatus(BaseModel):
    window_opens: datetime
    window_closes: datetime
    target_sunday: datetime
    within_window: bool
    checked_in_this_week: bool
    overdue: bool
    next_window_opens: datetime
