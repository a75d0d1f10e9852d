from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from core.models.plan import GroceryItem, MealPlanData


class PlanRequest(BaseModel):
    user_id: str | None = None


class TrainingPlanRequest(PlanRequest):
    duration_weeks: int | None = Field(None, ge=1, le=52)


class MealPlanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    version: int
    created_at: datetime
    plan_data: MealPlanData
    grocery_list: list[GroceryItem]
    macro_target_version: int | None = None


class MealPlanCreated(MealPlanOut):
    unmatched_ingredients: list[str] = []


class TrainingPlanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    version: int
    created_at: datetime
    duration_weeks: int
    plan_data: dict[str, Any]


class GroceryListOut(BaseModel):
    version: int
    items: list[GroceryItem]
