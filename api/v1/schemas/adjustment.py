from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class AdjustmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    check_in_id: int | None = None
    status: str
    created_at: datetime
    resolved_at: datetime | None = None
    resolved_by: str | None = None
    new_weight_kg: float
    current_calorie_target: int
    calorie_target: int
    protein_g: int
    fat_g: int
    carbs_g: int
    bmr: int
    tdee: int
    formula_used: str
    explanation: str | None = None
