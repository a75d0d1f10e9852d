from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class MacroTargetsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    version: int
    bmr: int
    tdee: int
    calorie_target: int
    protein_g: int
    fat_g: int
    carbs_g: int
    formula_used: str
    explanation: str | None = None
    created_at: datetime
    created_by: str | None = None


class MacroOverrideIn(BaseModel):
    user_id: str
    calorie_target: int = Field(ge=800, le=10000)
    protein_g: int = Field(ge=0, le=1000)
    fat_g: int = Field(ge=0, le=500)
    carbs_g: int = Field(ge=0, le=1500)
    explanation: str | None = Field(None, max_length=2000)
