from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from core.macro_calc import ClientProfile

Goal = Literal["cut", "bulk", "recomp"]
ActivityLevel = Literal["sedentary", "lightly_active", "moderate", "very_active", "athlete"]
DietType = Literal[
    "standard", "keto", "vegan", "vegetarian", "paleo",
    "gluten_free", "dairy_free", "halal", "kosher", "no_restrictions",
]
Level3 = Literal["low", "medium", "high"]
Experience = Literal["beginner", "intermediate", "advanced"]
Split = Literal["full_body", "upper_lower", "ppl", "bro_split", "strength"]
Cardio = Literal["none", "light", "moderate", "high"]


class OnboardingIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    age: int = Field(ge=16, le=100)
    sex: Literal["male", "female"]
    height_cm: float = Field(ge=100, le=250)
    weight_kg: float = Field(ge=30, le=300)
    goal: Goal
    goal_weight_kg: float | None = Field(None, ge=30, le=300)
    activity_level: ActivityLevel
    body_fat_percentage: float | None = Field(None, ge=3, le=50)
    body_fat_unsure: bool = False

    diet_type: DietType = "standard"
    disliked_foods: list[str] = []
    allergies: list[str] = []
    meals_per_day: int = Field(4, ge=1, le=8)
    cooking_skill: Level3 = "medium"
    budget: Level3 = "medium"

    injuries: list[str] = []
    injury_notes: str = ""

    workout_frequency: int = Field(4, ge=2, le=6)
    workout_location: Literal["home", "gym"] = "gym"
    experience_level: Experience = "intermediate"
    home_equipment: list[str] = []
    split_preference: Split = "upper_lower"
    time_per_session: int = Field(60, ge=15, le=180)
    cardio_preference: Cardio = "none"

    plan_duration_weeks: Literal[4, 8, 12] = 8

    def to_profile(self) -> ClientProfile:
        data = self.model_dump()
        for key in ("disliked_foods", "allergies", "home_equipment", "injuries"):
            data[key] = tuple(data[key])
        return ClientProfile(**data)


class OnboardingOut(OnboardingIn):
    model_config = ConfigDict(from_attributes=True)

    version: int
    created_at: datetime
    injury_notes: str | None = ""
