from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

MACRO_KEYS = ("calories", "protein", "carbs", "fat")


class Macros(BaseModel):
    calories: float = 0
    protein: float = 0
    carbs: float = 0
    fat: float = 0

    model_config = ConfigDict(extra="ignore")

    @field_validator("calories", "protein", "carbs", "fat", mode="before")
    @classmethod
    def _none_is_zero(cls, v):
        return 0 if v is None else v


class Ingredient(BaseModel):
    name: str = ""
    amount: str = "0"
    unit: str = "g"
    macros: Macros = Field(default_factory=Macros)

    model_config = ConfigDict(extra="allow")

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_as_text(cls, v):
        if v is None:
            return "0"
        if isinstance(v, float) and v.is_integer():
            return str(int(v))
        return str(v)

    @field_validator("unit", mode="before")
    @classmethod
    def _unit_as_text(cls, v):
        # no unit means grams
        return str(v) if v else "g"

    @field_validator("macros", mode="before")
    @classmethod
    def _missing_macros(cls, v):
        return {} if v is None else v


class SwapOption(BaseModel):
    recipe_title: str = ""
    ingredients: list[Ingredient] = Field(default_factory=list)
    instructions: list[str] = Field(default_factory=list)
    macro_totals: Macros = Field(default_factory=Macros)

    model_config = ConfigDict(extra="allow")


class Meal(SwapOption):
    name: str = ""
    swap_options: list[SwapOption] = Field(default_factory=list)


class MealDay(BaseModel):
    day: str = ""
    meals: list[Meal] = Field(default_factory=list)
    day_totals: Macros = Field(default_factory=Macros)

    model_config = ConfigDict(extra="allow")


class MealPlanData(BaseModel):
    days: list[MealDay]


class GroceryItem(BaseModel):
    category: str
    item: str

