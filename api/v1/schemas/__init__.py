"""Re-export individual schema modules for easy imports."""

from .onboarding import OnboardingIn, OnboardingOut
from .macros import MacroTargetsOut, MacroOverrideIn
from .plan import (
    GroceryListOut,
    MealPlanCreated,
    MealPlanOut,
    PlanRequest,
    TrainingPlanOut,
    TrainingPlanRequest,
)
from .checkin import CheckInIn, CheckInOut, CheckInCreated, CheckInStatus
from .adjustment import AdjustmentOut

__all__ = [
    "OnboardingIn",
    "OnboardingOut",
    "MacroTargetsOut",
    "MacroOverrideIn",
    "PlanRequest",
    "TrainingPlanRequest",
    "MealPlanOut",
    "MealPlanCreated",
    "TrainingPlanOut",
    "GroceryListOut",
    "CheckInIn",
    "CheckInOut",
    "CheckInCreated",
    "CheckInStatus",
    "AdjustmentOut",
]
