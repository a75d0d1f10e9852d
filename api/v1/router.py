# api/v1/router.py
from fastapi import APIRouter

from . import adjustments, checkins, macros, meal_plans, onboarding, training_plans

api_router = APIRouter()

api_router.include_router(onboarding.router, prefix="/onboarding", tags=["Onboarding"])
api_router.include_router(macros.router, prefix="/macros", tags=["Macros"])
api_router.include_router(meal_plans.router, prefix="/meal-plan", tags=["Meal plans"])
api_router.include_router(training_plans.router, prefix="/training-plan", tags=["Training plans"])
api_router.include_router(checkins.router, prefix="/checkin", tags=["Check-ins"])

# coach-only surface
api_router.include_router(macros.admin_router, prefix="/admin", tags=["Admin"])
api_router.include_router(adjustments.router, prefix="/adjustments", tags=["Admin"])
