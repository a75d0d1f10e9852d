"""
api/v1/deps.py
────────────────────────────────────────────────────────────────────────
Process-wide collaborators handed to routes through `Depends`, so tests
can swap each one via `app.dependency_overrides`.
"""
from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache

from fastapi import HTTPException, status

from config import settings
from core.nutrients import CachedResolver, NutrientCache, NutrientLookup, StaticTableResolver
from core.plan_generation import PlanGenerator
from core.rate_limit import RateLimiter
from services import gemini
from services.usda import FoodDataCentralResolver


def get_clock() -> datetime:
    return datetime.now(timezone.utc)


@lru_cache(maxsize=1)
def get_nutrient_lookup() -> NutrientLookup:
    return NutrientLookup([
        StaticTableResolver(),
        CachedResolver(FoodDataCentralResolver(), NutrientCache()),
    ])


@lru_cache(maxsize=1)
def get_plan_generator() -> PlanGenerator:
    return PlanGenerator(gemini.generate_json)


@lru_cache(maxsize=1)
def get_rate_limiter() -> RateLimiter:
    return RateLimiter(settings.plan_rate_limit_seconds)


def enforce_rate_limit(limiter: RateLimiter, user_id: str, plan_kind: str) -> None:
    wait = limiter.hit((user_id, plan_kind))
    if wait is not None:
        retry_after = max(1, round(wait))
        raise HTTPException(
            status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Please wait {retry_after} seconds before generating another plan.",
            headers={"Retry-After": str(retry_after)},
        )
