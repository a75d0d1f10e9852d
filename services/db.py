"""
services/db.py
────────────────────────────────────────────────────────────────────────
* Async SQLAlchemy v2 setup
* Models for the versioned per-client records
* Small DAO helpers used by routers / scripts

Every onboarding response, macro target, meal plan and training plan is
append-only: a new row with version = previous max + 1. The unique
(user_id, version) constraint is the arbiter when two writers race; the
loser re-reads the max and tries again.
"""
from __future__ import annotations

import dataclasses
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, AsyncIterator, Awaitable, Callable, TypeVar

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    select,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncAttrs,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import Mapped, declarative_base, mapped_column
from sqlalchemy.pool import NullPool

from config import settings
from core.macro_calc import ClientProfile, MacroTargets

_LOG = logging.getLogger(__name__)

# ───────── connection helper ────────────────────────────────────────
_ENGINE: AsyncEngine | None = None
_SESSIONMAKER: async_sessionmaker[AsyncSession] | None = None


def _create_engine(url: str) -> AsyncEngine:
    # sqlite: a connection per checkout, so sessions opened on different
    # event loops (TestClient, scripts) never share one
    if url.startswith("sqlite"):
        return create_async_engine(url, poolclass=NullPool)
    return create_async_engine(url, pool_pre_ping=True)


def init_engine(url: str | None = None) -> AsyncEngine:
    global _ENGINE, _SESSIONMAKER
    _ENGINE = _create_engine(url or settings.database_url)
    _SESSIONMAKER = async_sessionmaker(_ENGINE, expire_on_commit=False)
    return _ENGINE


def engine() -> AsyncEngine:
    if _ENGINE is None:
        return init_engine()
    return _ENGINE


def _sessionmaker() -> async_sessionmaker[AsyncSession]:
    if _SESSIONMAKER is None:
        init_engine()
    assert _SESSIONMAKER is not None
    return _SESSIONMAKER


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ───────── declarative base ──────────────────────────────────────────
Base = declarative_base(cls=AsyncAttrs)


class OnboardingResponse(Base):
    __tablename__ = "onboarding_responses"
    __table_args__ = (UniqueConstraint("user_id", "version"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    version: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    age: Mapped[int]
    sex: Mapped[str]
    height_cm: Mapped[float] = mapped_column(Float)
    weight_kg: Mapped[float] = mapped_column(Float)
    goal_weight_kg: Mapped[float | None] = mapped_column(Float)
    body_fat_percentage: Mapped[float | None] = mapped_column(Float)
    body_fat_unsure: Mapped[bool] = mapped_column(Boolean, default=False)
    goal: Mapped[str]
    activity_level: Mapped[str]
    experience_level: Mapped[str]
    diet_type: Mapped[str]
    disliked_foods: Mapped[list] = mapped_column(JSON, default=list)
    allergies: Mapped[list] = mapped_column(JSON, default=list)
    meals_per_day: Mapped[int]
    cooking_skill: Mapped[str]
    budget: Mapped[str]
    workout_frequency: Mapped[int]
    workout_location: Mapped[str]
    home_equipment: Mapped[list] = mapped_column(JSON, default=list)
    split_preference: Mapped[str]
    time_per_session: Mapped[int]
    cardio_preference: Mapped[str]
    injuries: Mapped[list] = mapped_column(JSON, default=list)
    injury_notes: Mapped[str | None] = mapped_column(Text)
    plan_duration_weeks: Mapped[int]


class MacroTarget(Base):
    __tablename__ = "macro_targets"
    __table_args__ = (UniqueConstraint("user_id", "version"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    version: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    bmr: Mapped[int]
    tdee: Mapped[int]
    calorie_target: Mapped[int]
    protein_g: Mapped[int]
    fat_g: Mapped[int]
    carbs_g: Mapped[int]
    formula_used: Mapped[str]
    explanation: Mapped[str | None] = mapped_column(Text)
    onboarding_version: Mapped[int | None] = mapped_column(Integer)
    created_by: Mapped[str | None] = mapped_column(String)


class MealPlan(Base):
    __tablename__ = "meal_plans"
    __table_args__ = (UniqueConstraint("user_id", "version"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    version: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    plan_data: Mapped[dict] = mapped_column(JSON)
    grocery_list: Mapped[list] = mapped_column(JSON, default=list)
    macro_target_version: Mapped[int | None] = mapped_column(Integer)


class TrainingPlan(Base):
    __tablename__ = "training_plans"
    __table_args__ = (UniqueConstraint("user_id", "version"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    version: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    plan_data: Mapped[dict] = mapped_column(JSON)
    duration_weeks: Mapped[int]


class CheckIn(Base):
    __tablename__ = "check_ins"
    __table_args__ = (UniqueConstraint("user_id", "week_number"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    week_number: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    weight_kg: Mapped[float] = mapped_column(Float)
    waist_cm: Mapped[float | None] = mapped_column(Float)
    adherence_rating: Mapped[int]
    steps_avg: Mapped[int | None] = mapped_column(Integer)
    sleep_avg: Mapped[float | None] = mapped_column(Float)
    notes: Mapped[str | None] = mapped_column(Text)


class PendingMacroAdjustment(Base):
    __tablename__ = "pending_macro_adjustments"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    check_in_id: Mapped[int | None] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    resolved_by: Mapped[str | None] = mapped_column(String)

    new_weight_kg: Mapped[float] = mapped_column(Float)
    current_calorie_target: Mapped[int]
    bmr: Mapped[int]
    tdee: Mapped[int]
    calorie_target: Mapped[int]
    protein_g: Mapped[int]
    fat_g: Mapped[int]
    carbs_g: Mapped[int]
    formula_used: Mapped[str]
    explanation: Mapped[str | None] = mapped_column(Text)


class GenerationFailure(Base):
    __tablename__ = "generation_failures"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str]
    plan_kind: Mapped[str]
    stage: Mapped[str]
    error_message: Mapped[str] = mapped_column(Text)
    raw_output: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


# ───────── session helpers ───────────────────────────────────────────
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with _sessionmaker()() as session:
        yield session


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    async with _sessionmaker()() as session:
        yield session


async def create_all() -> None:
    async with engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ───────── versioned writes ──────────────────────────────────────────
ModelT = TypeVar("ModelT", bound=Base)  # type: ignore[valid-type]


class VersionConflictError(RuntimeError):
    """Could not claim a fresh version after several attempts."""


async def latest_for_user(
    db: AsyncSession, model: type[ModelT], user_id: str, version_field: str = "version"
) -> ModelT | None:
    column = getattr(model, version_field)
    result = await db.execute(
        select(model).where(model.user_id == user_id).order_by(column.desc()).limit(1)
    )
    return result.scalars().first()


async def _next_version(
    db: AsyncSession, model: type[Base], user_id: str, version_field: str
) -> int:
    column = getattr(model, version_field)
    current = await db.scalar(select(func.max(column)).where(model.user_id == user_id))
    return (current or 0) + 1


async def add_versioned(
    db: AsyncSession,
    model: type[ModelT],
    user_id: str,
    *,
    version_field: str = "version",
    retries: int = 5,
    stage: Callable[[], Awaitable[Any]] | None = None,
    **fields: Any,
) -> ModelT:
    """Insert and commit `model(**fields)` under the next free version.

    `stage` is awaited before every attempt; whatever it changes on `db`
    commits in the same transaction as the new row. A version clash rolls
    both back, so `stage` must reload anything it touches.
    """
    for attempt in range(1, retries + 1):
        version = await _next_version(db, model, user_id, version_field)
        if stage is not None:
            await stage()
        row = model(user_id=user_id, **{version_field: version}, **fields)
        db.add(row)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            _LOG.info(
                "%s v%d for %s taken, retrying (%d/%d)",
                model.__tablename__, version, user_id, attempt, retries,
            )
            continue
        return row
    raise VersionConflictError(
        f"could not allocate a {model.__tablename__} version for {user_id}"
    )


# ───────── row ↔ domain converters ───────────────────────────────────
_TUPLE_FIELDS = {"disliked_foods", "allergies", "home_equipment", "injuries"}


def profile_columns(profile: ClientProfile) -> dict[str, Any]:
    cols = dataclasses.asdict(profile)
    for name in _TUPLE_FIELDS:
        cols[name] = list(cols[name])
    return cols


def profile_from_row(row: OnboardingResponse) -> ClientProfile:
    values: dict[str, Any] = {}
    for f in dataclasses.fields(ClientProfile):
        value = getattr(row, f.name)
        if f.name in _TUPLE_FIELDS:
            value = tuple(value or ())
        elif f.name == "injury_notes":
            value = value or ""
        values[f.name] = value
    return ClientProfile(**values)


def targets_columns(targets: MacroTargets) -> dict[str, Any]:
    return dataclasses.asdict(targets)


def targets_from_row(row: MacroTarget | PendingMacroAdjustment) -> MacroTargets:
    return MacroTargets(
        bmr=row.bmr,
        tdee=row.tdee,
        calorie_target=row.calorie_target,
        protein_g=row.protein_g,
        fat_g=row.fat_g,
        carbs_g=row.carbs_g,
        formula_used=row.formula_used,
        explanation=row.explanation or "",
    )
