"""
core/correction.py
────────────────────────────────────────────────────────────────────────
Server-side correction of a generated meal plan.

The generator is trusted for food choice and recipe structure only. The
numbers are rebuilt here in four phases, each safe to re-run on its own
output:

1. override   ingredient macros ← nutrient lookup × grams
2. aggregate  meal / swap / day totals from ingredients
3. scale      per-day, per dominant-macro group portion rescale
4. aggregate  again, so stored totals match the scaled portions

Scaling is deliberately greedy: each macro's group of ingredients is
scaled on its own toward that macro's target. Cross-group spill-over
(e.g. fat in a carb-dominant food) is left as residual error.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable, Protocol

import numpy as np

from core.models.plan import MACRO_KEYS, Ingredient, Macros, MealDay, MealPlanData
from core.nutrients import NutrientLookup
from core.units import parse_amount, round_half_up, to_grams

_LOG = logging.getLogger(__name__)

# An ingredient at or under this many kcal is a seasoning / condiment: it
# keeps its portion and its macros are subtracted from the group targets.
FIXED_INGREDIENT_MAX_KCAL = 30.0

# A group whose scale factor lands within ±5 % of 1 is left untouched.
SCALE_SKIP_TOLERANCE = 0.05

# Dominant macro = largest kcal contribution; ties go protein > carbs > fat.
DOMINANT_MACRO_ORDER = ("protein", "carbs", "fat")
_KCAL_PER_GRAM = np.array([4.0, 4.0, 9.0])


class MacroTargetLike(Protocol):
    calorie_target: int
    protein_g: float
    carbs_g: float
    fat_g: float


@dataclass
class CorrectionReport:
    total: int = 0
    matched: int = 0
    unmatched: list[str] = field(default_factory=list)
    # day name → {macro: factor applied}
    scaled: dict[str, dict[str, float]] = field(default_factory=dict)

    def add_unmatched(self, label: str) -> None:
        if label not in self.unmatched:
            self.unmatched.append(label)


# ──────────────────────────── phase 1 ──────────────────────────── #
def _day_ingredients(day: MealDay, include_swaps: bool = True) -> list[Ingredient]:
    out: list[Ingredient] = []
    for meal in day.meals:
        out.extend(meal.ingredients)
        if include_swaps:
            for swap in meal.swap_options:
                out.extend(swap.ingredients)
    return out


async def _override_one(ing: Ingredient, lookup: NutrientLookup) -> str | None:
    """Overwrite `ing.macros`; return an unmatched label on failure."""
    grams = to_grams(ing.name, parse_amount(ing.amount), ing.unit)
    if grams is None or grams <= 0:
        return f"{ing.name or 'unknown'} (unit: {ing.unit})"

    profile = await lookup.resolve(ing.name)
    if profile is None:
        return ing.name or "unknown"

    ing.macros = Macros(**profile.for_grams(grams))
    return None


async def override_ingredient_macros(
    days: Iterable[MealDay],
    lookup: NutrientLookup,
    report: CorrectionReport | None = None,
) -> CorrectionReport:
    """Days run one after another; a day's ingredients resolve concurrently."""
    report = report or CorrectionReport()
    for day in days:
        ingredients = _day_ingredients(day)
        outcomes = await asyncio.gather(*(_override_one(i, lookup) for i in ingredients))
        report.total += len(ingredients)
        for label in outcomes:
            if label is None:
                report.matched += 1
            else:
                report.add_unmatched(label)
    return report


# ──────────────────────────── phase 2 ──────────────────────────── #
def sum_ingredient_macros(ingredients: Iterable[Ingredient]) -> Macros:
    totals = dict.fromkeys(MACRO_KEYS, 0.0)
    for ing in ingredients:
        for k in MACRO_KEYS:
            totals[k] += getattr(ing.macros, k) or 0
    return Macros(**{k: round_half_up(v) for k, v in totals.items()})


def compute_macro_totals(days: Iterable[MealDay]) -> None:
    for day in days:
        day_totals = dict.fromkeys(MACRO_KEYS, 0.0)
        for meal in day.meals:
            meal.macro_totals = sum_ingredient_macros(meal.ingredients)
            for swap in meal.swap_options:
                swap.macro_totals = sum_ingredient_macros(swap.ingredients)
            for k in MACRO_KEYS:
                day_totals[k] += getattr(meal.macro_totals, k)
        day.day_totals = Macros(**day_totals)


# ──────────────────────────── phase 3 ──────────────────────────── #
def is_fixed(ing: Ingredient) -> bool:
    return (ing.macros.calories or 0) <= FIXED_INGREDIENT_MAX_KCAL


def dominant_macro(macros: Macros) -> str:
    kcal = np.array([macros.protein, macros.carbs, macros.fat], dtype=float) * _KCAL_PER_GRAM
    # argmax returns the first maximum, which encodes the tie order
    return DOMINANT_MACRO_ORDER[int(np.argmax(kcal))]


def group_scale_factor(
    members: list[Ingredient],
    macro: str,
    overall_target: float,
    fixed: list[Ingredient],
) -> float:
    current = sum(getattr(i.macros, macro) for i in members)
    target = overall_target - sum(getattr(i.macros, macro) for i in fixed)
    if not members or current <= 0 or target <= 0:
        return 1.0
    return target / current


def scale_ingredient(ing: Ingredient, factor: float) -> None:
    """Linear rescale. Macros take the exact factor; only the displayed
    amount is rounded to whole units."""
    amount = parse_amount(ing.amount)
    if amount > 0:
        ing.amount = str(round_half_up(amount * factor))
    ing.macros = Macros(
        **{k: round(getattr(ing.macros, k) * factor, 1) for k in MACRO_KEYS}
    )


def scale_day_to_target(day: MealDay, targets: MacroTargetLike) -> dict[str, float]:
    """Scale each dominant-macro group of the day's main ingredients.
    Swap options are alternatives, not part of the day's intake, and stay
    as they are. Returns the factors actually applied."""
    ingredients = _day_ingredients(day, include_swaps=False)
    fixed = [i for i in ingredients if is_fixed(i)]

    groups: dict[str, list[Ingredient]] = {m: [] for m in DOMINANT_MACRO_ORDER}
    for ing in ingredients:
        if not is_fixed(ing):
            groups[dominant_macro(ing.macros)].append(ing)

    overall = {"protein": targets.protein_g, "carbs": targets.carbs_g, "fat": targets.fat_g}
    factors = {
        macro: group_scale_factor(members, macro, overall[macro], fixed)
        for macro, members in groups.items()
    }

    applied: dict[str, float] = {}
    for macro, factor in factors.items():
        if abs(factor - 1) <= SCALE_SKIP_TOLERANCE:
            continue
        for ing in groups[macro]:
            scale_ingredient(ing, factor)
        applied[macro] = round(factor, 3)
    return applied


# ──────────────────────────── pipeline ─────────────────────────── #
async def correct_meal_plan(
    plan: MealPlanData,
    targets: MacroTargetLike,
    lookup: NutrientLookup,
) -> CorrectionReport:
    report = await override_ingredient_macros(plan.days, lookup)
    _LOG.info(
        "nutrient override: %d/%d ingredients matched", report.matched, report.total
    )
    if report.unmatched:
        _LOG.info("unmatched ingredients: %s", ", ".join(report.unmatched))

    compute_macro_totals(plan.days)
    for day in plan.days:
        applied = scale_day_to_target(day, targets)
        if applied:
            report.scaled[day.day] = applied
    compute_macro_totals(plan.days)

    for day in plan.days:
        dt = day.day_totals
        diff = abs(dt.calories - targets.calorie_target) / targets.calorie_target if targets.calorie_target else 0
        _LOG.info(
            "%s: %d kcal | %dP | %dC | %dF (target %d, diff %d%%)",
            day.day, dt.calories, dt.protein, dt.carbs, dt.fat,
            targets.calorie_target, round(diff * 100),
        )
    return report
