"""
core/units.py
────────────────────────────────────────────────────────────────────────
Ingredient quantity → grams.

Weight and volume units convert with fixed factors (volume at water
density). Piece-like units ("large", "scoop", "slice", "can") only convert
for foods we know the size of. `None` means "cannot convert"; callers treat
that as an unmatched ingredient, never as an error.
"""

from __future__ import annotations

import math
import re

# unit alias → grams per unit
_FIXED_UNITS: dict[str, float] = {
    "g": 1, "gram": 1, "grams": 1, "gr": 1,
    "kg": 1000, "kilogram": 1000, "kilograms": 1000,
    "ml": 1, "milliliter": 1, "milliliters": 1, "millilitre": 1, "millilitres": 1,
    "l": 1000, "liter": 1000, "liters": 1000, "litre": 1000, "litres": 1000,
    "cup": 240, "cups": 240,
    "tbsp": 15, "tablespoon": 15, "tablespoons": 15, "tbs": 15,
    "tsp": 5, "teaspoon": 5, "teaspoons": 5,
    "oz": 28.35, "ounce": 28.35, "ounces": 28.35,
    "lb": 453.6, "lbs": 453.6, "pound": 453.6, "pounds": 453.6,
}

_PIECE_UNITS = {"large", "medium", "small", "whole", "piece", "pieces"}
_SCOOP_UNITS = {"scoop", "scoops", "serving", "servings"}
_SLICE_UNITS = {"slice", "slices"}
_CAN_UNITS = {"can", "cans"}

# (name keywords, grams per piece), first hit wins
_PIECE_WEIGHTS: list[tuple[tuple[str, ...], float]] = [
    (("egg",), 50),
    (("banana",), 118),
    (("avocado",), 150),
    (("tortilla", "wrap"), 64),
    (("apple",), 182),
    (("orange",), 131),
]
_SCOOP_WEIGHTS: list[tuple[tuple[str, ...], float]] = [
    (("whey", "protein"), 30),
]
_SLICE_WEIGHTS: list[tuple[tuple[str, ...], float]] = [
    (("bread", "toast"), 28),
    (("cheese",), 28),
]
_CAN_WEIGHTS: list[tuple[tuple[str, ...], float]] = [
    (("tuna",), 142),
    (("bean", "chickpea", "lentil"), 400),
    (("coconut milk",), 400),
]

# below this an unknown unit is too ambiguous to read as grams
GRAM_FALLBACK_MIN = 10

_AMOUNT_RE = re.compile(r"^\s*(\d+(?:\.\d+)?|\.\d+)(?:\s+(\d+)\s*/\s*(\d+)|\s*/\s*(\d+))?")


def parse_amount(raw: str | float | int | None) -> float:
    """
    Leading number of an amount string: "200" → 200, "200g" → 200,
    "1/2" → 0.5, "1 1/2" → 1.5. Anything unreadable is 0.
    """
    if raw is None:
        return 0.0
    if isinstance(raw, (int, float)):
        return float(raw)
    m = _AMOUNT_RE.match(raw)
    if not m:
        return 0.0
    whole = float(m.group(1))
    if m.group(2) and m.group(3):
        den = int(m.group(3))
        return whole + (int(m.group(2)) / den if den else 0.0)
    if m.group(4):
        den = int(m.group(4))
        return whole / den if den else 0.0
    return whole


def round_half_up(x: float) -> int:
    """Whole-number rounding for displayed quantities; 2.5 → 3, not 2."""
    return math.floor(x + 0.5)


def normalize_unit(unit: str | None) -> str:
    return (unit or "").strip().lower().rstrip(".")


def _per_food(name: str, table: list[tuple[tuple[str, ...], float]]) -> float | None:
    for keywords, grams in table:
        if any(k in name for k in keywords):
            return grams
    return None


def to_grams(ingredient_name: str, amount: float, unit: str | None) -> float | None:
    if amount < 0:
        return None
    u = normalize_unit(unit)
    n = (ingredient_name or "").strip().lower()

    if u in _FIXED_UNITS:
        return amount * _FIXED_UNITS[u]

    per_unit: float | None
    if u in _PIECE_UNITS:
        per_unit = _per_food(n, _PIECE_WEIGHTS)
    elif u in _SCOOP_UNITS:
        per_unit = _per_food(n, _SCOOP_WEIGHTS)
    elif u in _SLICE_UNITS:
        per_unit = _per_food(n, _SLICE_WEIGHTS)
    elif u in _CAN_UNITS:
        per_unit = _per_food(n, _CAN_WEIGHTS)
    else:
        # model output sometimes labels grams with a made-up unit
        return amount if amount >= GRAM_FALLBACK_MIN else None

    return None if per_unit is None else amount * per_unit
