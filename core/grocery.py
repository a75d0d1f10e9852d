"""
core/grocery.py
────────────────────────────────────────────────────────────────────────
Weekly shopping list, derived from `plan_data` and safe to rebuild at any
time.

Same name + same unit merge; "chicken breast" in g and in kg stay two
lines. Swap options are not shopped for.
"""
from __future__ import annotations

from typing import Iterable

import pandas as pd

from core.models.plan import GroceryItem, MealDay
from core.units import normalize_unit, parse_amount, round_half_up

# scanned in this order, first list with a substring hit wins
CATEGORY_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("Protein", (
        "chicken", "turkey", "beef", "steak", "salmon", "cod", "tuna", "shrimp",
        "fish", "egg white", "egg", "whey", "pork", "tilapia", "ground meat",
    )),
    ("Dairy", (
        "milk", "yogurt", "cheese", "feta", "mozzarella", "cheddar", "cottage",
        "butter", "cream",
    )),
    ("Grains & Carbs", (
        "rice", "oat", "quinoa", "pasta", "bread", "tortilla", "potato",
        "sweet potato", "noodle", "wrap",
    )),
    ("Produce", (
        "spinach", "broccoli", "banana", "berr", "avocado", "onion", "garlic",
        "tomato", "lettuce", "pepper", "cucumber", "carrot", "celery", "mushroom",
        "zucchini", "asparagus", "kale", "apple", "lemon", "lime", "ginger",
        "cilantro", "parsley", "basil", "green bean", "corn", "cabbage",
    )),
    ("Oils & Fats", (
        "olive oil", "coconut oil", "cooking oil", "oil", "peanut butter",
        "almond butter", "almonds", "walnuts", "nuts", "seeds",
    )),
]
FALLBACK_CATEGORY = "Pantry"


def categorize(name: str) -> str:
    for category, keywords in CATEGORY_KEYWORDS:
        if any(kw in name for kw in keywords):
            return category
    return FALLBACK_CATEGORY


def _display_amount(amount: float, unit: str) -> str:
    if unit == "g" and amount >= 1000:
        return f"{amount / 1000:.1f} kg"
    return f"{round_half_up(amount)} {unit}".rstrip()


def compile_grocery_list(days: Iterable[MealDay]) -> list[GroceryItem]:
    rows = [
        {
            "name": ing.name.strip().lower(),
            "unit": normalize_unit(ing.unit),
            "amount": parse_amount(ing.amount),
        }
        for day in days
        for meal in day.meals
        for ing in meal.ingredients
        if ing.name and ing.name.strip()
    ]
    if not rows:
        return []

    merged = (
        pd.DataFrame(rows)
        .groupby(["name", "unit"], as_index=False, sort=False)["amount"]
        .sum()
    )

    items = [
        GroceryItem(
            category=categorize(row.name),
            item=f"{row.name[:1].upper()}{row.name[1:]} — {_display_amount(row.amount, row.unit)}",
        )
        for row in merged.itertuples(index=False)
    ]
    return sorted(items, key=lambda g: (g.category, g.item))
