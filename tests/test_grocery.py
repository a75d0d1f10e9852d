# tests/test_grocery.py
from __future__ import annotations

from core.grocery import FALLBACK_CATEGORY, categorize, compile_grocery_list
from core.models.plan import MealPlanData


def _day(name, *ingredients, swaps=()):
    return {
        "day": name,
        "meals": [{
            "name": "Meal 1",
            "recipe_title": "x",
            "ingredients": [
                {"name": n, "amount": a, "unit": u} for n, a, u in ingredients
            ],
            "swap_options": [
                {"recipe_title": "swap",
                 "ingredients": [{"name": n, "amount": a, "unit": u} for n, a, u in swaps]}
            ],
        }],
    }


def _items(*days):
    plan = MealPlanData.model_validate({"days": list(days)})
    return [g.item for g in compile_grocery_list(plan.days)]


def test_same_name_and_unit_merge():
    items = _items(
        _day("Monday", ("Chicken breast", "200", "g")),
        _day("Tuesday", ("chicken breast ", "150", "g")),
    )
    assert items == ["Chicken breast — 350 g"]


def test_different_units_stay_separate():
    items = _items(_day("Monday", ("Chicken breast", "1", "kg"), ("Chicken breast", "200", "g")))
    assert sorted(items) == ["Chicken breast — 1 kg", "Chicken breast — 200 g"]


def test_large_gram_totals_shown_in_kg():
    items = _items(
        _day("Monday", ("White rice", "800", "g")),
        _day("Tuesday", ("White rice", "700", "g")),
    )
    assert items == ["White rice — 1.5 kg"]


def test_swap_options_are_not_shopped():
    items = _items(_day("Monday", ("Salmon", "150", "g"), swaps=[("Tofu", "200", "g")]))
    assert items == ["Salmon — 150 g"]


def test_categories_and_ordering():
    plan = MealPlanData.model_validate({"days": [_day(
        "Monday",
        ("Salmon", "150", "g"),
        ("Broccoli", "100", "g"),
        ("Brown rice", "100", "g"),
        ("Greek yogurt", "170", "g"),
        ("Olive oil", "10", "ml"),
        ("Sea salt", "1", "tsp"),
    )]})
    grocery = compile_grocery_list(plan.days)
    assert [(g.category, g.item) for g in grocery] == [
        ("Dairy", "Greek yogurt — 170 g"),
        ("Grains & Carbs", "Brown rice — 100 g"),
        ("Oils & Fats", "Olive oil — 10 ml"),
        ("Pantry", "Sea salt — 1 tsp"),
        ("Produce", "Broccoli — 100 g"),
        ("Protein", "Salmon — 150 g"),
    ]


def test_categorize_fallback():
    assert categorize("chicken thigh") == "Protein"
    assert categorize("sweet potato") == "Grains & Carbs"
    assert categorize("paprika") == FALLBACK_CATEGORY


def test_empty_plan():
    assert compile_grocery_list([]) == []


def test_half_units_round_up():
    items = _items(_day("Monday", ("Honey", "2.5", "tbsp")))
    assert items == ["Honey — 3 tbsp"]
