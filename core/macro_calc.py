"""
core/macro_calc.py
────────────────────────────────────────────────────────────────────────
Energy / macro calculator. Pure functions, no I/O.

1. BMR   (Katch-McArdle when body fat is known, else Mifflin-St Jeor)
2. TDEE  (fixed activity multiplier table)
3. Calorie target per goal (cut / bulk / recomp) + rationale text
4. Protein / fat / carb grams (carbs floored at 50 g)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

Logger = logging.getLogger(__name__)

LB_PER_KG = 2.205
MIN_CARBS_G = 50
FAT_CALORIE_SHARE = 0.27
FAT_MIN_G_PER_LB = 0.3

ACTIVITY_MULTIPLIERS: dict[str, float] = {
    "sedentary": 1.2,
    "lightly_active": 1.375,
    "moderate": 1.55,
    "very_active": 1.725,
    "athlete": 1.9,
}
DEFAULT_ACTIVITY_MULTIPLIER = 1.55

KATCH_MCARDLE = "katch_mcardle"
MIFFLIN_ST_JEOR = "mifflin_st_jeor"
COACH_OVERRIDE = "coach_override"


# ──────────────────────────────────────────────────────────────────────
#  Inputs / outputs
# ──────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class ClientProfile:
    """Snapshot of one onboarding version. Workout fields ride along for
    the training prompt; the nutrition maths ignores them."""

    age: int
    sex: str                      # "male" | "female"
    height_cm: float
    weight_kg: float
    goal: str                     # "cut" | "bulk" | "recomp"
    activity_level: str
    goal_weight_kg: float | None = None
    body_fat_percentage: float | None = None
    body_fat_unsure: bool = False
    experience_level: str = "intermediate"
    diet_type: str = "standard"
    disliked_foods: tuple[str, ...] = ()
    allergies: tuple[str, ...] = ()
    meals_per_day: int = 4
    cooking_skill: str = "medium"
    budget: str = "medium"
    # training
    workout_frequency: int = 4
    workout_location: str = "gym"
    home_equipment: tuple[str, ...] = ()
    split_preference: str = "upper_lower"
    time_per_session: int = 60
    cardio_preference: str = "none"
    injuries: tuple[str, ...] = ()
    injury_notes: str = ""
    plan_duration_weeks: int = 8

    @property
    def known_body_fat(self) -> float | None:
        """Body fat % only when the client actually knows it."""
        if self.body_fat_unsure or not self.body_fat_percentage:
            return None
        return self.body_fat_percentage

    @property
    def weight_lbs(self) -> float:
        return self.weight_kg * LB_PER_KG


@dataclass(frozen=True)
class MacroTargets:
    bmr: int
    tdee: int
    calorie_target: int
    protein_g: int
    fat_g: int
    carbs_g: int
    formula_used: str
    explanation: str = field(default="", compare=False)

    @property
    def macro_calories(self) -> int:
        return self.protein_g * 4 + self.carbs_g * 4 + self.fat_g * 9


# ──────────────────────────────────────────────────────────────────────
#  BMR / TDEE
# ──────────────────────────────────────────────────────────────────────
def calculate_bmr(profile: ClientProfile) -> tuple[int, str]:
    bf = profile.known_body_fat
    if bf is not None:
        lean_mass_kg = profile.weight_kg * (1 - bf / 100)
        return round(370 + 21.6 * lean_mass_kg), KATCH_MCARDLE

    base = 10 * profile.weight_kg + 6.25 * profile.height_cm - 5 * profile.age
    bmr = base + (5 if profile.sex == "male" else -161)
    return round(bmr), MIFFLIN_ST_JEOR


def calculate_tdee(bmr: float, activity_level: str) -> int:
    multiplier = ACTIVITY_MULTIPLIERS.get(activity_level, DEFAULT_ACTIVITY_MULTIPLIER)
    return round(bmr * multiplier)


# ──────────────────────────────────────────────────────────────────────
#  Calories
# ──────────────────────────────────────────────────────────────────────
def calculate_calorie_target(
    tdee: int,
    goal: str,
    body_fat_percentage: float | None,
    experience_level: str,
) -> tuple[int, str]:
    """Return (calories, rationale). The rationale cites the percentage and
    the branch that picked it."""
    bf = body_fat_percentage

    if goal == "cut":
        if bf is not None and bf > 25:
            pct = 0.25
            why = ("Since you have more body fat to work with, you can sustain "
                   "a slightly larger deficit safely.")
        elif bf is not None and bf < 18:
            pct = 0.15
            why = ("Since you're already fairly lean, we're using a conservative "
                   "deficit to preserve muscle mass.")
        else:
            pct = 0.20
            why = "This moderate deficit balances fat loss with muscle preservation."
        calories = round(tdee * (1 - pct))
        return calories, (
            f"Your calorie target is set at a {round(pct * 100)}% deficit from your "
            f"maintenance of {tdee} calories. {why}"
        )

    if goal == "bulk":
        if experience_level == "beginner":
            pct = 0.15
            why = ("As a beginner, you can build muscle faster, so a moderate "
                   "surplus maximizes gains.")
        elif experience_level == "advanced":
            pct = 0.05
            why = ("As an advanced lifter, we use a smaller surplus to minimize fat "
                   "gain while maximizing lean tissue growth.")
        else:
            pct = 0.10
            why = "This surplus supports steady muscle growth while keeping fat gain in check."
        if bf is not None and bf < 15:
            pct += 0.05
        calories = round(tdee * (1 + pct))
        return calories, (
            f"Your calorie target is set at a {round(pct * 100)}% surplus above your "
            f"maintenance of {tdee} calories. {why}"
        )

    # recomp (and anything unrecognised)
    return tdee, (
        f"Your calorie target is set right at your maintenance level of {tdee} "
        "calories. Body recomposition works by building muscle while maintaining "
        "weight — the key is high protein intake and progressive training, not a "
        "dramatic caloric shift."
    )


# ──────────────────────────────────────────────────────────────────────
#  Macros
# ──────────────────────────────────────────────────────────────────────
def protein_per_lb(goal: str, body_fat_percentage: float | None) -> float:
    if goal == "cut":
        if body_fat_percentage is not None and body_fat_percentage < 15:
            return 1.1
        return 1.0
    if goal == "bulk":
        return 0.8
    return 0.9


def calculate_macros(
    calorie_target: int,
    weight_kg: float,
    goal: str,
    body_fat_percentage: float | None,
) -> dict[str, int | str]:
    """
    Protein from bodyweight, fat = max(27 % of calories, 0.3 g/lb), carbs
    fill the remainder. Carbs never drop below 50 g even when that pushes
    the macro calories over the target.
    """
    weight_lbs = weight_kg * LB_PER_KG
    per_lb = protein_per_lb(goal, body_fat_percentage)

    protein = round(weight_lbs * per_lb)
    fat_from_share = round(calorie_target * FAT_CALORIE_SHARE / 9)
    fat_floor = round(weight_lbs * FAT_MIN_G_PER_LB)
    fat = max(fat_from_share, fat_floor)

    carb_calories = calorie_target - protein * 4 - fat * 9
    carbs = max(round(carb_calories / 4), MIN_CARBS_G)

    if goal == "cut":
        protein_note = "Higher protein helps preserve lean muscle tissue during your cut."
    elif goal == "bulk":
        protein_note = "This protein level supports maximal muscle protein synthesis."
    else:
        protein_note = "Adequate protein is crucial for body recomposition."

    explanation = (
        f"**Protein: {protein}g** ({per_lb:g}g per lb of bodyweight) — {protein_note}\n\n"
        f"**Fat: {fat}g** — Essential for hormone production, joint health, and "
        "nutrient absorption. This is set at a healthy floor.\n\n"
        f"**Carbs: {carbs}g** — Fills the remaining calories. Carbs fuel your "
        "training sessions and recovery."
    )
    return {"protein": protein, "fat": fat, "carbs": carbs, "explanation": explanation}


# ──────────────────────────────────────────────────────────────────────
#  Public entrypoint
# ──────────────────────────────────────────────────────────────────────
def generate_macro_targets(profile: ClientProfile) -> MacroTargets:
    bmr, formula = calculate_bmr(profile)
    tdee = calculate_tdee(bmr, profile.activity_level)
    calories, calorie_note = calculate_calorie_target(
        tdee, profile.goal, profile.known_body_fat, profile.experience_level
    )
    macros = calculate_macros(
        calories, profile.weight_kg, profile.goal, profile.known_body_fat
    )

    if formula == KATCH_MCARDLE:
        formula_note = ("Your BMR was calculated using the Katch-McArdle formula, which "
                        "uses your body fat percentage for a more accurate estimate.")
    else:
        formula_note = ("Your BMR was estimated using the Mifflin-St Jeor formula. For a "
                        "more precise calculation, provide your body fat percentage in "
                        "future updates.")

    Logger.debug(
        "targets: bmr=%s (%s) tdee=%s kcal=%s P/F/C=%s/%s/%s",
        bmr, formula, tdee, calories, macros["protein"], macros["fat"], macros["carbs"],
    )
    return MacroTargets(
        bmr=bmr,
        tdee=tdee,
        calorie_target=calories,
        protein_g=int(macros["protein"]),
        fat_g=int(macros["fat"]),
        carbs_g=int(macros["carbs"]),
        formula_used=formula,
        explanation=f"{formula_note}\n\n{calorie_note}\n\n{macros['explanation']}",
    )
