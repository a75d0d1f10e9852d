"""
core/plan_generation.py
────────────────────────────────────────────────────────────────────────
Meal-plan and training-plan generation through a JSON-mode LLM.

One bounded call per plan. The answer is accepted whole or not at all:
`PlanGenerator` returns a tagged result instead of raising, so callers
(and tests) can tell each failure mode apart:

    GenerationOk | EmptyResponseError | TruncatedError
                 | ParseError | StructuralError

Meal plans must come back with exactly 7 days of exactly `meals_per_day`
meals. Training plans only need a non-empty `weeks` array and are stored
as generated; no numeric verification exists for them.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol

from pydantic import ValidationError

from core.macro_calc import LB_PER_KG, ClientProfile, MacroTargets
from core.models.plan import MealPlanData

_LOG = logging.getLogger(__name__)

DAYS_PER_PLAN = 7
# each meal must carry at least this share of an even protein split
MIN_MEAL_PROTEIN_SHARE = 0.75
RETRY_MESSAGE = "Failed to generate plan. Please try again."


class LLMResult(Protocol):
    content: str | None
    finish_reason: str | None
    usage: dict[str, Any]


LLMCall = Callable[..., Awaitable[LLMResult]]


# ──────────────────────────────────────────────────────────────────────
#  Result variants
# ──────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class GenerationOk:
    plan: Any                   # MealPlanData | dict (training)
    usage: dict[str, Any] = field(default_factory=dict)
    ok = True


@dataclass(frozen=True)
class GenerationError:
    reason: str
    raw: str = ""
    ok = False
    stage = "unknown"
    user_message = RETRY_MESSAGE


@dataclass(frozen=True)
class EmptyResponseError(GenerationError):
    stage = "empty"


@dataclass(frozen=True)
class TruncatedError(GenerationError):
    stage = "truncated"
    user_message = "Plan generation was cut short. Please try again."


@dataclass(frozen=True)
class ParseError(GenerationError):
    stage = "parse"
    user_message = "Invalid response format. Please try again."


@dataclass(frozen=True)
class StructuralError(GenerationError):
    stage = "structure"
    user_message = "Incomplete plan generated. Please try again."


GenerationResult = GenerationOk | GenerationError


# ──────────────────────────────────────────────────────────────────────
#  Prompts + schema
# ──────────────────────────────────────────────────────────────────────
MEAL_PLAN_SYSTEM_PROMPT = """You are a professional sports nutritionist creating structured meal plans. You MUST respond with valid JSON only: no markdown, no commentary, no extra text. Follow the exact JSON schema provided.

Guidelines:
- All meals must hit the specified macro targets within ±5% per day
- Include practical, real-world recipes
- Consider the client's diet type, allergies, disliked foods, cooking skill, and budget
- Provide clear ingredient amounts in grams or common measurements
- Keep instructions concise but complete
- Each meal should have a swap option with similar macros"""

TRAINING_PLAN_SYSTEM_PROMPT = """You are an expert strength & conditioning coach creating periodized training programs. You MUST respond with valid JSON only: no markdown, no commentary, no extra text. Follow the exact JSON schema provided.

Guidelines:
- Programs must match the client's experience level, available equipment, and injury history
- Include appropriate warm-up protocols
- Use RPE (Rate of Perceived Exertion) for intensity guidance
- Include progression rules (double progression or RPE-based)
- Respect injury limitations with appropriate substitutions
- For beginners: focus on compound movements, technique, simple progression
- For intermediate: include periodization, varied rep ranges
- For advanced: advanced periodization, intensity techniques, deload weeks
- Include rest periods, tempo guidelines, and exercise-specific notes"""


def _obj(properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {"type": "OBJECT", "properties": properties, "required": required}


def _arr(items: dict[str, Any]) -> dict[str, Any]:
    return {"type": "ARRAY", "items": items}


_STR = {"type": "STRING"}
_NUM = {"type": "NUMBER"}
_MACROS = _obj({k: _NUM for k in ("calories", "protein", "carbs", "fat")},
               ["calories", "protein", "carbs", "fat"])
_INGREDIENT = _obj(
    {"name": _STR, "amount": _STR, "unit": _STR, "macros": _MACROS},
    ["name", "amount", "unit", "macros"],
)
_SWAP = _obj(
    {"recipe_title": _STR, "ingredients": _arr(_INGREDIENT), "instructions": _arr(_STR)},
    ["recipe_title", "ingredients", "instructions"],
)
MEAL_PLAN_SCHEMA: dict[str, Any] = _obj(
    {
        "days": _arr(_obj(
            {
                "day": _STR,
                "meals": _arr(_obj(
                    {
                        "name": _STR,
                        "recipe_title": _STR,
                        "ingredients": _arr(_INGREDIENT),
                        "instructions": _arr(_STR),
                        "swap_options": _arr(_SWAP),
                    },
                    ["name", "recipe_title", "ingredients", "instructions", "swap_options"],
                )),
            },
            ["day", "meals"],
        )),
    },
    ["days"],
)

_MEAL_EXAMPLE = (
    '{"days":[{"day":"Monday","meals":[{"name":"Meal 1","recipe_title":"Chicken & Rice Bowl",'
    '"ingredients":[{"name":"Chicken breast","amount":"200","unit":"g","macros":{"calories":330,"protein":62,"carbs":0,"fat":7.2}},'
    '{"name":"White rice, cooked","amount":"200","unit":"g","macros":{"calories":260,"protein":5.4,"carbs":56,"fat":0.6}},'
    '{"name":"Olive oil","amount":"10","unit":"ml","macros":{"calories":88,"protein":0,"carbs":0,"fat":10}},'
    '{"name":"Broccoli","amount":"100","unit":"g","macros":{"calories":34,"protein":2.8,"carbs":7,"fat":0.4}}],'
    '"instructions":["Season chicken with salt and pepper.","Heat olive oil in a skillet over medium-high heat, cook chicken 5-6 min per side.",'
    '"Steam broccoli for 4 minutes.","Serve chicken sliced over rice with broccoli."],'
    '"swap_options":[{"recipe_title":"Turkey & Rice Bowl","ingredients":[{"name":"Ground turkey 93%","amount":"200","unit":"g",'
    '"macros":{"calories":286,"protein":39,"carbs":0,"fat":14.2}},{"name":"White rice, cooked","amount":"200","unit":"g",'
    '"macros":{"calories":260,"protein":5.4,"carbs":56,"fat":0.6}}],"instructions":["Brown turkey over medium heat, 5-7 min.",'
    '"Serve over rice."]}]}]}]}'
)

_GOAL_CONTEXT = {
    "cut": ("This client is CUTTING (fat loss). Calorie target is below TDEE. Prioritize "
            "high-protein, high-volume, satiating foods. Favor lean proteins, vegetables, "
            "and high-fiber carbs."),
    "bulk": ("This client is BULKING (muscle gain). Calorie target is above TDEE. Include "
             "calorie-dense but nutritious foods. Carb-heavy around workouts."),
    "recomp": ("This client is doing a RECOMPOSITION (maintain weight, improve body "
               "composition). Calorie target is near TDEE. Prioritize high protein intake "
               "and nutrient timing around workouts."),
}


def min_protein_per_meal(targets: MacroTargets, meals_per_day: int) -> int:
    return int(targets.protein_g / max(meals_per_day, 1) * MIN_MEAL_PROTEIN_SHARE)


def build_meal_plan_prompt(profile: ClientProfile, targets: MacroTargets) -> str:
    meals = profile.meals_per_day
    prefs = f"{profile.diet_type} diet, {meals} meals/day, cooking: {profile.cooking_skill}, budget: {profile.budget}"
    if profile.disliked_foods:
        prefs += f", dislikes: {', '.join(profile.disliked_foods)}"
    if profile.allergies:
        prefs += f", allergies: {', '.join(profile.allergies)}"

    return f"""Create a COMPLETE 7-day meal plan (Monday through Sunday, all 7 days). You MUST output all 7 days. Do not stop early.

CLIENT: {profile.weight_kg}kg ({round(profile.weight_lbs)}lbs), {profile.height_cm}cm, goal: {profile.goal}. {_GOAL_CONTEXT.get(profile.goal, _GOAL_CONTEXT["recomp"])}

DAILY TARGETS (size portions so each day's ingredients roughly sum to):
{targets.calorie_target} kcal | {targets.protein_g}g protein | {targets.carbs_g}g carbs | {targets.fat_g}g fat
(Split across {meals} meals, roughly even, some variation is fine)

PREFERENCES: {prefs}.

OUTPUT: valid JSON only. Every ingredient MUST have a "macros" object. Do NOT include "macro_totals" or "day_totals"; those are calculated server-side.
{_MEAL_EXAMPLE}

RULES:
- EXACTLY {DAYS_PER_PLAN} days, each with EXACTLY {meals} meals
- Every ingredient MUST have a "macros" object calculated from USDA data for that portion: (per-100g value × amount/100)
- Every meal has at least {min_protein_per_meal(targets, meals)}g protein
- Ensure every meal has a protein source, a carb source, and a fat source so macros are balanced
- List ALL ingredients: cooking fats, seasonings, sauces, liquids, binders, everything
- Instructions: 2-4 real cooking steps with heat levels, cook times, and technique
- 1 swap per meal; swap ingredients must also include per-ingredient macros
- Vary protein sources across the day"""


_SPLIT_DESCRIPTIONS = {
    "full_body": "Full Body (all muscle groups each session)",
    "upper_lower": "Upper/Lower Split",
    "ppl": "Push/Pull/Legs",
    "bro_split": "Body Part Split (one muscle group per day)",
    "strength": "Strength/Powerlifting Focus (squat, bench, deadlift emphasis)",
}
SPLIT_MIN_EXERCISES = {"bro_split": 8, "ppl": 6, "upper_lower": 7, "full_body": 6, "strength": 5}
_DEFAULT_MIN_EXERCISES = 6

_INJURY_SUBSTITUTIONS = {
    "shoulder impingement": "AVOID: behind-neck press, upright rows, wide-grip bench press. USE INSTEAD: landmine press, cable lateral raise, neutral-grip dumbbell press.",
    "lower back pain": "AVOID: conventional deadlift, good mornings, heavy barbell rows. USE INSTEAD: trap bar deadlift, hip thrust, chest-supported rows.",
    "knee pain": "AVOID: deep barbell squats, heavy leg extensions. USE INSTEAD: box squats to parallel, leg press with limited ROM, step-ups.",
    "wrist pain": "AVOID: straight bar curls, front squats with clean grip. USE INSTEAD: EZ-bar curls, cross-arm front squat or safety bar squat.",
    "elbow pain": "AVOID: skull crushers, close-grip heavy pressing. USE INSTEAD: cable pushdowns, overhead cable tricep extensions.",
    "hip pain": "AVOID: deep squats, sumo deadlift, wide-stance movements. USE INSTEAD: hip-width stance squat to parallel, conventional deadlift, step-ups.",
}

_PROGRESSION = {
    "beginner": "- Linear progression. No deloads.",
    "intermediate": "- Double progression. Deload every 4th week (40% volume reduction).",
    "advanced": "- RPE/RIR based. Deload every 4th week. Include drop sets, rest-pause on isolation work.",
}

_SPLIT_STRUCTURE = {
    "bro_split": """BRO SPLIT STRUCTURE (bodybuilding style):
- Day 1: Chest (8-10 exercises: flat/incline/decline pressing, flyes, cables, dips)
- Day 2: Back (8-10 exercises: rows, pulldowns, deadlifts, pullovers, rear delts)
- Day 3: Shoulders + Traps (8-10 exercises: overhead press, lateral raises, front raises, face pulls, shrugs)
- Day 4: Legs (8-10 exercises: squats, leg press, lunges, extensions, curls, calves)
- Day 5: Arms (8-10 exercises: bicep curls, tricep extensions, hammers, cables, close-grip bench)
Each session: start heavy compounds, progress to moderate rep isolation, finish with pump sets (15-20 reps).""",
    "ppl": """PPL STRUCTURE:
- Push: chest + shoulders + triceps (6-8 exercises). Start bench/OHP, end with lateral raises and tricep isolation.
- Pull: back + biceps + rear delts (6-8 exercises). Start deadlift/rows, end with curls and face pulls.
- Legs: quads + hamstrings + glutes + calves (6-8 exercises). Start squat/leg press, end with curls and calf raises.""",
}


def injury_section(injuries: tuple[str, ...]) -> str:
    if not injuries:
        return "None reported"
    lines = []
    for injury in injuries:
        lower = injury.lower()
        advice = next((v for k, v in _INJURY_SUBSTITUTIONS.items() if k in lower), None)
        lines.append(
            f"- {injury}: {advice}" if advice else
            f"- {injury}: Avoid any exercise that causes pain in this area. "
            "Provide a safe substitution for each exercise that may aggravate it."
        )
    return "\n".join(lines)


def build_training_plan_prompt(profile: ClientProfile, duration_weeks: int) -> str:
    min_ex = SPLIT_MIN_EXERCISES.get(profile.split_preference, _DEFAULT_MIN_EXERCISES)
    volume = {"beginner": "low", "intermediate": "moderate"}.get(profile.experience_level, "high")
    if profile.workout_location == "home":
        equipment = ", ".join(profile.home_equipment) or "bodyweight only"
        location = f"home (equipment: {equipment})"
    else:
        location = f"{profile.workout_location} (full gym access)"

    lines = [
        f"Create a {duration_weeks}-week training program. Each session MUST have {min_ex}-10 "
        "working exercises (not counting warmup). This is a REAL program, not a template.",
        "",
        f"CLIENT: {profile.weight_kg}kg ({round(profile.weight_lbs)}lbs), {profile.height_cm}cm, "
        f"{profile.experience_level} level, goal: {profile.goal}.",
    ]
    if profile.known_body_fat is not None:
        lines.append(f"Body fat: ~{profile.known_body_fat}%")
    lines += [
        "",
        "TRAINING SETUP:",
        f"- Split: {_SPLIT_DESCRIPTIONS.get(profile.split_preference, profile.split_preference)}",
        f"- Frequency: {profile.workout_frequency} days/week",
        f"- Time per session: {profile.time_per_session} minutes",
        f"- Location: {location}",
        f"- Cardio: {profile.cardio_preference}",
    ]
    if profile.split_preference in _SPLIT_STRUCTURE:
        lines += ["", _SPLIT_STRUCTURE[profile.split_preference]]
    lines += [
        "",
        f"VOLUME: Scale to {volume} end. Chest 10-20 sets/week, Back 10-20, Quads 10-16, "
        "Hamstrings 6-12, Shoulders 6-16, Biceps 6-12, Triceps 6-12.",
        "",
        "INJURIES:",
        injury_section(profile.injuries),
    ]
    if profile.injury_notes:
        lines.append(f"Notes: {profile.injury_notes}")
    lines += [
        "",
        "REQUIREMENTS:",
        f"- {duration_weeks} weeks, {profile.workout_frequency} days/week",
        f"- {min_ex}-10 exercises per session (MINIMUM {min_ex}).",
        "- Each exercise: 3-4 working sets. Vary rep ranges (4-6, 8-12, 12-20).",
        "- Warmup: 3-5 items per session",
        "- Rest: compounds 120-180s, isolation 60-90s. Always specify rest_seconds as a number.",
    ]
    if profile.experience_level in _PROGRESSION:
        lines.append(_PROGRESSION[profile.experience_level])
    if profile.cardio_preference != "none":
        lines.append(f"- Add {profile.cardio_preference} cardio in session notes.")
    lines += [
        "",
        "OUTPUT: valid JSON only:",
        '{"program_name":"...","overview":"...","progression_rules":"...","weeks":[{"week":1,"theme":"...",'
        '"days":[{"day":"Monday","name":"Chest","warmup":["5 min incline walk","Arm circles"],'
        '"exercises":[{"name":"Barbell Bench Press","sets":4,"reps":"6-8","rpe":8,"rest_seconds":150,'
        '"tempo":"controlled","substitution":"","notes":""}]}]}]}',
    ]
    return "\n".join(lines)


# ──────────────────────────────────────────────────────────────────────
#  Validation
# ──────────────────────────────────────────────────────────────────────
_FENCE_RE = re.compile(r"^```(?:json)?\s*|```$")


def _load_json(resp: LLMResult) -> dict[str, Any] | GenerationError:
    content = resp.content
    if not content or not content.strip():
        return EmptyResponseError("no content in response")
    if resp.finish_reason == "length":
        return TruncatedError("response hit the output token limit", raw=content[:500])
    try:
        data = json.loads(_FENCE_RE.sub("", content.strip()).strip())
    except json.JSONDecodeError as exc:
        return ParseError(f"JSON parse error: {exc}", raw=content[:500])
    if not isinstance(data, dict):
        return StructuralError(f"top level is {type(data).__name__}, not an object", raw=content[:500])
    return data


def validate_meal_plan(resp: LLMResult, meals_per_day: int) -> GenerationResult:
    data = _load_json(resp)
    if isinstance(data, GenerationError):
        return data

    days = data.get("days")
    if not isinstance(days, list):
        return StructuralError(f"missing days array, keys: {sorted(data)}")
    if len(days) != DAYS_PER_PLAN:
        return StructuralError(f"expected {DAYS_PER_PLAN} days, got {len(days)}")

    try:
        plan = MealPlanData.model_validate({"days": days})
    except ValidationError as exc:
        return StructuralError(f"plan shape invalid: {exc.error_count()} errors")

    for day in plan.days:
        if len(day.meals) != meals_per_day:
            return StructuralError(
                f"{day.day or 'a day'} has {len(day.meals)} meals, expected {meals_per_day}"
            )
    return GenerationOk(plan=plan, usage=dict(resp.usage or {}))


def validate_training_plan(resp: LLMResult) -> GenerationResult:
    data = _load_json(resp)
    if isinstance(data, GenerationError):
        return data
    weeks = data.get("weeks")
    if not isinstance(weeks, list) or not weeks:
        return StructuralError(f"missing or empty weeks array, keys: {sorted(data)}")
    return GenerationOk(plan=data, usage=dict(resp.usage or {}))


# ──────────────────────────────────────────────────────────────────────
#  Orchestrator
# ──────────────────────────────────────────────────────────────────────
class PlanGenerator:
    def __init__(self, llm: LLMCall) -> None:
        self._llm = llm

    async def generate_meal_plan(
        self, profile: ClientProfile, targets: MacroTargets
    ) -> GenerationResult:
        resp = await self._llm(
            MEAL_PLAN_SYSTEM_PROMPT,
            build_meal_plan_prompt(profile, targets),
            response_schema=MEAL_PLAN_SCHEMA,
        )
        result = validate_meal_plan(resp, profile.meals_per_day)
        _log_result("meal plan", resp, result)
        return result

    async def generate_training_plan(
        self, profile: ClientProfile, duration_weeks: int | None = None
    ) -> GenerationResult:
        weeks = duration_weeks or profile.plan_duration_weeks
        resp = await self._llm(
            TRAINING_PLAN_SYSTEM_PROMPT,
            build_training_plan_prompt(profile, weeks),
        )
        result = validate_training_plan(resp)
        _log_result("training plan", resp, result)
        return result


def _log_result(kind: str, resp: LLMResult, result: GenerationResult) -> None:
    if result.ok:
        _LOG.info("%s accepted (finish_reason=%s)", kind, resp.finish_reason)
        return
    _LOG.error("%s rejected [%s]: %s", kind, result.stage, result.reason)
    if result.raw:
        _LOG.error("raw content (first 500 chars): %s", result.raw)
