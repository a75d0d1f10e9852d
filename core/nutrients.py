"""
core/nutrients.py
────────────────────────────────────────────────────────────────────────
Ingredient name → macros per 100 g.

Resolution is an ordered chain of resolvers; the first non-None answer
wins:

    StaticTableResolver   ~130 hand-checked USDA entries, keyword matched
    CachedResolver(...)   process-lifetime memo around the external API

Adding another provider means appending a resolver, nothing else changes.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Protocol

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class NutrientProfile:
    """Macros per 100 g."""

    calories: float
    protein: float
    carbs: float
    fat: float

    def for_grams(self, grams: float) -> dict[str, float]:
        factor = grams / 100
        return {
            "calories": round(self.calories * factor, 1),
            "protein": round(self.protein * factor, 1),
            "carbs": round(self.carbs * factor, 1),
            "fat": round(self.fat * factor, 1),
        }


def _np(calories: float, protein: float, carbs: float, fat: float) -> NutrientProfile:
    return NutrientProfile(calories, protein, carbs, fat)


# ──────────────────────────────────────────────────────────────────────
#  Static table (per 100 g, USDA SR values)
# ──────────────────────────────────────────────────────────────────────
NUTRIENT_TABLE: dict[str, NutrientProfile] = {
    # proteins
    "chicken breast": _np(165, 31, 0, 3.6),
    "chicken thigh": _np(177, 20, 0, 10.2),
    "chicken": _np(165, 31, 0, 3.6),
    "ground turkey": _np(143, 19.5, 0, 7.1),
    "turkey breast": _np(135, 30, 0, 1.5),
    "turkey": _np(143, 19.5, 0, 7.1),
    "ground beef": _np(176, 20, 0, 10),
    "beef": _np(176, 20, 0, 10),
    "steak": _np(271, 26, 0, 18),
    "salmon": _np(208, 20, 0, 13),
    "cod": _np(82, 18, 0, 0.7),
    "tuna": _np(116, 26, 0, 0.8),
    "tilapia": _np(96, 20, 0, 1.7),
    "shrimp": _np(85, 20, 0, 0.5),
    "fish": _np(96, 20, 0, 1.7),
    "pork": _np(143, 26, 0, 3.5),
    "pork chop": _np(143, 26, 0, 3.5),
    "bacon": _np(541, 37, 1.4, 42),
    "egg white": _np(52, 11, 0.7, 0.2),
    "whole egg": _np(144, 12.6, 0.8, 9.6),
    "egg": _np(144, 12.6, 0.8, 9.6),
    "whey": _np(400, 80, 10, 5),
    "protein powder": _np(400, 80, 10, 5),
    "tofu": _np(76, 8, 1.9, 4.8),
    "firm tofu": _np(76, 8, 1.9, 4.8),
    "tempeh": _np(192, 20, 7.6, 11),
    "edamame": _np(121, 12, 8.9, 5.2),
    "seitan": _np(370, 75, 14, 1.9),
    # dairy
    "greek yogurt": _np(59, 10, 3.6, 0.4),
    "yogurt": _np(59, 10, 3.6, 0.4),
    "cottage cheese": _np(81, 11, 3.6, 2.3),
    "feta": _np(264, 14, 4, 21),
    "cheddar": _np(403, 25, 1.3, 33),
    "mozzarella": _np(280, 28, 3.1, 17),
    "parmesan": _np(431, 38, 4.1, 29),
    "cheese": _np(350, 22, 2, 28),
    "cream cheese": _np(342, 6, 4, 34),
    "sour cream": _np(193, 2.1, 4.6, 19),
    "heavy cream": _np(340, 2.8, 2.8, 36),
    "milk": _np(61, 3.2, 4.8, 3.3),
    "skim milk": _np(34, 3.4, 5, 0.1),
    "butter": _np(717, 0.9, 0.1, 81),
    # grains & carbs
    "rice": _np(130, 2.7, 28, 0.3),
    "white rice": _np(130, 2.7, 28, 0.3),
    "brown rice": _np(112, 2.6, 24, 0.9),
    "jasmine rice": _np(130, 2.7, 28, 0.3),
    "oat": _np(389, 17, 66, 7),
    "oatmeal": _np(68, 2.4, 12, 1.4),
    "rolled oat": _np(389, 17, 66, 7),
    "quinoa": _np(120, 4.4, 21, 1.9),
    "sweet potato": _np(90, 2, 21, 0.1),
    "pasta": _np(131, 5, 25, 1.1),
    "spaghetti": _np(131, 5, 25, 1.1),
    "noodle": _np(131, 5, 25, 1.1),
    "bread": _np(247, 13, 41, 3.4),
    "whole wheat bread": _np(247, 13, 41, 3.4),
    "tortilla": _np(312, 8.3, 51.6, 8),
    "wrap": _np(312, 8.3, 51.6, 8),
    "potato": _np(93, 2.5, 21, 0.1),
    "couscous": _np(112, 3.8, 23, 0.2),
    "bulgur": _np(83, 3.1, 19, 0.2),
    # legumes
    "kidney bean": _np(82, 7.3, 21, 0.5),
    "black bean": _np(91, 6.7, 16, 0.3),
    "chickpea": _np(128, 7, 21, 2.6),
    "garbanzo": _np(128, 7, 21, 2.6),
    "lentil": _np(116, 9, 20, 0.4),
    "white bean": _np(91, 6.7, 16, 0.4),
    "pinto bean": _np(91, 6.7, 16, 0.4),
    "bean": _np(91, 6.7, 16, 0.4),
    "hummus": _np(166, 8, 14, 10),
    # fats & oils
    "olive oil": _np(884, 0, 0, 100),
    "coconut oil": _np(862, 0, 0, 100),
    "vegetable oil": _np(884, 0, 0, 100),
    "cooking oil": _np(884, 0, 0, 100),
    "oil": _np(884, 0, 0, 100),
    "sesame oil": _np(884, 0, 0, 100),
    "peanut butter": _np(588, 25, 20, 50),
    "almond butter": _np(614, 21, 19, 56),
    "almond": _np(579, 21, 22, 50),
    "walnut": _np(654, 15, 14, 65),
    "cashew": _np(553, 18, 30, 44),
    "chia seed": _np(486, 17, 42, 31),
    "flax seed": _np(534, 18, 29, 42),
    "sunflower seed": _np(584, 21, 20, 51),
    "pumpkin seed": _np(559, 30, 11, 49),
    # produce
    "avocado": _np(160, 2, 9, 15),
    "banana": _np(89, 1.1, 23, 0.3),
    "apple": _np(52, 0.3, 14, 0.2),
    "orange": _np(47, 0.9, 12, 0.1),
    "mango": _np(60, 0.8, 15, 0.4),
    "berries": _np(57, 0.7, 14, 0.3),
    "blueberries": _np(57, 0.7, 14, 0.3),
    "blueberry": _np(57, 0.7, 14, 0.3),
    "strawberries": _np(32, 0.7, 7.7, 0.3),
    "strawberry": _np(32, 0.7, 7.7, 0.3),
    "raspberry": _np(52, 1.2, 12, 0.7),
    "raspberries": _np(52, 1.2, 12, 0.7),
    "broccoli": _np(34, 2.8, 7, 0.4),
    "spinach": _np(23, 2.9, 3.6, 0.4),
    "kale": _np(35, 2.9, 4.4, 1.5),
    "onion": _np(40, 1.1, 9.3, 0.1),
    "garlic": _np(149, 6.4, 33, 0.5),
    "tomato": _np(18, 0.9, 3.9, 0.2),
    "bell pepper": _np(31, 1, 6, 0.3),
    "pepper": _np(31, 1, 6, 0.3),
    "mushroom": _np(22, 3.1, 3.3, 0.3),
    "carrot": _np(41, 0.9, 10, 0.2),
    "cucumber": _np(15, 0.7, 3.6, 0.1),
    "zucchini": _np(17, 1.2, 3.1, 0.3),
    "corn": _np(86, 3.3, 19, 1.4),
    "green bean": _np(31, 1.8, 7, 0.1),
    "cauliflower": _np(25, 1.9, 5, 0.3),
    "asparagus": _np(20, 2.2, 3.9, 0.1),
    "cabbage": _np(25, 1.3, 6, 0.1),
    "celery": _np(16, 0.7, 3, 0.2),
    "lettuce": _np(15, 1.4, 2.9, 0.2),
    "pea": _np(81, 5.4, 14, 0.4),
    # condiments & liquids
    "soy sauce": _np(53, 8.7, 6.7, 0),
    "honey": _np(304, 0.3, 82, 0),
    "maple syrup": _np(260, 0, 67, 0.1),
    "coconut milk": _np(230, 2.3, 6, 24),
    "oat milk": _np(47, 1, 7, 1.5),
    "almond milk": _np(17, 0.6, 0.6, 1.1),
    "soy milk": _np(54, 3.3, 6, 1.8),
    "salsa": _np(36, 1.5, 7, 0.2),
    "tomato sauce": _np(29, 1.3, 5.4, 0.5),
    "marinara": _np(29, 1.3, 5.4, 0.5),
}

_PUNCT_RE = re.compile(r"[^\w\s]")
_WS_RE = re.compile(r"\s+")


def normalize_name(name: str) -> str:
    """lowercase, punctuation → space, collapse whitespace"""
    return _WS_RE.sub(" ", _PUNCT_RE.sub(" ", (name or "").lower())).strip()


def match_ingredient(
    name: str, table: dict[str, NutrientProfile] | None = None
) -> tuple[str, NutrientProfile] | None:
    """
    A key matches when every one of its words occurs (as a substring) in
    the normalised name. The key with the most words wins, so
    "ground turkey" beats "turkey"; on equal word counts the earlier key
    in the table wins.
    """
    table = NUTRIENT_TABLE if table is None else table
    normalized = normalize_name(name)
    if not normalized:
        return None

    best_key: str | None = None
    best_score = 0
    for key in table:
        words = key.split()
        if len(words) > best_score and all(w in normalized for w in words):
            best_key, best_score = key, len(words)

    return (best_key, table[best_key]) if best_key else None


# ──────────────────────────────────────────────────────────────────────
#  Resolver chain
# ──────────────────────────────────────────────────────────────────────
class NutrientResolver(Protocol):
    name: str

    async def resolve(self, ingredient_name: str) -> NutrientProfile | None: ...


class StaticTableResolver:
    name = "static"

    def __init__(self, table: dict[str, NutrientProfile] | None = None) -> None:
        self._table = NUTRIENT_TABLE if table is None else table

    async def resolve(self, ingredient_name: str) -> NutrientProfile | None:
        hit = match_ingredient(ingredient_name, self._table)
        return hit[1] if hit else None


_MISSING = object()


class NutrientCache:
    """
    Process-lifetime memo of external lookups, keyed by trimmed lowercase
    name. No TTL: a name that resolved to None stays None until restart.

    Only touched from the event loop thread, and get/set never await, so
    no lock is needed. Two concurrent first lookups of the same name both
    hit the API; the second write is identical to the first.
    """

    def __init__(self) -> None:
        self._entries: dict[str, NutrientProfile | None] = {}

    @staticmethod
    def key(name: str) -> str:
        return (name or "").strip().lower()

    def get(self, name: str):
        """Cached value (possibly None) or `NutrientCache.MISSING`."""
        return self._entries.get(self.key(name), _MISSING)

    def set(self, name: str, value: NutrientProfile | None) -> None:
        self._entries[self.key(name)] = value

    def __contains__(self, name: str) -> bool:
        return self.key(name) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    MISSING = _MISSING


class CachedResolver:
    """Wraps a resolver; answers from the cache, including cached misses."""

    def __init__(self, inner: NutrientResolver, cache: NutrientCache) -> None:
        self._inner = inner
        self._cache = cache
        self.name = f"cached:{inner.name}"

    async def resolve(self, ingredient_name: str) -> NutrientProfile | None:
        hit = self._cache.get(ingredient_name)
        if hit is not NutrientCache.MISSING:
            return hit
        value = await self._inner.resolve(ingredient_name)
        self._cache.set(ingredient_name, value)
        return value


class NutrientLookup:
    def __init__(self, resolvers: Iterable[NutrientResolver]) -> None:
        self._resolvers = list(resolvers)

    @property
    def resolvers(self) -> list[NutrientResolver]:
        return list(self._resolvers)

    async def resolve(self, ingredient_name: str) -> NutrientProfile | None:
        for resolver in self._resolvers:
            value = await resolver.resolve(ingredient_name)
            if value is not None:
                _LOG.debug("nutrients for %r from %s", ingredient_name, resolver.name)
                return value
        return None
