# services/usda.py
"""
USDA FoodData Central lookup: one search call per ingredient name, top
hit taken as-is. Every failure (timeout, HTTP error, empty result, odd
payload) comes back as None so the caller can mark the ingredient
unmatched and move on.
"""
from __future__ import annotations

import logging
from typing import Any

import httpx

from config import settings
from core.nutrients import NutrientProfile

_LOG = logging.getLogger(__name__)

# FDC nutrient numbers
_ENERGY_KCAL = "208"
_PROTEIN = "203"
_FAT = "204"
_CARBS = "205"


def _nutrient_values(food: dict[str, Any]) -> dict[str, float]:
    out: dict[str, float] = {}
    for n in food.get("foodNutrients", []):
        number = str(n.get("nutrientNumber", ""))
        value = n.get("value")
        if number in (_ENERGY_KCAL, _PROTEIN, _FAT, _CARBS) and value is not None:
            # Energy also appears in kJ under a different number, ignore it
            if number == _ENERGY_KCAL and str(n.get("unitName", "KCAL")).upper() != "KCAL":
                continue
            out[number] = float(value)
    return out


def parse_search_result(payload: dict[str, Any]) -> NutrientProfile | None:
    foods = payload.get("foods") or []
    if not foods:
        return None
    values = _nutrient_values(foods[0])
    protein = values.get(_PROTEIN, 0.0)
    carbs = values.get(_CARBS, 0.0)
    fat = values.get(_FAT, 0.0)
    calories = values.get(_ENERGY_KCAL)
    if calories is None:
        if not (protein or carbs or fat):
            return None
        calories = protein * 4 + carbs * 4 + fat * 9
    return NutrientProfile(
        calories=round(calories, 1),
        protein=round(protein, 1),
        carbs=round(carbs, 1),
        fat=round(fat, 1),
    )


class FoodDataCentralResolver:
    name = "usda-fdc"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key or settings.usda_api_key
        self._base_url = (base_url or settings.usda_base_url).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.usda_timeout_seconds
        self._transport = transport

    async def resolve(self, ingredient_name: str) -> NutrientProfile | None:
        query = (ingredient_name or "").strip()
        if not query:
            return None
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as http:
                r = await http.get(
                    f"{self._base_url}/foods/search",
                    params={"query": query, "pageSize": 1, "api_key": self._api_key},
                )
            r.raise_for_status()
            result = parse_search_result(r.json())
        except (httpx.HTTPError, ValueError, TypeError, AttributeError) as exc:
            _LOG.warning("USDA lookup failed for %r: %s", query, exc)
            return None

        if result is None:
            _LOG.info("USDA returned no usable match for %r", query)
        return result
