# tests/test_nutrients.py
from __future__ import annotations

import asyncio

import httpx

from core.nutrients import (
    NUTRIENT_TABLE,
    CachedResolver,
    NutrientCache,
    NutrientLookup,
    NutrientProfile,
    StaticTableResolver,
    match_ingredient,
    normalize_name,
)
from services.usda import FoodDataCentralResolver, parse_search_result

FDC_PAYLOAD = {
    "foods": [
        {
            "description": "Jackfruit, raw",
            "foodNutrients": [
                {"nutrientNumber": "203", "value": 1.7},
                {"nutrientNumber": "204", "value": 0.6},
                {"nutrientNumber": "205", "value": 23.3},
                {"nutrientNumber": "208", "value": 95, "unitName": "KCAL"},
            ],
        }
    ]
}


class _Recorder:
    """Resolver stub that counts calls."""

    def __init__(self, name: str, value: NutrientProfile | None) -> None:
        self.name = name
        self.value = value
        self.calls: list[str] = []

    async def resolve(self, ingredient_name: str) -> NutrientProfile | None:
        self.calls.append(ingredient_name)
        return self.value


# ── static matching ──────────────────────────────────────────────────
def test_normalize_name():
    assert normalize_name("  Chicken-Breast,  (raw) ") == "chicken breast raw"


def test_longest_key_wins():
    key, _ = match_ingredient("Ground turkey breast")
    assert key == "ground turkey"


def test_plain_name_matches_single_word_key():
    key, profile = match_ingredient("Boneless chicken breast, grilled")
    assert key == "chicken breast"
    assert profile == NUTRIENT_TABLE["chicken breast"]


def test_no_match_returns_none():
    assert match_ingredient("dragonfruit sorbet") is None
    assert match_ingredient("") is None


def test_for_grams_scales_per_100g():
    assert NUTRIENT_TABLE["chicken breast"].for_grams(200) == {
        "calories": 330.0, "protein": 62.0, "carbs": 0.0, "fat": 7.2,
    }


# ── chain + cache ────────────────────────────────────────────────────
def test_chain_first_non_none_wins():
    fallback = _Recorder("fallback", NutrientProfile(1, 1, 1, 1))
    lookup = NutrientLookup([StaticTableResolver(), fallback])

    hit = asyncio.run(lookup.resolve("white rice"))
    assert hit == NUTRIENT_TABLE["white rice"]
    assert fallback.calls == []

    miss = asyncio.run(lookup.resolve("jackfruit"))
    assert miss == NutrientProfile(1, 1, 1, 1)
    assert fallback.calls == ["jackfruit"]


def test_cache_remembers_misses():
    inner = _Recorder("remote", None)
    cache = NutrientCache()
    cached = CachedResolver(inner, cache)

    async def _twice():
        return await cached.resolve("Jackfruit "), await cached.resolve("jackfruit")

    assert asyncio.run(_twice()) == (None, None)
    assert inner.calls == ["Jackfruit "]
    assert "JACKFRUIT" in cache
    assert cache.get("jackfruit") is None
    assert cache.get("durian") is NutrientCache.MISSING


# ── USDA FoodData Central ────────────────────────────────────────────
def test_parse_search_result_reads_nutrient_numbers():
    p = parse_search_result(FDC_PAYLOAD)
    assert p == NutrientProfile(calories=95, protein=1.7, carbs=23.3, fat=0.6)


def test_parse_search_result_derives_missing_energy():
    payload = {"foods": [{"foodNutrients": [
        {"nutrientNumber": "203", "value": 10},
        {"nutrientNumber": "204", "value": 5},
        {"nutrientNumber": "205", "value": 20},
    ]}]}
    p = parse_search_result(payload)
    assert p.calories == 4 * 10 + 4 * 20 + 9 * 5


def test_parse_search_result_empty():
    assert parse_search_result({"foods": []}) is None


def test_fdc_resolver_queries_search_endpoint():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=FDC_PAYLOAD)

    resolver = FoodDataCentralResolver(
        api_key="k", base_url="https://fdc.test/v1", transport=httpx.MockTransport(handler)
    )
    p = asyncio.run(resolver.resolve("jackfruit"))

    assert p.calories == 95
    assert seen[0].url.path == "/v1/foods/search"
    assert seen[0].url.params["query"] == "jackfruit"
    assert seen[0].url.params["pageSize"] == "1"
    assert seen[0].url.params["api_key"] == "k"


def test_fdc_resolver_failure_is_none():
    def timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    def server_error(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    for handler in (timeout, server_error):
        resolver = FoodDataCentralResolver(
            api_key="k", base_url="https://fdc.test/v1", transport=httpx.MockTransport(handler)
        )
        assert asyncio.run(resolver.resolve("jackfruit")) is None
