# tests/test_units.py
from __future__ import annotations

import math

import pytest

from core.units import GRAM_FALLBACK_MIN, normalize_unit, parse_amount, round_half_up, to_grams


@pytest.mark.parametrize(
    "raw, expected",
    [("200", 200), ("200g", 200), ("1/2", 0.5), ("1 1/2", 1.5), (".5", 0.5),
     (150, 150), ("a pinch", 0), ("", 0), (None, 0)],
)
def test_parse_amount(raw, expected):
    assert math.isclose(parse_amount(raw), expected)


def test_grams_are_identity():
    assert to_grams("Chicken breast", 200, "g") == 200
    assert to_grams("Chicken breast", 200, " Grams ") == 200


def test_weight_and_volume_units():
    assert to_grams("rice", 1, "kg") == 1000
    assert to_grams("milk", 1, "cup") == 240
    assert to_grams("olive oil", 2, "tbsp") == 30
    assert math.isclose(to_grams("steak", 8, "oz"), 226.8)
    assert math.isclose(to_grams("ground beef", 1, "lb"), 453.6)


def test_piece_units_need_known_food():
    assert to_grams("Eggs", 3, "large") == 150
    assert to_grams("banana", 1, "medium") == 118
    assert to_grams("mystery fruit", 1, "whole") is None


def test_scoop_slice_can():
    assert to_grams("Whey protein", 1, "scoop") == 30
    assert to_grams("Whole wheat bread", 2, "slices") == 56
    assert to_grams("Tuna in water", 1, "can") == 142
    assert to_grams("Black beans", 1, "can") == 400


def test_unknown_unit_read_as_grams_above_threshold():
    assert to_grams("spinach", 50, "handful") == 50
    assert to_grams("spinach", GRAM_FALLBACK_MIN - 1, "handful") is None


def test_negative_amount_is_unconvertible():
    assert to_grams("rice", -5, "g") is None


def test_normalize_unit():
    assert normalize_unit(" Tbsp. ") == "tbsp"
    assert normalize_unit(None) == ""


@pytest.mark.parametrize("x, expected", [(2.5, 3), (0.5, 1), (2.4, 2), (3.5, 4), (399.5, 400)])
def test_round_half_up(x, expected):
    assert round_half_up(x) == expected
