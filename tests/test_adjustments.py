# tests/test_adjustments.py
from __future__ import annotations

import dataclasses

from core.adjustments import ADJUSTMENT_THRESHOLD_KCAL, evaluate_adjustment
from core.macro_calc import ClientProfile, generate_macro_targets

PROFILE = ClientProfile(
    age=30,
    sex="male",
    height_cm=180,
    weight_kg=90,
    goal="cut",
    activity_level="moderate",
    body_fat_percentage=22,
)
CURRENT = generate_macro_targets(PROFILE)


def _proposal_at(weight_kg):
    return generate_macro_targets(dataclasses.replace(PROFILE, weight_kg=weight_kg))


def test_same_weight_no_adjustment():
    assert evaluate_adjustment(PROFILE, CURRENT, 90) is None


def test_threshold_is_strictly_greater_than():
    proposed = _proposal_at(89)
    at_threshold = dataclasses.replace(
        proposed, calorie_target=proposed.calorie_target + ADJUSTMENT_THRESHOLD_KCAL
    )
    over_threshold = dataclasses.replace(
        proposed, calorie_target=proposed.calorie_target - ADJUSTMENT_THRESHOLD_KCAL - 1
    )
    assert evaluate_adjustment(PROFILE, at_threshold, 89) is None
    assert evaluate_adjustment(PROFILE, over_threshold, 89) == proposed


def test_large_weight_drop_proposes_recalculated_targets():
    proposal = evaluate_adjustment(PROFILE, CURRENT, 80)
    assert proposal is not None
    assert proposal.calorie_target == 2130
    assert proposal.calorie_target < CURRENT.calorie_target
    assert proposal.protein_g == round(80 * 2.205)
