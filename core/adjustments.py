"""
core/adjustments.py
────────────────────────────────────────────────────────────────────────
Decide whether a new check-in weight warrants a macro adjustment
proposal for the coach to review.
"""
from __future__ import annotations

import dataclasses
import logging

from core.macro_calc import ClientProfile, MacroTargets, generate_macro_targets

_LOG = logging.getLogger(__name__)

# strictly greater than this many kcal before a proposal is raised
ADJUSTMENT_THRESHOLD_KCAL = 50

PENDING = "pending"
DISMISSED = "dismissed"
APPROVED = "approved"


def evaluate_adjustment(
    profile: ClientProfile,
    current: MacroTargets,
    new_weight_kg: float,
) -> MacroTargets | None:
    """Recalculate with the check-in weight; return the proposal only when
    the calorie target moved by more than the threshold."""
    proposed = generate_macro_targets(dataclasses.replace(profile, weight_kg=new_weight_kg))
    delta = abs(proposed.calorie_target - current.calorie_target)
    if delta <= ADJUSTMENT_THRESHOLD_KCAL:
        _LOG.debug("no adjustment: Δ%d kcal", delta)
        return None
    _LOG.info(
        "adjustment proposed: %d → %d kcal (weight %.1f kg)",
        current.calorie_target, proposed.calorie_target, new_weight_kg,
    )
    return proposed
