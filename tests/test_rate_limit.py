# tests/test_rate_limit.py
from __future__ import annotations

import math

from core.rate_limit import RateLimiter


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_second_call_inside_window_is_refused():
    clock = _Clock()
    limiter = RateLimiter(60, clock=clock)
    assert limiter.hit(("u1", "meal_plan")) is None
    clock.now += 15
    assert math.isclose(limiter.hit(("u1", "meal_plan")), 45)


def test_refused_call_does_not_extend_window():
    clock = _Clock()
    limiter = RateLimiter(60, clock=clock)
    limiter.hit("k")
    clock.now += 30
    limiter.hit("k")
    clock.now += 30
    assert limiter.hit("k") is None


def test_keys_are_independent():
    limiter = RateLimiter(60, clock=_Clock())
    assert limiter.hit(("u1", "meal_plan")) is None
    assert limiter.hit(("u1", "training_plan")) is None
    assert limiter.hit(("u2", "meal_plan")) is None


def test_reset():
    limiter = RateLimiter(60, clock=_Clock())
    limiter.hit("a")
    limiter.hit("b")
    limiter.reset("a")
    assert limiter.hit("a") is None
    assert limiter.hit("b") is not None
    limiter.reset()
    assert limiter.hit("b") is None
